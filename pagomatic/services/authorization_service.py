# ==============================================================================
# PUERTA DE AUTORIZACIÓN - Clave de administrador
# ==============================================================================
# Protege las operaciones destructivas (anular despachos, siniestros,
# anular pagos). El protocolo:
#   1. Se pide una clave por el canal de diálogos
#   2. Sin respuesta → 'cancelled', la operación aborta sin efectos
#   3. Se compara contra la clave de CUALQUIER usuario con rol ADMIN
#   4. Sin coincidencia → 'unauthorized' + entrada 'block' en la bitácora
# ==============================================================================

import logging
from typing import Any, Dict, Optional

from werkzeug.security import check_password_hash

from pagomatic.models import User, UserRole
from pagomatic.repositories.user_repository import UserRepository
from pagomatic.services.audit_service import AuditService
from pagomatic.services.dialog_service import Responder, request_password

logger = logging.getLogger(__name__)


def is_password_hashed(password_value: str) -> bool:
    """
    Verifica si una contraseña ya está hasheada.

    Returns:
        True si está hasheado (pbkdf2: o scrypt:)
    """
    if not password_value:
        return False
    return password_value.startswith('pbkdf2:') or password_value.startswith('scrypt:')


def check_password(stored: str, candidate: str) -> bool:
    """
    Compara una clave ingresada con la almacenada.
    Acepta hash werkzeug o texto plano (legacy).
    """
    if not stored:
        return False
    if is_password_hashed(stored):
        return check_password_hash(stored, candidate)
    return stored == candidate


class AuthorizationService:
    """Desafío de clave de administrador antes de operaciones destructivas."""

    def __init__(self, user_repo: UserRepository, audit_service: AuditService):
        self.user_repo = user_repo
        self.audit_service = audit_service

    def matches_admin_password(self, candidate: str) -> bool:
        admins = [User.from_dict(u) for u in self.user_repo.all()]
        return any(
            check_password(admin.password, candidate)
            for admin in admins
            if admin.has_role(UserRole.ADMIN)
        )

    def request_admin_approval(
        self,
        action_label: str,
        responder: Optional[Responder],
        user: Optional[User] = None
    ) -> Dict[str, Any]:
        """
        Pide la clave de administrador para una acción.

        Args:
            action_label: Descripción humana de la acción ("Anular despacho D00012")
            responder: Canal de diálogos
            user: Usuario que intenta la acción

        Returns:
            {'ok': True} si la clave corresponde a un ADMIN,
            {'ok': False, 'reason': 'cancelled'|'unauthorized', 'error': str}
        """
        password = request_password(
            responder,
            'Autorización requerida',
            f"Ingrese la clave de administrador para: {action_label}"
        )
        if password is None:
            return {'ok': False, 'reason': 'cancelled', 'error': 'Operación cancelada'}

        if not self.matches_admin_password(password):
            logger.warning("[AUTH] Clave de administrador incorrecta para: %s", action_label)
            self.audit_service.log_failed_authorization(action_label, user)
            return {'ok': False, 'reason': 'unauthorized', 'error': 'Clave de administrador incorrecta'}

        return {'ok': True}
