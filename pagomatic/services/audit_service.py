# ==============================================================================
# SERVICIO DE AUDITORÍA
# ==============================================================================
# Centraliza toda la lógica de registro de auditoría.
# Formatea mensajes humanizados y categoriza eventos por acción y entidad.
#
# La regla de oro: toda mutación de documentos deja una entrada, y todo
# intento bloqueado (crédito, stock, clave incorrecta) deja un 'block'.
# ==============================================================================

import logging
from decimal import Decimal
from typing import Any, Dict, List, Optional

from pagomatic.models import AuditAction, AuditEntity, AuditLogEntry, User, new_id, now_iso
from pagomatic.repositories.audit_repository import AuditRepository

logger = logging.getLogger(__name__)

# Usuario con el que se registran las acciones sin sesión
SYSTEM_USER_ID = 'system'
SYSTEM_USER_NAME = 'Sistema'


def format_money(amount: Decimal) -> str:
    return f"${amount:,.2f}"


class AuditService:
    """
    Servicio para registro y consulta de auditoría.

    Centraliza:
    - Registro de eventos con mensajes humanizados
    - Bloqueos de validación y de seguridad
    - Búsqueda y filtrado de logs
    """

    def __init__(self, audit_repo: AuditRepository):
        """
        Inicializa el servicio de auditoría.

        Args:
            audit_repo: Repositorio de auditoría
        """
        self.audit_repo = audit_repo

    # =========================================================================
    # REGISTRO DE EVENTOS
    # =========================================================================

    def log(
        self,
        action: AuditAction,
        entity: AuditEntity,
        entity_id: str,
        details: str,
        user: Optional[User] = None
    ) -> AuditLogEntry:
        """
        Registra un evento de auditoría genérico.

        Args:
            action: create, update, delete, anular, block
            entity: Tipo de documento afectado
            entity_id: Id del documento
            details: Mensaje descriptivo humanizado
            user: Usuario que realizó la acción (None = Sistema)

        Returns:
            Entrada registrada
        """
        entry = AuditLogEntry(
            id=new_id('log'),
            user_id=user.id if user else SYSTEM_USER_ID,
            user_name=(user.name or user.username) if user else SYSTEM_USER_NAME,
            action=AuditAction.parse(action),
            entity=AuditEntity.parse(entity),
            entity_id=entity_id or '',
            details=details,
            timestamp=now_iso(),
        )
        self.audit_repo.append(entry.to_dict())
        logger.debug("[AUDITORÍA] %s %s %s: %s", entry.action.value, entry.entity.value, entry.entity_id, details)
        return entry

    def log_block(
        self,
        entity: AuditEntity,
        entity_id: str,
        details: str,
        user: Optional[User] = None
    ) -> AuditLogEntry:
        """Registra un intento bloqueado (validación o seguridad)."""
        logger.info("[BLOQUEO] %s", details)
        return self.log(AuditAction.BLOCK, entity, entity_id, details, user)

    def log_dispatch_blocked(self, store_name: str, store_id: str, reason: str, user: Optional[User] = None) -> None:
        self.log_block(
            AuditEntity.STORE,
            store_id,
            f"Intento de despacho bloqueado a {store_name}: {reason}",
            user
        )

    def log_failed_authorization(self, action_label: str, user: Optional[User] = None) -> None:
        """Clave de administrador incorrecta."""
        self.log_block(
            AuditEntity.SECURITY,
            'auth',
            f"Intento fallido de autorización: {action_label}",
            user
        )

    def log_user_login(self, user: User) -> None:
        self.log(AuditAction.UPDATE, AuditEntity.USER, user.id, f"Inicio de sesión: {user.username}", user)

    def log_user_logout(self, user: User) -> None:
        self.log(AuditAction.UPDATE, AuditEntity.USER, user.id, f"Cierre de sesión: {user.username}", user)

    # =========================================================================
    # CONSULTA DE LOGS
    # =========================================================================

    def get_all_logs(self) -> List[Dict[str, Any]]:
        """Todos los logs, más reciente primero."""
        return self.audit_repo.get_all()

    def get_recent_logs(self, limit: int = 100) -> List[Dict[str, Any]]:
        return self.audit_repo.get_recent_logs(limit)

    def search_logs(
        self,
        query: str = '',
        action: str = None,
        entity: str = None,
        entity_id: str = None,
        user_name: str = None
    ) -> List[Dict[str, Any]]:
        """Búsqueda avanzada de logs."""
        return self.audit_repo.search_logs(query, action, entity, entity_id, user_name)

    def get_logs_for(self, entity: AuditEntity, entity_id: str) -> List[Dict[str, Any]]:
        """Historial de un documento."""
        return self.audit_repo.search_logs(entity=AuditEntity.parse(entity).value, entity_id=entity_id)

    def get_unique_users(self) -> List[str]:
        return sorted({log.get('userName', '') for log in self.audit_repo.get_all() if log.get('userName')})
