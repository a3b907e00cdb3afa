# ==============================================================================
# SERVICIO DE AJUSTES DEL NEGOCIO
# ==============================================================================
# Mapa plano clave → valor. Claves reconocidas:
#   storeName                 → nombre del negocio (se guarda en MAYÚSCULAS)
#   printerSize               → '58mm' o '80mm'
#   requireDispatchApproval   → despachos nuevos quedan 'pending'
#   requirePaymentApproval    → pagos nuevos quedan 'pending'
#   requireInvoiceApproval    → facturas nuevas quedan 'pending'
# ==============================================================================

import logging
from typing import Any, Dict, Optional

from pagomatic.models import AuditAction, AuditEntity, User, parse_flag
from pagomatic.repositories.settings_repository import SettingsRepository
from pagomatic.services.audit_service import AuditService

logger = logging.getLogger(__name__)


DEFAULTS = {
    'storeName': 'PAGOMATIC',
    'printerSize': '80mm',
    'requireDispatchApproval': False,
    'requirePaymentApproval': False,
    'requireInvoiceApproval': False,
}

APPROVAL_FLAGS = ('requireDispatchApproval', 'requirePaymentApproval', 'requireInvoiceApproval')

PRINTER_SIZES = ('58mm', '80mm')


class SettingsService:

    def __init__(self, settings_repo: SettingsRepository, audit_service: AuditService = None):
        self.settings_repo = settings_repo
        self.audit_service = audit_service

    def get(self, key: str) -> Any:
        if key not in DEFAULTS:
            raise KeyError(key)
        return self.settings_repo.get_setting(key, DEFAULTS[key])

    def get_all(self) -> Dict[str, Any]:
        stored = self.settings_repo.get_all()
        return {key: stored.get(key, default) for key, default in DEFAULTS.items()}

    def is_enabled(self, flag: str) -> bool:
        return bool(self.get(flag))

    def update(self, changes: Dict[str, Any], user: Optional[User] = None) -> Dict[str, Any]:
        """
        Guarda uno o más ajustes.

        Args:
            changes: {clave: valor}
            user: Usuario que hace el cambio

        Returns:
            {'ok': True, 'settings': {...}} o {'ok': False, 'reason': 'invalid', 'error': str}
        """
        unknown = [key for key in changes if key not in DEFAULTS]
        if unknown:
            return {'ok': False, 'reason': 'invalid', 'error': f"Ajuste desconocido: {', '.join(unknown)}"}

        normalized = {}
        for key, value in changes.items():
            if key == 'storeName':
                value = str(value or '').strip().upper()
                if not value:
                    return {'ok': False, 'reason': 'invalid', 'error': 'El nombre del negocio es requerido'}
            elif key == 'printerSize':
                if value not in PRINTER_SIZES:
                    return {'ok': False, 'reason': 'invalid', 'error': f"Tamaño de impresora inválido: {value}"}
            else:
                value = parse_flag(value)
                if value is None:
                    return {'ok': False, 'reason': 'invalid', 'error': f"Valor inválido para {key}"}
            normalized[key] = value

        for key, value in normalized.items():
            self.settings_repo.set_setting(key, value)

        if normalized and self.audit_service:
            summary = ', '.join(f"{k}={v}" for k, v in normalized.items())
            self.audit_service.log(AuditAction.UPDATE, AuditEntity.SETTINGS, 'settings', f"Ajustes actualizados: {summary}", user)
        logger.info("[AJUSTES] %s", normalized)

        return {'ok': True, 'settings': self.get_all()}
