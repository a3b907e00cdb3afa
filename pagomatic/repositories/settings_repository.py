# ==============================================================================
# REPOSITORIOS DE CONFIGURACIÓN Y SESIÓN
# ==============================================================================
# settings.json → ajustes del negocio (mapa plano clave → valor)
# session.json  → ranura de sesión persistida entre reinicios
# ==============================================================================

import os
from typing import Any, Dict, Optional

from pagomatic.repositories.base import DictRepository
from pagomatic.repositories.change_bus import ChangeBus


class SettingsRepository(DictRepository):
    """
    Repositorio de ajustes del negocio.

    Formato de datos en settings.json:
    {
        "storeName": "PAGOMATIC",
        "printerSize": "80mm",
        "requireDispatchApproval": false,
        "requirePaymentApproval": false,
        "requireInvoiceApproval": false
    }
    """

    COLLECTION = 'settings'

    def __init__(self, base_path: str, change_bus: ChangeBus = None):
        super().__init__(os.path.join(base_path, 'settings.json'))
        self.change_bus = change_bus

    def get_setting(self, key: str, default: Any = None) -> Any:
        """
        Obtiene un ajuste.

        Args:
            key: Clave del ajuste
            default: Valor si la clave no existe

        Returns:
            Valor del ajuste o default
        """
        value = self.get_by_id(key)
        return default if value is None else value

    def set_setting(self, key: str, value: Any) -> None:
        """Guarda un ajuste y notifica el cambio."""
        self.put(key, value)
        if self.change_bus is not None:
            self.change_bus.publish(self.COLLECTION)


class SessionRepository(DictRepository):
    """
    Ranura clave → valor para la sesión del usuario.

    Formato de datos en session.json:
    {"pagomatic_user": {"id": "u-admin", "username": "admin", "roles": ["ADMIN"]}}
    """

    # Nombre fijo de la ranura de sesión
    SESSION_KEY = 'pagomatic_user'

    def __init__(self, base_path: str):
        super().__init__(os.path.join(base_path, 'session.json'))

    def load_session(self) -> Optional[Dict[str, Any]]:
        value = self.get_by_id(self.SESSION_KEY)
        return value if isinstance(value, dict) else None

    def save_session(self, user_data: Dict[str, Any]) -> None:
        self.put(self.SESSION_KEY, user_data)

    def clear_session(self) -> None:
        self.remove(self.SESSION_KEY)
