# ==============================================================================
# INTERFACES DE REPOSITORIOS
# ==============================================================================
#
# Contratos (protocolos) que los servicios esperan de la capa de datos.
#
# 1. INDEPENDENCIA DE ALMACENAMIENTO
#    - Los servicios dependen de estos contratos, no de los archivos JSON
#    - Otra implementación (SQLite, memoria) solo debe cumplirlos
#
# 2. TESTING
#    - Fácil crear dobles que implementen estas interfaces
#
# ==============================================================================

from typing import Any, Callable, Dict, Iterable, List, Optional, Protocol, runtime_checkable


# ==============================================================================
# ALMACÉN DE DOCUMENTOS
# ==============================================================================

@runtime_checkable
class IChangeBus(Protocol):
    """Primitiva de suscripción a cambios por colección."""

    def subscribe(self, collections: Iterable[str], callback: Callable[[str], None]) -> Callable[[], None]:
        ...

    def publish(self, collection: str) -> None:
        ...


@runtime_checkable
class ICollectionRepository(Protocol):
    """
    Colección de documentos indexada por id.
    Usado por: productos, proveedores, sucursales, facturas, despachos,
    pagos, ajustes de stock y usuarios.
    """

    COLLECTION: str

    def add(self, record: Dict[str, Any]) -> str:
        """Agrega un documento nuevo."""
        ...

    def update(self, record_id: str, fields: Dict[str, Any]) -> Optional[Dict[str, Any]]:
        """Fusión superficial; None si el documento no existe."""
        ...

    def delete(self, record_id: str) -> Optional[Dict[str, Any]]:
        """Elimina un documento."""
        ...

    def get(self, record_id: str) -> Optional[Dict[str, Any]]:
        """Obtiene un documento por id."""
        ...

    def all(self) -> List[Dict[str, Any]]:
        """Todos los documentos."""
        ...

    def filter(self, predicate: Callable[[Dict[str, Any]], bool]) -> List[Dict[str, Any]]:
        """Documentos que cumplen el predicado."""
        ...

    def clear(self) -> None:
        ...

    def bulk_add(self, records: Iterable[Dict[str, Any]]) -> int:
        ...


# ==============================================================================
# INTERFACES ESPECÍFICAS
# ==============================================================================

@runtime_checkable
class IAuditRepository(Protocol):
    """Bitácora de solo-agregar."""

    def append(self, entry: Dict[str, Any]) -> None:
        ...

    def get_recent_logs(self, limit: int = 100) -> List[Dict[str, Any]]:
        ...

    def search_logs(
        self,
        query: str = '',
        action: str = None,
        entity: str = None,
        entity_id: str = None,
        user_name: str = None
    ) -> List[Dict[str, Any]]:
        ...


@runtime_checkable
class ISettingsRepository(Protocol):
    """Ajustes del negocio (mapa plano)."""

    def get_setting(self, key: str, default: Any = None) -> Any:
        ...

    def set_setting(self, key: str, value: Any) -> None:
        ...


@runtime_checkable
class ISessionRepository(Protocol):
    """Ranura de sesión persistida."""

    def load_session(self) -> Optional[Dict[str, Any]]:
        ...

    def save_session(self, user_data: Dict[str, Any]) -> None:
        ...

    def clear_session(self) -> None:
        ...
