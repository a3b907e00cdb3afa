# ==============================================================================
# CAPA DE REPOSITORIOS - Acceso a datos
# ==============================================================================
# Esta capa encapsula todo el acceso a la persistencia (archivos JSON).
# Las interfaces (métodos públicos) no dependen del formato de archivo.
#
# ESTRUCTURA:
# ├── interfaces.py           → Protocolos (contratos del almacén de documentos)
# ├── change_bus.py           → Suscripciones a cambios por colección
# ├── base.py                 → Clases base JSON (Dict, Collection, List)
# ├── catalog_repository.py   → products.json, suppliers.json, stores.json
# ├── document_repository.py  → invoices, dispatches, pagos, ajustes
# ├── user_repository.py      → users.json
# ├── audit_repository.py     → audit.json
# └── settings_repository.py  → settings.json, session.json
# ==============================================================================

from .interfaces import (
    IChangeBus,
    ICollectionRepository,
    IAuditRepository,
    ISettingsRepository,
    ISessionRepository,
)

from .change_bus import ChangeBus
from .base import BaseRepository, DictRepository, CollectionRepository, ListRepository
from .catalog_repository import ProductRepository, SupplierRepository, StoreRepository
from .document_repository import (
    InvoiceRepository,
    DispatchRepository,
    StorePaymentRepository,
    SupplierPaymentRepository,
    StockAdjustmentRepository,
)
from .user_repository import UserRepository
from .audit_repository import AuditRepository
from .settings_repository import SettingsRepository, SessionRepository

__all__ = [
    # Interfaces
    'IChangeBus',
    'ICollectionRepository',
    'IAuditRepository',
    'ISettingsRepository',
    'ISessionRepository',

    # Clases base
    'ChangeBus',
    'BaseRepository',
    'DictRepository',
    'CollectionRepository',
    'ListRepository',

    # Implementaciones JSON
    'ProductRepository',
    'SupplierRepository',
    'StoreRepository',
    'InvoiceRepository',
    'DispatchRepository',
    'StorePaymentRepository',
    'SupplierPaymentRepository',
    'StockAdjustmentRepository',
    'UserRepository',
    'AuditRepository',
    'SettingsRepository',
    'SessionRepository',
]
