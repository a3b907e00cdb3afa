# ==============================================================================
# CAPA DE SERVICIOS - Lógica de negocio
# ==============================================================================
# Esta capa contiene TODA la lógica de negocio de la aplicación.
#
# PRINCIPIOS:
# 1. Los servicios orquestan operaciones entre repositorios
# 2. Aplican reglas de negocio y validaciones
# 3. Las rutas (controllers) solo llaman a servicios
# 4. Los saldos se leen SIEMPRE del libro mayor (ledger_service), nunca de
#    los campos derivados guardados en los JSON
#
# ESTRUCTURA:
# ├── ledger_projections.py    → Funciones puras: stock, deudas, ganancias
# ├── ledger_service.py        → Consultas en vivo sobre el ChangeBus
# ├── approval_service.py      → Sala de espera (aprobar / rechazar)
# ├── authorization_service.py → Clave de administrador
# ├── dialog_service.py        → Confirmaciones, preguntas y claves
# ├── dispatch_service.py      → Despachos, devoluciones, anulaciones
# ├── inventory_service.py     → Productos y ajustes de stock
# ├── supplier_service.py      → Proveedores y facturas
# ├── store_service.py         → Sucursales
# ├── payment_service.py       → Pagos a proveedores y abonos
# ├── settings_service.py      → Ajustes del negocio
# ├── user_service.py          → Usuarios, sesión, permisos
# ├── audit_service.py         → Bitácora
# └── backup_service.py        → Exportar/importar y respaldos internos
# ==============================================================================

from pagomatic.services.audit_service import AuditService
from pagomatic.services.authorization_service import AuthorizationService
from pagomatic.services.ledger_service import LedgerService, LiveQuery
from pagomatic.services.settings_service import SettingsService
from pagomatic.services.approval_service import ApprovalService
from pagomatic.services.user_service import UserService, ProtectedRoleError
from pagomatic.services.inventory_service import InventoryService
from pagomatic.services.supplier_service import SupplierService
from pagomatic.services.store_service import StoreService
from pagomatic.services.payment_service import PaymentService
from pagomatic.services.dispatch_service import DispatchService
from pagomatic.services.backup_service import BackupService, BackupScheduler

__all__ = [
    'AuditService',
    'AuthorizationService',
    'LedgerService',
    'LiveQuery',
    'SettingsService',
    'ApprovalService',
    'UserService',
    'ProtectedRoleError',
    'InventoryService',
    'SupplierService',
    'StoreService',
    'PaymentService',
    'DispatchService',
    'BackupService',
    'BackupScheduler',
]
