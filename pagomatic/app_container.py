# ==============================================================================
# CONTENEDOR DE DEPENDENCIAS - Inyección de servicios
# ==============================================================================
# Este módulo proporciona una forma centralizada de obtener instancias
# de repositorios y servicios. Facilita:
#   - Inyección de dependencias
#   - Testing (un contenedor por carpeta temporal)
#   - Un único ChangeBus compartido por todos los repositorios, de modo que
#     cualquier escritura invalide el libro mayor
#
# Al primer acceso a los servicios se siembran los datos mínimos:
# proveedor reservado 'sup-local' y usuarios iniciales.
# ==============================================================================

import os
from typing import Dict, Optional

from pagomatic.config import Config
from pagomatic.models import AuditEntity
from pagomatic.repositories import (
    AuditRepository,
    ChangeBus,
    CollectionRepository,
    DispatchRepository,
    InvoiceRepository,
    ProductRepository,
    SessionRepository,
    SettingsRepository,
    StockAdjustmentRepository,
    StorePaymentRepository,
    StoreRepository,
    SupplierPaymentRepository,
    SupplierRepository,
    UserRepository,
)
from pagomatic.services import (
    ApprovalService,
    AuditService,
    AuthorizationService,
    BackupService,
    DispatchService,
    InventoryService,
    LedgerService,
    PaymentService,
    SettingsService,
    StoreService,
    SupplierService,
    UserService,
)


class AppContainer:
    """
    Contenedor de dependencias de la aplicación.

    Implementa el patrón Singleton para asegurar una única instancia
    de cada repositorio y servicio.

    Uso:
        container = AppContainer(base_path='/path/to/data')
        dispatch_service = container.dispatch_service
        metrics = container.ledger_service.metrics()
    """

    _instance: Optional['AppContainer'] = None

    def __new__(cls, base_path: str = None):
        """Singleton pattern."""
        if cls._instance is None:
            cls._instance = super().__new__(cls)
            cls._instance._initialized = False
        return cls._instance

    def __init__(self, base_path: str = None):
        """
        Inicializa el contenedor.

        Args:
            base_path: Directorio de datos (default Config.DATA_DIR)
        """
        if self._initialized:
            return

        self._base_path = base_path or Config.DATA_DIR
        os.makedirs(self._base_path, exist_ok=True)
        self._repos: Dict[str, object] = {}
        self._services: Dict[str, object] = {}
        self._change_bus = ChangeBus()
        self._seeded = False

        self._initialized = True

    @property
    def base_path(self) -> str:
        return self._base_path

    @property
    def change_bus(self) -> ChangeBus:
        return self._change_bus

    # =========================================================================
    # REPOSITORIOS
    # =========================================================================

    def _repo(self, key: str, factory):
        if key not in self._repos:
            self._repos[key] = factory()
        return self._repos[key]

    @property
    def product_repo(self) -> ProductRepository:
        return self._repo('products', lambda: ProductRepository(self._base_path, self._change_bus))

    @property
    def supplier_repo(self) -> SupplierRepository:
        return self._repo('suppliers', lambda: SupplierRepository(self._base_path, self._change_bus))

    @property
    def store_repo(self) -> StoreRepository:
        return self._repo('stores', lambda: StoreRepository(self._base_path, self._change_bus))

    @property
    def invoice_repo(self) -> InvoiceRepository:
        return self._repo('invoices', lambda: InvoiceRepository(self._base_path, self._change_bus))

    @property
    def dispatch_repo(self) -> DispatchRepository:
        return self._repo('dispatches', lambda: DispatchRepository(self._base_path, self._change_bus))

    @property
    def store_payment_repo(self) -> StorePaymentRepository:
        return self._repo('storePayments', lambda: StorePaymentRepository(self._base_path, self._change_bus))

    @property
    def supplier_payment_repo(self) -> SupplierPaymentRepository:
        return self._repo('supplierPayments', lambda: SupplierPaymentRepository(self._base_path, self._change_bus))

    @property
    def adjustment_repo(self) -> StockAdjustmentRepository:
        return self._repo('stockAdjustments', lambda: StockAdjustmentRepository(self._base_path, self._change_bus))

    @property
    def user_repo(self) -> UserRepository:
        return self._repo('users', lambda: UserRepository(self._base_path, self._change_bus))

    @property
    def audit_repo(self) -> AuditRepository:
        return self._repo('audit', lambda: AuditRepository(self._base_path, self._change_bus))

    @property
    def settings_repo(self) -> SettingsRepository:
        return self._repo('settings', lambda: SettingsRepository(self._base_path, self._change_bus))

    @property
    def session_repo(self) -> SessionRepository:
        return self._repo('session', lambda: SessionRepository(self._base_path))

    def business_repositories(self) -> Dict[str, CollectionRepository]:
        """Colecciones del negocio por nombre (libro mayor y respaldos)."""
        return {
            'products': self.product_repo,
            'suppliers': self.supplier_repo,
            'stores': self.store_repo,
            'invoices': self.invoice_repo,
            'dispatches': self.dispatch_repo,
            'storePayments': self.store_payment_repo,
            'supplierPayments': self.supplier_payment_repo,
            'stockAdjustments': self.adjustment_repo,
        }

    # =========================================================================
    # SERVICIOS
    # =========================================================================

    def _service(self, key: str, factory):
        if key not in self._services:
            self._services[key] = factory()
            self._ensure_seeded()
        return self._services[key]

    @property
    def audit_service(self) -> AuditService:
        return self._service('audit', lambda: AuditService(self.audit_repo))

    @property
    def ledger_service(self) -> LedgerService:
        return self._service('ledger', lambda: LedgerService(self.business_repositories(), self._change_bus))

    @property
    def settings_service(self) -> SettingsService:
        return self._service('settings', lambda: SettingsService(self.settings_repo, self.audit_service))

    @property
    def authorization_service(self) -> AuthorizationService:
        return self._service('authorization', lambda: AuthorizationService(self.user_repo, self.audit_service))

    @property
    def approval_service(self) -> ApprovalService:
        return self._service('approval', lambda: ApprovalService(
            {
                AuditEntity.DISPATCH: self.dispatch_repo,
                AuditEntity.INVOICE: self.invoice_repo,
                AuditEntity.PAYMENT: self.supplier_payment_repo,
                AuditEntity.STORE_PAYMENT: self.store_payment_repo,
            },
            self.settings_service,
            self.audit_service
        ))

    @property
    def user_service(self) -> UserService:
        return self._service('user', lambda: UserService(self.user_repo, self.session_repo, self.audit_service))

    @property
    def inventory_service(self) -> InventoryService:
        return self._service('inventory', lambda: InventoryService(
            self.product_repo,
            self.adjustment_repo,
            self.invoice_repo,
            self.ledger_service,
            self.audit_service
        ))

    @property
    def supplier_service(self) -> SupplierService:
        return self._service('supplier', lambda: SupplierService(
            self.supplier_repo,
            self.invoice_repo,
            self.product_repo,
            self.ledger_service,
            self.approval_service,
            self.audit_service
        ))

    @property
    def store_service(self) -> StoreService:
        return self._service('store', lambda: StoreService(
            self.store_repo,
            self.dispatch_repo,
            self.store_payment_repo,
            self.ledger_service,
            self.audit_service
        ))

    @property
    def payment_service(self) -> PaymentService:
        return self._service('payment', lambda: PaymentService(
            self.supplier_payment_repo,
            self.store_payment_repo,
            self.supplier_repo,
            self.store_repo,
            self.ledger_service,
            self.approval_service,
            self.authorization_service,
            self.audit_service
        ))

    @property
    def dispatch_service(self) -> DispatchService:
        return self._service('dispatch', lambda: DispatchService(
            self.dispatch_repo,
            self.invoice_repo,
            self.ledger_service,
            self.approval_service,
            self.authorization_service,
            self.audit_service
        ))

    @property
    def backup_service(self) -> BackupService:
        return self._service('backup', lambda: BackupService(
            self._base_path,
            self.business_repositories(),
            self._change_bus,
            after_import=self.supplier_service.ensure_local_supplier
        ))

    # =========================================================================
    # DATOS INICIALES
    # =========================================================================

    def _ensure_seeded(self) -> None:
        if self._seeded:
            return
        # Marcar antes de sembrar: la siembra vuelve a pasar por _service()
        self._seeded = True
        self.supplier_service.ensure_local_supplier()
        self.user_service.ensure_default_users()

    # =========================================================================
    # UTILIDADES
    # =========================================================================

    def reset(self) -> None:
        """
        Reinicia todas las instancias.
        Útil para testing o para recargar datos.
        """
        ledger = self._services.get('ledger')
        if ledger is not None:
            ledger.close()
        self._repos = {}
        self._services = {}
        self._change_bus = ChangeBus()
        self._seeded = False

    @classmethod
    def get_instance(cls, base_path: str = None) -> 'AppContainer':
        """
        Obtiene la instancia singleton del contenedor.

        Args:
            base_path: Directorio de datos (solo se usa en primera llamada)

        Returns:
            Instancia del contenedor
        """
        if cls._instance is None:
            return cls(base_path)
        return cls._instance

    @classmethod
    def reset_instance(cls) -> None:
        """Elimina la instancia singleton (útil para tests)."""
        if cls._instance is not None:
            cls._instance.reset()
            cls._instance = None


# Función helper para obtener el contenedor global
def get_container(base_path: str = None) -> AppContainer:
    """
    Obtiene el contenedor de dependencias global.

    Args:
        base_path: Directorio de datos

    Returns:
        Instancia del contenedor
    """
    return AppContainer.get_instance(base_path)
