# ==============================================================================
# CAPA DE MODELOS - Estructuras de datos del sistema
# ==============================================================================
# Entidades del dominio (dataclasses) y utilidades numéricas.
#   - Los montos y cantidades son Decimal (punto fijo)
#   - Los estados opcionales se normalizan a una variante por defecto
#   - Independiente del mecanismo de persistencia
# ==============================================================================

from .entities import (
    # Constantes
    LOCAL_SUPPLIER_ID,
    LOCAL_SUPPLIER_NAME,
    DEFAULT_MAX_DEBT_LIMIT,
    DEFAULT_PAYMENT_TERM_DAYS,

    # Enumeraciones
    UserRole,
    ApprovalStatus,
    DispatchStatus,
    PaymentStatus,
    InvoiceStatus,
    ReturnReason,
    AuditAction,
    AuditEntity,

    # Usuarios
    User,

    # Catálogo
    Product,
    Supplier,
    Store,
    StoreConfig,

    # Documentos
    Invoice,
    InvoiceItem,
    StockDispatch,
    DispatchItem,
    ProductReturn,
    StorePayment,
    SupplierPayment,
    StockAdjustment,

    # Auditoría
    AuditLogEntry,

    # Utilidades
    new_id,
    now_iso,
    today_iso,
    parse_flag,
)
from .money import (
    ZERO,
    TOLERANCE,
    BALANCE_EPSILON,
    parse_decimal,
    to_decimal,
    money_to_json,
    round_money,
)

__all__ = [
    'LOCAL_SUPPLIER_ID',
    'LOCAL_SUPPLIER_NAME',
    'DEFAULT_MAX_DEBT_LIMIT',
    'DEFAULT_PAYMENT_TERM_DAYS',

    'UserRole',
    'ApprovalStatus',
    'DispatchStatus',
    'PaymentStatus',
    'InvoiceStatus',
    'ReturnReason',
    'AuditAction',
    'AuditEntity',

    'User',

    'Product',
    'Supplier',
    'Store',
    'StoreConfig',

    'Invoice',
    'InvoiceItem',
    'StockDispatch',
    'DispatchItem',
    'ProductReturn',
    'StorePayment',
    'SupplierPayment',
    'StockAdjustment',

    'AuditLogEntry',

    'new_id',
    'now_iso',
    'today_iso',
    'parse_flag',

    'ZERO',
    'TOLERANCE',
    'BALANCE_EPSILON',
    'parse_decimal',
    'to_decimal',
    'money_to_json',
    'round_money',
]
