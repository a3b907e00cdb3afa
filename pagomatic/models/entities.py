# ==============================================================================
# ENTIDADES DEL DOMINIO - Definiciones de dataclasses
# ==============================================================================
# Cada entidad representa un documento o registro del negocio de
# distribución. Los campos derivados (stock, deudas, saldos) se calculan
# en services/ledger_projections.py y nunca son fuente de verdad.
#
# Los campos opcionales del formato persistido (approvalStatus, status,
# active) se normalizan aquí a una variante explícita por defecto, de modo
# que las proyecciones nunca ven un campo ausente.
# ==============================================================================

from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Any, Dict, List, Optional

from .money import ZERO, money_to_json, parse_decimal, to_decimal


# Proveedor reservado para producción propia, mermas y ajustes
LOCAL_SUPPLIER_ID = 'sup-local'
LOCAL_SUPPLIER_NAME = 'PRODUCCIÓN PROPIA (LOCAL)'

# Valores por defecto de crédito de sucursal
DEFAULT_MAX_DEBT_LIMIT = Decimal('20000')
DEFAULT_PAYMENT_TERM_DAYS = 15


# ==============================================================================
# ENUMERACIONES - Estados y tipos válidos
# ==============================================================================

class _ParsableEnum(str, Enum):
    """Enum con conversión tolerante desde el valor persistido."""

    @classmethod
    def default(cls) -> '_ParsableEnum':
        raise NotImplementedError

    @classmethod
    def parse(cls, value: Any) -> '_ParsableEnum':
        if isinstance(value, cls):
            return value
        try:
            return cls(value)
        except ValueError:
            return cls.default()


class UserRole(_ParsableEnum):
    """Roles de usuario disponibles en el sistema."""
    ADMIN = 'ADMIN'
    COMPRAS = 'COMPRAS'
    DESPACHOS = 'DESPACHOS'
    COBRANZA = 'COBRANZA'
    AUDITOR = 'AUDITOR'

    @classmethod
    def default(cls):
        return cls.AUDITOR


class ApprovalStatus(_ParsableEnum):
    """Estado de aprobación. Ausente equivale a aprobado."""
    APPROVED = 'approved'
    PENDING = 'pending'
    REJECTED = 'rejected'

    @classmethod
    def default(cls):
        return cls.APPROVED


class DispatchStatus(_ParsableEnum):
    """Estados de un despacho a sucursal."""
    ACTIVE = 'active'
    PARTIAL_RETURN = 'partial_return'
    RETURNED = 'returned'
    CANCELLED = 'cancelled'

    @classmethod
    def default(cls):
        return cls.ACTIVE


class PaymentStatus(_ParsableEnum):
    """Estados de un pago (abono de sucursal o pago a proveedor)."""
    ACTIVE = 'active'
    CANCELLED = 'cancelled'

    @classmethod
    def default(cls):
        return cls.ACTIVE


class InvoiceStatus(_ParsableEnum):
    """Estado de cobro de una factura (derivado)."""
    PENDING = 'pending'
    PARTIAL = 'partial'
    PAID = 'paid'

    @classmethod
    def default(cls):
        return cls.PENDING


class ReturnReason(_ParsableEnum):
    """Motivo de devolución. Solo GOOD_CONDITION regresa al almacén."""
    GOOD_CONDITION = 'good_condition'
    DAMAGED = 'damaged'
    EXPIRED = 'expired'
    LOST = 'lost'
    OTHER = 'other'

    @classmethod
    def default(cls):
        return cls.OTHER


class AuditAction(_ParsableEnum):
    """Acciones registradas en la bitácora."""
    CREATE = 'create'
    UPDATE = 'update'
    DELETE = 'delete'
    ANULAR = 'anular'
    BLOCK = 'block'

    @classmethod
    def default(cls):
        return cls.UPDATE


class AuditEntity(_ParsableEnum):
    """Entidades sobre las que se registra actividad."""
    DISPATCH = 'dispatch'
    PAYMENT = 'payment'
    STORE_PAYMENT = 'store_payment'
    INVOICE = 'invoice'
    PRODUCT = 'product'
    STORE = 'store'
    SUPPLIER = 'supplier'
    USER = 'user'
    SECURITY = 'security'
    SETTINGS = 'settings'

    @classmethod
    def default(cls):
        return cls.SECURITY


def now_iso() -> str:
    """Marca de tiempo ISO del momento actual."""
    return datetime.now().isoformat(timespec='milliseconds')


def today_iso() -> str:
    """Fecha actual YYYY-MM-DD."""
    return datetime.now().date().isoformat()


def new_id(prefix: str) -> str:
    """
    Genera un identificador `<prefijo>-<milisegundos>`.
    Dos llamadas en el mismo milisegundo reciben ids distintos.
    """
    global _last_id_ms
    ms = int(datetime.now().timestamp() * 1000)
    if ms <= _last_id_ms:
        ms = _last_id_ms + 1
    _last_id_ms = ms
    return f'{prefix}-{ms}'


_last_id_ms = 0


def _int(value: Any, default: int = 0) -> int:
    number = parse_decimal(value)
    return default if number is None else int(number)


_TRUE_WORDS = {'true', '1', 'si', 'sí', 'yes', 'on'}
_FALSE_WORDS = {'false', '0', 'no', 'off', ''}


def parse_flag(value: Any, default: Optional[bool] = None) -> Optional[bool]:
    """
    Convierte un indicador recibido por la API o leído de disco a bool.

    Acepta bool, números y cadenas ("true", "false", "si", "no", "1", "0"...).
    None devuelve `default`; cualquier otro valor devuelve None.
    """
    if value is None:
        return default
    if isinstance(value, bool):
        return value
    if isinstance(value, (int, float, Decimal)):
        return value != 0
    if isinstance(value, str):
        text = value.strip().lower()
        if text in _TRUE_WORDS:
            return True
        if text in _FALSE_WORDS:
            return False
    return None


# ==============================================================================
# USUARIOS
# ==============================================================================

@dataclass
class User:
    """
    Usuario del sistema.

    Attributes:
        id: Identificador (u-<ts>)
        username: Nombre de acceso
        name: Nombre visible
        roles: Roles asignados
        password: Hash werkzeug (o texto plano legacy); vacío = sin clave
    """
    id: str
    username: str
    name: str = ''
    roles: List[UserRole] = field(default_factory=list)
    password: str = ''
    avatar: str = ''

    def has_role(self, role: UserRole) -> bool:
        return role in self.roles

    def is_admin(self) -> bool:
        return UserRole.ADMIN in self.roles

    def to_session_dict(self) -> Dict[str, Any]:
        """Usuario sanitizado (sin clave) para la sesión persistida."""
        return {
            'id': self.id,
            'username': self.username,
            'name': self.name,
            'roles': [r.value for r in self.roles],
            'avatar': self.avatar,
        }

    def to_dict(self) -> Dict[str, Any]:
        data = self.to_session_dict()
        data['password'] = self.password
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'User':
        raw_roles = data.get('roles')
        if raw_roles is None and data.get('role'):
            # Formato antiguo con un solo rol
            raw_roles = [data.get('role')]
        roles = []
        for raw in raw_roles or []:
            role = UserRole.parse(str(raw).upper())
            if role not in roles:
                roles.append(role)
        return cls(
            id=data.get('id', ''),
            username=data.get('username', ''),
            name=data.get('name', '') or data.get('username', ''),
            roles=roles,
            password=data.get('password', '') or '',
            avatar=data.get('avatar', '') or '',
        )


# ==============================================================================
# CATÁLOGO: PRODUCTOS, PROVEEDORES, SUCURSALES
# ==============================================================================

@dataclass
class Product:
    """
    Producto del almacén central.

    `stock` es derivado; el valor persistido se ignora al proyectar.
    """
    id: str
    name: str
    supplier_id: str = ''
    purchase_cost: Decimal = ZERO
    purchase_tax: Decimal = ZERO
    purchase_freight: Decimal = ZERO
    supply_price: Decimal = ZERO
    retail_price: Decimal = ZERO
    min_stock: Decimal = ZERO
    max_stock: Decimal = ZERO
    unit: str = 'u'
    brand: str = ''
    presentation: str = ''
    stock: Decimal = ZERO

    @property
    def unit_cost(self) -> Decimal:
        """Costo completo: compra + impuesto + flete."""
        return self.purchase_cost + self.purchase_tax + self.purchase_freight

    def is_low_stock(self) -> bool:
        return self.stock <= self.min_stock

    def to_dict(self) -> Dict[str, Any]:
        return {
            'id': self.id,
            'name': self.name,
            'supplierId': self.supplier_id,
            'purchaseCost': money_to_json(self.purchase_cost),
            'purchaseTax': money_to_json(self.purchase_tax),
            'purchaseFreight': money_to_json(self.purchase_freight),
            'supplyPrice': money_to_json(self.supply_price),
            'retailPrice': money_to_json(self.retail_price),
            'minStock': money_to_json(self.min_stock),
            'maxStock': money_to_json(self.max_stock),
            'unit': self.unit,
            'brand': self.brand,
            'presentation': self.presentation,
            'stock': money_to_json(self.stock),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'Product':
        return cls(
            id=data.get('id', ''),
            name=data.get('name', ''),
            supplier_id=data.get('supplierId', '') or '',
            purchase_cost=to_decimal(data.get('purchaseCost')),
            purchase_tax=to_decimal(data.get('purchaseTax')),
            purchase_freight=to_decimal(data.get('purchaseFreight')),
            supply_price=to_decimal(data.get('supplyPrice')),
            retail_price=to_decimal(data.get('retailPrice')),
            min_stock=to_decimal(data.get('minStock')),
            max_stock=to_decimal(data.get('maxStock')),
            unit=data.get('unit', 'u') or 'u',
            brand=data.get('brand', '') or '',
            presentation=data.get('presentation', '') or '',
            stock=to_decimal(data.get('stock')),
        )


@dataclass
class Supplier:
    """Proveedor. `total_volume` y `debt` son derivados."""
    id: str
    name: str
    tax_id: str = ''
    phone: str = ''
    address: str = ''
    email: str = ''
    bank_account: str = ''
    color: str = ''
    total_volume: Decimal = ZERO
    debt: Decimal = ZERO

    def to_dict(self) -> Dict[str, Any]:
        return {
            'id': self.id,
            'name': self.name,
            'taxId': self.tax_id,
            'phone': self.phone,
            'address': self.address,
            'email': self.email,
            'bankAccount': self.bank_account,
            'color': self.color,
            'totalVolume': money_to_json(self.total_volume),
            'debt': money_to_json(self.debt),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'Supplier':
        return cls(
            id=data.get('id', ''),
            name=data.get('name', ''),
            tax_id=data.get('taxId', '') or '',
            phone=data.get('phone', '') or '',
            address=data.get('address', '') or '',
            email=data.get('email', '') or '',
            bank_account=data.get('bankAccount', '') or '',
            color=data.get('color', '') or '',
            total_volume=to_decimal(data.get('totalVolume')),
            debt=to_decimal(data.get('debt')),
        )


@dataclass
class StoreConfig:
    """Condiciones de crédito de una sucursal."""
    allows_credit: bool = True
    max_debt_limit: Optional[Decimal] = None
    payment_term_days: Optional[int] = None
    tax_id: str = ''

    @property
    def effective_debt_limit(self) -> Decimal:
        # Un límite ausente o en cero usa el valor por defecto
        if not self.max_debt_limit:
            return DEFAULT_MAX_DEBT_LIMIT
        return self.max_debt_limit

    @property
    def effective_payment_term(self) -> int:
        return self.payment_term_days or DEFAULT_PAYMENT_TERM_DAYS

    def to_dict(self) -> Dict[str, Any]:
        return {
            'allowsCredit': self.allows_credit,
            'maxDebtLimit': money_to_json(self.max_debt_limit),
            'paymentTermDays': self.payment_term_days,
            'taxId': self.tax_id,
        }

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> 'StoreConfig':
        data = data or {}
        term = parse_decimal(data.get('paymentTermDays'))
        return cls(
            allows_credit=bool(data.get('allowsCredit', True)),
            max_debt_limit=parse_decimal(data.get('maxDebtLimit')),
            payment_term_days=int(term) if term is not None else None,
            tax_id=data.get('taxId', '') or '',
        )


@dataclass
class Store:
    """Sucursal cliente. `total_debt` es derivado."""
    id: str
    name: str
    color: str = ''
    location: str = ''
    manager: str = ''
    phone: str = ''
    address: str = ''
    config: StoreConfig = field(default_factory=StoreConfig)
    active: bool = True
    total_debt: Decimal = ZERO

    def to_dict(self) -> Dict[str, Any]:
        return {
            'id': self.id,
            'name': self.name,
            'color': self.color,
            'location': self.location,
            'manager': self.manager,
            'phone': self.phone,
            'address': self.address,
            'config': self.config.to_dict(),
            'active': self.active,
            'totalDebt': money_to_json(self.total_debt),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'Store':
        return cls(
            id=data.get('id', ''),
            name=data.get('name', ''),
            color=data.get('color', '') or '',
            location=data.get('location', '') or '',
            manager=data.get('manager', '') or '',
            phone=data.get('phone', '') or '',
            address=data.get('address', '') or '',
            config=StoreConfig.from_dict(data.get('config')),
            # Solo un active falso explícito suspende la sucursal
            active=parse_flag(data.get('active'), default=True) is not False,
            total_debt=to_decimal(data.get('totalDebt')),
        )


# ==============================================================================
# DOCUMENTOS: FACTURAS DE PROVEEDOR
# ==============================================================================

@dataclass
class InvoiceItem:
    product_id: str
    quantity: Decimal
    unit_cost: Decimal = ZERO
    unit_tax: Decimal = ZERO
    unit_freight: Decimal = ZERO
    total_item_cost: Decimal = ZERO

    def to_dict(self) -> Dict[str, Any]:
        return {
            'productId': self.product_id,
            'quantity': money_to_json(self.quantity),
            'unitCost': money_to_json(self.unit_cost),
            'unitTax': money_to_json(self.unit_tax),
            'unitFreight': money_to_json(self.unit_freight),
            'totalItemCost': money_to_json(self.total_item_cost),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'InvoiceItem':
        return cls(
            product_id=data.get('productId', ''),
            quantity=to_decimal(data.get('quantity')),
            unit_cost=to_decimal(data.get('unitCost')),
            unit_tax=to_decimal(data.get('unitTax')),
            unit_freight=to_decimal(data.get('unitFreight')),
            total_item_cost=to_decimal(data.get('totalItemCost')),
        )


@dataclass
class Invoice:
    """
    Factura de proveedor (entrada de stock).

    `amount_paid` y `status` son derivados de los pagos vinculados.
    """
    id: str
    supplier_id: str
    invoice_number: str
    date: str = ''
    due_date: str = ''
    items: List[InvoiceItem] = field(default_factory=list)
    total_amount: Decimal = ZERO
    amount_paid: Decimal = ZERO
    status: InvoiceStatus = InvoiceStatus.PENDING
    approval_status: ApprovalStatus = ApprovalStatus.APPROVED
    authorized_by: str = ''
    authorized_at: str = ''
    notes: str = ''

    @property
    def is_pending_approval(self) -> bool:
        return self.approval_status == ApprovalStatus.PENDING

    def quantity_for(self, product_id: str) -> Decimal:
        return sum((i.quantity for i in self.items if i.product_id == product_id), ZERO)

    def to_dict(self) -> Dict[str, Any]:
        return {
            'id': self.id,
            'supplierId': self.supplier_id,
            'invoiceNumber': self.invoice_number,
            'date': self.date,
            'dueDate': self.due_date,
            'items': [i.to_dict() for i in self.items],
            'totalAmount': money_to_json(self.total_amount),
            'amountPaid': money_to_json(self.amount_paid),
            'status': self.status.value,
            'approvalStatus': self.approval_status.value,
            'authorizedBy': self.authorized_by,
            'authorizedAt': self.authorized_at,
            'notes': self.notes,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'Invoice':
        return cls(
            id=data.get('id', ''),
            supplier_id=data.get('supplierId', ''),
            invoice_number=str(data.get('invoiceNumber', '') or ''),
            date=data.get('date', '') or '',
            due_date=data.get('dueDate', '') or '',
            items=[InvoiceItem.from_dict(i) for i in data.get('items') or []],
            total_amount=to_decimal(data.get('totalAmount')),
            amount_paid=to_decimal(data.get('amountPaid')),
            status=InvoiceStatus.parse(data.get('status')),
            approval_status=ApprovalStatus.parse(data.get('approvalStatus')),
            authorized_by=data.get('authorizedBy', '') or '',
            authorized_at=data.get('authorizedAt', '') or '',
            notes=data.get('notes', '') or '',
        )


# ==============================================================================
# DOCUMENTOS: DESPACHOS Y DEVOLUCIONES
# ==============================================================================

@dataclass
class DispatchItem:
    product_id: str
    quantity: Decimal
    unit_supply_price: Decimal = ZERO

    @property
    def line_total(self) -> Decimal:
        return self.quantity * self.unit_supply_price

    def to_dict(self) -> Dict[str, Any]:
        return {
            'productId': self.product_id,
            'quantity': money_to_json(self.quantity),
            'unitSupplyPrice': money_to_json(self.unit_supply_price),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'DispatchItem':
        return cls(
            product_id=data.get('productId', ''),
            quantity=to_decimal(data.get('quantity')),
            unit_supply_price=to_decimal(data.get('unitSupplyPrice')),
        )


@dataclass
class ProductReturn:
    id: str
    dispatch_id: str
    product_id: str
    quantity: Decimal
    reason: ReturnReason = ReturnReason.GOOD_CONDITION
    timestamp: str = ''
    note: str = ''

    @property
    def restores_stock(self) -> bool:
        return self.reason == ReturnReason.GOOD_CONDITION

    def to_dict(self) -> Dict[str, Any]:
        return {
            'id': self.id,
            'dispatchId': self.dispatch_id,
            'productId': self.product_id,
            'quantity': money_to_json(self.quantity),
            'reason': self.reason.value,
            'timestamp': self.timestamp,
            'note': self.note,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'ProductReturn':
        return cls(
            id=data.get('id', ''),
            dispatch_id=data.get('dispatchId', ''),
            product_id=data.get('productId', ''),
            quantity=to_decimal(data.get('quantity')),
            reason=ReturnReason.parse(data.get('reason')),
            timestamp=data.get('timestamp', '') or '',
            note=data.get('note', '') or '',
        )


@dataclass
class StockDispatch:
    """
    Despacho de mercadería a una sucursal (salida de stock).

    `total_amount` es None cuando el valor persistido no es numérico.
    """
    id: str
    dispatch_number: str
    store_id: str
    timestamp: str = ''
    due_date: str = ''
    items: List[DispatchItem] = field(default_factory=list)
    returns: List[ProductReturn] = field(default_factory=list)
    total_amount: Optional[Decimal] = None
    driver_name: str = ''
    vehicle_plate: str = ''
    status: DispatchStatus = DispatchStatus.ACTIVE
    approval_status: ApprovalStatus = ApprovalStatus.APPROVED
    authorized_by: str = ''
    authorized_at: str = ''
    print_count: int = 0

    @property
    def is_pending_approval(self) -> bool:
        return self.approval_status == ApprovalStatus.PENDING

    @property
    def items_total(self) -> Decimal:
        return sum((i.line_total for i in self.items), ZERO)

    def sent_quantity(self, product_id: Optional[str] = None) -> Decimal:
        return sum(
            (i.quantity for i in self.items if product_id is None or i.product_id == product_id),
            ZERO
        )

    def returned_quantity(self, product_id: Optional[str] = None, good_condition_only: bool = False) -> Decimal:
        total = ZERO
        for ret in self.returns:
            if product_id is not None and ret.product_id != product_id:
                continue
            if good_condition_only and not ret.restores_stock:
                continue
            total += ret.quantity
        return total

    def unit_price_for(self, product_id: str) -> Decimal:
        for item in self.items:
            if item.product_id == product_id:
                return item.unit_supply_price
        return ZERO

    def to_dict(self) -> Dict[str, Any]:
        return {
            'id': self.id,
            'dispatchNumber': self.dispatch_number,
            'storeId': self.store_id,
            'timestamp': self.timestamp,
            'dueDate': self.due_date,
            'items': [i.to_dict() for i in self.items],
            'returns': [r.to_dict() for r in self.returns],
            'totalAmount': money_to_json(self.total_amount),
            'driverName': self.driver_name,
            'vehiclePlate': self.vehicle_plate,
            'status': self.status.value,
            'approvalStatus': self.approval_status.value,
            'authorizedBy': self.authorized_by,
            'authorizedAt': self.authorized_at,
            'printCount': self.print_count,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'StockDispatch':
        return cls(
            id=data.get('id', ''),
            dispatch_number=str(data.get('dispatchNumber', '') or ''),
            store_id=data.get('storeId', ''),
            timestamp=data.get('timestamp', '') or '',
            due_date=data.get('dueDate', '') or '',
            items=[DispatchItem.from_dict(i) for i in data.get('items') or []],
            returns=[ProductReturn.from_dict(r) for r in data.get('returns') or []],
            total_amount=parse_decimal(data.get('totalAmount')),
            driver_name=data.get('driverName', '') or '',
            vehicle_plate=data.get('vehiclePlate', '') or '',
            status=DispatchStatus.parse(data.get('status')),
            approval_status=ApprovalStatus.parse(data.get('approvalStatus')),
            authorized_by=data.get('authorizedBy', '') or '',
            authorized_at=data.get('authorizedAt', '') or '',
            print_count=_int(data.get('printCount')),
        )


# ==============================================================================
# PAGOS
# ==============================================================================

@dataclass
class StorePayment:
    """Abono de una sucursal al negocio."""
    id: str
    store_id: str
    amount: Decimal
    date: str = ''
    method: str = ''
    reference: str = ''
    dispatch_id: str = ''
    dispatch_number: str = ''
    status: PaymentStatus = PaymentStatus.ACTIVE
    approval_status: ApprovalStatus = ApprovalStatus.APPROVED
    authorized_by: str = ''
    authorized_at: str = ''
    print_count: int = 0

    @property
    def counts(self) -> bool:
        """Si el abono afecta saldos (no anulado ni pendiente)."""
        return (self.status != PaymentStatus.CANCELLED
                and self.approval_status != ApprovalStatus.PENDING)

    def to_dict(self) -> Dict[str, Any]:
        return {
            'id': self.id,
            'storeId': self.store_id,
            'amount': money_to_json(self.amount),
            'date': self.date,
            'method': self.method,
            'reference': self.reference,
            'dispatchId': self.dispatch_id,
            'dispatchNumber': self.dispatch_number,
            'status': self.status.value,
            'approvalStatus': self.approval_status.value,
            'authorizedBy': self.authorized_by,
            'authorizedAt': self.authorized_at,
            'printCount': self.print_count,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'StorePayment':
        return cls(
            id=data.get('id', ''),
            store_id=data.get('storeId', ''),
            amount=to_decimal(data.get('amount')),
            date=data.get('date', '') or '',
            method=data.get('method', '') or '',
            reference=data.get('reference', '') or '',
            dispatch_id=data.get('dispatchId', '') or '',
            dispatch_number=str(data.get('dispatchNumber', '') or ''),
            status=PaymentStatus.parse(data.get('status')),
            approval_status=ApprovalStatus.parse(data.get('approvalStatus')),
            authorized_by=data.get('authorizedBy', '') or '',
            authorized_at=data.get('authorizedAt', '') or '',
            print_count=_int(data.get('printCount')),
        )


@dataclass
class SupplierPayment:
    """Pago del negocio a un proveedor, opcionalmente ligado a una factura."""
    id: str
    supplier_id: str
    amount: Decimal
    date: str = ''
    method: str = ''
    reference: str = ''
    invoice_id: str = ''
    invoice_number: str = ''
    status: PaymentStatus = PaymentStatus.ACTIVE
    approval_status: ApprovalStatus = ApprovalStatus.APPROVED
    authorized_by: str = ''
    authorized_at: str = ''

    @property
    def counts(self) -> bool:
        return (self.status != PaymentStatus.CANCELLED
                and self.approval_status != ApprovalStatus.PENDING)

    def to_dict(self) -> Dict[str, Any]:
        return {
            'id': self.id,
            'supplierId': self.supplier_id,
            'amount': money_to_json(self.amount),
            'date': self.date,
            'method': self.method,
            'reference': self.reference,
            'invoiceId': self.invoice_id,
            'invoiceNumber': self.invoice_number,
            'status': self.status.value,
            'approvalStatus': self.approval_status.value,
            'authorizedBy': self.authorized_by,
            'authorizedAt': self.authorized_at,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'SupplierPayment':
        return cls(
            id=data.get('id', ''),
            supplier_id=data.get('supplierId', ''),
            amount=to_decimal(data.get('amount')),
            date=data.get('date', '') or '',
            method=data.get('method', '') or '',
            reference=data.get('reference', '') or '',
            invoice_id=data.get('invoiceId', '') or '',
            invoice_number=str(data.get('invoiceNumber', '') or ''),
            status=PaymentStatus.parse(data.get('status')),
            approval_status=ApprovalStatus.parse(data.get('approvalStatus')),
            authorized_by=data.get('authorizedBy', '') or '',
            authorized_at=data.get('authorizedAt', '') or '',
        )


# ==============================================================================
# AJUSTES Y AUDITORÍA
# ==============================================================================

@dataclass
class StockAdjustment:
    """Ajuste manual de stock. Positivo = entrada, negativo = merma."""
    id: str
    product_id: str
    quantity: Decimal
    reason: str = ''
    timestamp: str = ''

    def to_dict(self) -> Dict[str, Any]:
        return {
            'id': self.id,
            'productId': self.product_id,
            'quantity': money_to_json(self.quantity),
            'reason': self.reason,
            'timestamp': self.timestamp,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'StockAdjustment':
        return cls(
            id=data.get('id', ''),
            product_id=data.get('productId', ''),
            quantity=to_decimal(data.get('quantity')),
            reason=data.get('reason', '') or '',
            timestamp=data.get('timestamp', '') or '',
        )


@dataclass
class AuditLogEntry:
    """Registro inmutable de la bitácora."""
    id: str
    user_id: str
    user_name: str
    action: AuditAction
    entity: AuditEntity
    entity_id: str
    details: str
    timestamp: str

    def to_dict(self) -> Dict[str, Any]:
        return {
            'id': self.id,
            'userId': self.user_id,
            'userName': self.user_name,
            'action': self.action.value,
            'entity': self.entity.value,
            'entityId': self.entity_id,
            'details': self.details,
            'timestamp': self.timestamp,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'AuditLogEntry':
        return cls(
            id=data.get('id', ''),
            user_id=data.get('userId', ''),
            user_name=data.get('userName', ''),
            action=AuditAction.parse(data.get('action')),
            entity=AuditEntity.parse(data.get('entity')),
            entity_id=data.get('entityId', ''),
            details=data.get('details', ''),
            timestamp=data.get('timestamp', ''),
        )
