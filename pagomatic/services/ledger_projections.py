# ==============================================================================
# PROYECCIONES DEL LIBRO MAYOR
# ==============================================================================
# Funciones PURAS que convierten el registro de documentos (facturas,
# despachos, devoluciones, ajustes, pagos) en saldos consistentes:
#
#   - Stock por producto
#   - Saldo y estado de cada factura
#   - Deuda con cada proveedor
#   - Deuda de cada sucursal
#   - Ganancia bruta, pérdidas y ganancia neta
#
# REGLAS DE EXCLUSIÓN:
# - Un documento con approvalStatus 'pending' NO cuenta en ningún saldo
#   (excepto facturas en el stock, ver compute_stock).
# - Un documento 'cancelled' no cuenta; su efecto se retracta por
#   exclusión, nunca con un asiento inverso.
#
# Nada aquí escribe datos: recalcular dos veces sobre los mismos documentos
# da exactamente el mismo resultado.
# ==============================================================================

from dataclasses import dataclass, field, replace
from decimal import Decimal
from typing import Any, Dict, Iterable, List, Optional, Tuple

from pagomatic.models import (
    LOCAL_SUPPLIER_ID,
    ZERO,
    TOLERANCE,
    ApprovalStatus,
    DispatchStatus,
    InvoiceStatus,
    Invoice,
    Product,
    StockAdjustment,
    StockDispatch,
    Store,
    StorePayment,
    Supplier,
    SupplierPayment,
)
from pagomatic.performance_logger import profile_function


# Prefijo de facturas internas que representan pérdidas
LOSS_PREFIX = 'BAJA'


# ==============================================================================
# ESTADO CRUDO
# ==============================================================================

@dataclass
class LedgerState:
    """
    Colecciones crudas ya convertidas a entidades.
    Es la única entrada de las proyecciones.
    """
    products: List[Product] = field(default_factory=list)
    suppliers: List[Supplier] = field(default_factory=list)
    stores: List[Store] = field(default_factory=list)
    invoices: List[Invoice] = field(default_factory=list)
    dispatches: List[StockDispatch] = field(default_factory=list)
    store_payments: List[StorePayment] = field(default_factory=list)
    supplier_payments: List[SupplierPayment] = field(default_factory=list)
    adjustments: List[StockAdjustment] = field(default_factory=list)

    @classmethod
    def from_raw(cls, raw: Dict[str, Iterable[Dict[str, Any]]]) -> 'LedgerState':
        """
        Construye el estado desde registros persistidos.

        Args:
            raw: {nombreColeccion: [registros]} con las claves de respaldo
                 (products, suppliers, stores, invoices, dispatches,
                 storePayments, supplierPayments, stockAdjustments)
        """
        return cls(
            products=[Product.from_dict(r) for r in raw.get('products', [])],
            suppliers=[Supplier.from_dict(r) for r in raw.get('suppliers', [])],
            stores=[Store.from_dict(r) for r in raw.get('stores', [])],
            invoices=[Invoice.from_dict(r) for r in raw.get('invoices', [])],
            dispatches=[StockDispatch.from_dict(r) for r in raw.get('dispatches', [])],
            store_payments=[StorePayment.from_dict(r) for r in raw.get('storePayments', [])],
            supplier_payments=[SupplierPayment.from_dict(r) for r in raw.get('supplierPayments', [])],
            adjustments=[StockAdjustment.from_dict(r) for r in raw.get('stockAdjustments', [])],
        )


# ==============================================================================
# PREDICADOS DE EXCLUSIÓN
# ==============================================================================

def dispatch_counts(dispatch: StockDispatch) -> bool:
    """Despacho que cuenta como salida y para ganancias."""
    return (dispatch.status != DispatchStatus.CANCELLED
            and dispatch.approval_status != ApprovalStatus.PENDING)


def dispatch_generates_debt(dispatch: StockDispatch) -> bool:
    """Despacho vigente para la deuda de la sucursal."""
    return (dispatch.status not in (DispatchStatus.RETURNED, DispatchStatus.CANCELLED)
            and dispatch.approval_status != ApprovalStatus.PENDING)


def is_loss_invoice(invoice: Invoice) -> bool:
    return (invoice.supplier_id == LOCAL_SUPPLIER_ID
            and invoice.invoice_number.startswith(LOSS_PREFIX))


# ==============================================================================
# 1. STOCK
# ==============================================================================

def compute_stock(
    product_id: str,
    invoices: Iterable[Invoice],
    adjustments: Iterable[StockAdjustment],
    dispatches: Iterable[StockDispatch]
) -> Decimal:
    """
    stock = max(0, entradas por factura + ajustes − salidas por despacho)

    - Facturas: TODAS cuentan, sin importar su approvalStatus. Es el
      comportamiento histórico del sistema y se conserva a propósito
      (ver DESIGN.md, pregunta abierta 1).
    - Ajustes: con signo (las mermas restan). Cada ajuste tiene además su
      factura espejo VIRT-/BAJA-, que también suma por la regla anterior.
    - Despachos: solo los que cuentan (no anulados, no pendientes), menos
      lo devuelto en buen estado.
    """
    invoice_in = sum((inv.quantity_for(product_id) for inv in invoices), ZERO)

    manual_in = sum(
        (adj.quantity for adj in adjustments if adj.product_id == product_id),
        ZERO
    )

    dispatch_out = ZERO
    for dispatch in dispatches:
        if not dispatch_counts(dispatch):
            continue
        sent = dispatch.sent_quantity(product_id)
        if not sent:
            continue
        restored = dispatch.returned_quantity(product_id, good_condition_only=True)
        dispatch_out += sent - restored

    return max(ZERO, invoice_in + manual_in - dispatch_out)


def compute_products(state: LedgerState) -> List[Product]:
    """Productos con su stock derivado."""
    return [
        replace(p, stock=compute_stock(p.id, state.invoices, state.adjustments, state.dispatches))
        for p in state.products
    ]


# ==============================================================================
# 2. SALDO DE FACTURAS
# ==============================================================================

def compute_invoice_balance(
    invoice: Invoice,
    supplier_payments: Iterable[SupplierPayment]
) -> Tuple[Decimal, InvoiceStatus]:
    """
    Returns:
        (monto pagado, estado). Estado paid si cubre el total con
        tolerancia 0.05, partial si hay algo pagado, pending en otro caso
    """
    paid = sum(
        (p.amount for p in supplier_payments if p.invoice_id == invoice.id and p.counts),
        ZERO
    )
    if paid >= invoice.total_amount - TOLERANCE:
        status = InvoiceStatus.PAID
    elif paid > TOLERANCE:
        status = InvoiceStatus.PARTIAL
    else:
        status = InvoiceStatus.PENDING
    return paid, status


def compute_invoices(state: LedgerState) -> List[Invoice]:
    result = []
    for invoice in state.invoices:
        paid, status = compute_invoice_balance(invoice, state.supplier_payments)
        result.append(replace(invoice, amount_paid=paid, status=status))
    return result


# ==============================================================================
# 3. DEUDA CON PROVEEDORES
# ==============================================================================

def compute_supplier_balance(
    supplier_id: str,
    invoices: Iterable[Invoice],
    supplier_payments: Iterable[SupplierPayment]
) -> Tuple[Decimal, Decimal]:
    """
    Returns:
        (volumen total facturado, deuda) considerando solo facturas no
        pendientes y pagos no anulados ni pendientes
    """
    total_volume = sum(
        (inv.total_amount for inv in invoices
         if inv.supplier_id == supplier_id and not inv.is_pending_approval),
        ZERO
    )
    total_paid = sum(
        (p.amount for p in supplier_payments if p.supplier_id == supplier_id and p.counts),
        ZERO
    )
    return total_volume, max(ZERO, total_volume - total_paid)


def compute_suppliers(state: LedgerState) -> List[Supplier]:
    result = []
    for supplier in state.suppliers:
        volume, debt = compute_supplier_balance(supplier.id, state.invoices, state.supplier_payments)
        result.append(replace(supplier, total_volume=volume, debt=debt))
    return result


# ==============================================================================
# 4. DEUDA DE SUCURSALES
# ==============================================================================

def dispatch_effective_amount(dispatch: StockDispatch) -> Decimal:
    """
    Total del despacho. Si el total guardado es cero o no numérico se
    recalcula desde las líneas.
    """
    if dispatch.total_amount:
        return dispatch.total_amount
    return dispatch.items_total


def dispatch_returned_value(dispatch: StockDispatch) -> Decimal:
    """Valor de lo devuelto, al precio unitario original del despacho."""
    return sum(
        (ret.quantity * dispatch.unit_price_for(ret.product_id) for ret in dispatch.returns),
        ZERO
    )


def compute_store_debt(
    store_id: str,
    dispatches: Iterable[StockDispatch],
    store_payments: Iterable[StorePayment]
) -> Decimal:
    gross = ZERO
    for dispatch in dispatches:
        if dispatch.store_id != store_id or not dispatch_generates_debt(dispatch):
            continue
        gross += dispatch_effective_amount(dispatch) - dispatch_returned_value(dispatch)

    paid = sum(
        (p.amount for p in store_payments if p.store_id == store_id and p.counts),
        ZERO
    )
    return max(ZERO, gross - paid)


def compute_stores(state: LedgerState) -> List[Store]:
    return [
        replace(s, total_debt=compute_store_debt(s.id, state.dispatches, state.store_payments))
        for s in state.stores
    ]


def dispatch_pending_amount(dispatch: StockDispatch, store_payments: Iterable[StorePayment]) -> Decimal:
    """Saldo por cobrar de un despacho puntual (abonos ligados a él)."""
    if not dispatch_generates_debt(dispatch):
        return ZERO
    owed = dispatch_effective_amount(dispatch) - dispatch_returned_value(dispatch)
    paid = sum(
        (p.amount for p in store_payments if p.dispatch_id == dispatch.id and p.counts),
        ZERO
    )
    return max(ZERO, owed - paid)


def find_overdue_dispatches(
    store_id: str,
    dispatches: Iterable[StockDispatch],
    now: str
) -> List[StockDispatch]:
    """
    Despachos 'active' de la sucursal con vencimiento anterior a `now`.

    Args:
        now: Fecha-hora actual ISO. Se compara como texto ISO, así un
             vencimiento YYYY-MM-DD ya cuenta como vencido durante ese día
    """
    return [
        d for d in dispatches
        if d.store_id == store_id
        and d.status == DispatchStatus.ACTIVE
        and d.due_date
        and d.due_date < now
    ]


# ==============================================================================
# 5. GANANCIAS Y PÉRDIDAS
# ==============================================================================

def compute_gross_profit(dispatches: Iterable[StockDispatch], products: Iterable[Product]) -> Decimal:
    """
    Σ (precio de suministro − costo completo) × cantidad efectiva.

    La cantidad efectiva descuenta devoluciones de CUALQUIER motivo, aunque
    solo las de buen estado regresan al stock.
    """
    by_id = {p.id: p for p in products}
    profit = ZERO
    for dispatch in dispatches:
        if not dispatch_counts(dispatch):
            continue
        for item in dispatch.items:
            product = by_id.get(item.product_id)
            # Producto eliminado del catálogo: costo 0
            unit_cost = product.unit_cost if product is not None else ZERO
            effective_qty = item.quantity - dispatch.returned_quantity(item.product_id)
            margin = item.unit_supply_price - unit_cost
            profit += margin * effective_qty
    return profit


def compute_total_losses(invoices: Iterable[Invoice]) -> Decimal:
    """Costo absoluto de las líneas en facturas internas BAJA*."""
    losses = ZERO
    for invoice in invoices:
        if not is_loss_invoice(invoice):
            continue
        for item in invoice.items:
            losses += abs(item.quantity) * item.unit_cost
    return losses


# ==============================================================================
# 6. SNAPSHOT COMPLETO
# ==============================================================================

@dataclass
class DashboardMetrics:
    total_accounts_receivable: Decimal = ZERO
    total_accounts_payable: Decimal = ZERO
    inventory_value_at_cost: Decimal = ZERO
    active_stores: int = 0
    total_profit: Decimal = ZERO
    total_losses: Decimal = ZERO

    def to_dict(self) -> Dict[str, Any]:
        return {
            'totalAccountsReceivable': self.total_accounts_receivable,
            'totalAccountsPayable': self.total_accounts_payable,
            'inventoryValueAtCost': self.inventory_value_at_cost,
            'activeStores': self.active_stores,
            'totalProfit': self.total_profit,
            'totalLosses': self.total_losses,
        }


@dataclass
class LedgerSnapshot:
    """Todos los saldos derivados en un instante."""
    products: List[Product]
    suppliers: List[Supplier]
    stores: List[Store]
    invoices: List[Invoice]
    dispatches: List[StockDispatch]
    store_payments: List[StorePayment]
    supplier_payments: List[SupplierPayment]
    adjustments: List[StockAdjustment]
    gross_profit: Decimal
    total_losses: Decimal
    metrics: DashboardMetrics

    @property
    def net_profit(self) -> Decimal:
        return self.gross_profit - self.total_losses

    def product(self, product_id: str) -> Optional[Product]:
        return next((p for p in self.products if p.id == product_id), None)

    def store(self, store_id: str) -> Optional[Store]:
        return next((s for s in self.stores if s.id == store_id), None)

    def supplier(self, supplier_id: str) -> Optional[Supplier]:
        return next((s for s in self.suppliers if s.id == supplier_id), None)

    def invoice(self, invoice_id: str) -> Optional[Invoice]:
        return next((i for i in self.invoices if i.id == invoice_id), None)

    def dispatch(self, dispatch_id: str) -> Optional[StockDispatch]:
        return next((d for d in self.dispatches if d.id == dispatch_id), None)

    def stock_of(self, product_id: str) -> Decimal:
        product = self.product(product_id)
        return product.stock if product else ZERO

    def low_stock_products(self) -> List[Product]:
        return [p for p in self.products if p.is_low_stock()]

    def dispatch_pending_amount(self, dispatch_id: str) -> Decimal:
        dispatch = self.dispatch(dispatch_id)
        if dispatch is None:
            return ZERO
        return dispatch_pending_amount(dispatch, self.store_payments)

    def invoice_pending_amount(self, invoice_id: str) -> Decimal:
        invoice = self.invoice(invoice_id)
        if invoice is None:
            return ZERO
        return max(ZERO, invoice.total_amount - invoice.amount_paid)


@profile_function(name='Recalcular libro mayor')
def compute_snapshot(state: LedgerState) -> LedgerSnapshot:
    """
    Recalcula todas las proyecciones desde cero.

    Args:
        state: Colecciones crudas

    Returns:
        LedgerSnapshot con productos, proveedores, sucursales y facturas
        enriquecidos con sus campos derivados, más las métricas del panel
    """
    products = compute_products(state)
    suppliers = compute_suppliers(state)
    stores = compute_stores(state)
    invoices = compute_invoices(state)

    gross_profit = compute_gross_profit(state.dispatches, state.products)
    total_losses = compute_total_losses(state.invoices)

    metrics = DashboardMetrics(
        total_accounts_receivable=sum((s.total_debt for s in stores), ZERO),
        total_accounts_payable=sum((s.debt for s in suppliers), ZERO),
        inventory_value_at_cost=sum((p.stock * p.purchase_cost for p in products), ZERO),
        active_stores=len(stores),
        total_profit=gross_profit - total_losses,
        total_losses=total_losses,
    )

    return LedgerSnapshot(
        products=products,
        suppliers=suppliers,
        stores=stores,
        invoices=invoices,
        dispatches=list(state.dispatches),
        store_payments=list(state.store_payments),
        supplier_payments=list(state.supplier_payments),
        adjustments=list(state.adjustments),
        gross_profit=gross_profit,
        total_losses=total_losses,
        metrics=metrics,
    )
