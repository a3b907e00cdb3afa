# ==============================================================================
# SERVICIO DE PROVEEDORES Y FACTURAS
# ==============================================================================
# - Proveedores: alta, edición, baja con saldo cero
# - 'sup-local' (producción propia) siempre existe y no se puede eliminar
# - Facturas de proveedor: entrada de stock y deuda con el proveedor
# ==============================================================================

import logging
from typing import Any, Dict, List, Optional

from pagomatic.models import (
    BALANCE_EPSILON,
    LOCAL_SUPPLIER_ID,
    LOCAL_SUPPLIER_NAME,
    ZERO,
    ApprovalStatus,
    AuditAction,
    AuditEntity,
    Invoice,
    InvoiceItem,
    InvoiceStatus,
    Supplier,
    User,
    money_to_json,
    new_id,
    parse_decimal,
    today_iso,
)
from pagomatic.repositories.catalog_repository import ProductRepository, SupplierRepository
from pagomatic.repositories.document_repository import InvoiceRepository
from pagomatic.services.approval_service import ApprovalService
from pagomatic.services.audit_service import AuditService, format_money
from pagomatic.services.dialog_service import Responder, confirm
from pagomatic.services.ledger_service import LedgerService

logger = logging.getLogger(__name__)


LOCAL_SUPPLIER_RECORD = {
    'id': LOCAL_SUPPLIER_ID,
    'name': LOCAL_SUPPLIER_NAME,
    'taxId': 'V-PROPIO',
    'bankAccount': 'CAJA CHICA',
    'color': '#6b7280',
}

SUPPLIER_FIELDS = ('name', 'taxId', 'phone', 'address', 'email', 'bankAccount', 'color')


class SupplierService:

    def __init__(
        self,
        supplier_repo: SupplierRepository,
        invoice_repo: InvoiceRepository,
        product_repo: ProductRepository,
        ledger: LedgerService,
        approval_service: ApprovalService,
        audit_service: AuditService
    ):
        self.supplier_repo = supplier_repo
        self.invoice_repo = invoice_repo
        self.product_repo = product_repo
        self.ledger = ledger
        self.approval_service = approval_service
        self.audit_service = audit_service

    def ensure_local_supplier(self) -> bool:
        """
        Crea el proveedor reservado si falta.

        Returns:
            True si tuvo que crearlo
        """
        if self.supplier_repo.exists(LOCAL_SUPPLIER_ID):
            return False
        self.supplier_repo.add(Supplier.from_dict(LOCAL_SUPPLIER_RECORD).to_dict())
        logger.info("[PROVEEDORES] Proveedor reservado '%s' creado", LOCAL_SUPPLIER_ID)
        return True

    # =========================================================================
    # PROVEEDORES
    # =========================================================================

    def add_supplier(self, data: Dict[str, Any], user: Optional[User] = None) -> Dict[str, Any]:
        name = str(data.get('name') or '').strip()
        if not name:
            return {'ok': False, 'reason': 'invalid', 'error': 'El nombre del proveedor es requerido'}

        fields = {k: data[k] for k in SUPPLIER_FIELDS if k in data}
        supplier = Supplier.from_dict(dict(fields, id=new_id('sup'), name=name))
        self.supplier_repo.add(supplier.to_dict())
        self.audit_service.log(AuditAction.CREATE, AuditEntity.SUPPLIER, supplier.id,
                               f"Proveedor creado: {supplier.name}", user)
        return {'ok': True, 'id': supplier.id}

    def update_supplier(self, supplier_id: str, changes: Dict[str, Any], user: Optional[User] = None) -> Dict[str, Any]:
        if self.supplier_repo.get(supplier_id) is None:
            return {'ok': False, 'reason': 'not_found', 'error': 'Proveedor no encontrado'}
        fields = {k: changes[k] for k in SUPPLIER_FIELDS if k in changes}
        if 'name' in fields and not str(fields['name'] or '').strip():
            return {'ok': False, 'reason': 'invalid', 'error': 'El nombre del proveedor es requerido'}
        if not fields:
            return {'ok': True}
        self.supplier_repo.update(supplier_id, fields)
        self.audit_service.log(AuditAction.UPDATE, AuditEntity.SUPPLIER, supplier_id,
                               f"Proveedor actualizado: {', '.join(sorted(fields))}", user)
        return {'ok': True}

    def delete_supplier(
        self,
        supplier_id: str,
        responder: Optional[Responder],
        user: Optional[User] = None
    ) -> Dict[str, Any]:
        """
        Elimina un proveedor sin deuda pendiente, previa confirmación.

        Returns:
            {'ok': True} o {'ok': False, 'reason': 'protected'|'not_found'|'has_balance'|'cancelled', 'error': str}
        """
        if supplier_id == LOCAL_SUPPLIER_ID:
            return {'ok': False, 'reason': 'protected', 'error': 'El proveedor de producción propia no se puede eliminar'}

        supplier = self.ledger.snapshot().supplier(supplier_id)
        if supplier is None:
            return {'ok': False, 'reason': 'not_found', 'error': 'Proveedor no encontrado'}
        if supplier.debt > BALANCE_EPSILON:
            return {
                'ok': False,
                'reason': 'has_balance',
                'error': f'No se puede eliminar a "{supplier.name}" porque tiene una deuda pendiente de {format_money(supplier.debt)}.'
            }
        if not confirm(responder, 'ELIMINAR PROVEEDOR',
                       f'¿ESTÁ SEGURO? Se eliminará permanentemente al proveedor "{supplier.name}".'):
            return {'ok': False, 'reason': 'cancelled', 'error': 'Operación cancelada'}

        self.supplier_repo.delete(supplier_id)
        self.audit_service.log(AuditAction.DELETE, AuditEntity.SUPPLIER, supplier_id,
                               f"Proveedor eliminado: {supplier.name}", user)
        return {'ok': True}

    def supplier_products(self, supplier_id: str) -> List[Dict[str, Any]]:
        return self.product_repo.find_by_supplier(supplier_id)

    # =========================================================================
    # FACTURAS
    # =========================================================================

    def _build_items(self, raw_items: List[Dict[str, Any]]):
        """
        Returns:
            (items, error). Completa totalItemCost si no viene.
        """
        if not raw_items:
            return None, 'La factura debe tener al menos un producto'
        items = []
        for raw in raw_items:
            product_id = raw.get('productId')
            if not product_id or self.product_repo.get(product_id) is None:
                return None, f"Producto no encontrado: {product_id}"
            quantity = parse_decimal(raw.get('quantity'))
            if quantity is None or quantity <= ZERO:
                return None, f"Cantidad inválida para {product_id}"
            item = InvoiceItem.from_dict(raw)
            if parse_decimal(raw.get('totalItemCost')) is None:
                item.total_item_cost = quantity * (item.unit_cost + item.unit_tax + item.unit_freight)
            items.append(item)
        return items, None

    def add_invoice(self, data: Dict[str, Any], user: Optional[User] = None) -> Dict[str, Any]:
        """
        Registra una factura de proveedor.

        Args:
            data: supplierId, invoiceNumber, date, dueDate, items, totalAmount (opcional), notes

        Returns:
            {'ok': True, 'id': str, 'pending': bool} o {'ok': False, 'reason': 'invalid', 'error': str}
        """
        supplier_id = data.get('supplierId')
        if not supplier_id or not self.supplier_repo.exists(supplier_id):
            return {'ok': False, 'reason': 'invalid', 'error': 'Proveedor no encontrado'}
        number = str(data.get('invoiceNumber') or '').strip()
        if not number:
            return {'ok': False, 'reason': 'invalid', 'error': 'El número de factura es requerido'}
        if any(str(i.get('invoiceNumber')) == number for i in self.invoice_repo.find_by_supplier(supplier_id)):
            return {'ok': False, 'reason': 'invalid', 'error': f'La factura #{number} ya está registrada'}

        items, error = self._build_items(data.get('items') or [])
        if error:
            return {'ok': False, 'reason': 'invalid', 'error': error}

        total = parse_decimal(data.get('totalAmount'))
        if total is None:
            total = sum((i.total_item_cost for i in items), ZERO)
        if total < ZERO:
            return {'ok': False, 'reason': 'invalid', 'error': 'El total no puede ser negativo'}

        approval = self.approval_service.initial_status(AuditEntity.INVOICE)
        invoice = Invoice(
            id=new_id('inv'),
            supplier_id=supplier_id,
            invoice_number=number,
            date=data.get('date') or today_iso(),
            due_date=data.get('dueDate') or '',
            items=items,
            total_amount=total,
            status=InvoiceStatus.PENDING,
            approval_status=approval,
            notes=data.get('notes') or '',
        )
        self.invoice_repo.add(invoice.to_dict())

        pending = approval == ApprovalStatus.PENDING
        details = (f"Factura #{number} pendiente de aprobación." if pending
                   else f"Factura #{number} registrada por {format_money(total)}")
        self.audit_service.log(AuditAction.CREATE, AuditEntity.INVOICE, invoice.id, details, user)
        logger.info("[FACTURA] %s (%s) total %s", number, supplier_id, money_to_json(total))
        return {'ok': True, 'id': invoice.id, 'pending': pending}

    def loss_invoices(self) -> List[Invoice]:
        """Notas de baja internas (mermas y siniestros)."""
        return [Invoice.from_dict(i) for i in self.invoice_repo.find_by_number_prefix('BAJA')
                if i.get('supplierId') == LOCAL_SUPPLIER_ID]
