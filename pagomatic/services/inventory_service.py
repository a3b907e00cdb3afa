# ==============================================================================
# SERVICIO DE INVENTARIO
# ==============================================================================
# Catálogo de productos y ajustes manuales de stock.
#
# El stock NUNCA se escribe directamente: se deriva de facturas, ajustes y
# despachos (ver ledger_projections.compute_stock). Un ajuste manual deja
# dos registros:
#   1. El ajuste técnico (stock_adjustments.json)
#   2. Una factura interna contra 'sup-local' como respaldo documental:
#      VIRT-<folio> para entradas, BAJA-<folio> para mermas
# ==============================================================================

import logging
from decimal import Decimal
from typing import Any, Dict, Optional

from pagomatic.models import (
    LOCAL_SUPPLIER_ID,
    ZERO,
    AuditAction,
    AuditEntity,
    Invoice,
    InvoiceItem,
    InvoiceStatus,
    Product,
    StockAdjustment,
    User,
    money_to_json,
    new_id,
    now_iso,
    parse_decimal,
    today_iso,
)
from pagomatic.repositories.catalog_repository import ProductRepository
from pagomatic.repositories.document_repository import InvoiceRepository, StockAdjustmentRepository
from pagomatic.services.audit_service import AuditService
from pagomatic.services.dialog_service import Responder, confirm
from pagomatic.services.ledger_service import LedgerService

logger = logging.getLogger(__name__)

# Campos numéricos que no pueden ser negativos
NON_NEGATIVE_FIELDS = (
    'purchaseCost', 'purchaseTax', 'purchaseFreight',
    'supplyPrice', 'retailPrice', 'minStock', 'maxStock',
)


def _validate_product_fields(data: Dict[str, Any]) -> Optional[str]:
    """Devuelve un mensaje de error, o None si los datos son válidos."""
    if 'name' in data and not str(data.get('name') or '').strip():
        return 'El nombre del producto es requerido'
    for key in NON_NEGATIVE_FIELDS:
        if key not in data or data[key] in (None, ''):
            continue
        value = parse_decimal(data[key])
        if value is None or value < 0:
            return f"Valor inválido para {key}: {data[key]}"
    return None


class InventoryService:
    """
    Servicio de catálogo de productos y ajustes de stock.
    """

    def __init__(
        self,
        product_repo: ProductRepository,
        adjustment_repo: StockAdjustmentRepository,
        invoice_repo: InvoiceRepository,
        ledger: LedgerService,
        audit_service: AuditService
    ):
        self.product_repo = product_repo
        self.adjustment_repo = adjustment_repo
        self.invoice_repo = invoice_repo
        self.ledger = ledger
        self.audit_service = audit_service

    # =========================================================================
    # CATÁLOGO
    # =========================================================================

    def search_products(self, term: str = ''):
        """Productos con stock derivado, filtrados por nombre o marca."""
        products = self.ledger.products()
        if not term:
            return products
        matching = {p['id'] for p in self.product_repo.search(term)}
        return [p for p in products if p.id in matching]

    def add_product(self, data: Dict[str, Any], user: Optional[User] = None) -> Dict[str, Any]:
        """
        Crea un producto. El stock inicial siempre es 0.

        Returns:
            {'ok': True, 'id': str} o {'ok': False, 'reason': 'invalid', 'error': str}
        """
        if not str(data.get('name') or '').strip():
            return {'ok': False, 'reason': 'invalid', 'error': 'El nombre del producto es requerido'}
        error = _validate_product_fields(data)
        if error:
            return {'ok': False, 'reason': 'invalid', 'error': error}

        record = dict(data, id=new_id('prod'), stock=0)
        record['name'] = str(record['name']).strip()
        product = Product.from_dict(record)
        self.product_repo.add(product.to_dict())

        self.audit_service.log(AuditAction.CREATE, AuditEntity.PRODUCT, product.id,
                               f"Producto creado: {product.name}", user)
        return {'ok': True, 'id': product.id}

    def update_product(self, product_id: str, changes: Dict[str, Any], user: Optional[User] = None) -> Dict[str, Any]:
        existing = self.product_repo.get(product_id)
        if existing is None:
            return {'ok': False, 'reason': 'not_found', 'error': 'Producto no encontrado'}
        error = _validate_product_fields(changes)
        if error:
            return {'ok': False, 'reason': 'invalid', 'error': error}

        # El stock es derivado y no se edita
        changes = {k: v for k, v in changes.items() if k not in ('id', 'stock')}
        merged = Product.from_dict(dict(existing, **changes)).to_dict()
        self.product_repo.update(product_id, {k: merged[k] for k in changes if k in merged})

        self.audit_service.log(AuditAction.UPDATE, AuditEntity.PRODUCT, product_id,
                               f"Producto actualizado: {merged['name']}", user)
        return {'ok': True}

    def delete_product(
        self,
        product_id: str,
        responder: Optional[Responder],
        user: Optional[User] = None
    ) -> Dict[str, Any]:
        """
        Elimina un producto sin stock, previa confirmación.

        Returns:
            {'ok': True} o {'ok': False, 'reason': 'not_found'|'has_balance'|'cancelled', 'error': str}
        """
        product = self.ledger.snapshot().product(product_id)
        if product is None:
            return {'ok': False, 'reason': 'not_found', 'error': 'Producto no encontrado'}
        if product.stock > ZERO:
            return {
                'ok': False,
                'reason': 'has_balance',
                'error': f'No se puede eliminar "{product.name}" porque aún tiene {product.stock} unidades en stock central.'
            }
        if not confirm(responder, 'ELIMINAR PRODUCTO', f'¿ELIMINAR PRODUCTO? Se borrará "{product.name}" del catálogo.'):
            return {'ok': False, 'reason': 'cancelled', 'error': 'Operación cancelada'}

        self.product_repo.delete(product_id)
        self.audit_service.log(AuditAction.DELETE, AuditEntity.PRODUCT, product_id,
                               f"Producto eliminado: {product.name}", user)
        return {'ok': True}

    # =========================================================================
    # AJUSTES MANUALES
    # =========================================================================

    def manual_stock_adjustment(
        self,
        product_id: str,
        quantity: Any,
        reason: str,
        folio: Optional[str] = None,
        user: Optional[User] = None
    ) -> Dict[str, Any]:
        """
        Registra una entrada (producción propia) o una merma.

        Args:
            product_id: Producto afectado
            quantity: Cantidad con signo (negativo = merma/robo)
            reason: Motivo libre
            folio: Número de documento de respaldo (opcional)
            user: Usuario que registra

        Returns:
            {'ok': True, 'adjustment_id': str, 'invoice_id': str} o
            {'ok': False, 'reason': 'not_found'|'invalid', 'error': str}.
            Un producto inexistente no escribe nada.
        """
        data = self.product_repo.get(product_id)
        if data is None:
            return {'ok': False, 'reason': 'not_found', 'error': 'Producto no encontrado'}
        qty = parse_decimal(quantity)
        if qty is None or qty == ZERO:
            return {'ok': False, 'reason': 'invalid', 'error': 'La cantidad debe ser distinta de cero'}

        product = Product.from_dict(data)
        reason = (reason or '').strip()
        adjustment_id = new_id('adj')
        final_folio = folio or adjustment_id[-6:].upper()

        adjustment = StockAdjustment(
            id=adjustment_id,
            product_id=product_id,
            quantity=qty,
            reason=reason + (f" (Folio: {folio})" if folio else ''),
            timestamp=now_iso(),
        )
        self.adjustment_repo.add(adjustment.to_dict())

        is_loss = qty < ZERO
        value: Decimal = ZERO if is_loss else qty * product.purchase_cost
        invoice = Invoice(
            id=new_id('inv-local'),
            supplier_id=LOCAL_SUPPLIER_ID,
            invoice_number=f"{'BAJA' if is_loss else 'VIRT'}-{final_folio}",
            date=today_iso(),
            items=[InvoiceItem(
                product_id=product_id,
                quantity=qty,
                unit_cost=product.purchase_cost,
                total_item_cost=abs(qty * product.purchase_cost),
            )],
            total_amount=value,
            amount_paid=value,
            status=InvoiceStatus.PAID,
            notes=f"{'NOTA DE BAJA (MERMA/ROBO)' if is_loss else 'ENTRADA PRODUCCIÓN'}: {reason}",
        )
        self.invoice_repo.add(invoice.to_dict())

        self.audit_service.log(
            AuditAction.ANULAR if is_loss else AuditAction.CREATE,
            AuditEntity.INVOICE,
            invoice.id,
            f"{'Merma registrada' if is_loss else 'Entrada produccion'}: {money_to_json(qty)} unidades. Motivo: {reason}",
            user
        )
        logger.info("[STOCK] Ajuste %s de %s: %s", adjustment_id, product.name, money_to_json(qty))
        return {'ok': True, 'adjustment_id': adjustment_id, 'invoice_id': invoice.id}

    def adjustments_for(self, product_id: str):
        """Historial de ajustes de un producto, más reciente primero."""
        records = self.adjustment_repo.find_by_product(product_id)
        return sorted((StockAdjustment.from_dict(r) for r in records), key=lambda a: a.timestamp, reverse=True)
