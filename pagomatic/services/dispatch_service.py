# ==============================================================================
# SERVICIO DE DESPACHOS
# ==============================================================================
# Salidas de mercadería del almacén central hacia las sucursales.
#
# CONTROLES ANTES DE CREAR UN DESPACHO (en este orden, se detiene en el
# primero que falla y no escribe ningún documento):
#   1. stock         → alcanza el stock derivado para cada producto
#   2. inactive      → la sucursal no está suspendida
#   3. credit_limit  → deuda actual + total ≤ límite de crédito
#   4. overdue       → la sucursal no tiene despachos activos vencidos
# Cada bloqueo queda en la bitácora como 'block'.
#
# ANULACIÓN (requiere clave de administrador):
#   - Error administrativo: status 'cancelled'; el stock vuelve solo porque
#     los despachos anulados no cuentan como salida
#   - Siniestro (robo/saqueo): además se emite una nota de baja
#     BAJA-SIN-<número> con cantidades negativas contra 'sup-local'
# ==============================================================================

import logging
from collections import OrderedDict
from datetime import datetime, timedelta
from decimal import Decimal
from typing import Any, Dict, List, Optional

from pagomatic.models import (
    LOCAL_SUPPLIER_ID,
    ZERO,
    ApprovalStatus,
    AuditAction,
    AuditEntity,
    DispatchItem,
    DispatchStatus,
    Invoice,
    InvoiceItem,
    InvoiceStatus,
    ProductReturn,
    ReturnReason,
    StockDispatch,
    User,
    money_to_json,
    new_id,
    now_iso,
    parse_decimal,
    today_iso,
)
from pagomatic.repositories.document_repository import DispatchRepository, InvoiceRepository
from pagomatic.services.approval_service import ApprovalService
from pagomatic.services.audit_service import AuditService, format_money
from pagomatic.services.authorization_service import AuthorizationService
from pagomatic.services.dialog_service import Responder
from pagomatic.services.ledger_projections import find_overdue_dispatches
from pagomatic.services.ledger_service import LedgerService

logger = logging.getLogger(__name__)


class DispatchService:
    """
    Servicio de despachos, devoluciones y anulaciones.
    """

    def __init__(
        self,
        dispatch_repo: DispatchRepository,
        invoice_repo: InvoiceRepository,
        ledger: LedgerService,
        approval_service: ApprovalService,
        authorization_service: AuthorizationService,
        audit_service: AuditService
    ):
        self.dispatch_repo = dispatch_repo
        self.invoice_repo = invoice_repo
        self.ledger = ledger
        self.approval_service = approval_service
        self.authorization_service = authorization_service
        self.audit_service = audit_service

    # =========================================================================
    # CREACIÓN
    # =========================================================================

    def _parse_cart(self, cart: List[Dict[str, Any]], snapshot):
        """
        Convierte el carrito en líneas de despacho.

        Cada línea: {'productId' (o 'id'), 'quantity', 'supplyPrice' (opcional)}.
        Sin precio se usa el precio de suministro del producto.

        Returns:
            (items, error)
        """
        if not cart:
            return None, 'El despacho debe tener al menos un producto'
        items = []
        for line in cart:
            product_id = line.get('productId') or line.get('id')
            quantity = parse_decimal(line.get('quantity'))
            if not product_id or quantity is None or quantity <= ZERO:
                return None, f"Línea inválida en el carrito: {product_id}"
            price = parse_decimal(line.get('supplyPrice', line.get('unitSupplyPrice')))
            if price is None:
                product = snapshot.product(product_id)
                price = product.supply_price if product else ZERO
            if price < ZERO:
                return None, f"Precio inválido para {product_id}"
            items.append(DispatchItem(product_id=product_id, quantity=quantity, unit_supply_price=price))
        return items, None

    def create_dispatch(
        self,
        cart: List[Dict[str, Any]],
        store_id: str,
        dispatch_number: Optional[str] = None,
        driver_name: str = '',
        vehicle_plate: str = '',
        user: Optional[User] = None
    ) -> Dict[str, Any]:
        """
        Crea un despacho a una sucursal.

        Args:
            cart: Líneas del carrito
            store_id: Sucursal destino
            dispatch_number: Número de despacho (se genera si falta)
            driver_name: Chofer
            vehicle_plate: Placa del vehículo
            user: Usuario que despacha

        Returns:
            {'ok': True, 'id': str, 'dispatch_number': str, 'pending': bool} o
            {'ok': False, 'reason': 'stock'|'inactive'|'credit_limit'|'overdue'|'invalid'|'not_found', 'error': str}
        """
        snapshot = self.ledger.snapshot()
        store = snapshot.store(store_id)
        if store is None:
            return {'ok': False, 'reason': 'not_found', 'error': 'Sucursal no encontrada'}

        items, error = self._parse_cart(cart, snapshot)
        if error:
            return {'ok': False, 'reason': 'invalid', 'error': error}

        total = sum((i.line_total for i in items), ZERO)

        # 1. Stock real (una misma referencia en varias líneas se suma)
        requested: Dict[str, Decimal] = OrderedDict()
        for item in items:
            requested[item.product_id] = requested.get(item.product_id, ZERO) + item.quantity
        for product_id, quantity in requested.items():
            product = snapshot.product(product_id)
            if product is None or product.stock < quantity:
                name = product.name if product else product_id
                available = product.stock if product else ZERO
                self.audit_service.log_dispatch_blocked(
                    store.name, store_id,
                    f"stock insuficiente de {name} ({money_to_json(available)} < {money_to_json(quantity)})",
                    user
                )
                return {'ok': False, 'reason': 'stock', 'error': f"Stock insuficiente de {name}"}

        # 2. Sucursal suspendida
        if not store.active:
            self.audit_service.log_dispatch_blocked(store.name, store_id, 'Sucursal suspendida.', user)
            return {'ok': False, 'reason': 'inactive', 'error': 'La sucursal está suspendida'}

        # 3. Límite de crédito
        limit = store.config.effective_debt_limit
        if store.total_debt + total > limit:
            self.audit_service.log_dispatch_blocked(
                store.name, store_id,
                f"límite de crédito ({format_money(store.total_debt)} + {format_money(total)} > {format_money(limit)})",
                user
            )
            return {'ok': False, 'reason': 'credit_limit', 'error': 'El despacho supera el límite de crédito'}

        # 4. Despachos vencidos
        overdue = find_overdue_dispatches(store_id, snapshot.dispatches, now_iso())
        if overdue:
            self.audit_service.log_dispatch_blocked(
                store.name, store_id, f"{len(overdue)} factura(s) vencida(s)", user
            )
            return {'ok': False, 'reason': 'overdue', 'error': 'La sucursal tiene despachos vencidos'}

        approval = self.approval_service.initial_status(AuditEntity.DISPATCH)
        now = datetime.now()
        due = now + timedelta(days=store.config.effective_payment_term)
        number = dispatch_number or self.dispatch_repo.get_next_dispatch_number()

        dispatch = StockDispatch(
            id=new_id('disp'),
            dispatch_number=number,
            store_id=store_id,
            timestamp=now.isoformat(timespec='milliseconds'),
            due_date=due.date().isoformat(),
            items=items,
            returns=[],
            total_amount=total,
            driver_name=driver_name or '',
            vehicle_plate=vehicle_plate or '',
            status=DispatchStatus.ACTIVE,
            approval_status=approval,
            print_count=0,
        )
        self.dispatch_repo.add(dispatch.to_dict())

        pending = approval == ApprovalStatus.PENDING
        if pending:
            details = f"Despacho #{number} pendiente de aprobación."
        else:
            details = f"Nuevo despacho #{number} por {format_money(total)}"
        self.audit_service.log(AuditAction.CREATE, AuditEntity.DISPATCH, dispatch.id, details, user)
        logger.info("[DESPACHO] #%s a %s por %s%s", number, store.name, money_to_json(total),
                    ' (pendiente)' if pending else '')
        return {'ok': True, 'id': dispatch.id, 'dispatch_number': number, 'pending': pending}

    # =========================================================================
    # DEVOLUCIONES
    # =========================================================================

    def partial_return(
        self,
        dispatch_id: str,
        product_id: str,
        quantity: Any,
        reason: Any,
        user: Optional[User] = None
    ) -> Dict[str, Any]:
        """
        Registra la devolución de parte de un producto despachado.
        Solo las devoluciones en buen estado regresan al stock.

        Returns:
            {'ok': True, 'status': str} o {'ok': False, 'reason': 'not_found'|'invalid', 'error': str}
        """
        record = self.dispatch_repo.get(dispatch_id)
        if record is None:
            return {'ok': False, 'reason': 'not_found', 'error': 'Despacho no encontrado'}
        dispatch = StockDispatch.from_dict(record)
        if dispatch.status == DispatchStatus.CANCELLED:
            return {'ok': False, 'reason': 'invalid', 'error': 'El despacho está anulado'}

        qty = parse_decimal(quantity)
        if qty is None or qty <= ZERO:
            return {'ok': False, 'reason': 'invalid', 'error': 'La cantidad debe ser mayor a 0'}
        outstanding = dispatch.sent_quantity(product_id) - dispatch.returned_quantity(product_id)
        if qty > outstanding:
            return {
                'ok': False,
                'reason': 'invalid',
                'error': f"Solo quedan {money_to_json(outstanding)} unidades por devolver de ese producto"
            }

        new_return = ProductReturn(
            id=new_id('ret'),
            dispatch_id=dispatch_id,
            product_id=product_id,
            quantity=qty,
            reason=ReturnReason.parse(reason),
            timestamp=now_iso(),
        )
        dispatch.returns.append(new_return)
        status = (DispatchStatus.RETURNED
                  if dispatch.returned_quantity() >= dispatch.sent_quantity()
                  else DispatchStatus.PARTIAL_RETURN)

        self.dispatch_repo.update(dispatch_id, {
            'returns': [r.to_dict() for r in dispatch.returns],
            'status': status.value,
        })
        self.audit_service.log(
            AuditAction.UPDATE, AuditEntity.DISPATCH, dispatch_id,
            f"Devolución en despacho #{dispatch.dispatch_number}: {money_to_json(qty)} unidades ({new_return.reason.value})",
            user
        )
        return {'ok': True, 'status': status.value}

    def full_return(self, dispatch_id: str, user: Optional[User] = None) -> Dict[str, Any]:
        """
        Devolución total: cada línea vuelve completa en buen estado.
        Reemplaza las devoluciones parciales previas.
        """
        record = self.dispatch_repo.get(dispatch_id)
        if record is None:
            return {'ok': False, 'reason': 'not_found', 'error': 'Despacho no encontrado'}
        dispatch = StockDispatch.from_dict(record)
        if dispatch.status == DispatchStatus.CANCELLED:
            return {'ok': False, 'reason': 'invalid', 'error': 'El despacho está anulado'}

        timestamp = now_iso()
        base_id = new_id('ret')
        returns = [
            ProductReturn(
                id=f"{base_id}-{item.product_id}",
                dispatch_id=dispatch_id,
                product_id=item.product_id,
                quantity=item.quantity,
                reason=ReturnReason.GOOD_CONDITION,
                timestamp=timestamp,
            )
            for item in dispatch.items
        ]
        self.dispatch_repo.update(dispatch_id, {
            'status': DispatchStatus.RETURNED.value,
            'returns': [r.to_dict() for r in returns],
        })
        self.audit_service.log(AuditAction.UPDATE, AuditEntity.DISPATCH, dispatch_id,
                               f"Devolución total del despacho #{dispatch.dispatch_number}", user)
        return {'ok': True, 'status': DispatchStatus.RETURNED.value}

    # =========================================================================
    # ANULACIÓN
    # =========================================================================

    def cancel_dispatch(
        self,
        dispatch_id: str,
        responder: Optional[Responder],
        siniestro: bool = False,
        user: Optional[User] = None
    ) -> Dict[str, Any]:
        """
        Anula un despacho previa clave de administrador.

        Args:
            dispatch_id: Despacho a anular
            responder: Canal de diálogos para la clave
            siniestro: True = pérdida total (robo/saqueo), el stock NO vuelve
            user: Usuario que anula

        Returns:
            {'ok': True, 'loss_invoice_id': str|None} o
            {'ok': False, 'reason': 'not_found'|'invalid'|'cancelled'|'unauthorized', 'error': str}
        """
        record = self.dispatch_repo.get(dispatch_id)
        if record is None:
            return {'ok': False, 'reason': 'not_found', 'error': 'Despacho no encontrado'}
        dispatch = StockDispatch.from_dict(record)
        if dispatch.status == DispatchStatus.CANCELLED:
            return {'ok': False, 'reason': 'invalid', 'error': 'El despacho ya está anulado'}

        label = 'REGISTRAR SINIESTRO (SAQUEO/ROBO)' if siniestro else 'ANULAR DESPACHO'
        gate = self.authorization_service.request_admin_approval(f"{label} #{dispatch.dispatch_number}", responder, user)
        if not gate['ok']:
            return gate

        self.dispatch_repo.update(dispatch_id, {'status': DispatchStatus.CANCELLED.value})

        loss_invoice_id = None
        if siniestro:
            loss_invoice_id = self._register_loss(dispatch)
            self.audit_service.log(
                AuditAction.ANULAR, AuditEntity.DISPATCH, dispatch_id,
                f"SINIESTRO REGISTRADO: Despacho #{dispatch.dispatch_number} marcado como pérdida total.",
                user
            )
            logger.warning("[DESPACHO] Siniestro registrado en #%s", dispatch.dispatch_number)
        else:
            self.audit_service.log(
                AuditAction.ANULAR, AuditEntity.DISPATCH, dispatch_id,
                f"Anulación por error: Despacho #{dispatch.dispatch_number}. Stock retornado.",
                user
            )
            logger.info("[DESPACHO] #%s anulado por error administrativo", dispatch.dispatch_number)

        return {'ok': True, 'loss_invoice_id': loss_invoice_id}

    def _register_loss(self, dispatch: StockDispatch) -> str:
        """Nota de baja que saca definitivamente del stock lo despachado."""
        snapshot = self.ledger.snapshot()
        items = []
        for item in dispatch.items:
            product = snapshot.product(item.product_id)
            cost = product.purchase_cost if product else ZERO
            items.append(InvoiceItem(
                product_id=item.product_id,
                quantity=-item.quantity,
                unit_cost=cost,
                total_item_cost=item.quantity * cost,
            ))
        invoice = Invoice(
            id=new_id('baja-sin'),
            supplier_id=LOCAL_SUPPLIER_ID,
            invoice_number=f"BAJA-SIN-{dispatch.dispatch_number}",
            date=today_iso(),
            items=items,
            total_amount=ZERO,
            amount_paid=ZERO,
            status=InvoiceStatus.PAID,
            notes=f"PÉRDIDA POR SINIESTRO EN RUTA: Despacho #{dispatch.dispatch_number} Saqueado/Robado.",
        )
        self.invoice_repo.add(invoice.to_dict())
        return invoice.id

    # =========================================================================
    # IMPRESIÓN
    # =========================================================================

    def increment_dispatch_print_count(self, dispatch_id: str) -> Optional[int]:
        record = self.dispatch_repo.get(dispatch_id)
        if record is None:
            return None
        count = StockDispatch.from_dict(record).print_count + 1
        self.dispatch_repo.update(dispatch_id, {'printCount': count})
        return count
