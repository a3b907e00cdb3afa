# ==============================================================================
# SERVICIO DE PAGOS
# ==============================================================================
# Centraliza toda la lógica de negocio relacionada con pagos:
#   - Pagos del negocio a proveedores (opcionalmente contra una factura)
#   - Abonos de sucursales (opcionalmente contra un despacho)
#   - Anulación con clave de administrador
#
# Un pago anulado NO se borra: queda con status 'cancelled' y deja de
# contar en los saldos.
# ==============================================================================

import logging
from decimal import Decimal
from typing import Any, Dict, Optional

from pagomatic.models import (
    ZERO,
    ApprovalStatus,
    AuditAction,
    AuditEntity,
    PaymentStatus,
    StorePayment,
    SupplierPayment,
    User,
    new_id,
    parse_decimal,
    today_iso,
)
from pagomatic.repositories.catalog_repository import StoreRepository, SupplierRepository
from pagomatic.repositories.document_repository import StorePaymentRepository, SupplierPaymentRepository
from pagomatic.services.approval_service import ApprovalService
from pagomatic.services.audit_service import AuditService, format_money
from pagomatic.services.authorization_service import AuthorizationService
from pagomatic.services.dialog_service import Responder
from pagomatic.services.ledger_service import LedgerService

logger = logging.getLogger(__name__)

# Holgura al comparar contra el saldo de un documento puntual
DOCUMENT_SLACK = Decimal('0.01')

# Holgura al comparar contra la deuda total con un proveedor
SUPPLIER_DEBT_SLACK = Decimal('0.10')


def _parse_amount(value: Any) -> Optional[Decimal]:
    amount = parse_decimal(value)
    if amount is None or amount <= ZERO:
        return None
    return amount


class PaymentService:
    """
    Servicio para gestión de pagos.

    Responsabilidades:
    - Validar montos contra los saldos derivados
    - Aplicar la política de aprobación de pagos
    - Registrar pagos y anulaciones en auditoría
    """

    def __init__(
        self,
        supplier_payment_repo: SupplierPaymentRepository,
        store_payment_repo: StorePaymentRepository,
        supplier_repo: SupplierRepository,
        store_repo: StoreRepository,
        ledger: LedgerService,
        approval_service: ApprovalService,
        authorization_service: AuthorizationService,
        audit_service: AuditService
    ):
        self.supplier_payment_repo = supplier_payment_repo
        self.store_payment_repo = store_payment_repo
        self.supplier_repo = supplier_repo
        self.store_repo = store_repo
        self.ledger = ledger
        self.approval_service = approval_service
        self.authorization_service = authorization_service
        self.audit_service = audit_service

    # =========================================================================
    # PAGOS A PROVEEDORES
    # =========================================================================

    def add_supplier_payment(self, data: Dict[str, Any], user: Optional[User] = None) -> Dict[str, Any]:
        """
        Registra un pago a proveedor.

        Args:
            data: supplierId, amount, date, method, reference, invoiceId (opcional)
            user: Usuario que registra

        Returns:
            {'ok': True, 'id': str, 'pending': bool} o {'ok': False, 'reason': ..., 'error': str}
        """
        supplier_id = data.get('supplierId')
        if not supplier_id or not self.supplier_repo.exists(supplier_id):
            return {'ok': False, 'reason': 'not_found', 'error': 'Proveedor no encontrado'}

        amount = _parse_amount(data.get('amount'))
        if amount is None:
            return {'ok': False, 'reason': 'invalid', 'error': 'El monto debe ser mayor a 0'}

        snapshot = self.ledger.snapshot()
        invoice_id = data.get('invoiceId') or ''
        invoice_number = ''
        if invoice_id:
            invoice = snapshot.invoice(invoice_id)
            if invoice is None or invoice.supplier_id != supplier_id:
                return {'ok': False, 'reason': 'not_found', 'error': 'Factura no encontrada'}
            pending = snapshot.invoice_pending_amount(invoice_id)
            if amount > pending + DOCUMENT_SLACK:
                return {
                    'ok': False,
                    'reason': 'invalid',
                    'error': f"El monto supera el saldo de la factura ({format_money(pending)})"
                }
            invoice_number = invoice.invoice_number
        else:
            debt = snapshot.supplier(supplier_id).debt
            if amount > debt + SUPPLIER_DEBT_SLACK:
                return {
                    'ok': False,
                    'reason': 'invalid',
                    'error': f"El monto supera la deuda con el proveedor ({format_money(debt)})"
                }

        approval = self.approval_service.initial_status(AuditEntity.PAYMENT)
        payment = SupplierPayment(
            id=new_id('pay'),
            supplier_id=supplier_id,
            amount=amount,
            date=data.get('date') or today_iso(),
            method=data.get('method') or '',
            reference=data.get('reference') or '',
            invoice_id=invoice_id,
            invoice_number=invoice_number,
            approval_status=approval,
        )
        self.supplier_payment_repo.add(payment.to_dict())

        pending_approval = approval == ApprovalStatus.PENDING
        target = f" (Factura #{invoice_number})" if invoice_number else ''
        details = f"Pago a proveedor por {format_money(amount)}{target}"
        if pending_approval:
            details += " pendiente de aprobación."
        self.audit_service.log(AuditAction.CREATE, AuditEntity.PAYMENT, payment.id, details, user)
        return {'ok': True, 'id': payment.id, 'pending': pending_approval}

    def cancel_supplier_payment(
        self,
        payment_id: str,
        responder: Optional[Responder],
        user: Optional[User] = None
    ) -> Dict[str, Any]:
        """
        Anula un pago a proveedor (requiere clave de administrador).

        Returns:
            {'ok': True} o {'ok': False, 'reason': 'not_found'|'invalid'|'cancelled'|'unauthorized', 'error': str}
        """
        record = self.supplier_payment_repo.get(payment_id)
        if record is None:
            return {'ok': False, 'reason': 'not_found', 'error': 'Pago no encontrado'}
        if PaymentStatus.parse(record.get('status')) == PaymentStatus.CANCELLED:
            return {'ok': False, 'reason': 'invalid', 'error': 'El pago ya está anulado'}

        gate = self.authorization_service.request_admin_approval('ANULAR PAGO PROVEEDOR', responder, user)
        if not gate['ok']:
            return gate

        self.audit_service.log(AuditAction.ANULAR, AuditEntity.PAYMENT, payment_id,
                               'Anulación de pago a proveedor', user)
        self.supplier_payment_repo.update(payment_id, {'status': PaymentStatus.CANCELLED.value})
        logger.info("[PAGOS] Pago a proveedor %s anulado", payment_id)
        return {'ok': True}

    # =========================================================================
    # ABONOS DE SUCURSALES
    # =========================================================================

    def add_store_payment(self, data: Dict[str, Any], user: Optional[User] = None) -> Dict[str, Any]:
        """
        Registra un abono de sucursal.

        Args:
            data: storeId, amount, date, method, reference, dispatchId (opcional)
            user: Usuario que registra

        Returns:
            {'ok': True, 'id': str, 'pending': bool} o {'ok': False, 'reason': ..., 'error': str}
        """
        store_id = data.get('storeId')
        if not store_id or self.store_repo.get(store_id) is None:
            return {'ok': False, 'reason': 'not_found', 'error': 'Sucursal no encontrada'}

        amount = _parse_amount(data.get('amount'))
        if amount is None:
            return {'ok': False, 'reason': 'invalid', 'error': 'El monto debe ser mayor a 0'}

        dispatch_id = data.get('dispatchId') or ''
        dispatch_number = ''
        if dispatch_id:
            snapshot = self.ledger.snapshot()
            dispatch = snapshot.dispatch(dispatch_id)
            if dispatch is None or dispatch.store_id != store_id:
                return {'ok': False, 'reason': 'not_found', 'error': 'Despacho no encontrado'}
            pending = snapshot.dispatch_pending_amount(dispatch_id)
            if amount > pending + DOCUMENT_SLACK:
                return {
                    'ok': False,
                    'reason': 'invalid',
                    'error': f"El monto supera el saldo del despacho ({format_money(pending)})"
                }
            dispatch_number = dispatch.dispatch_number

        approval = self.approval_service.initial_status(AuditEntity.STORE_PAYMENT)
        payment = StorePayment(
            id=new_id('sp'),
            store_id=store_id,
            amount=amount,
            date=data.get('date') or today_iso(),
            method=data.get('method') or '',
            reference=data.get('reference') or '',
            dispatch_id=dispatch_id,
            dispatch_number=dispatch_number,
            approval_status=approval,
            print_count=0,
        )
        self.store_payment_repo.add(payment.to_dict())

        pending_approval = approval == ApprovalStatus.PENDING
        details = f"Abono de sucursal por {format_money(amount)}"
        if dispatch_number:
            details += f" (Despacho #{dispatch_number})"
        if pending_approval:
            details += " pendiente de aprobación."
        self.audit_service.log(AuditAction.CREATE, AuditEntity.STORE_PAYMENT, payment.id, details, user)
        return {'ok': True, 'id': payment.id, 'pending': pending_approval}

    def cancel_store_payment(
        self,
        payment_id: str,
        responder: Optional[Responder],
        user: Optional[User] = None
    ) -> Dict[str, Any]:
        """Anula un abono de sucursal (requiere clave de administrador)."""
        record = self.store_payment_repo.get(payment_id)
        if record is None:
            return {'ok': False, 'reason': 'not_found', 'error': 'Abono no encontrado'}
        if PaymentStatus.parse(record.get('status')) == PaymentStatus.CANCELLED:
            return {'ok': False, 'reason': 'invalid', 'error': 'El abono ya está anulado'}

        gate = self.authorization_service.request_admin_approval('ANULAR COBRO SUCURSAL', responder, user)
        if not gate['ok']:
            return gate

        self.audit_service.log(AuditAction.ANULAR, AuditEntity.STORE_PAYMENT, payment_id,
                               'Anulación de cobro a sucursal', user)
        self.store_payment_repo.update(payment_id, {'status': PaymentStatus.CANCELLED.value})
        logger.info("[PAGOS] Abono %s anulado", payment_id)
        return {'ok': True}

    def increment_store_payment_print_count(self, payment_id: str) -> Optional[int]:
        """
        Returns:
            Nuevo contador de impresiones, o None si el abono no existe
        """
        record = self.store_payment_repo.get(payment_id)
        if record is None:
            return None
        count = StorePayment.from_dict(record).print_count + 1
        self.store_payment_repo.update(payment_id, {'printCount': count})
        return count

    def invoice_payments(self, invoice_id: str):
        return [SupplierPayment.from_dict(p) for p in self.supplier_payment_repo.find_by_invoice(invoice_id)]
