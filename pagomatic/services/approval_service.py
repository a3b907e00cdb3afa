# ==============================================================================
# FLUJO DE APROBACIÓN - Sala de espera de documentos
# ==============================================================================
# Máquina de estados sobre despachos, facturas, pagos a proveedor y abonos:
#
#   (creación) ──► approved            si la política del tipo está apagada
#   (creación) ──► pending ──► approved   aprobar: sella authorizedBy/At
#                          └─► rejected   rechazar: despachos y pagos quedan
#                                         además con status 'cancelled'
#
# Un documento 'pending' no cuenta en ningún saldo. Solo los documentos
# pendientes pueden aprobarse o rechazarse.
# ==============================================================================

import logging
from typing import Any, Dict, List, Optional

from pagomatic.models import (
    ApprovalStatus,
    AuditAction,
    AuditEntity,
    DispatchStatus,
    PaymentStatus,
    User,
    now_iso,
    to_decimal,
)
from pagomatic.repositories.base import CollectionRepository
from pagomatic.services.audit_service import AuditService
from pagomatic.services.dialog_service import Responder, prompt
from pagomatic.services.settings_service import SettingsService

logger = logging.getLogger(__name__)


# Tokens de entidad aprobables → bandera de política
POLICY_FLAGS = {
    AuditEntity.DISPATCH: 'requireDispatchApproval',
    AuditEntity.INVOICE: 'requireInvoiceApproval',
    AuditEntity.PAYMENT: 'requirePaymentApproval',
    AuditEntity.STORE_PAYMENT: 'requirePaymentApproval',
}

ENTITY_LABELS = {
    AuditEntity.DISPATCH: 'Despacho',
    AuditEntity.INVOICE: 'Factura',
    AuditEntity.PAYMENT: 'Pago a proveedor',
    AuditEntity.STORE_PAYMENT: 'Abono de sucursal',
}


def parse_entity(entity: Any) -> AuditEntity:
    """
    Raises:
        ValueError: Si el token no corresponde a un documento aprobable
    """
    try:
        parsed = AuditEntity(entity)
    except ValueError:
        raise ValueError(f"Tipo de documento no aprobable: {entity}")
    if parsed not in POLICY_FLAGS:
        raise ValueError(f"Tipo de documento no aprobable: {entity}")
    return parsed


class ApprovalService:

    def __init__(
        self,
        repositories: Dict[AuditEntity, CollectionRepository],
        settings_service: SettingsService,
        audit_service: AuditService
    ):
        """
        Args:
            repositories: Repositorio por tipo (dispatch, invoice, payment, store_payment)
            settings_service: Fuente de las banderas de política
            audit_service: Bitácora
        """
        self.repositories = repositories
        self.settings_service = settings_service
        self.audit_service = audit_service

    def initial_status(self, entity: Any) -> ApprovalStatus:
        """Estado de aprobación con el que nace un documento nuevo."""
        flag = POLICY_FLAGS[parse_entity(entity)]
        return ApprovalStatus.PENDING if self.settings_service.is_enabled(flag) else ApprovalStatus.APPROVED

    def _load_pending(self, entity: AuditEntity, doc_id: str):
        record = self.repositories[entity].get(doc_id)
        if record is None:
            return None, {'ok': False, 'reason': 'not_found', 'error': 'Documento no encontrado'}
        if ApprovalStatus.parse(record.get('approvalStatus')) != ApprovalStatus.PENDING:
            return None, {'ok': False, 'reason': 'invalid', 'error': 'El documento no está pendiente de aprobación'}
        return record, None

    # =========================================================================
    # TRANSICIONES
    # =========================================================================

    def approve(self, entity: Any, doc_id: str, user: Optional[User] = None) -> Dict[str, Any]:
        """
        pending → approved

        Returns:
            {'ok': True} o {'ok': False, 'reason': 'not_found'|'invalid', 'error': str}
        """
        entity = parse_entity(entity)
        record, error = self._load_pending(entity, doc_id)
        if error:
            return error

        approver = (user.name or user.username) if user else 'Sistema'
        self.repositories[entity].update(doc_id, {
            'approvalStatus': ApprovalStatus.APPROVED.value,
            'authorizedBy': approver,
            'authorizedAt': now_iso(),
        })
        self.audit_service.log(AuditAction.UPDATE, entity, doc_id, f"Documento aprobado por {approver}", user)
        logger.info("[APROBACIÓN] %s %s aprobado por %s", entity.value, doc_id, approver)
        return {'ok': True}

    def reject(
        self,
        entity: Any,
        doc_id: str,
        responder: Optional[Responder],
        user: Optional[User] = None
    ) -> Dict[str, Any]:
        """
        pending → rejected. Pide el motivo por el canal de diálogos.

        Returns:
            {'ok': True} o {'ok': False, 'reason': 'not_found'|'invalid'|'cancelled', 'error': str}
        """
        entity = parse_entity(entity)
        record, error = self._load_pending(entity, doc_id)
        if error:
            return error

        reason = prompt(responder, 'Rechazar documento', 'Motivo del rechazo')
        if reason is None:
            return {'ok': False, 'reason': 'cancelled', 'error': 'Operación cancelada'}

        fields = {'approvalStatus': ApprovalStatus.REJECTED.value}
        if entity == AuditEntity.DISPATCH:
            fields['status'] = DispatchStatus.CANCELLED.value
        elif entity in (AuditEntity.PAYMENT, AuditEntity.STORE_PAYMENT):
            fields['status'] = PaymentStatus.CANCELLED.value

        self.repositories[entity].update(doc_id, fields)
        self.audit_service.log(AuditAction.ANULAR, entity, doc_id, f"Documento rechazado: {reason}", user)
        logger.info("[APROBACIÓN] %s %s rechazado: %s", entity.value, doc_id, reason)
        return {'ok': True}

    # =========================================================================
    # SALA DE ESPERA
    # =========================================================================

    def pending_documents(self) -> List[Dict[str, Any]]:
        """
        Todos los documentos pendientes, más antiguos primero.

        Returns:
            [{'entity', 'id', 'label', 'number', 'amount', 'date', 'document'}]
        """
        pending = []
        for entity, repo in self.repositories.items():
            for record in repo.all():
                if ApprovalStatus.parse(record.get('approvalStatus')) != ApprovalStatus.PENDING:
                    continue
                pending.append({
                    'entity': entity.value,
                    'id': record.get('id'),
                    'label': ENTITY_LABELS[entity],
                    'number': (record.get('dispatchNumber') or record.get('invoiceNumber')
                               or record.get('reference') or ''),
                    'amount': to_decimal(record.get('totalAmount', record.get('amount'))),
                    'date': record.get('timestamp') or record.get('date') or '',
                    'document': record,
                })
        pending.sort(key=lambda d: d['date'])
        return pending
