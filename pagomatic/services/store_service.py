# ==============================================================================
# SERVICIO DE SUCURSALES
# ==============================================================================
# Alta, edición, suspensión y baja de sucursales. Una sucursal solo se
# elimina si su deuda derivada es prácticamente cero.
# ==============================================================================

import json
import logging
from typing import Any, Dict, List, Optional

from pagomatic.models import (
    BALANCE_EPSILON,
    AuditAction,
    AuditEntity,
    Store,
    StoreConfig,
    User,
    new_id,
    parse_decimal,
    parse_flag,
)
from pagomatic.repositories.catalog_repository import StoreRepository
from pagomatic.repositories.document_repository import DispatchRepository, StorePaymentRepository
from pagomatic.services.audit_service import AuditService, format_money
from pagomatic.services.dialog_service import Responder, confirm
from pagomatic.services.ledger_service import LedgerService

logger = logging.getLogger(__name__)

STORE_FIELDS = ('name', 'color', 'location', 'manager', 'phone', 'address', 'active')


def _validate_config(config: Dict[str, Any]) -> Optional[str]:
    for key in ('maxDebtLimit', 'paymentTermDays'):
        value = config.get(key)
        if value in (None, ''):
            continue
        number = parse_decimal(value)
        if number is None or number < 0:
            return f"Valor inválido para {key}: {value}"
    return None


class StoreService:

    def __init__(
        self,
        store_repo: StoreRepository,
        dispatch_repo: DispatchRepository,
        store_payment_repo: StorePaymentRepository,
        ledger: LedgerService,
        audit_service: AuditService
    ):
        self.store_repo = store_repo
        self.dispatch_repo = dispatch_repo
        self.store_payment_repo = store_payment_repo
        self.ledger = ledger
        self.audit_service = audit_service

    def active_stores(self) -> List[Store]:
        return [Store.from_dict(s) for s in self.store_repo.get_active()]

    def store_history(self, store_id: str) -> Dict[str, List[Dict[str, Any]]]:
        """Despachos y abonos de una sucursal, más recientes primero."""
        dispatches = sorted(self.dispatch_repo.find_by_store(store_id),
                            key=lambda d: d.get('timestamp') or '', reverse=True)
        payments = sorted(self.store_payment_repo.find_by_store(store_id),
                          key=lambda p: p.get('date') or '', reverse=True)
        return {'dispatches': dispatches, 'payments': payments}

    def add_store(self, data: Dict[str, Any], user: Optional[User] = None) -> Dict[str, Any]:
        name = str(data.get('name') or '').strip()
        if not name:
            return {'ok': False, 'reason': 'invalid', 'error': 'El nombre de la sucursal es requerido'}
        config = data.get('config') or {}
        error = _validate_config(config)
        if error:
            return {'ok': False, 'reason': 'invalid', 'error': error}

        fields = {k: data[k] for k in STORE_FIELDS if k in data}
        store = Store.from_dict(dict(fields, id=new_id('store'), name=name, config=config))
        self.store_repo.add(store.to_dict())
        self.audit_service.log(AuditAction.CREATE, AuditEntity.STORE, store.id,
                               f"Sucursal creada: {store.name}", user)
        return {'ok': True, 'id': store.id}

    def update_store(self, store_id: str, changes: Dict[str, Any], user: Optional[User] = None) -> Dict[str, Any]:
        """
        Actualiza datos o condiciones de crédito de una sucursal.
        La configuración se fusiona con la existente.
        """
        existing = self.store_repo.get(store_id)
        if existing is None:
            return {'ok': False, 'reason': 'not_found', 'error': 'Sucursal no encontrada'}

        fields = {k: changes[k] for k in STORE_FIELDS if k in changes}
        if 'name' in fields and not str(fields['name'] or '').strip():
            return {'ok': False, 'reason': 'invalid', 'error': 'El nombre de la sucursal es requerido'}
        if 'active' in fields:
            active = parse_flag(fields['active'])
            if active is None:
                return {'ok': False, 'reason': 'invalid', 'error': 'Valor de estado activo no reconocido'}
            fields['active'] = active
        if 'config' in changes:
            config = dict(existing.get('config') or {}, **(changes['config'] or {}))
            error = _validate_config(config)
            if error:
                return {'ok': False, 'reason': 'invalid', 'error': error}
            fields['config'] = StoreConfig.from_dict(config).to_dict()
        if not fields:
            return {'ok': True}

        self.store_repo.update(store_id, fields)
        self.audit_service.log(AuditAction.UPDATE, AuditEntity.STORE, store_id,
                               f"Actualización de sucursal: {json.dumps(fields, ensure_ascii=False, default=str)}", user)
        return {'ok': True}

    def set_active(self, store_id: str, active: Any, user: Optional[User] = None) -> Dict[str, Any]:
        """Suspende (active=False) o reactiva una sucursal."""
        return self.update_store(store_id, {'active': active}, user)

    def delete_store(
        self,
        store_id: str,
        responder: Optional[Responder],
        user: Optional[User] = None
    ) -> Dict[str, Any]:
        """
        Returns:
            {'ok': True} o {'ok': False, 'reason': 'not_found'|'has_balance'|'cancelled', 'error': str}
        """
        store = self.ledger.snapshot().store(store_id)
        if store is None:
            return {'ok': False, 'reason': 'not_found', 'error': 'Sucursal no encontrada'}
        if store.total_debt > BALANCE_EPSILON:
            return {
                'ok': False,
                'reason': 'has_balance',
                'error': f'No se puede eliminar "{store.name}" porque tiene una deuda activa de {format_money(store.total_debt)}.'
            }
        if not confirm(responder, 'ELIMINAR SUCURSAL',
                       f'¿ESTÁ SEGURO? Se eliminará la sucursal "{store.name}" y todo su historial.'):
            return {'ok': False, 'reason': 'cancelled', 'error': 'Operación cancelada'}

        self.store_repo.delete(store_id)
        self.audit_service.log(AuditAction.DELETE, AuditEntity.STORE, store_id,
                               f"Sucursal eliminada: {store.name}", user)
        return {'ok': True}
