from decimal import Decimal

import pytest

from pagomatic.app_container import AppContainer
from pagomatic.services.dialog_service import static_responder
from pagomatic.tests.conftest import ADMIN_PASSWORD, dispatch, make_product, make_store, receive


@pytest.fixture
def stocked(container, supplier_id, admin):
    """Producto con 200 unidades (costo 1, suministro 10)."""
    pid = make_product(container, supplier_id, cost='1', supply='10', user=admin)
    receive(container, supplier_id, pid, 200, user=admin)
    return pid


def blocks(container):
    return container.audit_service.search_logs(action='block', entity='store')


# ==============================================================================
# CREACIÓN
# ==============================================================================

def test_dispatch_reduces_stock_and_creates_debt(container, stocked, admin):
    store_id = make_store(container, user=admin)

    result = container.dispatch_service.create_dispatch(
        [{'productId': stocked, 'quantity': 30}], store_id, driver_name='Pedro', user=admin
    )

    assert result['ok']
    assert result['dispatch_number'] == 'D00001'
    assert result['pending'] is False
    snap = container.ledger_service.snapshot()
    assert snap.stock_of(stocked) == Decimal('170')
    assert snap.store(store_id).total_debt == Decimal('300')
    saved = container.dispatch_repo.get(result['id'])
    assert saved['driverName'] == 'Pedro'
    assert saved['dueDate'] > saved['timestamp'][:10]


def test_dispatch_numbers_are_sequential(container, stocked, admin):
    store_id = make_store(container, user=admin)
    dispatch(container, store_id, stocked, 1, user=admin)
    second = container.dispatch_service.create_dispatch([{'productId': stocked, 'quantity': 1}], store_id)
    assert second['dispatch_number'] == 'D00002'


def test_credit_limit_blocks_and_persists_nothing(container, stocked, admin):
    store_id = make_store(container, limit=1000, user=admin)
    dispatch(container, store_id, stocked, 90, user=admin)
    assert container.ledger_service.snapshot().store(store_id).total_debt == Decimal('900')
    before = container.dispatch_repo.count()

    result = container.dispatch_service.create_dispatch([{'productId': stocked, 'quantity': 15}], store_id, user=admin)

    assert result['ok'] is False
    assert result['reason'] == 'credit_limit'
    assert container.dispatch_repo.count() == before
    assert 'límite de crédito' in blocks(container)[0]['details']


def test_stock_is_checked_first(container, stocked, admin):
    store_id = make_store(container, limit=10, user=admin)
    container.store_service.set_active(store_id, False, admin)

    result = container.dispatch_service.create_dispatch([{'productId': stocked, 'quantity': 500}], store_id)

    assert result['reason'] == 'stock'
    assert 'stock insuficiente' in blocks(container)[0]['details']


def test_stock_check_adds_repeated_lines(container, stocked, admin):
    store_id = make_store(container, user=admin)
    cart = [{'productId': stocked, 'quantity': 150}, {'productId': stocked, 'quantity': 60}]

    result = container.dispatch_service.create_dispatch(cart, store_id)

    assert result['reason'] == 'stock'


def test_inactive_checked_before_credit_limit(container, stocked, admin):
    store_id = make_store(container, limit=10, user=admin)
    container.store_service.set_active(store_id, False, admin)

    result = container.dispatch_service.create_dispatch([{'productId': stocked, 'quantity': 5}], store_id)

    assert result['reason'] == 'inactive'


def test_credit_limit_checked_before_overdue(container, stocked, admin):
    store_id = make_store(container, limit=100, user=admin)
    first = dispatch(container, store_id, stocked, 5, user=admin)
    container.dispatch_repo.update(first, {'dueDate': '2020-01-01'})

    result = container.dispatch_service.create_dispatch([{'productId': stocked, 'quantity': 6}], store_id)

    assert result['reason'] == 'credit_limit'


def test_overdue_dispatch_blocks_store(container, stocked, admin):
    store_id = make_store(container, user=admin)
    first = dispatch(container, store_id, stocked, 5, user=admin)
    container.dispatch_repo.update(first, {'dueDate': '2020-01-01'})

    result = container.dispatch_service.create_dispatch([{'productId': stocked, 'quantity': 1}], store_id)

    assert result['reason'] == 'overdue'
    assert container.dispatch_repo.count() == 1


def test_missing_store_and_bad_cart(container, stocked):
    assert container.dispatch_service.create_dispatch([{'productId': stocked, 'quantity': 1}], 'nope')['reason'] == 'not_found'
    store_id = make_store(container)
    assert container.dispatch_service.create_dispatch([], store_id)['reason'] == 'invalid'
    assert container.dispatch_service.create_dispatch([{'productId': stocked, 'quantity': 0}], store_id)['reason'] == 'invalid'


def test_pending_dispatch_has_no_effect_until_approved(container, stocked, admin):
    container.settings_service.update({'requireDispatchApproval': True}, admin)
    store_id = make_store(container, user=admin)

    result = container.dispatch_service.create_dispatch([{'productId': stocked, 'quantity': 20}], store_id, user=admin)

    assert result['pending'] is True
    snap = container.ledger_service.snapshot()
    assert snap.stock_of(stocked) == Decimal('200')
    assert snap.store(store_id).total_debt == 0

    container.approval_service.approve('dispatch', result['id'], admin)
    snap = container.ledger_service.snapshot()
    assert snap.stock_of(stocked) == Decimal('180')
    assert snap.store(store_id).total_debt == Decimal('200')


# ==============================================================================
# DEVOLUCIONES
# ==============================================================================

def test_partial_returns_update_status(container, stocked, admin):
    store_id = make_store(container, user=admin)
    did = dispatch(container, store_id, stocked, 30, user=admin)

    first = container.dispatch_service.partial_return(did, stocked, 10, 'good_condition', admin)
    assert first == {'ok': True, 'status': 'partial_return'}
    assert container.ledger_service.snapshot().stock_of(stocked) == Decimal('180')

    damaged = container.dispatch_service.partial_return(did, stocked, 20, 'damaged', admin)
    assert damaged['status'] == 'returned'
    snap = container.ledger_service.snapshot()
    assert snap.stock_of(stocked) == Decimal('180')
    assert snap.store(store_id).total_debt == 0


def test_return_cannot_exceed_outstanding(container, stocked, admin):
    store_id = make_store(container, user=admin)
    did = dispatch(container, store_id, stocked, 5, user=admin)

    result = container.dispatch_service.partial_return(did, stocked, 6, 'good_condition', admin)

    assert result['reason'] == 'invalid'
    assert container.dispatch_repo.get(did)['returns'] == []


def test_full_return_replaces_previous_returns(container, stocked, admin):
    store_id = make_store(container, user=admin)
    did = dispatch(container, store_id, stocked, 30, user=admin)
    container.dispatch_service.partial_return(did, stocked, 10, 'damaged', admin)

    result = container.dispatch_service.full_return(did, admin)

    assert result['status'] == 'returned'
    returns = container.dispatch_repo.get(did)['returns']
    assert len(returns) == 1
    assert returns[0]['reason'] == 'good_condition'
    assert returns[0]['id'].endswith(stocked)
    assert container.ledger_service.snapshot().stock_of(stocked) == Decimal('200')


# ==============================================================================
# ANULACIÓN
# ==============================================================================

def test_administrative_cancel_returns_stock(container, stocked, admin, admin_ok):
    store_id = make_store(container, user=admin)
    did = dispatch(container, store_id, stocked, 20, user=admin)

    result = container.dispatch_service.cancel_dispatch(did, admin_ok, user=admin)

    assert result == {'ok': True, 'loss_invoice_id': None}
    snap = container.ledger_service.snapshot()
    assert snap.stock_of(stocked) == Decimal('200')
    assert snap.store(store_id).total_debt == 0


def _cancelled_dispatch_snapshot(data_dir, siniestro):
    """Recibe 100 unidades, despacha 20 y anula el despacho en el modo indicado."""
    AppContainer.reset_instance()
    container = AppContainer(str(data_dir))
    admin = container.user_service.get_user('u-admin')
    supplier_id = container.supplier_service.add_supplier({'name': 'DISTRIBUIDORA CENTRAL'}, admin)['id']
    pid = make_product(container, supplier_id, cost='2', supply='5', user=admin)
    receive(container, supplier_id, pid, 100, unit_cost='2', user=admin)
    store_id = make_store(container, user=admin)
    did = dispatch(container, store_id, pid, 20, user=admin)
    before = container.ledger_service.snapshot()

    result = container.dispatch_service.cancel_dispatch(
        did, static_responder(ADMIN_PASSWORD), siniestro=siniestro, user=admin
    )
    assert result['ok']
    loss = container.invoice_repo.get(result['loss_invoice_id']) if result['loss_invoice_id'] else None
    after = container.ledger_service.snapshot()
    AppContainer.reset_instance()
    return pid, before, after, loss


def test_siniestro_writes_off_stock_and_books_loss(tmp_path):
    plain_pid, _, plain, no_loss = _cancelled_dispatch_snapshot(tmp_path / 'administrativa', siniestro=False)
    pid, before, written_off, loss = _cancelled_dispatch_snapshot(tmp_path / 'siniestro', siniestro=True)

    assert no_loss is None
    assert written_off.total_losses - before.total_losses == Decimal('40')
    assert plain.net_profit - written_off.net_profit == Decimal('40')
    assert plain.stock_of(plain_pid) == Decimal('100')
    assert written_off.stock_of(pid) == Decimal('80')
    assert loss['supplierId'] == 'sup-local'
    assert loss['invoiceNumber'].startswith('BAJA-SIN-')
    assert loss['items'][0]['quantity'] == '-20'


def test_cancel_requires_admin_password(container, stocked, admin):
    store_id = make_store(container, user=admin)
    did = dispatch(container, store_id, stocked, 20, user=admin)

    denied = container.dispatch_service.cancel_dispatch(did, static_responder('wrong'), user=admin)
    cancelled = container.dispatch_service.cancel_dispatch(did, static_responder(None), user=admin)

    assert denied['reason'] == 'unauthorized'
    assert cancelled['reason'] == 'cancelled'
    assert container.dispatch_repo.get(did)['status'] == 'active'


def test_cancel_twice_is_invalid(container, stocked, admin, admin_ok):
    store_id = make_store(container, user=admin)
    did = dispatch(container, store_id, stocked, 1, user=admin)
    container.dispatch_service.cancel_dispatch(did, admin_ok, user=admin)

    assert container.dispatch_service.cancel_dispatch(did, admin_ok, user=admin)['reason'] == 'invalid'


def test_print_count(container, stocked, admin):
    store_id = make_store(container, user=admin)
    did = dispatch(container, store_id, stocked, 1, user=admin)

    assert container.dispatch_service.increment_dispatch_print_count(did) == 1
    assert container.dispatch_service.increment_dispatch_print_count(did) == 2
    assert container.dispatch_service.increment_dispatch_print_count('missing') is None
