from decimal import Decimal

from werkzeug.security import generate_password_hash

from pagomatic.services.authorization_service import check_password, is_password_hashed
from pagomatic.services.dialog_service import scripted_responder, static_responder
from pagomatic.tests.conftest import make_product, make_store, receive


def test_check_password_accepts_hash_and_legacy_plaintext():
    hashed = generate_password_hash('secreto')
    assert is_password_hashed(hashed)
    assert check_password(hashed, 'secreto')
    assert not check_password(hashed, 'otro')
    assert check_password('1234', '1234')
    assert not check_password('', '')


def test_gate_accepts_admin_password(container, admin):
    result = container.authorization_service.request_admin_approval('ANULAR DESPACHO #D00001', static_responder('123'), admin)
    assert result == {'ok': True}


def test_gate_rejects_non_admin_password(container, admin):
    container.user_service.add_user('caja2', 'Caja 2', ['COBRANZA'], password='999', actor=admin)

    result = container.authorization_service.request_admin_approval('ANULAR PAGO PROVEEDOR', static_responder('999'), admin)

    assert result['reason'] == 'unauthorized'


def test_bad_password_logs_a_security_block(container, admin):
    responder = scripted_responder(['bad'])

    container.authorization_service.request_admin_approval('ANULAR COBRO SUCURSAL', responder, admin)

    assert responder.requests[0].kind == 'password'
    log = container.audit_service.search_logs(action='block', entity='security')[0]
    assert log['entityId'] == 'auth'
    assert log['details'] == 'Intento fallido de autorización: ANULAR COBRO SUCURSAL'
    assert log['userName'] == 'Super Administrador'


def test_cancelled_gate_has_no_side_effects(container, supplier_id, admin):
    pid = make_product(container, supplier_id, user=admin)
    receive(container, supplier_id, pid, 10, user=admin)
    store_id = make_store(container, user=admin)
    created = container.dispatch_service.create_dispatch([{'productId': pid, 'quantity': 4}], store_id, user=admin)
    logs_before = len(container.audit_service.get_all_logs())
    stock_before = container.ledger_service.snapshot().stock_of(pid)

    result = container.dispatch_service.cancel_dispatch(created['id'], static_responder(None), siniestro=True, user=admin)

    assert result['reason'] == 'cancelled'
    assert len(container.audit_service.get_all_logs()) == logs_before
    assert container.dispatch_repo.get(created['id'])['status'] == 'active'
    assert container.ledger_service.snapshot().stock_of(pid) == stock_before == Decimal('6')
    assert container.supplier_service.loss_invoices() == []
