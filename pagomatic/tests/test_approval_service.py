from decimal import Decimal

import pytest

from pagomatic.services.dialog_service import scripted_responder, static_responder
from pagomatic.tests.conftest import make_product, make_store, receive


@pytest.fixture
def setup(container, supplier_id, admin):
    pid = make_product(container, supplier_id, cost='1', supply='4', user=admin)
    receive(container, supplier_id, pid, 50, user=admin)
    store_id = make_store(container, user=admin)
    return pid, store_id


def test_new_documents_are_approved_by_default(container, setup, admin):
    pid, store_id = setup
    result = container.dispatch_service.create_dispatch([{'productId': pid, 'quantity': 1}], store_id, user=admin)
    assert container.dispatch_repo.get(result['id'])['approvalStatus'] == 'approved'
    assert container.approval_service.pending_documents() == []


def test_rejected_dispatch_is_as_if_it_never_existed(container, setup, admin):
    pid, store_id = setup
    container.settings_service.update({'requireDispatchApproval': True}, admin)
    before = container.ledger_service.snapshot()

    created = container.dispatch_service.create_dispatch([{'productId': pid, 'quantity': 10}], store_id, user=admin)
    result = container.approval_service.reject('dispatch', created['id'], static_responder('Error de carga'), admin)

    assert result['ok']
    after = container.ledger_service.snapshot()
    assert after.stock_of(pid) == before.stock_of(pid)
    assert after.store(store_id).total_debt == before.store(store_id).total_debt
    assert after.gross_profit == before.gross_profit
    record = container.dispatch_repo.get(created['id'])
    assert record['approvalStatus'] == 'rejected'
    assert record['status'] == 'cancelled'
    log = container.audit_service.get_logs_for('dispatch', created['id'])[0]
    assert log['action'] == 'anular'
    assert log['details'] == 'Documento rechazado: Error de carga'


def test_approve_stamps_authorizer(container, setup, admin):
    pid, store_id = setup
    container.settings_service.update({'requireDispatchApproval': True}, admin)
    created = container.dispatch_service.create_dispatch([{'productId': pid, 'quantity': 10}], store_id, user=admin)

    assert container.approval_service.approve('dispatch', created['id'], admin) == {'ok': True}

    record = container.dispatch_repo.get(created['id'])
    assert record['approvalStatus'] == 'approved'
    assert record['authorizedBy'] == 'Super Administrador'
    assert record['authorizedAt']


def test_only_pending_documents_transition(container, setup, admin):
    pid, store_id = setup
    created = container.dispatch_service.create_dispatch([{'productId': pid, 'quantity': 1}], store_id, user=admin)

    assert container.approval_service.approve('dispatch', created['id'], admin)['reason'] == 'invalid'
    assert container.approval_service.approve('dispatch', 'missing', admin)['reason'] == 'not_found'


def test_reject_without_reason_is_cancelled(container, setup, admin):
    pid, store_id = setup
    container.settings_service.update({'requireDispatchApproval': True}, admin)
    created = container.dispatch_service.create_dispatch([{'productId': pid, 'quantity': 1}], store_id, user=admin)
    responder = scripted_responder([''])

    result = container.approval_service.reject('dispatch', created['id'], responder, admin)

    assert result['reason'] == 'cancelled'
    assert responder.requests[0].kind == 'prompt'
    assert container.dispatch_repo.get(created['id'])['approvalStatus'] == 'pending'


def test_pending_supplier_payment_and_queue(container, supplier_id, setup, admin):
    container.settings_service.update({'requirePaymentApproval': True}, admin)
    invoice_id = container.ledger_service.invoices()[0].id

    payment = container.payment_service.add_supplier_payment(
        {'supplierId': supplier_id, 'amount': '20', 'invoiceId': invoice_id}, admin
    )

    assert payment['pending'] is True
    assert container.ledger_service.snapshot().invoice(invoice_id).amount_paid == 0
    queue = container.approval_service.pending_documents()
    assert [(d['entity'], d['id']) for d in queue] == [('payment', payment['id'])]
    assert queue[0]['amount'] == Decimal('20')

    container.approval_service.approve('payment', payment['id'], admin)
    assert container.ledger_service.snapshot().invoice(invoice_id).amount_paid == Decimal('20')


def test_rejected_store_payment_is_cancelled(container, setup, admin):
    _, store_id = setup
    container.settings_service.update({'requirePaymentApproval': True}, admin)
    payment = container.payment_service.add_store_payment({'storeId': store_id, 'amount': '5'}, admin)

    container.approval_service.reject('store_payment', payment['id'], static_responder('duplicado'), admin)

    record = container.store_payment_repo.get(payment['id'])
    assert record['status'] == 'cancelled'
    assert record['approvalStatus'] == 'rejected'


def test_invoice_approval_affects_debt_but_not_stock(container, supplier_id, admin):
    container.settings_service.update({'requireInvoiceApproval': True}, admin)
    pid = make_product(container, supplier_id, user=admin)

    invoice_id = receive(container, supplier_id, pid, 10, unit_cost='3', user=admin)

    snap = container.ledger_service.snapshot()
    assert snap.stock_of(pid) == Decimal('10')
    assert snap.supplier(supplier_id).debt == 0

    container.approval_service.approve('invoice', invoice_id, admin)
    assert container.ledger_service.snapshot().supplier(supplier_id).debt == Decimal('30')


def test_unknown_entity_is_rejected(container):
    with pytest.raises(ValueError):
        container.approval_service.approve('product', 'x')
