from decimal import Decimal

import pytest

from pagomatic.services.dialog_service import static_responder
from pagomatic.tests.conftest import dispatch, make_product, make_store, receive


@pytest.fixture
def invoice_500(container, supplier_id, admin):
    pid = make_product(container, supplier_id, cost='5', supply='8', user=admin)
    return receive(container, supplier_id, pid, 100, unit_cost='5', number='F-500', user=admin)


def test_full_payment_then_cancel_reverts_invoice(container, supplier_id, invoice_500, admin, admin_ok):
    assert container.ledger_service.snapshot().invoice(invoice_500).status == 'pending'

    paid = container.payment_service.add_supplier_payment(
        {'supplierId': supplier_id, 'amount': '500', 'invoiceId': invoice_500, 'method': 'transferencia'}, admin
    )
    snap = container.ledger_service.snapshot()
    assert snap.invoice(invoice_500).status == 'paid'
    assert snap.supplier(supplier_id).debt == 0

    result = container.payment_service.cancel_supplier_payment(paid['id'], admin_ok, admin)

    assert result == {'ok': True}
    snap = container.ledger_service.snapshot()
    assert snap.invoice(invoice_500).status == 'pending'
    assert snap.supplier(supplier_id).debt == Decimal('500')
    log = container.audit_service.get_logs_for('payment', paid['id'])[0]
    assert log['action'] == 'anular'


def test_partial_payment(container, supplier_id, invoice_500, admin):
    container.payment_service.add_supplier_payment({'supplierId': supplier_id, 'amount': '120', 'invoiceId': invoice_500}, admin)

    invoice = container.ledger_service.snapshot().invoice(invoice_500)
    assert invoice.status == 'partial'
    assert invoice.amount_paid == Decimal('120')


def test_payment_cannot_exceed_invoice_balance(container, supplier_id, invoice_500, admin):
    result = container.payment_service.add_supplier_payment(
        {'supplierId': supplier_id, 'amount': '500.02', 'invoiceId': invoice_500}, admin
    )
    assert result['reason'] == 'invalid'
    assert container.supplier_payment_repo.count() == 0


def test_payment_without_invoice_limited_by_debt(container, supplier_id, invoice_500, admin):
    assert container.payment_service.add_supplier_payment({'supplierId': supplier_id, 'amount': '500.10'}, admin)['ok']
    assert container.payment_service.add_supplier_payment({'supplierId': supplier_id, 'amount': '1'}, admin)['reason'] == 'invalid'


@pytest.mark.parametrize('amount', ['0', '-5', 'abc', None])
def test_payment_amount_must_be_positive(container, supplier_id, invoice_500, admin, amount):
    result = container.payment_service.add_supplier_payment({'supplierId': supplier_id, 'amount': amount}, admin)
    assert result['reason'] == 'invalid'


def test_cancel_with_wrong_password_keeps_payment(container, supplier_id, invoice_500, admin):
    paid = container.payment_service.add_supplier_payment({'supplierId': supplier_id, 'amount': '100', 'invoiceId': invoice_500}, admin)

    result = container.payment_service.cancel_supplier_payment(paid['id'], static_responder('nope'), admin)

    assert result['reason'] == 'unauthorized'
    assert container.supplier_payment_repo.get(paid['id'])['status'] == 'active'


def test_store_payment_reduces_debt_and_cancel_restores_it(container, supplier_id, invoice_500, admin, admin_ok):
    pid = container.product_repo.all()[0]['id']
    store_id = make_store(container, user=admin)
    did = dispatch(container, store_id, pid, 10, user=admin)

    paid = container.payment_service.add_store_payment({'storeId': store_id, 'amount': '30', 'dispatchId': did}, admin)

    snap = container.ledger_service.snapshot()
    assert snap.store(store_id).total_debt == Decimal('50')
    assert snap.dispatch_pending_amount(did) == Decimal('50')
    assert container.store_payment_repo.get(paid['id'])['dispatchNumber'] == 'D00001'

    container.payment_service.cancel_store_payment(paid['id'], admin_ok, admin)
    assert container.ledger_service.snapshot().store(store_id).total_debt == Decimal('80')
    assert container.audit_service.get_logs_for('store_payment', paid['id'])[0]['action'] == 'anular'


def test_store_payment_cannot_exceed_dispatch_balance(container, supplier_id, invoice_500, admin):
    pid = container.product_repo.all()[0]['id']
    store_id = make_store(container, user=admin)
    did = dispatch(container, store_id, pid, 1, user=admin)

    result = container.payment_service.add_store_payment({'storeId': store_id, 'amount': '9', 'dispatchId': did}, admin)

    assert result['reason'] == 'invalid'


def test_store_payment_print_count(container, admin):
    store_id = make_store(container, user=admin)
    paid = container.payment_service.add_store_payment({'storeId': store_id, 'amount': '10'}, admin)

    assert container.payment_service.increment_store_payment_print_count(paid['id']) == 1
    assert container.payment_service.increment_store_payment_print_count('sp-missing') is None


def test_unlinked_store_payment_is_not_capped_by_debt(container, supplier_id, admin):
    pid = make_product(container, supplier_id, cost='1', supply='3', user=admin)
    receive(container, supplier_id, pid, 10, user=admin)
    store_id = make_store(container, user=admin)
    dispatch(container, store_id, pid, 2, user=admin)

    paid = container.payment_service.add_store_payment({'storeId': store_id, 'amount': '500'}, admin)

    assert paid['ok']
    assert container.ledger_service.snapshot().store(store_id).total_debt == Decimal('0')
