from decimal import Decimal

from pagomatic.models import LOCAL_SUPPLIER_ID
from pagomatic.services.dialog_service import auto_confirm, static_responder
from pagomatic.tests.conftest import dispatch, make_product, make_store, receive


# ==============================================================================
# PROVEEDORES
# ==============================================================================

def test_local_supplier_always_exists(container):
    container.supplier_service  # siembra
    local = container.supplier_repo.get(LOCAL_SUPPLIER_ID)
    assert local['taxId'] == 'V-PROPIO'
    assert container.supplier_service.ensure_local_supplier() is False


def test_local_supplier_cannot_be_deleted(container, admin):
    result = container.supplier_service.delete_supplier(LOCAL_SUPPLIER_ID, auto_confirm(), admin)
    assert result['reason'] == 'protected'


def test_supplier_with_debt_cannot_be_deleted(container, supplier_id, admin):
    pid = make_product(container, supplier_id, user=admin)
    receive(container, supplier_id, pid, 10, unit_cost='2', user=admin)

    result = container.supplier_service.delete_supplier(supplier_id, auto_confirm(), admin)

    assert result['reason'] == 'has_balance'
    assert container.supplier_repo.get(supplier_id) is not None


def test_supplier_delete_needs_confirmation(container, supplier_id, admin):
    assert container.supplier_service.delete_supplier(supplier_id, static_responder(None), admin)['reason'] == 'cancelled'
    assert container.supplier_service.delete_supplier(supplier_id, auto_confirm(), admin) == {'ok': True}
    assert container.supplier_repo.get(supplier_id) is None


def test_duplicate_invoice_number_per_supplier(container, supplier_id, admin):
    pid = make_product(container, supplier_id, user=admin)
    receive(container, supplier_id, pid, 1, number='A-1', user=admin)

    again = container.supplier_service.add_invoice({
        'supplierId': supplier_id,
        'invoiceNumber': 'A-1',
        'items': [{'productId': pid, 'quantity': 1}],
    }, admin)

    assert again['reason'] == 'invalid'


def test_invoice_total_defaults_to_item_costs(container, supplier_id, admin):
    pid = make_product(container, supplier_id, user=admin)

    result = container.supplier_service.add_invoice({
        'supplierId': supplier_id,
        'invoiceNumber': 'B-7',
        'items': [{'productId': pid, 'quantity': 4, 'unitCost': '2.5', 'unitTax': '0.5'}],
    }, admin)

    invoice = container.ledger_service.snapshot().invoice(result['id'])
    assert invoice.total_amount == Decimal('12')
    assert invoice.items[0].total_item_cost == Decimal('12')


def test_invoice_rejects_unknown_products(container, supplier_id, admin):
    result = container.supplier_service.add_invoice({
        'supplierId': supplier_id,
        'invoiceNumber': 'C-1',
        'items': [{'productId': 'prod-missing', 'quantity': 1}],
    }, admin)
    assert result['reason'] == 'invalid'
    assert container.invoice_repo.count() == 0


def test_supplier_products(container, supplier_id, admin):
    pid = make_product(container, supplier_id, user=admin)
    assert [p['id'] for p in container.supplier_service.supplier_products(supplier_id)] == [pid]


# ==============================================================================
# SUCURSALES
# ==============================================================================

def test_store_config_merges_on_update(container, admin):
    store_id = make_store(container, limit=5000, term=30, user=admin)

    container.store_service.update_store(store_id, {'config': {'maxDebtLimit': 8000}}, admin)

    config = container.store_repo.get(store_id)['config']
    assert config['maxDebtLimit'] == '8000'
    assert config['paymentTermDays'] == 30
    log = container.audit_service.get_logs_for('store', store_id)[0]
    assert log['details'].startswith('Actualización de sucursal:')


def test_store_default_credit_conditions(container, admin):
    store_id = make_store(container, user=admin)
    store = container.ledger_service.snapshot().store(store_id)
    assert store.config.effective_debt_limit == Decimal('20000')
    assert store.config.effective_payment_term == 15


def test_store_rejects_negative_limit(container):
    result = container.store_service.add_store({'name': 'X', 'config': {'maxDebtLimit': '-1'}})
    assert result['reason'] == 'invalid'


def test_store_with_debt_cannot_be_deleted(container, supplier_id, admin):
    pid = make_product(container, supplier_id, user=admin)
    receive(container, supplier_id, pid, 5, user=admin)
    store_id = make_store(container, user=admin)
    dispatch(container, store_id, pid, 1, price='1', user=admin)

    assert container.store_service.delete_store(store_id, auto_confirm(), admin)['reason'] == 'has_balance'


def test_suspended_store_leaves_active_list(container, admin):
    store_id = make_store(container, user=admin)
    other = make_store(container, name='Sur', user=admin)

    container.store_service.set_active(store_id, False, admin)

    assert [s.id for s in container.store_service.active_stores()] == [other]
    assert container.ledger_service.metrics().active_stores == 2


def test_string_false_suspends_store(container, admin):
    store_id = make_store(container, user=admin)

    assert container.store_service.update_store(store_id, {'active': 'false'}, admin) == {'ok': True}
    assert container.store_service.active_stores() == []

    assert container.store_service.set_active(store_id, 'si', admin) == {'ok': True}
    assert [s.id for s in container.store_service.active_stores()] == [store_id]

    result = container.store_service.set_active(store_id, 'quizas', admin)
    assert result['reason'] == 'invalid'
    assert container.store_repo.get(store_id)['active'] is True


def test_store_history(container, supplier_id, admin):
    pid = make_product(container, supplier_id, user=admin)
    receive(container, supplier_id, pid, 5, user=admin)
    store_id = make_store(container, user=admin)
    did = dispatch(container, store_id, pid, 2, user=admin)
    container.payment_service.add_store_payment({'storeId': store_id, 'amount': '1'}, admin)

    history = container.store_service.store_history(store_id)

    assert [d['id'] for d in history['dispatches']] == [did]
    assert len(history['payments']) == 1
