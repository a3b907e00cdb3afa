from decimal import Decimal

from pagomatic.services.dialog_service import auto_confirm, static_responder
from pagomatic.tests.conftest import dispatch, make_product, make_store, receive


def test_new_product_starts_without_stock(container, supplier_id, admin):
    pid = make_product(container, supplier_id, user=admin)

    assert container.ledger_service.snapshot().stock_of(pid) == 0
    assert container.product_repo.get(pid)['stock'] == '0'


def test_product_requires_name_and_valid_prices(container, supplier_id):
    assert container.inventory_service.add_product({'name': ' '})['reason'] == 'invalid'
    assert container.inventory_service.add_product({'name': 'X', 'purchaseCost': 'abc'})['reason'] == 'invalid'


def test_update_ignores_stock(container, supplier_id, admin):
    pid = make_product(container, supplier_id, user=admin)

    container.inventory_service.update_product(pid, {'stock': 999, 'supplyPrice': '4.5'}, admin)

    assert container.product_repo.get(pid)['supplyPrice'] == '4.5'
    assert container.ledger_service.snapshot().stock_of(pid) == 0


def test_production_entry_creates_adjustment_and_virtual_invoice(container, supplier_id, admin):
    pid = make_product(container, supplier_id, cost='2', user=admin)

    result = container.inventory_service.manual_stock_adjustment(pid, 10, 'Producción lote 3', folio='L3', user=admin)

    assert result['ok']
    adjustment = container.adjustment_repo.get(result['adjustment_id'])
    assert adjustment['reason'] == 'Producción lote 3 (Folio: L3)'
    invoice = container.invoice_repo.get(result['invoice_id'])
    assert invoice['supplierId'] == 'sup-local'
    assert invoice['invoiceNumber'] == 'VIRT-L3'
    assert invoice['totalAmount'] == '20'
    assert invoice['status'] == 'paid'
    log = container.audit_service.get_logs_for('invoice', result['invoice_id'])[0]
    assert log['action'] == 'create'


def test_adjustment_counts_through_row_and_mirror_invoice(container, supplier_id, admin):
    # Stock = facturas + ajustes: la fila y su factura espejo suman ambas
    pid = make_product(container, supplier_id, user=admin)

    container.inventory_service.manual_stock_adjustment(pid, 10, 'Conteo', user=admin)

    assert container.ledger_service.snapshot().stock_of(pid) == Decimal('20')


def test_shrinkage_books_baja_invoice_and_loss(container, supplier_id, admin):
    pid = make_product(container, supplier_id, cost='3', user=admin)
    receive(container, supplier_id, pid, 50, unit_cost='3', user=admin)

    result = container.inventory_service.manual_stock_adjustment(pid, -4, 'Robo en almacén', user=admin)

    invoice = container.invoice_repo.get(result['invoice_id'])
    assert invoice['invoiceNumber'].startswith('BAJA-')
    assert invoice['totalAmount'] == '0'
    snap = container.ledger_service.snapshot()
    assert snap.total_losses == Decimal('12')
    assert snap.stock_of(pid) == Decimal('42')
    assert container.audit_service.get_logs_for('invoice', result['invoice_id'])[0]['action'] == 'anular'


def test_adjusting_missing_product_writes_nothing(container):
    result = container.inventory_service.manual_stock_adjustment('prod-missing', 5, 'x')

    assert result['reason'] == 'not_found'
    assert container.adjustment_repo.count() == 0
    assert container.invoice_repo.count() == 0


def test_zero_adjustment_is_invalid(container, supplier_id):
    pid = make_product(container, supplier_id)
    assert container.inventory_service.manual_stock_adjustment(pid, 0, 'x')['reason'] == 'invalid'


def test_delete_product_guards(container, supplier_id, admin):
    pid = make_product(container, supplier_id, user=admin)
    receive(container, supplier_id, pid, 3, user=admin)

    assert container.inventory_service.delete_product(pid, auto_confirm(), admin)['reason'] == 'has_balance'

    empty = make_product(container, supplier_id, name='Vacío', user=admin)
    assert container.inventory_service.delete_product(empty, static_responder(None), admin)['reason'] == 'cancelled'
    assert container.product_repo.get(empty) is not None

    assert container.inventory_service.delete_product(empty, auto_confirm(), admin) == {'ok': True}
    assert container.product_repo.get(empty) is None


def test_search_and_adjustment_history(container, supplier_id, admin):
    pid = make_product(container, supplier_id, name='Aceite Vatel', user=admin)
    make_product(container, supplier_id, name='Arroz Mary', user=admin)
    container.inventory_service.manual_stock_adjustment(pid, 1, 'a', user=admin)
    container.inventory_service.manual_stock_adjustment(pid, 2, 'b', user=admin)

    assert [p.id for p in container.inventory_service.search_products('vatel')] == [pid]
    history = container.inventory_service.adjustments_for(pid)
    assert sorted(a.reason for a in history) == ['a', 'b']
    assert history[0].timestamp >= history[1].timestamp


def test_deleting_sold_out_product_keeps_its_profit(container, supplier_id, admin):
    pid = make_product(container, supplier_id, cost='1', supply='3', user=admin)
    receive(container, supplier_id, pid, 10, user=admin)
    store_id = make_store(container, user=admin)
    dispatch(container, store_id, pid, 10, user=admin)
    assert container.ledger_service.snapshot().net_profit == Decimal('20')

    assert container.inventory_service.delete_product(pid, auto_confirm(), admin) == {'ok': True}

    # Sin ficha de producto el costo de la línea es 0
    assert container.ledger_service.snapshot().net_profit == Decimal('30')


def test_oversized_adjustment_is_refused(container, supplier_id, admin):
    pid = make_product(container, supplier_id, user=admin)

    for quantity in ('9e999999', '9e9999999999', '1e-999999', 10 ** 15):
        result = container.inventory_service.manual_stock_adjustment(pid, quantity, 'x', user=admin)
        assert result['reason'] == 'invalid'

    assert container.adjustment_repo.count() == 0
    assert container.invoice_repo.count() == 0
    assert container.ledger_service.snapshot().stock_of(pid) == 0
