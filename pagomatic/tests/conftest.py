import pytest

from pagomatic.app_container import AppContainer
from pagomatic.services.dialog_service import static_responder


ADMIN_PASSWORD = '123'


@pytest.fixture
def container(tmp_path):
    """Contenedor aislado sobre una carpeta temporal."""
    AppContainer.reset_instance()
    c = AppContainer(str(tmp_path))
    yield c
    AppContainer.reset_instance()


@pytest.fixture
def admin(container):
    return container.user_service.get_user('u-admin')


@pytest.fixture
def admin_ok():
    return static_responder(ADMIN_PASSWORD)


@pytest.fixture
def supplier_id(container, admin):
    result = container.supplier_service.add_supplier({'name': 'DISTRIBUIDORA CENTRAL'}, admin)
    assert result['ok']
    return result['id']


def make_product(container, supplier_id, name='Harina PAN', cost='1', supply='3', min_stock='5', user=None):
    result = container.inventory_service.add_product({
        'name': name,
        'supplierId': supplier_id,
        'purchaseCost': cost,
        'supplyPrice': supply,
        'minStock': min_stock,
    }, user)
    assert result['ok'], result
    return result['id']


def receive(container, supplier_id, product_id, quantity, unit_cost='1', number=None, user=None):
    """Factura de proveedor por `quantity` unidades."""
    result = container.supplier_service.add_invoice({
        'supplierId': supplier_id,
        'invoiceNumber': number or f"F-{product_id}-{quantity}",
        'items': [{'productId': product_id, 'quantity': quantity, 'unitCost': unit_cost}],
    }, user)
    assert result['ok'], result
    return result['id']


def make_store(container, name='Sucursal Norte', limit=None, term=None, user=None):
    config = {}
    if limit is not None:
        config['maxDebtLimit'] = limit
    if term is not None:
        config['paymentTermDays'] = term
    result = container.store_service.add_store({'name': name, 'config': config}, user)
    assert result['ok'], result
    return result['id']


def dispatch(container, store_id, product_id, quantity, price=None, user=None):
    line = {'productId': product_id, 'quantity': quantity}
    if price is not None:
        line['supplyPrice'] = price
    result = container.dispatch_service.create_dispatch([line], store_id, user=user)
    assert result['ok'], result
    return result['id']


@pytest.fixture
def app(tmp_path):
    from pagomatic.main import create_app

    AppContainer.reset_instance()
    flask_app = create_app(str(tmp_path))
    flask_app.config['TESTING'] = True
    yield flask_app
    AppContainer.reset_instance()


@pytest.fixture
def client(app):
    with app.test_client() as c:
        yield c


def login(client, username='admin', password=ADMIN_PASSWORD):
    """Inicia sesión y devuelve los headers con el token CSRF."""
    r = client.post('/api/login', json={'username': username, 'password': password})
    assert r.status_code == 200, r.get_json()
    return {'X-CSRF-Token': r.get_json()['csrf_token']}
