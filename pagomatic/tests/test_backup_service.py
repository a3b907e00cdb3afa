import os
import zipfile

from pagomatic.models import LOCAL_SUPPLIER_ID
from pagomatic.services.backup_service import BACKUP_COLLECTIONS, BackupScheduler
from pagomatic.tests.conftest import dispatch, make_product, make_store, receive


def _populate(container, supplier_id, admin):
    pid = make_product(container, supplier_id, user=admin)
    receive(container, supplier_id, pid, 10, user=admin)
    store_id = make_store(container, user=admin)
    dispatch(container, store_id, pid, 4, price='3', user=admin)
    return pid, store_id


def test_export_contains_business_collections_only(container, supplier_id, admin):
    _populate(container, supplier_id, admin)

    exported = container.backup_service.export_all()

    assert tuple(exported) == BACKUP_COLLECTIONS
    assert len(exported['dispatches']) == 1
    assert 'users' not in exported


def test_import_replaces_collections_and_recomputes(container, supplier_id, admin):
    pid, store_id = _populate(container, supplier_id, admin)
    exported = container.backup_service.export_all()
    make_product(container, supplier_id, name='Sobrante', user=admin)
    container.dispatch_service.create_dispatch([{'productId': pid, 'quantity': 2}], store_id, user=admin)

    result = container.backup_service.import_all(exported)

    assert result['ok']
    assert result['imported']['products'] == 1
    snap = container.ledger_service.snapshot()
    assert snap.stock_of(pid) == 6
    assert len(snap.dispatches) == 1


def test_import_reseeds_local_supplier(container, supplier_id, admin):
    result = container.backup_service.import_all({'suppliers': []})

    assert result == {'ok': True, 'imported': {'suppliers': 0}}
    assert container.supplier_repo.get(LOCAL_SUPPLIER_ID) is not None
    assert container.supplier_repo.get(supplier_id) is None


def test_invalid_snapshots_are_rejected(container, supplier_id, admin):
    _populate(container, supplier_id, admin)

    assert container.backup_service.import_all([])['reason'] == 'invalid'
    assert container.backup_service.import_all({'users': []})['reason'] == 'invalid'
    assert container.backup_service.import_all({'products': [{'name': 'sin id'}]})['reason'] == 'invalid'
    assert container.product_repo.count() == 1


def test_snapshot_rotation_keeps_last_five(container):
    service = container.backup_service
    created = [service.create_snapshot()['filename'] for _ in range(7)]

    listed = [s['filename'] for s in service.list_snapshots()]

    assert listed == list(reversed(created))[:5]
    assert len(os.listdir(service.backup_root)) == 5


def test_snapshot_is_zip_with_json(container, supplier_id, admin):
    _populate(container, supplier_id, admin)
    filename = container.backup_service.create_snapshot()['filename']

    with zipfile.ZipFile(os.path.join(container.backup_service.backup_root, filename)) as zf:
        assert zf.namelist() == ['snapshot.json']


def test_restore_snapshot(container, supplier_id, admin):
    pid, _ = _populate(container, supplier_id, admin)
    filename = container.backup_service.create_snapshot()['filename']
    container.inventory_service.manual_stock_adjustment(pid, -3, 'Merma', user=admin)

    result = container.backup_service.restore_snapshot(filename)

    assert result['ok']
    assert container.adjustment_repo.count() == 0
    assert container.ledger_service.snapshot().stock_of(pid) == 6


def test_unknown_snapshot(container):
    assert container.backup_service.read_snapshot('../users.json') is None
    assert container.backup_service.restore_snapshot('backup-1.zip')['reason'] == 'not_found'


def test_scheduler_disabled_with_zero_interval(container):
    scheduler = BackupScheduler(container.backup_service, 0)

    assert scheduler.start() is False
    assert scheduler.is_running() is False


def test_scheduler_start_and_stop(container):
    scheduler = BackupScheduler(container.backup_service, 3600)

    assert scheduler.start() is True
    assert scheduler.start() is False
    scheduler.stop()
    assert scheduler.is_running() is False
