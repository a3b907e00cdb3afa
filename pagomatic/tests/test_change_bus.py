from pagomatic.repositories import (
    ChangeBus,
    IChangeBus,
    ICollectionRepository,
    ProductRepository,
)
from pagomatic.services.ledger_service import LiveQuery


def test_publish_reaches_only_interested_subscribers():
    bus = ChangeBus()
    seen = []
    bus.subscribe(['products'], lambda name: seen.append(('a', name)))
    bus.subscribe([ChangeBus.ALL], lambda name: seen.append(('b', name)))

    bus.publish('dispatches')
    bus.publish('products')

    assert seen == [('b', 'dispatches'), ('a', 'products'), ('b', 'products')]


def test_unsubscribe():
    bus = ChangeBus()
    seen = []
    unsubscribe = bus.subscribe(['products'], seen.append)
    unsubscribe()

    bus.publish('products')

    assert seen == []
    assert bus.subscriber_count() == 0


def test_pause_groups_notifications():
    bus = ChangeBus()
    seen = []
    bus.subscribe([ChangeBus.ALL], seen.append)

    bus.pause()
    bus.publish('products')
    bus.publish('products')
    bus.publish('invoices')
    assert seen == []
    bus.resume()

    assert seen == ['invoices', 'products']


def test_failing_subscriber_does_not_break_others():
    bus = ChangeBus()
    seen = []

    def broken(name):
        raise RuntimeError('boom')

    bus.subscribe(['products'], broken)
    bus.subscribe(['products'], seen.append)

    bus.publish('products')

    assert seen == ['products']


def test_repository_write_publishes(tmp_path):
    bus = ChangeBus()
    seen = []
    bus.subscribe([ChangeBus.ALL], seen.append)
    repo = ProductRepository(str(tmp_path), bus)

    repo.add({'id': 'p1', 'name': 'X'})
    repo.update('p1', {'name': 'Y'})
    repo.update('missing', {'name': 'Z'})
    repo.delete('p1')

    assert seen == ['products', 'products', 'products']
    assert isinstance(repo, ICollectionRepository)
    assert isinstance(bus, IChangeBus)


def test_live_query_recomputes_lazily():
    bus = ChangeBus()
    calls = []

    def compute():
        calls.append(1)
        return len(calls)

    query = LiveQuery(bus, ['products'], compute)

    assert query.get() == 1
    assert query.get() == 1
    bus.publish('stores')
    assert query.get() == 1
    bus.publish('products')
    bus.publish('products')
    assert query.get() == 2
    assert query.recompute_count == 2


def test_live_query_watchers_receive_fresh_values():
    bus = ChangeBus()
    counter = {'n': 0}

    def compute():
        counter['n'] += 1
        return counter['n']

    query = LiveQuery(bus, ['products'], compute)
    received = []
    unwatch = query.watch(received.append)

    bus.publish('products')
    unwatch()
    bus.publish('products')
    query.close()
    bus.publish('products')

    assert received == [1]
    assert bus.subscriber_count() == 0


def test_ledger_follows_repository_writes(container, supplier_id, admin):
    inventory = container.inventory_service
    ledger = container.ledger_service
    snapshots = []
    ledger.watch(snapshots.append)
    count = ledger.recompute_count

    inventory.add_product({'name': 'Café', 'supplierId': supplier_id}, admin)

    assert len(snapshots) == 1
    assert [p.name for p in snapshots[0].products] == ['Café']
    assert ledger.recompute_count == count + 1
    ledger.snapshot()
    assert ledger.recompute_count == count + 1
