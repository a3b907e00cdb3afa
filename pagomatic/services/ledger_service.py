# ==============================================================================
# SERVICIO DEL LIBRO MAYOR - Consultas en vivo sobre las proyecciones
# ==============================================================================
# Envuelve las funciones puras de ledger_projections.py en una consulta en
# vivo: se suscribe al ChangeBus, marca el resultado como sucio ante
# cualquier escritura en las colecciones que lee y recalcula TODO desde cero
# en la siguiente lectura. Nunca hay actualización incremental de saldos.
# ==============================================================================

import logging
import threading
from typing import Any, Callable, Dict, Generic, Iterable, List, Optional, TypeVar

from pagomatic.models import Invoice, Product, StockDispatch, Store, Supplier
from pagomatic.repositories.base import CollectionRepository
from pagomatic.repositories.change_bus import ChangeBus
from pagomatic.services.ledger_projections import (
    DashboardMetrics,
    LedgerSnapshot,
    LedgerState,
    compute_snapshot,
)

logger = logging.getLogger(__name__)

T = TypeVar('T')

# Colecciones que alimentan las proyecciones (claves de respaldo)
LEDGER_COLLECTIONS = (
    'products',
    'suppliers',
    'stores',
    'invoices',
    'dispatches',
    'storePayments',
    'supplierPayments',
    'stockAdjustments',
)


class LiveQuery(Generic[T]):
    """
    Derivación que se invalida cuando cambia alguna colección observada.

    - get(): devuelve el valor, recalculando solo si está sucio
    - watch(callback): el callback recibe el valor recalculado tras cada cambio
    """

    def __init__(self, change_bus: ChangeBus, collections: Iterable[str], compute: Callable[[], T]):
        self._compute = compute
        self._lock = threading.RLock()
        self._dirty = True
        self._value: Optional[T] = None
        self._watchers: List[Callable[[T], None]] = []
        self.recompute_count = 0
        self._unsubscribe = change_bus.subscribe(collections, self._on_change)

    def _on_change(self, collection: str) -> None:
        with self._lock:
            self._dirty = True
            watchers = list(self._watchers)
        if watchers:
            value = self.get()
            for watcher in watchers:
                watcher(value)

    def get(self) -> T:
        with self._lock:
            if self._dirty:
                self._value = self._compute()
                self._dirty = False
                self.recompute_count += 1
            return self._value

    def invalidate(self) -> None:
        with self._lock:
            self._dirty = True

    def watch(self, callback: Callable[[T], None]) -> Callable[[], None]:
        with self._lock:
            self._watchers.append(callback)

        def unwatch() -> None:
            with self._lock:
                if callback in self._watchers:
                    self._watchers.remove(callback)

        return unwatch

    def close(self) -> None:
        self._unsubscribe()


class LedgerService:
    """
    Punto de lectura de todos los saldos derivados.

    Uso:
        ledger = LedgerService(repositories, change_bus)
        ledger.snapshot().stock_of('prod-1')
        ledger.metrics().total_accounts_receivable
    """

    def __init__(self, repositories: Dict[str, CollectionRepository], change_bus: ChangeBus):
        """
        Args:
            repositories: {nombreColeccion: repositorio} para LEDGER_COLLECTIONS
            change_bus: Bus de cambios compartido con los repositorios
        """
        missing = [name for name in LEDGER_COLLECTIONS if name not in repositories]
        if missing:
            raise ValueError(f"Faltan repositorios para: {', '.join(missing)}")
        self.repositories = repositories
        self._query: LiveQuery[LedgerSnapshot] = LiveQuery(change_bus, LEDGER_COLLECTIONS, self._recompute)

    def load_state(self) -> LedgerState:
        raw = {name: self.repositories[name].all() for name in LEDGER_COLLECTIONS}
        return LedgerState.from_raw(raw)

    def _recompute(self) -> LedgerSnapshot:
        snapshot = compute_snapshot(self.load_state())
        logger.debug("[LEDGER] Saldos recalculados (%d productos, %d despachos)",
                     len(snapshot.products), len(snapshot.dispatches))
        return snapshot

    # =========================================================================
    # LECTURA
    # =========================================================================

    def snapshot(self) -> LedgerSnapshot:
        return self._query.get()

    def metrics(self) -> DashboardMetrics:
        return self.snapshot().metrics

    def products(self) -> List[Product]:
        return self.snapshot().products

    def suppliers(self) -> List[Supplier]:
        return self.snapshot().suppliers

    def stores(self) -> List[Store]:
        return self.snapshot().stores

    def invoices(self) -> List[Invoice]:
        return self.snapshot().invoices

    def dispatches(self) -> List[StockDispatch]:
        return self.snapshot().dispatches

    def low_stock_products(self) -> List[Product]:
        return self.snapshot().low_stock_products()

    def watch(self, callback: Callable[[LedgerSnapshot], None]) -> Callable[[], None]:
        """Recibe un snapshot nuevo tras cada cambio relevante."""
        return self._query.watch(callback)

    @property
    def recompute_count(self) -> int:
        return self._query.recompute_count

    def refresh(self) -> LedgerSnapshot:
        """Fuerza un recálculo (p. ej. tras editar archivos a mano)."""
        self._query.invalidate()
        return self._query.get()

    def close(self) -> None:
        self._query.close()


def serialize(entities: Iterable[Any]) -> List[Dict[str, Any]]:
    """Lista de entidades → lista de dicts para la API."""
    return [e.to_dict() for e in entities]
