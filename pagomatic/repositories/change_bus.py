# ==============================================================================
# BUS DE CAMBIOS - Suscripciones a colecciones
# ==============================================================================
# Cada escritura en una colección publica su nombre. Los suscriptores
# (proyecciones del libro mayor, vistas en vivo) se registran indicando qué
# colecciones leen y se vuelven a invocar cuando alguna de ellas cambia.
#
# No hay orden garantizado entre suscriptores: las proyecciones son
# funciones puras del estado actual.
# ==============================================================================

import itertools
import logging
import threading
from typing import Callable, Dict, Iterable, Optional, Set, Tuple

logger = logging.getLogger(__name__)


ChangeCallback = Callable[[str], None]


class ChangeBus:
    """
    Publicador/suscriptor síncrono de cambios por colección.

    Uso:
        bus = ChangeBus()
        unsubscribe = bus.subscribe(['dispatches'], lambda name: ...)
        bus.publish('dispatches')
        unsubscribe()
    """

    # Suscripción a todas las colecciones
    ALL = '*'

    def __init__(self):
        self._subscribers: Dict[int, Tuple[Optional[Set[str]], ChangeCallback]] = {}
        self._ids = itertools.count(1)
        self._lock = threading.RLock()
        self._paused = 0
        self._pending: Set[str] = set()

    def subscribe(self, collections: Iterable[str], callback: ChangeCallback) -> Callable[[], None]:
        """
        Registra un callback para las colecciones indicadas.

        Args:
            collections: Nombres de colección, o [ChangeBus.ALL]
            callback: Función que recibe el nombre de la colección modificada

        Returns:
            Función que cancela la suscripción
        """
        names = set(collections)
        watched = None if self.ALL in names else names
        with self._lock:
            sub_id = next(self._ids)
            self._subscribers[sub_id] = (watched, callback)

        def unsubscribe() -> None:
            with self._lock:
                self._subscribers.pop(sub_id, None)

        return unsubscribe

    def publish(self, collection: str) -> None:
        """Notifica que una colección cambió."""
        with self._lock:
            if self._paused:
                self._pending.add(collection)
                return
            targets = [
                cb for watched, cb in self._subscribers.values()
                if watched is None or collection in watched
            ]

        for callback in targets:
            try:
                callback(collection)
            except Exception:
                # Un suscriptor defectuoso no debe revertir la escritura ya hecha
                logger.exception("[CAMBIOS] Error en suscriptor de '%s'", collection)

    def subscriber_count(self) -> int:
        with self._lock:
            return len(self._subscribers)

    # =========================================================================
    # AGRUPACIÓN DE NOTIFICACIONES
    # =========================================================================

    def pause(self) -> None:
        """Acumula notificaciones hasta resume() (importaciones masivas)."""
        with self._lock:
            self._paused += 1

    def resume(self) -> None:
        """Reanuda y publica una vez cada colección acumulada."""
        with self._lock:
            self._paused = max(0, self._paused - 1)
            if self._paused:
                return
            pending = sorted(self._pending)
            self._pending.clear()
        for name in pending:
            self.publish(name)
