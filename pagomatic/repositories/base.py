# ==============================================================================
# REPOSITORIO BASE - Funcionalidad común para acceso a archivos JSON
# ==============================================================================
# Un archivo JSON por colección dentro del directorio de datos. Toda
# escritura pasa por un archivo temporal en la misma carpeta y os.replace.
# ==============================================================================

import json
import logging
import os
import tempfile
import threading
from abc import ABC, abstractmethod
from typing import Any, Callable, Dict, Iterable, List, Optional

from pagomatic.repositories.change_bus import ChangeBus

logger = logging.getLogger(__name__)


class BaseRepository(ABC):
    """
    Clase base de los repositorios JSON.

    Args:
        file_path: Ruta absoluta al archivo de datos (se crea si no existe)
    """

    # Compartido por todos los repositorios
    _file_lock = threading.RLock()

    def __init__(self, file_path: str):
        self.file_path = file_path
        directory = os.path.dirname(file_path)
        if directory:
            os.makedirs(directory, exist_ok=True)
        if not os.path.exists(file_path):
            self._write_raw(self._empty_data())

    @abstractmethod
    def _empty_data(self) -> Any:
        """Estructura vacía del archivo ({} o [])."""

    def _read_raw(self) -> Any:
        """
        Returns:
            Contenido del archivo, o la estructura vacía si falta, está
            dañado o no tiene el tipo esperado
        """
        empty = self._empty_data()
        with self._file_lock:
            try:
                with open(self.file_path, 'r', encoding='utf-8') as f:
                    data = json.load(f)
            except FileNotFoundError:
                return empty
            except json.JSONDecodeError as e:
                logger.error("[DATOS] Archivo dañado %s: %s", self.file_path, e)
                return empty
        return data if isinstance(data, type(empty)) else empty

    def _write_raw(self, data: Any) -> None:
        """
        Raises:
            OSError: Si no se pudo escribir
        """
        directory = os.path.dirname(self.file_path) or '.'
        with self._file_lock:
            fd, temp_path = tempfile.mkstemp(prefix='.tmp-', suffix='.json', dir=directory)
            try:
                with os.fdopen(fd, 'w', encoding='utf-8') as f:
                    json.dump(data, f, indent=2, ensure_ascii=False)
                os.replace(temp_path, self.file_path)
            except BaseException:
                if os.path.exists(temp_path):
                    os.remove(temp_path)
                raise


class DictRepository(BaseRepository):
    """
    Repositorio base para datos almacenados como diccionario.

    Ejemplo: settings.json -> {"storeName": "...", "printerSize": "80mm"}
    """

    def _empty_data(self) -> Dict:
        return {}

    def get_all(self) -> Dict[str, Any]:
        return self._read_raw()

    def get_by_id(self, record_id: Any) -> Optional[Any]:
        """
        Obtiene un valor por su clave.

        Returns:
            Valor almacenado o None si no existe
        """
        return self._read_raw().get(str(record_id))

    def save_all(self, data: Dict[str, Any]) -> None:
        """Guarda todos los registros (reemplazo completo)."""
        self._write_raw(data)

    def put(self, record_id: Any, value: Any) -> None:
        """Crea o reemplaza el valor de una clave."""
        with self._file_lock:
            data = self._read_raw()
            data[str(record_id)] = value
            self._write_raw(data)

    def remove(self, record_id: Any) -> Optional[Any]:
        """
        Elimina una clave.

        Returns:
            Valor eliminado o None si no existía
        """
        with self._file_lock:
            data = self._read_raw()
            removed = data.pop(str(record_id), None)
            if removed is not None:
                self._write_raw(data)
        return removed


class CollectionRepository(DictRepository):
    """
    Colección de documentos indexada por `id`, con notificación de cambios.

    Contrato del almacén de documentos:
    add, update (fusión superficial), delete, get, all, filter.
    Cada escritura publica el nombre de la colección en el ChangeBus.

    Ejemplo: dispatches.json -> {"disp-1": {...}, "disp-2": {...}}
    """

    # Nombre lógico de la colección (clave en respaldos y en el bus)
    COLLECTION = ''
    FILE_NAME = ''

    def __init__(self, base_path: str, change_bus: ChangeBus = None):
        """
        Args:
            base_path: Directorio de datos
            change_bus: Bus donde publicar cambios (opcional)
        """
        super().__init__(os.path.join(base_path, self.FILE_NAME))
        self.change_bus = change_bus

    def _notify(self) -> None:
        if self.change_bus is not None:
            self.change_bus.publish(self.COLLECTION)

    # =========================================================================
    # LECTURA
    # =========================================================================

    def all(self) -> List[Dict[str, Any]]:
        """Todos los documentos en orden de inserción."""
        return list(self._read_raw().values())

    def get(self, record_id: str) -> Optional[Dict[str, Any]]:
        return self.get_by_id(record_id)

    def filter(self, predicate: Callable[[Dict[str, Any]], bool]) -> List[Dict[str, Any]]:
        return [r for r in self.all() if predicate(r)]

    def find_all_by(self, field: str, value: Any) -> List[Dict[str, Any]]:
        return self.filter(lambda r: r.get(field) == value)

    def count(self) -> int:
        return len(self._read_raw())

    # =========================================================================
    # ESCRITURA
    # =========================================================================

    def add(self, record: Dict[str, Any]) -> str:
        """
        Agrega un documento nuevo.

        Raises:
            ValueError: Si falta el id o ya existe
        """
        record_id = record.get('id')
        if not record_id:
            raise ValueError(f"Documento sin id en '{self.COLLECTION}'")
        with self._file_lock:
            data = self._read_raw()
            if record_id in data:
                raise ValueError(f"Id duplicado en '{self.COLLECTION}': {record_id}")
            data[record_id] = record
            self._write_raw(data)
        self._notify()
        return record_id

    def update(self, record_id: str, fields: Dict[str, Any]) -> Optional[Dict[str, Any]]:
        """
        Fusiona campos en un documento existente.

        Returns:
            Documento actualizado, o None si no existe (sin escritura)
        """
        with self._file_lock:
            data = self._read_raw()
            record = data.get(record_id)
            if record is None:
                return None
            record.update(fields)
            record['id'] = record_id
            self._write_raw(data)
        self._notify()
        return record

    def delete(self, record_id: str) -> Optional[Dict[str, Any]]:
        """
        Elimina un documento.

        Returns:
            Documento eliminado o None si no existía
        """
        removed = self.remove(record_id)
        if removed is not None:
            self._notify()
        return removed

    def clear(self) -> None:
        self.save_all({})
        self._notify()

    def bulk_add(self, records: Iterable[Dict[str, Any]]) -> int:
        """
        Agrega varios documentos en una sola escritura.
        Un id repetido reemplaza al anterior.

        Returns:
            Cantidad de documentos escritos
        """
        added = 0
        with self._file_lock:
            data = self._read_raw()
            for record in records:
                record_id = record.get('id')
                if not record_id:
                    continue
                data[record_id] = record
                added += 1
            self._write_raw(data)
        self._notify()
        return added


class ListRepository(BaseRepository):
    """
    Repositorio base para datos almacenados como lista.

    Ejemplo: audit.json -> [{...}, {...}]
    """

    def _empty_data(self) -> List:
        return []

    def get_all(self) -> List[Dict[str, Any]]:
        return self._read_raw()

    def save_all(self, data: List[Dict[str, Any]]) -> None:
        self._write_raw(data)

