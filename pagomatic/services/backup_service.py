# ==============================================================================
# SERVICIO DE RESPALDOS
# ==============================================================================
# - export_all() / import_all(): instantánea completa de las colecciones del
#   negocio como {nombreColeccion: [registros]}
# - Respaldos internos periódicos en ZIP (snapshot.json dentro), rotando
#   para mantener solo los últimos MAX_BACKUPS
#
# FORMATO: <data>/backups/backup-<milisegundos>.zip
#
# Usuarios, bitácora, ajustes y sesión NO forman parte del respaldo.
# ==============================================================================

import json
import logging
import os
import threading
import zipfile
from typing import Any, Callable, Dict, List, Optional

from pagomatic.models import new_id
from pagomatic.repositories.base import CollectionRepository
from pagomatic.repositories.change_bus import ChangeBus

logger = logging.getLogger(__name__)


# Colecciones incluidas en el respaldo, en orden de restauración
BACKUP_COLLECTIONS = (
    'suppliers',
    'stores',
    'products',
    'invoices',
    'dispatches',
    'storePayments',
    'supplierPayments',
    'stockAdjustments',
)

SNAPSHOT_ENTRY = 'snapshot.json'


class BackupService:
    """
    Servicio para gestión de respaldos.

    Responsabilidades:
    - Exportar/importar todas las colecciones del negocio
    - Crear respaldos internos en ZIP
    - Rotar respaldos antiguos (mantener solo los últimos N)

    Uso:
        backup_service = BackupService(data_dir, repositories, change_bus)
        backup_service.run_periodic_backup()
    """

    # Cantidad de respaldos a mantener
    MAX_BACKUPS = 5

    # Nombre de la carpeta de respaldos
    BACKUP_DIR_NAME = 'backups'

    def __init__(
        self,
        base_path: str,
        repositories: Dict[str, CollectionRepository],
        change_bus: ChangeBus,
        after_import: Optional[Callable[[], Any]] = None
    ):
        """
        Args:
            base_path: Directorio de datos
            repositories: {nombreColeccion: repositorio} para BACKUP_COLLECTIONS
            change_bus: Bus para agrupar notificaciones durante la importación
            after_import: Se invoca tras importar (re-sembrar 'sup-local')
        """
        self.base_path = base_path
        self.repositories = repositories
        self.change_bus = change_bus
        self.after_import = after_import
        self.backup_root = os.path.join(base_path, self.BACKUP_DIR_NAME)
        os.makedirs(self.backup_root, exist_ok=True)

    # =========================================================================
    # EXPORTAR / IMPORTAR
    # =========================================================================

    def export_all(self) -> Dict[str, List[Dict[str, Any]]]:
        """Instantánea {nombreColeccion: registros[]} de las colecciones del negocio."""
        return {name: self.repositories[name].all() for name in BACKUP_COLLECTIONS}

    def import_all(self, snapshot: Dict[str, Any]) -> Dict[str, Any]:
        """
        Reemplaza las colecciones presentes en la instantánea.
        Las colecciones ausentes no se tocan.

        Args:
            snapshot: {nombreColeccion: registros[]}

        Returns:
            {'ok': True, 'imported': {nombre: cantidad}} o
            {'ok': False, 'reason': 'invalid', 'error': str}
        """
        if not isinstance(snapshot, dict):
            return {'ok': False, 'reason': 'invalid', 'error': 'El respaldo no tiene un formato válido'}

        names = [name for name in BACKUP_COLLECTIONS if name in snapshot]
        if not names:
            return {'ok': False, 'reason': 'invalid', 'error': 'El respaldo no contiene colecciones reconocidas'}
        for name in names:
            records = snapshot[name]
            if not isinstance(records, list) or not all(isinstance(r, dict) and r.get('id') for r in records):
                return {'ok': False, 'reason': 'invalid', 'error': f"Colección inválida en el respaldo: {name}"}

        imported = {}
        self.change_bus.pause()
        try:
            for name in names:
                repo = self.repositories[name]
                repo.clear()
                imported[name] = repo.bulk_add(snapshot[name])
            if self.after_import is not None:
                self.after_import()
        finally:
            self.change_bus.resume()

        logger.info("[BACKUP] Respaldo importado: %s", imported)
        return {'ok': True, 'imported': imported}

    # =========================================================================
    # RESPALDOS INTERNOS
    # =========================================================================

    def _get_existing_backups(self) -> List[str]:
        """
        Nombres backup-<ms>.zip ordenados del más reciente al más antiguo.
        """
        if not os.path.exists(self.backup_root):
            return []
        backups = []
        for item in os.listdir(self.backup_root):
            if not (item.startswith('backup-') and item.endswith('.zip')):
                continue
            stamp = item[len('backup-'):-len('.zip')]
            if not stamp.isdigit():
                continue
            if os.path.isfile(os.path.join(self.backup_root, item)):
                backups.append(item)
        backups.sort(key=lambda name: int(name[len('backup-'):-len('.zip')]), reverse=True)
        return backups

    def create_snapshot(self) -> Dict[str, Any]:
        """
        Crea un respaldo ZIP y rota los antiguos.

        Returns:
            {'ok': True, 'filename': str, 'deleted': int}
        """
        filename = f"{new_id('backup')}.zip"
        zip_path = os.path.join(self.backup_root, filename)
        payload = json.dumps(self.export_all(), indent=2, ensure_ascii=False)

        try:
            with zipfile.ZipFile(zip_path, 'w', zipfile.ZIP_DEFLATED) as zf:
                zf.writestr(SNAPSHOT_ENTRY, payload)
        except OSError:
            # No dejar un ZIP a medio escribir
            if os.path.exists(zip_path):
                os.remove(zip_path)
            raise

        deleted = self._delete_old_backups()
        logger.info("[BACKUP] Respaldo creado: %s", filename)
        return {'ok': True, 'filename': filename, 'deleted': deleted}

    def _delete_old_backups(self) -> int:
        """
        Elimina respaldos antiguos, manteniendo solo los últimos MAX_BACKUPS.

        Returns:
            Cantidad de respaldos eliminados
        """
        deleted = 0
        for backup_name in self._get_existing_backups()[self.MAX_BACKUPS:]:
            try:
                os.remove(os.path.join(self.backup_root, backup_name))
                deleted += 1
                logger.info("[BACKUP] Eliminado respaldo antiguo: %s", backup_name)
            except OSError as e:
                logger.error("[BACKUP ERROR] No se pudo eliminar %s: %s", backup_name, e)
        return deleted

    def list_snapshots(self) -> List[Dict[str, Any]]:
        """Información de los respaldos existentes, más reciente primero."""
        info = []
        for backup_name in self._get_existing_backups():
            path = os.path.join(self.backup_root, backup_name)
            size_bytes = os.path.getsize(path)
            info.append({
                'filename': backup_name,
                'timestamp': int(backup_name[len('backup-'):-len('.zip')]),
                'size_bytes': size_bytes,
                'size_kb': round(size_bytes / 1024, 2),
            })
        return info

    def read_snapshot(self, filename: str) -> Optional[Dict[str, Any]]:
        """
        Lee el contenido de un respaldo existente.

        Returns:
            Instantánea, o None si el archivo no es un respaldo conocido o
            está dañado
        """
        if filename not in self._get_existing_backups():
            return None
        try:
            with zipfile.ZipFile(os.path.join(self.backup_root, filename), 'r') as zf:
                return json.loads(zf.read(SNAPSHOT_ENTRY).decode('utf-8'))
        except (zipfile.BadZipFile, KeyError, ValueError) as e:
            logger.error("[BACKUP ERROR] Respaldo dañado %s: %s", filename, e)
            return None

    def restore_snapshot(self, filename: str) -> Dict[str, Any]:
        snapshot = self.read_snapshot(filename)
        if snapshot is None:
            return {'ok': False, 'reason': 'not_found', 'error': 'Respaldo no encontrado o dañado'}
        return self.import_all(snapshot)

    def run_periodic_backup(self) -> Dict[str, Any]:
        """
        Un ciclo del respaldo automático.
        Nunca rompe la app por un error de respaldo.
        """
        try:
            return self.create_snapshot()
        except OSError as e:
            logger.error("[BACKUP ERROR] No se pudo crear el respaldo: %s", e)
            return {'ok': False, 'reason': 'invalid', 'error': str(e)}


# ==============================================================================
# RESPALDO PERIÓDICO EN SEGUNDO PLANO
# ==============================================================================

class BackupScheduler:
    """
    Hilo daemon que ejecuta run_periodic_backup() cada `interval` segundos.

    Uso:
        scheduler = BackupScheduler(backup_service, 600)
        scheduler.start()
        ...
        scheduler.stop()
    """

    def __init__(self, backup_service: BackupService, interval: int):
        self.backup_service = backup_service
        self.interval = interval
        self._stop = threading.Event()
        self._thread: Optional[threading.Thread] = None

    def _run(self) -> None:
        while not self._stop.wait(self.interval):
            self.backup_service.run_periodic_backup()

    def start(self) -> bool:
        if self.interval <= 0 or self.is_running():
            return False
        self._stop.clear()
        self._thread = threading.Thread(target=self._run, name='pagomatic-backup', daemon=True)
        self._thread.start()
        logger.info("[BACKUP] Respaldo automático cada %d segundos", self.interval)
        return True

    def stop(self) -> None:
        self._stop.set()
        if self._thread is not None:
            self._thread.join(timeout=5)
            self._thread = None

    def is_running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()
