# ==============================================================================
# REPOSITORIO DE AUDITORÍA
# ==============================================================================
# Encapsula todo el acceso a audit.json
# La bitácora se almacena como lista (más reciente primero) y solo crece:
# no existen operaciones para editar o borrar entradas.
# ==============================================================================

import os
from typing import Any, Dict, List

from pagomatic.repositories.base import ListRepository
from pagomatic.repositories.change_bus import ChangeBus


class AuditRepository(ListRepository):
    """
    Repositorio para el registro de auditoría.

    Formato de datos en audit.json:
    [
        {
            "id": "log-1700000000000",
            "userId": "u-admin",
            "userName": "Administrador",
            "action": "block",
            "entity": "store",
            "entityId": "store-1",
            "details": "Intento de despacho bloqueado ...",
            "timestamp": "2024-01-01T10:00:00.000"
        }
    ]
    """

    COLLECTION = 'auditLogs'

    # Límite de registros para evitar archivos muy grandes
    MAX_LOGS = 10000

    def __init__(self, base_path: str, change_bus: ChangeBus = None):
        """
        Args:
            base_path: Directorio de datos
            change_bus: Bus donde publicar nuevas entradas (opcional)
        """
        super().__init__(os.path.join(base_path, 'audit.json'))
        self.change_bus = change_bus

    def append(self, entry: Dict[str, Any]) -> None:
        """
        Registra una entrada nueva al inicio de la lista.

        Args:
            entry: Entrada ya serializada (AuditLogEntry.to_dict())
        """
        with self._file_lock:
            logs = self.get_all()
            logs.insert(0, entry)
            # Mantener solo los últimos MAX_LOGS registros
            if len(logs) > self.MAX_LOGS:
                logs = logs[:self.MAX_LOGS]
            self.save_all(logs)
        if self.change_bus is not None:
            self.change_bus.publish(self.COLLECTION)

    def get_recent_logs(self, limit: int = 100) -> List[Dict[str, Any]]:
        """
        Obtiene los logs más recientes.

        Args:
            limit: Número máximo de logs

        Returns:
            Lista de logs más recientes
        """
        return self.get_all()[:limit]

    def search_logs(
        self,
        query: str = '',
        action: str = None,
        entity: str = None,
        entity_id: str = None,
        user_name: str = None
    ) -> List[Dict[str, Any]]:
        """
        Búsqueda de logs con múltiples filtros.

        Args:
            query: Texto libre (detalles, usuario, id de entidad)
            action: create, update, delete, anular, block
            entity: dispatch, invoice, store, ...
            entity_id: Id del documento afectado
            user_name: Nombre del usuario

        Returns:
            Lista de logs que coinciden (más reciente primero)
        """
        logs = self.get_all()

        if action:
            logs = [log for log in logs if log.get('action') == action]
        if entity:
            logs = [log for log in logs if log.get('entity') == entity]
        if entity_id:
            logs = [log for log in logs if log.get('entityId') == entity_id]
        if user_name:
            logs = [log for log in logs if log.get('userName') == user_name]

        if query:
            query_lower = query.lower()
            logs = [
                log for log in logs
                if any(
                    query_lower in str(log.get(key, '')).lower()
                    for key in ('details', 'userName', 'entityId')
                )
            ]

        return logs
