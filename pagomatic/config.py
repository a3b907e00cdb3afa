# ==============================================================================
# CONFIGURACIÓN DE LA APLICACIÓN
# ==============================================================================
# Variables de entorno reconocidas:
#   PAGOMATIC_DATA_DIR         → carpeta de archivos JSON (default ./data)
#   PAGOMATIC_SECRET_KEY       → clave de sesión Flask
#   PAGOMATIC_PROFILING        → 1/0 (ver performance_logger.py)
#   PAGOMATIC_BACKUP_INTERVAL  → segundos entre respaldos internos (0 = apagado)
#   PAGOMATIC_LOG_LEVEL        → DEBUG, INFO, WARNING...
#   PAGOMATIC_LOG_DIR          → si se define, también escribe logs a archivo
#
# Los ajustes del NEGOCIO (nombre, impresora, aprobaciones) no viven aquí
# sino en settings.json (ver services/settings_service.py).
# ==============================================================================

import logging
import os

logger = logging.getLogger(__name__)

_DEFAULT_SECRET = 'pagomatic_dev_secret_key_change_in_production'


class Config:
    """Configuración leída del entorno al importar el módulo."""

    DATA_DIR = os.environ.get('PAGOMATIC_DATA_DIR', os.path.join(os.getcwd(), 'data'))

    SECRET_KEY = os.environ.get('PAGOMATIC_SECRET_KEY') or _DEFAULT_SECRET

    # Respaldo interno automático cada 10 minutos
    BACKUP_INTERVAL = int(os.environ.get('PAGOMATIC_BACKUP_INTERVAL', '600') or 0)

    LOG_LEVEL = os.environ.get('PAGOMATIC_LOG_LEVEL', 'INFO').upper()
    LOG_DIR = os.environ.get('PAGOMATIC_LOG_DIR', '')

    # Configuración de cookies de sesión
    SESSION_COOKIE_HTTPONLY = True
    SESSION_COOKIE_SAMESITE = 'Lax'
    PERMANENT_SESSION_LIFETIME = 86400  # 24 horas
    MAX_CONTENT_LENGTH = 16 * 1024 * 1024  # respaldos importados


_logging_configured = False


def configure_logging(level: str = None, log_dir: str = None) -> None:
    """
    Configura el logger raíz 'pagomatic' una sola vez.

    Args:
        level: Nivel de log (default Config.LOG_LEVEL)
        log_dir: Carpeta para pagomatic.log (default Config.LOG_DIR)
    """
    global _logging_configured
    if _logging_configured:
        return

    root = logging.getLogger('pagomatic')
    root.setLevel(getattr(logging, level or Config.LOG_LEVEL, logging.INFO))

    formatter = logging.Formatter('%(asctime)s %(levelname)s %(name)s: %(message)s')

    console = logging.StreamHandler()
    console.setFormatter(formatter)
    root.addHandler(console)

    log_dir = log_dir if log_dir is not None else Config.LOG_DIR
    if log_dir:
        os.makedirs(log_dir, exist_ok=True)
        file_handler = logging.FileHandler(os.path.join(log_dir, 'pagomatic.log'), encoding='utf-8')
        file_handler.setFormatter(formatter)
        root.addHandler(file_handler)

    if Config.SECRET_KEY == _DEFAULT_SECRET:
        logger.warning("[ADVERTENCIA] PAGOMATIC_SECRET_KEY no definida; usando clave de desarrollo")

    _logging_configured = True
