# ==============================================================================
# SISTEMA DE PROFILING INTERNO
# ==============================================================================
# Mide rendimiento de rutas y funciones sin afectar la experiencia del usuario.
# Los registros van al logger 'pagomatic.performance'; config.configure_logging
# puede dirigirlo a logs/performance.log.
#
# ACTIVAR/DESACTIVAR: variable de entorno PAGOMATIC_PROFILING (1/0)
# ==============================================================================

import logging
import os
import threading
import time
from collections import defaultdict
from functools import wraps

logger = logging.getLogger('pagomatic.performance')

# ═══════════════════════════════════════════════════════════════════════════
# CONFIGURACIÓN
# ═══════════════════════════════════════════════════════════════════════════

ENABLE_PROFILING = os.environ.get('PAGOMATIC_PROFILING', '1') == '1'

# Umbrales de tiempo (en milisegundos)
THRESHOLD_WARNING = 300   # Advertencia si supera 300ms
THRESHOLD_CRITICAL = 700  # Crítico si supera 700ms

# Mapeo de rutas a nombres legibles (para logs más humanos)
ROUTE_NAMES = {
    'POST /api/login': 'Iniciar sesión',
    'POST /api/logout': 'Cerrar sesión',
    'GET /api/metrics': 'Ver panel principal',
    'GET /api/products': 'Ver inventario',
    'POST /api/products/<product_id>/adjustments': 'Ajuste manual de stock',
    'POST /api/dispatches': 'Crear despacho',
    'POST /api/dispatches/<dispatch_id>/returns': 'Registrar devolución',
    'POST /api/dispatches/<dispatch_id>/cancel': 'Anular despacho',
    'POST /api/invoices': 'Registrar factura',
    'POST /api/supplier-payments': 'Registrar pago a proveedor',
    'POST /api/store-payments': 'Registrar abono',
    'GET /api/approvals': 'Ver sala de espera',
    'GET /api/backup/export': 'Exportar respaldo',
    'POST /api/backup/import': 'Importar respaldo',
}


# ═══════════════════════════════════════════════════════════════════════════
# ESTADÍSTICAS DE FUNCIONES (en memoria)
# ═══════════════════════════════════════════════════════════════════════════

# {nombre: [llamadas, ms_acumulados, ms_maximo]}
_function_stats = defaultdict(lambda: [0, 0.0, 0.0])
_stats_lock = threading.Lock()


def _get_route_name(method, rule):
    """Nombre legible de una ruta, o la ruta cruda si no está mapeada."""
    return ROUTE_NAMES.get(f"{method} {rule}", f"{method} {rule}")


# ═══════════════════════════════════════════════════════════════════════════
# 1️⃣ HOOKS PARA FLASK (before/after request)
# ═══════════════════════════════════════════════════════════════════════════

def init_profiling(app):
    """
    Inicializa el profiling en una app Flask.
    Registra hooks before_request y after_request.

    Uso:
        from pagomatic.performance_logger import init_profiling
        init_profiling(app)
    """
    if not ENABLE_PROFILING:
        return

    @app.before_request
    def _start_timer():
        from flask import g
        g.start_time = time.perf_counter()

    @app.after_request
    def _log_request(response):
        from flask import g, request, session

        if not hasattr(g, 'start_time'):
            return response

        elapsed = (time.perf_counter() - g.start_time) * 1000  # ms
        rule = str(request.url_rule) if request.url_rule else request.path
        action_name = _get_route_name(request.method, rule)
        user = session.get('user_name') or 'anónimo'

        if elapsed >= THRESHOLD_CRITICAL:
            logger.error("[PERFORMANCE] Ruta MUY LENTA: %s (%s) %.0f ms", action_name, user, elapsed)
        elif elapsed >= THRESHOLD_WARNING:
            logger.warning("[PERFORMANCE] Ruta LENTA: %s (%s) %.0f ms", action_name, user, elapsed)
        else:
            logger.debug("[PERFORMANCE] %s (%s) %.0f ms", action_name, user, elapsed)

        return response


# ═══════════════════════════════════════════════════════════════════════════
# 2️⃣ DECORADOR PARA FUNCIONES CLAVE
# ═══════════════════════════════════════════════════════════════════════════

def _record(func_name, elapsed_ms):
    with _stats_lock:
        entry = _function_stats[func_name]
        entry[0] += 1
        entry[1] += elapsed_ms
        entry[2] = max(entry[2], elapsed_ms)

    if elapsed_ms >= THRESHOLD_CRITICAL:
        logger.error("[PERFORMANCE] Función CRÍTICA: %s %.0f ms", func_name, elapsed_ms)
    elif elapsed_ms >= THRESHOLD_WARNING:
        logger.warning("[PERFORMANCE] Función LENTA: %s %.0f ms", func_name, elapsed_ms)


def profile_function(func=None, name=None):
    """
    Mide cada llamada de la función decorada.

    Uso:
        @profile_function
        def recalcular(): ...

        @profile_function(name='Recalcular libro mayor')
        def compute_snapshot(state): ...
    """
    def decorator(fn):
        if not ENABLE_PROFILING:
            return fn
        label = name or fn.__name__

        @wraps(fn)
        def wrapper(*args, **kwargs):
            start = time.perf_counter()
            try:
                return fn(*args, **kwargs)
            finally:
                _record(label, (time.perf_counter() - start) * 1000)

        return wrapper

    if func is not None:
        return decorator(func)
    return decorator


# ═══════════════════════════════════════════════════════════════════════════
# 3️⃣ REPORTE DE ESTADÍSTICAS
# ═══════════════════════════════════════════════════════════════════════════

def get_function_stats():
    """
    Returns:
        dict: {nombre: {calls, avg_time, max_time}} con tiempos en ms
    """
    with _stats_lock:
        return {
            label: {
                'calls': calls,
                'avg_time': round(total / calls, 2) if calls else 0,
                'max_time': round(peak, 2),
            }
            for label, (calls, total, peak) in _function_stats.items()
        }


def write_function_stats_report():
    """Resume en el log las funciones perfiladas, las más lentas primero."""
    ranking = sorted(get_function_stats().items(), key=lambda item: item[1]['avg_time'], reverse=True)
    for label, data in ranking:
        logger.info("[PERFORMANCE] %s: %d llamadas, promedio %.0f ms, máximo %.0f ms",
                    label, data['calls'], data['avg_time'], data['max_time'])


def reset_stats():
    with _stats_lock:
        _function_stats.clear()


__all__ = [
    'ENABLE_PROFILING',
    'init_profiling',
    'profile_function',
    'get_function_stats',
    'write_function_stats_report',
    'reset_stats',
]
