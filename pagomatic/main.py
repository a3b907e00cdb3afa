from flask import Flask, request, session, g, current_app
from functools import wraps
import atexit
import uuid

# Sistema de profiling interno
from pagomatic.performance_logger import init_profiling, write_function_stats_report

from pagomatic.config import Config, configure_logging

# ═══════════════════════════════════════════════════════════════════════════
# CONTENEDOR DE DEPENDENCIAS - Servicios y Repositorios
# ═══════════════════════════════════════════════════════════════════════════
# Las rutas solo orquestan request → service → response.
# Toda la lógica de negocio vive en services/.
# ═══════════════════════════════════════════════════════════════════════════
from pagomatic.app_container import AppContainer, get_container
from pagomatic.models import parse_flag
from pagomatic.services.backup_service import BackupScheduler
from pagomatic.services.dialog_service import auto_confirm, static_responder
from pagomatic.services.ledger_service import serialize
from pagomatic.services.user_service import can_access

import logging

logger = logging.getLogger(__name__)

_stats_report_registered = False


# ═══════════════════════════════════════════════════════════════════════════
# UTILIDADES DE RESPUESTA
# ═══════════════════════════════════════════════════════════════════════════

# Códigos de motivo → estado HTTP (el resto es 400)
STATUS_BY_REASON = {
    'not_found': 404,
    'unauthorized': 403,
}


def _container() -> AppContainer:
    return current_app.extensions['pagomatic']


def _body() -> dict:
    data = request.get_json(silent=True)
    return data if isinstance(data, dict) else {}


def _result(result: dict, success_status: int = 200):
    """Convierte el resultado de un servicio en respuesta JSON."""
    if result.get('ok'):
        return result, success_status
    return result, STATUS_BY_REASON.get(result.get('reason'), 400)


def _confirm_responder(data: dict):
    """La confirmación de borrado viaja en el cuerpo como confirm: true."""
    return auto_confirm() if data.get('confirm') else static_responder(None)


def _admin_responder(data: dict):
    """La clave de administrador viaja en el cuerpo como admin_password."""
    return static_responder(data.get('admin_password') or None)


# ═══════════════════════════════════════════════════════════════════════════
# AUTENTICACIÓN Y PERMISOS
# ═══════════════════════════════════════════════════════════════════════════

def login_required(f):
    @wraps(f)
    def wrapper(*args, **kwargs):
        user_id = session.get('user_id')
        user = _container().user_service.get_user(user_id) if user_id else None
        if user is None:
            session.clear()
            return {'ok': False, 'error': 'Debes iniciar sesión.'}, 401
        g.user = user
        return f(*args, **kwargs)
    return wrapper


def role_required(*sections):
    """Permite el acceso si algún rol del usuario habilita alguna de las secciones."""
    def deco(f):
        @wraps(f)
        def wrapper(*args, **kwargs):
            if not any(can_access(g.user, section) for section in sections):
                return {'ok': False, 'error': 'Permiso denegado.'}, 403
            return f(*args, **kwargs)
        return login_required(wrapper)
    return deco


def generate_csrf_token():
    if 'csrf_token' not in session:
        session['csrf_token'] = uuid.uuid4().hex
    return session['csrf_token']


def verify_csrf():
    """Exige X-CSRF-Token en toda escritura de la API (salvo el login)."""
    if request.method in ('GET', 'HEAD', 'OPTIONS'):
        return None
    if not request.path.startswith('/api/') or request.path == '/api/login':
        return None
    token = session.get('csrf_token')
    sent = request.headers.get('X-CSRF-Token') or request.headers.get('X-CSRFToken')
    if not token or not sent or token != sent:
        return {'ok': False, 'error': 'CSRF token inválido'}, 403
    return None


def set_security_headers(response):
    response.headers['X-Frame-Options'] = 'DENY'
    response.headers['X-Content-Type-Options'] = 'nosniff'
    response.headers['Referrer-Policy'] = 'no-referrer-when-downgrade'
    response.headers['Permissions-Policy'] = 'geolocation=(), microphone=()'
    response.headers['Cache-Control'] = 'no-store'
    # NOTA: HSTS solo en producción con HTTPS real
    if request.is_secure:
        response.headers['Strict-Transport-Security'] = 'max-age=31536000; includeSubDomains'
    return response


# ═══════════════════════════════════════════════════════════════════════════
# FÁBRICA DE LA APLICACIÓN
# ═══════════════════════════════════════════════════════════════════════════

def create_app(base_path: str = None, start_backup_scheduler: bool = False) -> Flask:
    """
    Crea la aplicación Flask.

    Args:
        base_path: Directorio de datos (default Config.DATA_DIR)
        start_backup_scheduler: Inicia el respaldo automático en segundo plano

    Returns:
        App Flask lista para servir
    """
    global _stats_report_registered

    configure_logging()

    app = Flask(__name__)
    app.config.from_object(Config)
    app.json.sort_keys = False

    container = get_container(base_path)
    app.extensions['pagomatic'] = container

    init_profiling(app)
    app.before_request(verify_csrf)
    app.after_request(set_security_headers)

    if not _stats_report_registered:
        atexit.register(write_function_stats_report)
        _stats_report_registered = True

    if start_backup_scheduler:
        scheduler = BackupScheduler(container.backup_service, Config.BACKUP_INTERVAL)
        scheduler.start()
        app.extensions['pagomatic_backup'] = scheduler

    register_routes(app)
    logger.info("[APP] Datos en %s", container.base_path)
    return app


def register_routes(app: Flask) -> None:

    @app.errorhandler(404)
    def not_found(error):
        return {'ok': False, 'error': 'Recurso no encontrado'}, 404

    @app.errorhandler(405)
    def method_not_allowed(error):
        return {'ok': False, 'error': 'Método no permitido'}, 405

    # =========================================================================
    # SESIÓN
    # =========================================================================

    @app.route('/api/login', methods=['POST'])
    def login():
        data = _body()
        username = (data.get('username') or '').strip()
        if not username:
            return {'ok': False, 'error': 'Usuario requerido'}, 400

        result = _container().user_service.login(username, static_responder(data.get('password') or None))
        if not result['ok']:
            return {'ok': False, 'reason': result['reason'], 'error': result['error']}, 401

        user = result['user']
        session.clear()
        session['user_id'] = user.id
        session['user_name'] = user.name or user.username
        return {'ok': True, 'user': user.to_session_dict(), 'csrf_token': generate_csrf_token()}

    @app.route('/api/logout', methods=['POST'])
    @login_required
    def logout():
        _container().user_service.logout(g.user)
        session.clear()
        return {'ok': True}

    @app.route('/api/me')
    @login_required
    def me():
        return {'ok': True, 'user': g.user.to_session_dict(), 'csrf_token': generate_csrf_token()}

    # =========================================================================
    # PANEL Y REPORTES
    # =========================================================================

    @app.route('/api/metrics')
    @login_required
    def metrics():
        snapshot = _container().ledger_service.snapshot()
        return {
            'ok': True,
            'metrics': snapshot.metrics.to_dict(),
            'grossProfit': snapshot.gross_profit,
            'netProfit': snapshot.net_profit,
            'lowStock': serialize(snapshot.low_stock_products()),
        }

    @app.route('/api/reports/low-stock')
    @role_required('reports', 'inventory')
    def low_stock():
        return {'ok': True, 'products': serialize(_container().ledger_service.low_stock_products())}

    @app.route('/api/reports/losses')
    @role_required('reports')
    def losses():
        return {'ok': True, 'invoices': serialize(_container().supplier_service.loss_invoices())}

    # =========================================================================
    # PRODUCTOS E INVENTARIO
    # =========================================================================

    @app.route('/api/products', methods=['GET'])
    @role_required('inventory', 'dispatches')
    def list_products():
        products = _container().inventory_service.search_products(request.args.get('q', ''))
        return {'ok': True, 'products': serialize(products)}

    @app.route('/api/products', methods=['POST'])
    @role_required('inventory')
    def add_product():
        return _result(_container().inventory_service.add_product(_body(), g.user), 201)

    @app.route('/api/products/<product_id>', methods=['PUT'])
    @role_required('inventory')
    def update_product(product_id):
        return _result(_container().inventory_service.update_product(product_id, _body(), g.user))

    @app.route('/api/products/<product_id>', methods=['DELETE'])
    @role_required('inventory')
    def delete_product(product_id):
        data = _body()
        return _result(_container().inventory_service.delete_product(product_id, _confirm_responder(data), g.user))

    @app.route('/api/products/<product_id>/adjustments', methods=['GET'])
    @role_required('inventory')
    def list_adjustments(product_id):
        return {'ok': True, 'adjustments': serialize(_container().inventory_service.adjustments_for(product_id))}

    @app.route('/api/products/<product_id>/adjustments', methods=['POST'])
    @role_required('inventory')
    def add_adjustment(product_id):
        data = _body()
        result = _container().inventory_service.manual_stock_adjustment(
            product_id,
            data.get('quantity'),
            data.get('reason', ''),
            folio=data.get('folio') or None,
            user=g.user
        )
        return _result(result, 201)

    # =========================================================================
    # PROVEEDORES Y FACTURAS
    # =========================================================================

    @app.route('/api/suppliers', methods=['GET'])
    @role_required('suppliers')
    def list_suppliers():
        return {'ok': True, 'suppliers': serialize(_container().ledger_service.suppliers())}

    @app.route('/api/suppliers', methods=['POST'])
    @role_required('suppliers')
    def add_supplier():
        return _result(_container().supplier_service.add_supplier(_body(), g.user), 201)

    @app.route('/api/suppliers/<supplier_id>', methods=['PUT'])
    @role_required('suppliers')
    def update_supplier(supplier_id):
        return _result(_container().supplier_service.update_supplier(supplier_id, _body(), g.user))

    @app.route('/api/suppliers/<supplier_id>', methods=['DELETE'])
    @role_required('suppliers')
    def delete_supplier(supplier_id):
        data = _body()
        return _result(_container().supplier_service.delete_supplier(supplier_id, _confirm_responder(data), g.user))

    @app.route('/api/suppliers/<supplier_id>/products')
    @role_required('suppliers', 'inventory')
    def supplier_products(supplier_id):
        return {'ok': True, 'products': _container().supplier_service.supplier_products(supplier_id)}

    @app.route('/api/invoices', methods=['GET'])
    @role_required('suppliers')
    def list_invoices():
        return {'ok': True, 'invoices': serialize(_container().ledger_service.invoices())}

    @app.route('/api/invoices', methods=['POST'])
    @role_required('suppliers')
    def add_invoice():
        return _result(_container().supplier_service.add_invoice(_body(), g.user), 201)

    @app.route('/api/supplier-payments', methods=['GET'])
    @role_required('suppliers')
    def list_supplier_payments():
        snapshot = _container().ledger_service.snapshot()
        return {'ok': True, 'payments': serialize(snapshot.supplier_payments)}

    @app.route('/api/supplier-payments', methods=['POST'])
    @role_required('suppliers')
    def add_supplier_payment():
        return _result(_container().payment_service.add_supplier_payment(_body(), g.user), 201)

    @app.route('/api/supplier-payments/<payment_id>/cancel', methods=['POST'])
    @role_required('suppliers')
    def cancel_supplier_payment(payment_id):
        data = _body()
        return _result(_container().payment_service.cancel_supplier_payment(payment_id, _admin_responder(data), g.user))

    # =========================================================================
    # SUCURSALES Y COBRANZA
    # =========================================================================

    @app.route('/api/stores', methods=['GET'])
    @role_required('stores', 'dispatches')
    def list_stores():
        return {'ok': True, 'stores': serialize(_container().ledger_service.stores())}

    @app.route('/api/stores', methods=['POST'])
    @role_required('stores')
    def add_store():
        return _result(_container().store_service.add_store(_body(), g.user), 201)

    @app.route('/api/stores/<store_id>', methods=['PUT'])
    @role_required('stores')
    def update_store(store_id):
        return _result(_container().store_service.update_store(store_id, _body(), g.user))

    @app.route('/api/stores/<store_id>', methods=['DELETE'])
    @role_required('stores')
    def delete_store(store_id):
        data = _body()
        return _result(_container().store_service.delete_store(store_id, _confirm_responder(data), g.user))

    @app.route('/api/stores/<store_id>/active', methods=['POST'])
    @role_required('stores')
    def set_store_active(store_id):
        data = _body()
        return _result(_container().store_service.set_active(store_id, data.get('active'), g.user))

    @app.route('/api/stores/<store_id>/history')
    @role_required('stores')
    def store_history(store_id):
        history = _container().store_service.store_history(store_id)
        return {'ok': True, **history}

    @app.route('/api/store-payments', methods=['GET'])
    @role_required('stores')
    def list_store_payments():
        snapshot = _container().ledger_service.snapshot()
        return {'ok': True, 'payments': serialize(snapshot.store_payments)}

    @app.route('/api/store-payments', methods=['POST'])
    @role_required('stores')
    def add_store_payment():
        return _result(_container().payment_service.add_store_payment(_body(), g.user), 201)

    @app.route('/api/store-payments/<payment_id>/cancel', methods=['POST'])
    @role_required('stores')
    def cancel_store_payment(payment_id):
        data = _body()
        return _result(_container().payment_service.cancel_store_payment(payment_id, _admin_responder(data), g.user))

    @app.route('/api/store-payments/<payment_id>/print', methods=['POST'])
    @role_required('stores')
    def print_store_payment(payment_id):
        count = _container().payment_service.increment_store_payment_print_count(payment_id)
        if count is None:
            return {'ok': False, 'error': 'Abono no encontrado'}, 404
        return {'ok': True, 'printCount': count}

    # =========================================================================
    # DESPACHOS
    # =========================================================================

    @app.route('/api/dispatches', methods=['GET'])
    @role_required('dispatches', 'stores')
    def list_dispatches():
        snapshot = _container().ledger_service.snapshot()
        dispatches = []
        for dispatch in snapshot.dispatches:
            data = dispatch.to_dict()
            data['pendingAmount'] = snapshot.dispatch_pending_amount(dispatch.id)
            dispatches.append(data)
        return {'ok': True, 'dispatches': dispatches}

    @app.route('/api/dispatches', methods=['POST'])
    @role_required('dispatches')
    def create_dispatch():
        data = _body()
        result = _container().dispatch_service.create_dispatch(
            data.get('items') or [],
            data.get('storeId'),
            dispatch_number=data.get('dispatchNumber') or None,
            driver_name=data.get('driverName', ''),
            vehicle_plate=data.get('vehiclePlate', ''),
            user=g.user
        )
        return _result(result, 201)

    @app.route('/api/dispatches/<dispatch_id>/returns', methods=['POST'])
    @role_required('dispatches')
    def partial_return(dispatch_id):
        data = _body()
        result = _container().dispatch_service.partial_return(
            dispatch_id,
            data.get('productId'),
            data.get('quantity'),
            data.get('reason'),
            user=g.user
        )
        return _result(result)

    @app.route('/api/dispatches/<dispatch_id>/full-return', methods=['POST'])
    @role_required('dispatches')
    def full_return(dispatch_id):
        return _result(_container().dispatch_service.full_return(dispatch_id, g.user))

    @app.route('/api/dispatches/<dispatch_id>/cancel', methods=['POST'])
    @role_required('dispatches')
    def cancel_dispatch(dispatch_id):
        data = _body()
        result = _container().dispatch_service.cancel_dispatch(
            dispatch_id,
            _admin_responder(data),
            siniestro=parse_flag(data.get('siniestro'), default=False) is True,
            user=g.user
        )
        return _result(result)

    @app.route('/api/dispatches/<dispatch_id>/print', methods=['POST'])
    @role_required('dispatches')
    def print_dispatch(dispatch_id):
        count = _container().dispatch_service.increment_dispatch_print_count(dispatch_id)
        if count is None:
            return {'ok': False, 'error': 'Despacho no encontrado'}, 404
        return {'ok': True, 'printCount': count}

    # =========================================================================
    # SALA DE ESPERA (APROBACIONES)
    # =========================================================================

    @app.route('/api/approvals')
    @role_required('admin')
    def list_approvals():
        return {'ok': True, 'documents': _container().approval_service.pending_documents()}

    @app.route('/api/approvals/<entity>/<doc_id>/approve', methods=['POST'])
    @role_required('admin')
    def approve_document(entity, doc_id):
        try:
            result = _container().approval_service.approve(entity, doc_id, g.user)
        except ValueError as e:
            return {'ok': False, 'reason': 'invalid', 'error': str(e)}, 400
        return _result(result)

    @app.route('/api/approvals/<entity>/<doc_id>/reject', methods=['POST'])
    @role_required('admin')
    def reject_document(entity, doc_id):
        data = _body()
        try:
            result = _container().approval_service.reject(
                entity, doc_id, static_responder(data.get('reason') or None), g.user
            )
        except ValueError as e:
            return {'ok': False, 'reason': 'invalid', 'error': str(e)}, 400
        return _result(result)

    # =========================================================================
    # ADMINISTRACIÓN
    # =========================================================================

    @app.route('/api/settings', methods=['GET'])
    @login_required
    def get_settings():
        return {'ok': True, 'settings': _container().settings_service.get_all()}

    @app.route('/api/settings', methods=['PUT'])
    @role_required('admin')
    def update_settings():
        return _result(_container().settings_service.update(_body(), g.user))

    @app.route('/api/users', methods=['GET'])
    @role_required('admin')
    def list_users():
        users = _container().user_service.get_all_users()
        return {'ok': True, 'users': [u.to_session_dict() for u in users]}

    @app.route('/api/users', methods=['POST'])
    @role_required('admin')
    def add_user():
        data = _body()
        result = _container().user_service.add_user(
            data.get('username'),
            data.get('name', ''),
            data.get('roles') or [],
            password=data.get('password') or '',
            actor=g.user
        )
        return _result(result, 201)

    @app.route('/api/users/<user_id>', methods=['PUT'])
    @role_required('admin')
    def update_user(user_id):
        return _result(_container().user_service.update_user(user_id, _body(), g.user))

    @app.route('/api/users/<user_id>', methods=['DELETE'])
    @role_required('admin')
    def delete_user(user_id):
        return _result(_container().user_service.delete_user(user_id, g.user))

    @app.route('/api/audit')
    @role_required('security', 'reports')
    def audit_log():
        args = request.args
        logs = _container().audit_service.search_logs(
            query=args.get('q', ''),
            action=args.get('action') or None,
            entity=args.get('entity') or None,
            entity_id=args.get('entityId') or None,
            user_name=args.get('user') or None,
        )
        limit = args.get('limit', type=int) or 200
        return {'ok': True, 'logs': logs[:limit]}

    @app.route('/api/audit/users')
    @role_required('security', 'reports')
    def audit_users():
        return {'ok': True, 'users': _container().audit_service.get_unique_users()}

    # =========================================================================
    # RESPALDOS
    # =========================================================================

    @app.route('/api/backup/export')
    @role_required('admin')
    def export_backup():
        snapshot = _container().backup_service.export_all()
        response = app.json.response(snapshot)
        response.headers['Content-Disposition'] = 'attachment; filename=pagomatic-backup.json'
        return response

    @app.route('/api/backup/import', methods=['POST'])
    @role_required('admin')
    def import_backup():
        snapshot = request.get_json(silent=True)
        return _result(_container().backup_service.import_all(snapshot))

    @app.route('/api/backup/snapshots', methods=['GET'])
    @role_required('admin')
    def list_snapshots():
        return {'ok': True, 'snapshots': _container().backup_service.list_snapshots()}

    @app.route('/api/backup/snapshots', methods=['POST'])
    @role_required('admin')
    def create_snapshot():
        return _result(_container().backup_service.run_periodic_backup(), 201)

    @app.route('/api/backup/snapshots/<filename>/restore', methods=['POST'])
    @role_required('admin')
    def restore_snapshot(filename):
        return _result(_container().backup_service.restore_snapshot(filename))


if __name__ == "__main__":
    import os
    # Configuración para desarrollo local y acceso desde red WiFi
    # En producción usar WSGI (gunicorn, waitress, etc.)
    DEBUG = os.environ.get('FLASK_DEBUG', '0') == '1'
    HOST = os.environ.get('FLASK_HOST', '0.0.0.0')
    PORT = int(os.environ.get('FLASK_PORT', 5000))

    create_app(start_backup_scheduler=True).run(debug=DEBUG, host=HOST, port=PORT)
