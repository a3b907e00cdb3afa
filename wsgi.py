# ==============================================================================
# WSGI - Punto de entrada para producción
# ==============================================================================
# USO:
#   gunicorn wsgi:app --bind 0.0.0.0:$PORT --workers 1
#
# Un solo worker: los archivos JSON y el bus de cambios viven en el proceso.
# Directorio de datos, clave de sesión e intervalo de respaldo se toman de
# las variables PAGOMATIC_* (ver pagomatic/config.py).
# ==============================================================================

from pagomatic.main import create_app

app = create_app(start_backup_scheduler=True)

if __name__ == '__main__':
    app.run(host='0.0.0.0', port=5000)
