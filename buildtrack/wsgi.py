# buildtrack/wsgi.py
"""
WSGI entry point, e.g. ``gunicorn buildtrack.wsgi:app``.
"""
import os

from .app import create_app

try:
    app = create_app()
except Exception as startup_error:
    # Fall back to development settings if the detected config cannot start
    print(f"Configuration failed: {startup_error}")
    app = create_app('development')
    print("Falling back to development configuration")

if __name__ == '__main__':
    port = int(os.environ.get('PORT', 5000))
    app.run(
        debug=app.config.get('DEBUG', False),
        host='0.0.0.0',
        port=port
    )
