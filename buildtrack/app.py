import os
import logging

from flask import Flask, request, jsonify
from flask_cors import CORS
from flask_login import LoginManager
from sqlalchemy import inspect, text

from .config import config, get_config_name
from .errors import AppError
from .middleware.rate_limit import limiter, rate_limit_exceeded
from .models import db, User
from .services.receipt_parser import ReceiptParser, create_extractor
from .services.storage import storage
from .services.tasks import ParseTaskRunner

BLUEPRINTS = [
    ('auth', 'auth_bp', '/api/auth'),
    ('clients', 'clients_bp', '/api/clients'),
    ('projects', 'projects_bp', '/api/projects'),
    ('contracts', 'contracts_bp', '/api/contracts'),
    ('line_items', 'line_items_bp', '/api/line-items'),
    ('receipts', 'receipts_bp', '/api/receipts'),
    ('products', 'products_bp', '/api/products'),
    ('dashboard', 'dashboard_bp', '/api/dashboard'),
    ('health', 'health_bp', '/api'),
]


def _api_error(error, message, code, status_code):
    return jsonify({'error': error, 'message': message, 'code': code}), status_code


def create_app(config_name=None, extractor=None, config_overrides=None):
    """
    Application factory.

    Args:
        config_name (str): 'development', 'production' or 'testing'; detected when omitted
        extractor: Receipt extraction service; built from OPENAI_* settings when omitted
        config_overrides (dict): Values applied on top of the config class
    """
    if config_name is None:
        config_name = get_config_name()

    app = Flask(__name__)

    try:
        config_instance = config[config_name]()  # Instantiate to resolve database URL
        app.config.from_object(config_instance)
        if config_overrides:
            app.config.update(config_overrides)
        app.logger.info(f"✓ Configuration loaded for {config_name} environment")
    except Exception as config_error:
        app.logger.error(f"❌ Configuration loading failed: {config_error}")
        raise

    _configure_logging(app, config_name)

    upload_folder = app.config['RECEIPT_UPLOAD_FOLDER']
    if not os.path.isabs(upload_folder):
        upload_folder = os.path.join(os.getcwd(), upload_folder)
        app.config['RECEIPT_UPLOAD_FOLDER'] = upload_folder
    try:
        os.makedirs(upload_folder, exist_ok=True)
    except OSError as e:
        app.logger.warning(f"Could not create upload directory {upload_folder}: {e}")

    db.init_app(app)

    CORS(app,
         origins=app.config.get('CORS_ORIGINS', []),
         supports_credentials=app.config.get('CORS_SUPPORTS_CREDENTIALS', True),
         methods=['GET', 'POST', 'PUT', 'DELETE', 'OPTIONS'],
         allow_headers=['Content-Type', 'Authorization', 'X-Requested-With', 'Accept', 'Origin'],
         max_age=86400)

    limiter.init_app(app)

    _setup_login_manager(app)

    # Receipt parsing pipeline: extractor -> parser -> background runner
    if extractor is None:
        extractor = create_extractor(app.config)
        if not app.config.get('OPENAI_API_KEY'):
            app.logger.warning("OPENAI_API_KEY not set - receipt parsing will mark uploads as failed")
    parser = ReceiptParser(extractor, storage)
    app.extensions['receipt_parser'] = parser
    app.extensions['receipt_parse_runner'] = ParseTaskRunner(
        app, parser, max_workers=app.config.get('PARSER_MAX_WORKERS', 4)
    )

    _register_blueprints(app)
    _register_error_handlers(app)
    _register_commands(app)

    with app.app_context():
        try:
            db.session.execute(text('SELECT 1'))
            db.create_all()
            app.logger.info("✓ Database tables created/verified successfully")
        except Exception as db_error:
            app.logger.error(f"❌ Database initialization error: {db_error}")
            if config_name != 'production':
                raise

    app.logger.info(f"✓ BuildTrack API created ({config_name}, {len(list(app.url_map.iter_rules()))} routes)")
    return app


def _configure_logging(app, config_name):
    level = getattr(logging, str(app.config.get('LOG_LEVEL', 'INFO')).upper(), logging.INFO)

    if config_name == 'production':
        handler = logging.StreamHandler()
        handler.setFormatter(logging.Formatter(
            '%(asctime)s %(levelname)s: %(message)s [in %(pathname)s:%(lineno)d]'
        ))
        logging.getLogger('buildtrack').addHandler(handler)
        app.logger.addHandler(handler)
    elif not logging.getLogger().handlers:
        logging.basicConfig(level=level, format='%(levelname)s %(name)s: %(message)s')

    logging.getLogger('buildtrack').setLevel(logging.DEBUG if app.debug else level)
    app.logger.setLevel(logging.DEBUG if app.debug else level)


def _setup_login_manager(app):
    login_manager = LoginManager()
    login_manager.init_app(app)
    login_manager.session_protection = 'strong'

    @login_manager.unauthorized_handler
    def handle_unauthorized():
        """Return JSON instead of redirecting to a login page"""
        app.logger.warning(f"Unauthorized API access attempt to {request.path} from {request.remote_addr}")
        return _api_error('Authentication required', 'You must be logged in to access this endpoint',
                          'UNAUTHORIZED', 401)

    @login_manager.user_loader
    def load_user(user_id):
        try:
            return db.session.get(User, user_id)
        except Exception as e:
            app.logger.error(f"Error loading user {user_id}: {e}")
            return None


def _register_blueprints(app):
    for module_name, blueprint_name, url_prefix in BLUEPRINTS:
        module = __import__(f'buildtrack.routes.{module_name}', fromlist=[blueprint_name])
        app.register_blueprint(getattr(module, blueprint_name), url_prefix=url_prefix)
        app.logger.debug(f"✓ Registered {blueprint_name} at {url_prefix}")


def _register_error_handlers(app):
    @app.errorhandler(AppError)
    def handle_app_error(error):
        return jsonify(error.to_dict()), error.status_code

    @app.errorhandler(404)
    def not_found(error):
        return _api_error('Not Found', f'The requested endpoint {request.path} does not exist', 'NOT_FOUND', 404)

    @app.errorhandler(405)
    def method_not_allowed(error):
        return _api_error('Method Not Allowed',
                          f'The method {request.method} is not allowed for endpoint {request.path}',
                          'METHOD_NOT_ALLOWED', 405)

    @app.errorhandler(413)
    def request_too_large(error):
        return _api_error('Payload Too Large', 'The uploaded file is too large', 'PAYLOAD_TOO_LARGE', 413)

    @app.errorhandler(429)
    def too_many_requests(error):
        return rate_limit_exceeded(error)

    @app.errorhandler(500)
    def internal_error(error):
        db.session.rollback()
        app.logger.error(f"Internal server error: {error}")
        return _api_error('Internal Server Error', 'An unexpected error occurred. Please try again later.',
                          'INTERNAL_ERROR', 500)


def _register_commands(app):
    @app.cli.command('init-db')
    def init_db():
        """Create all tables and report which ones exist."""
        db.create_all()
        tables = sorted(inspect(db.engine).get_table_names())
        print(f"✓ Database ready ({len(tables)} tables): {', '.join(tables)}")
