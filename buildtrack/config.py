import os
from datetime import timedelta

from dotenv import load_dotenv

basedir = os.path.abspath(os.path.dirname(__file__))
load_dotenv(os.path.join(os.path.dirname(basedir), '.env'))


def _normalize_database_url(database_url):
    """Ensure we're using postgresql:// not postgres://"""
    if database_url and database_url.startswith('postgres://'):
        return database_url.replace('postgres://', 'postgresql://', 1)
    return database_url


class Config:
    """Base configuration"""

    # --- Security ---
    SECRET_KEY = os.environ.get('SECRET_KEY') or 'dev-secret-key-change-in-production'

    # --- Database ---
    SQLALCHEMY_DATABASE_URI = None  # Will be set in __init__
    SQLALCHEMY_TRACK_MODIFICATIONS = False
    SQLALCHEMY_ENGINE_OPTIONS = {
        'pool_recycle': 3600,
        'pool_pre_ping': True,
    }

    # --- Sessions ---
    PERMANENT_SESSION_LIFETIME = timedelta(days=7)
    SESSION_COOKIE_SECURE = True
    SESSION_COOKIE_HTTPONLY = True
    SESSION_COOKIE_SAMESITE = 'Lax'
    SESSION_COOKIE_NAME = 'buildtrack_session'

    CORS_ORIGINS = [
        'http://localhost:5173',
        'http://127.0.0.1:5173',
        'http://localhost:3000',
    ]
    CORS_SUPPORTS_CREDENTIALS = True

    # --- AI receipt extraction ---
    OPENAI_API_KEY = os.environ.get('OPENAI_API_KEY')
    OPENAI_MODEL = os.environ.get('OPENAI_MODEL', 'gpt-4o')
    OPENAI_TIMEOUT = float(os.environ.get('OPENAI_TIMEOUT', 120.0))
    PARSER_MAX_WORKERS = int(os.environ.get('PARSER_MAX_WORKERS', 4))

    # --- Receipt uploads ---
    RECEIPT_UPLOAD_FOLDER = os.environ.get('RECEIPT_UPLOAD_FOLDER', os.path.join('uploads', 'receipts'))
    RECEIPT_MAX_BYTES = 10 * 1024 * 1024  # 10MB per receipt
    # Request-level cap sits above the receipt cap so oversized receipts get a 400, not a 413
    MAX_CONTENT_LENGTH = 16 * 1024 * 1024

    # --- Rate limiting (Flask-Limiter) ---
    RATELIMIT_ENABLED = True
    RATELIMIT_STORAGE_URI = os.environ.get('RATELIMIT_STORAGE_URI', 'memory://')
    RATELIMIT_DEFAULT = '100 per 15 minutes'
    UPLOAD_RATE_LIMIT = '10 per 15 minutes'

    TIMEZONE = os.environ.get('TIMEZONE', 'America/Los_Angeles')
    LOG_LEVEL = os.environ.get('LOG_LEVEL', 'INFO')

    def __init__(self):
        """Initialize configuration with proper database URL"""
        database_url = _normalize_database_url(os.environ.get('DATABASE_URL'))
        self.SQLALCHEMY_DATABASE_URI = database_url or 'sqlite:///' + os.path.join(basedir, 'buildtrack.db')


class DevelopmentConfig(Config):
    """Development configuration for local work"""
    DEBUG = True

    def __init__(self):
        super().__init__()

        # Relaxed settings for development
        self.SESSION_COOKIE_SECURE = False

        dev_database_url = _normalize_database_url(os.environ.get('DEV_DATABASE_URL'))
        if dev_database_url:
            self.SQLALCHEMY_DATABASE_URI = dev_database_url


class ProductionConfig(Config):
    """Production configuration"""
    DEBUG = False

    def __init__(self):
        super().__init__()

        secret_key = os.environ.get('SECRET_KEY')
        if not secret_key:
            raise ValueError("SECRET_KEY environment variable is required for production")
        self.SECRET_KEY = secret_key

        database_url = _normalize_database_url(os.environ.get('DATABASE_URL'))
        if not database_url:
            raise ValueError("DATABASE_URL environment variable is required for production")
        self.SQLALCHEMY_DATABASE_URI = database_url

        self.SQLALCHEMY_ENGINE_OPTIONS = {
            'pool_recycle': 3600,
            'pool_pre_ping': True,
            'pool_size': 20,
            'max_overflow': 30,
            'pool_timeout': 60,
        }

        origins = os.environ.get('CORS_ORIGINS')
        if origins:
            self.CORS_ORIGINS = [origin.strip() for origin in origins.split(',') if origin.strip()]


class TestingConfig(Config):
    """Testing configuration"""
    TESTING = True
    SECRET_KEY = 'testing-secret-key'
    RATELIMIT_ENABLED = False
    PARSER_MAX_WORKERS = 1

    def __init__(self):
        super().__init__()
        self.SQLALCHEMY_DATABASE_URI = 'sqlite:///:memory:'
        self.SQLALCHEMY_ENGINE_OPTIONS = {}
        self.SESSION_COOKIE_SECURE = False
        self.CORS_ORIGINS = ['*']


# Configuration mapping
config = {
    'development': DevelopmentConfig,
    'production': ProductionConfig,
    'testing': TestingConfig,
    'default': DevelopmentConfig,
}


def get_config_name():
    """Detect the environment from process variables"""
    flask_env = os.environ.get('FLASK_ENV', '').lower()
    if flask_env in ['production', 'testing', 'development']:
        return flask_env

    if os.environ.get('TESTING') or os.environ.get('CI'):
        return 'testing'

    return 'development'


__all__ = ['config', 'get_config_name', 'Config']
