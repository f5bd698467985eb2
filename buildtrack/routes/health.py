# buildtrack/routes/health.py
from datetime import datetime

from flask import Blueprint, jsonify, current_app
from sqlalchemy import text

from ..middleware import limiter
from ..models import db

health_bp = Blueprint('health', __name__)

EXPECTED_BLUEPRINTS = ('auth', 'clients', 'projects', 'contracts', 'line_items', 'receipts', 'products', 'dashboard')


@health_bp.route('/health', methods=['GET'])
@limiter.exempt
def health_check():
    """
    Health check endpoint to verify service status.
    Tests database connectivity, configuration and registered blueprints.
    """
    health_status = {
        'status': 'healthy',
        'app': 'BuildTrack API',
        'timestamp': datetime.utcnow().isoformat() + 'Z',
        'checks': {},
    }
    overall_healthy = True

    # Database
    try:
        db.session.execute(text('SELECT 1'))
        db_url = current_app.config.get('SQLALCHEMY_DATABASE_URI', '').lower()
        if db_url.startswith('sqlite'):
            db_type = 'SQLite'
        elif db_url.startswith('postgresql'):
            db_type = 'PostgreSQL'
        else:
            db_type = 'Unknown'
        health_status['checks']['database'] = {'status': 'healthy', 'type': db_type, 'connected': True}
    except Exception as db_error:
        db.session.rollback()
        current_app.logger.error(f"Database health check failed: {db_error}")
        health_status['checks']['database'] = {'status': 'unhealthy', 'connected': False}
        overall_healthy = False

    # Configuration
    config_issues = []
    if not current_app.config.get('OPENAI_API_KEY'):
        config_issues.append('Missing OPENAI_API_KEY')
    if not current_app.config.get('CORS_ORIGINS'):
        config_issues.append('No CORS origins configured')
    health_status['checks']['configuration'] = {
        'status': 'healthy' if not config_issues else 'warning',
        'issues': config_issues,
    }

    # Application
    registered = list(current_app.blueprints)
    missing = [name for name in EXPECTED_BLUEPRINTS if name not in registered]
    health_status['checks']['application'] = {
        'status': 'healthy' if not missing else 'warning',
        'blueprints': {'registered': registered, 'missing': missing},
        'apiRoutes': len([rule for rule in current_app.url_map.iter_rules() if rule.rule.startswith('/api/')]),
    }

    status_code = 200
    if not overall_healthy:
        health_status['status'] = 'unhealthy'
        status_code = 503
    elif any(check['status'] == 'warning' for check in health_status['checks'].values()):
        health_status['status'] = 'degraded'

    current_app.logger.debug(f"Health check completed: {health_status['status']}")
    return jsonify(health_status), status_code
