# buildtrack/middleware/rate_limit.py

import logging

from flask import current_app, jsonify, request
from flask_limiter import Limiter
from flask_limiter.util import get_remote_address
from flask_login import current_user

logger = logging.getLogger(__name__)

UPLOAD_ENDPOINT = 'receipts.upload_receipt'


def rate_limit_key():
    """Limit signed-in users by account, everyone else by address."""
    if current_user and current_user.is_authenticated:
        return f"user:{current_user.get_id()}"
    return get_remote_address()


# General API limit comes from RATELIMIT_DEFAULT in config
limiter = Limiter(key_func=rate_limit_key)


def upload_rate_limit():
    return current_app.config.get('UPLOAD_RATE_LIMIT', '10 per 15 minutes')


def rate_limit_exceeded(error):
    """JSON 429 instead of Flask-Limiter's HTML page"""
    logger.warning(f"Rate limit exceeded for {rate_limit_key()} on {request.path}: {error}")
    if request.endpoint == UPLOAD_ENDPOINT:
        message = 'Too many uploads, please try again later'
    else:
        message = 'Too many requests, please try again later'
    return jsonify({
        'error': 'Too Many Requests',
        'message': message,
        'code': 'RATE_LIMITED',
    }), 429
