# buildtrack/routes/auth.py
from flask import Blueprint, jsonify, session
from flask_login import login_user, logout_user, login_required, current_user
from datetime import datetime
import logging

from . import get_json_body
from ..errors import AppError, ValidationError
from ..models import db
from ..services.storage import storage
from ..services.validation import email_address, optional_text

auth_bp = Blueprint('auth', __name__)
logger = logging.getLogger(__name__)

MIN_PASSWORD_LENGTH = 8


def _credentials(data):
    email = email_address(data.get('email'), 'email')
    password = data.get('password')
    if not email or not isinstance(password, str) or not password:
        raise ValidationError('Email and password are required')
    return email.lower(), password


@auth_bp.route('/register', methods=['POST'])
def register():
    """Create an account and sign it in"""
    try:
        data = get_json_body()
        email, password = _credentials(data)
        if len(password) < MIN_PASSWORD_LENGTH:
            raise ValidationError(f'Password must be at least {MIN_PASSWORD_LENGTH} characters')
        if storage.get_user_by_email(email):
            raise ValidationError('An account with this email already exists')

        user = storage.create_user(
            email,
            password,
            first_name=optional_text(data.get('firstName'), 'firstName'),
            last_name=optional_text(data.get('lastName'), 'lastName'),
        )
        login_user(user, remember=True)
        logger.info(f"Registered user {user.id}")
        return jsonify({'message': 'Registration successful', 'user': user.to_dict()}), 201
    except AppError:
        raise
    except Exception as e:
        db.session.rollback()
        logger.error(f"Error registering user: {str(e)}")
        return jsonify({'error': 'Registration failed'}), 500


@auth_bp.route('/login', methods=['POST'])
def login():
    """Sign in with email and password"""
    try:
        email, password = _credentials(get_json_body())
        logger.info(f"Login attempt for '{email}'")

        user = storage.get_user_by_email(email)
        if not user or not user.check_password(password):
            logger.warning(f"Login failed: invalid credentials for '{email}'")
            return jsonify({'error': 'Invalid email or password'}), 401

        if not user.is_active:
            logger.warning(f"Login failed: user {user.id} is inactive")
            return jsonify({'error': 'Account is disabled'}), 401

        try:
            user.last_login = datetime.utcnow()
            db.session.commit()
        except Exception as update_error:
            db.session.rollback()
            logger.error(f"Database error updating last login for user {user.id}: {update_error}")

        login_user(user, remember=True)
        logger.info(f"Login successful for user {user.id}")
        return jsonify({'message': 'Login successful', 'user': user.to_dict()})
    except AppError:
        raise
    except Exception as e:
        logger.error(f"Unexpected login error: {e}")
        return jsonify({'error': 'Login failed due to server error'}), 500


@auth_bp.route('/logout', methods=['POST'])
def logout():
    """End the session; safe to call when already signed out"""
    was_authenticated = current_user.is_authenticated
    if was_authenticated:
        logger.info(f"Logout for user {current_user.id}")
    session.clear()
    # logout_user flags the remember-me cookie for deletion in the fresh session
    logout_user()
    return jsonify({'message': 'Logout successful', 'success': True, 'wasAuthenticated': was_authenticated})


@auth_bp.route('/user', methods=['GET'])
@login_required
def get_current_user():
    """Get the signed-in user"""
    return jsonify(current_user.to_dict())
