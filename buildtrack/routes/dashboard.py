# buildtrack/routes/dashboard.py
from flask import Blueprint, jsonify
from flask_login import login_required, current_user
import logging

from ..services.storage import storage

dashboard_bp = Blueprint('dashboard', __name__)
logger = logging.getLogger(__name__)


@dashboard_bp.route('/stats', methods=['GET'])
@login_required
def get_stats():
    """Active projects, pending receipts, approved revenue and change orders"""
    try:
        return jsonify(storage.get_project_stats(current_user.id))
    except Exception as e:
        logger.error(f"Error computing dashboard stats for user {current_user.id}: {str(e)}")
        return jsonify({'error': 'Failed to load dashboard stats'}), 500
