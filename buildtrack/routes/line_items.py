# buildtrack/routes/line_items.py
from flask import Blueprint, jsonify
from flask_login import login_required, current_user
import logging

from . import get_json_body
from ..errors import AppError
from ..models import db
from ..services.authorization import check_access
from ..services.storage import storage
from ..services.validation import validate_line_item

line_items_bp = Blueprint('line_items', __name__)
logger = logging.getLogger(__name__)


@line_items_bp.route('', methods=['POST'])
@login_required
def create_line_item():
    """Add a line item to a contract"""
    try:
        fields = validate_line_item(get_json_body())
        check_access(current_user.id, storage.contract_ownership(fields['contract_id']))
        line_item = storage.create_line_item(fields)
        return jsonify(line_item.to_dict()), 201
    except AppError:
        raise
    except Exception as e:
        db.session.rollback()
        logger.error(f"Error creating line item: {str(e)}")
        return jsonify({'error': 'Failed to create line item'}), 500


@line_items_bp.route('/<line_item_id>', methods=['PUT'])
@login_required
def update_line_item(line_item_id):
    """Update a line item"""
    try:
        check_access(current_user.id, storage.line_item_ownership(line_item_id))
        fields = validate_line_item(get_json_body(), partial=True)
        if 'contract_id' in fields:
            check_access(current_user.id, storage.contract_ownership(fields['contract_id']))
        line_item = storage.update_line_item(line_item_id, fields)
        return jsonify(line_item.to_dict())
    except AppError:
        raise
    except Exception as e:
        db.session.rollback()
        logger.error(f"Error updating line item {line_item_id}: {str(e)}")
        return jsonify({'error': 'Failed to update line item'}), 500


@line_items_bp.route('/<line_item_id>', methods=['DELETE'])
@login_required
def delete_line_item(line_item_id):
    """Delete a line item"""
    try:
        check_access(current_user.id, storage.line_item_ownership(line_item_id))
        storage.delete_line_item(line_item_id)
        return jsonify({'message': 'Line item deleted successfully'})
    except AppError:
        raise
    except Exception as e:
        db.session.rollback()
        logger.error(f"Error deleting line item {line_item_id}: {str(e)}")
        return jsonify({'error': 'Failed to delete line item'}), 500
