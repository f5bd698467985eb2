# buildtrack/routes/clients.py
from flask import Blueprint, jsonify
from flask_login import login_required, current_user
import logging

from . import get_json_body
from ..errors import AppError
from ..models import db
from ..services.authorization import check_access
from ..services.storage import storage
from ..services.validation import validate_client

clients_bp = Blueprint('clients', __name__)
logger = logging.getLogger(__name__)


@clients_bp.route('', methods=['GET'])
@login_required
def get_clients():
    """Get all clients of the current user"""
    try:
        clients = storage.get_clients(current_user.id)
        return jsonify([client.to_dict() for client in clients])
    except Exception as e:
        logger.error(f"Error retrieving clients for user {current_user.id}: {str(e)}")
        return jsonify({'error': 'Failed to retrieve clients'}), 500


@clients_bp.route('', methods=['POST'])
@login_required
def create_client():
    """Create a new client"""
    try:
        fields = validate_client(get_json_body())
        client = storage.create_client(current_user.id, fields)
        logger.info(f"Client {client.id} created by user {current_user.id}")
        return jsonify(client.to_dict()), 201
    except AppError:
        raise
    except Exception as e:
        db.session.rollback()
        logger.error(f"Error creating client: {str(e)}")
        return jsonify({'error': 'Failed to create client'}), 500


@clients_bp.route('/<client_id>', methods=['GET'])
@login_required
def get_client(client_id):
    """Get a specific client"""
    try:
        check_access(current_user.id, storage.client_ownership(client_id))
        return jsonify(storage.get_client(client_id).to_dict())
    except AppError:
        raise
    except Exception as e:
        logger.error(f"Error retrieving client {client_id}: {str(e)}")
        return jsonify({'error': 'Failed to retrieve client'}), 500


@clients_bp.route('/<client_id>', methods=['PUT'])
@login_required
def update_client(client_id):
    """Update a client; only the fields sent are changed"""
    try:
        check_access(current_user.id, storage.client_ownership(client_id))
        fields = validate_client(get_json_body(), partial=True)
        client = storage.update_client(client_id, fields)
        return jsonify(client.to_dict())
    except AppError:
        raise
    except Exception as e:
        db.session.rollback()
        logger.error(f"Error updating client {client_id}: {str(e)}")
        return jsonify({'error': 'Failed to update client'}), 500


@clients_bp.route('/<client_id>', methods=['DELETE'])
@login_required
def delete_client(client_id):
    """Delete a client with its projects, contracts and line items"""
    try:
        check_access(current_user.id, storage.client_ownership(client_id))
        storage.delete_client(client_id)
        logger.info(f"Client {client_id} deleted by user {current_user.id}")
        return jsonify({'message': 'Client deleted successfully'})
    except AppError:
        raise
    except Exception as e:
        db.session.rollback()
        logger.error(f"Error deleting client {client_id}: {str(e)}")
        return jsonify({'error': 'Failed to delete client'}), 500
