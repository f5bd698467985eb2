# buildtrack/routes/contracts.py
from flask import Blueprint, jsonify
from flask_login import login_required, current_user
import logging

from . import get_json_body
from ..errors import AppError, ValidationError
from ..models import db
from ..services.authorization import check_access
from ..services.storage import storage
from ..services.validation import validate_contract

contracts_bp = Blueprint('contracts', __name__)
logger = logging.getLogger(__name__)


def _check_parent_contract(parent_contract_id, project_id, contract_id=None):
    """A change order's parent must be another contract of the same project."""
    if not parent_contract_id:
        return
    if parent_contract_id == contract_id:
        raise ValidationError('A contract cannot be its own parent')
    parent = storage.get_contract(parent_contract_id)
    if parent is None or parent.project_id != project_id:
        raise ValidationError("'parentContractId' must reference a contract of the same project")


@contracts_bp.route('', methods=['POST'])
@login_required
def create_contract():
    """Create an estimate, contract or change order"""
    try:
        fields = validate_contract(get_json_body())
        check_access(current_user.id, storage.project_ownership(fields['project_id']))
        _check_parent_contract(fields.get('parent_contract_id'), fields['project_id'])

        contract = storage.create_contract(fields)
        logger.info(f"Contract {contract.contract_number} ({contract.id}) created for project {contract.project_id}")
        return jsonify(contract.to_dict()), 201
    except AppError:
        raise
    except Exception as e:
        db.session.rollback()
        logger.error(f"Error creating contract: {str(e)}")
        return jsonify({'error': 'Failed to create contract'}), 500


@contracts_bp.route('/<contract_id>', methods=['GET'])
@login_required
def get_contract(contract_id):
    """Get a specific contract"""
    try:
        check_access(current_user.id, storage.contract_ownership(contract_id))
        return jsonify(storage.get_contract(contract_id).to_dict())
    except AppError:
        raise
    except Exception as e:
        logger.error(f"Error retrieving contract {contract_id}: {str(e)}")
        return jsonify({'error': 'Failed to retrieve contract'}), 500


@contracts_bp.route('/<contract_id>', methods=['PUT'])
@login_required
def update_contract(contract_id):
    """Update a contract; only the fields sent are changed"""
    try:
        check_access(current_user.id, storage.contract_ownership(contract_id))
        fields = validate_contract(get_json_body(), partial=True)
        if 'contract_number' in fields and not fields['contract_number']:
            raise ValidationError("'contractNumber' cannot be empty")
        if 'project_id' in fields:
            check_access(current_user.id, storage.project_ownership(fields['project_id']))

        contract = storage.get_contract(contract_id)
        _check_parent_contract(
            fields.get('parent_contract_id', contract.parent_contract_id),
            fields.get('project_id', contract.project_id),
            contract_id,
        )

        contract = storage.update_contract(contract_id, fields)
        return jsonify(contract.to_dict())
    except AppError:
        raise
    except Exception as e:
        db.session.rollback()
        logger.error(f"Error updating contract {contract_id}: {str(e)}")
        return jsonify({'error': 'Failed to update contract'}), 500


@contracts_bp.route('/<contract_id>', methods=['DELETE'])
@login_required
def delete_contract(contract_id):
    """Delete a contract and its line items"""
    try:
        check_access(current_user.id, storage.contract_ownership(contract_id))
        storage.delete_contract(contract_id)
        logger.info(f"Contract {contract_id} deleted by user {current_user.id}")
        return jsonify({'message': 'Contract deleted successfully'})
    except AppError:
        raise
    except Exception as e:
        db.session.rollback()
        logger.error(f"Error deleting contract {contract_id}: {str(e)}")
        return jsonify({'error': 'Failed to delete contract'}), 500


@contracts_bp.route('/<contract_id>/line-items', methods=['GET'])
@login_required
def get_contract_line_items(contract_id):
    """Get the line items of a contract"""
    try:
        check_access(current_user.id, storage.contract_ownership(contract_id))
        line_items = storage.get_line_items(contract_id)
        return jsonify([item.to_dict() for item in line_items])
    except AppError:
        raise
    except Exception as e:
        logger.error(f"Error retrieving line items for contract {contract_id}: {str(e)}")
        return jsonify({'error': 'Failed to retrieve line items'}), 500
