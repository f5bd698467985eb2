# buildtrack/routes/receipts.py
"""
Receipt endpoints.

Uploading stores the file, creates a pending receipt and hands parsing to
the background runner; the response does not wait for the parse. Clients
follow progress through the receipt's ``aiParsed``/``parsedData`` fields or
the parse task status endpoint.
"""
import os
import logging

from flask import Blueprint, request, jsonify, current_app
from flask_login import login_required, current_user
from werkzeug.exceptions import HTTPException

from . import get_json_body
from ..errors import AppError, NotFoundError, ValidationError
from ..middleware import limiter, upload_rate_limit
from ..models import db
from ..services.authorization import check_access
from ..services.receipt_upload import save_receipt_file
from ..services.storage import storage
from ..services.validation import optional_identifier, validate_receipt_update

receipts_bp = Blueprint('receipts', __name__)
logger = logging.getLogger(__name__)


def _parse_runner():
    return current_app.extensions['receipt_parse_runner']


def _check_assignment(project_id, contract_id):
    """
    Receipts may only be filed under the caller's own projects and contracts.

    Returns the project the receipt belongs to; a receipt filed under a
    contract alone takes that contract's project.
    """
    if project_id:
        check_access(current_user.id, storage.project_ownership(project_id))
    if contract_id:
        check_access(current_user.id, storage.contract_ownership(contract_id))
        contract_project_id = storage.get_contract(contract_id).project_id
        if project_id and contract_project_id != project_id:
            raise ValidationError("'contractId' does not belong to 'projectId'")
        project_id = contract_project_id
    return project_id


@receipts_bp.route('', methods=['GET'])
@login_required
def get_receipts():
    """Get the user's receipts plus every unassigned receipt"""
    try:
        receipts = storage.get_receipts(current_user.id)
        return jsonify([receipt.to_dict() for receipt in receipts])
    except Exception as e:
        logger.error(f"Error retrieving receipts for user {current_user.id}: {str(e)}")
        return jsonify({'error': 'Failed to retrieve receipts'}), 500


@receipts_bp.route('/upload', methods=['POST'])
@login_required
@limiter.limit(upload_rate_limit)
def upload_receipt():
    """Store an uploaded receipt and queue it for AI parsing"""
    try:
        project_id = optional_identifier(request.form.get('projectId'), 'projectId')
        contract_id = optional_identifier(request.form.get('contractId'), 'contractId')
        project_id = _check_assignment(project_id, contract_id)

        stored = save_receipt_file(
            request.files.get('receipt'),
            current_app.config['RECEIPT_UPLOAD_FOLDER'],
            current_app.config['RECEIPT_MAX_BYTES'],
        )

        receipt = storage.create_receipt({
            'project_id': project_id,
            'contract_id': contract_id,
            'file_name': stored.original_name,
            'file_path': stored.path,
            'status': 'pending',
            'ai_parsed': False,
        })
        result = receipt.to_dict()
        logger.info(f"Receipt {receipt.id} uploaded by user {current_user.id} ({stored.size} bytes)")

        result['parseTaskId'] = _parse_runner().submit(receipt.id, stored.path)
        return jsonify(result), 201
    except (AppError, HTTPException):
        raise
    except Exception as e:
        db.session.rollback()
        logger.error(f"Error uploading receipt: {str(e)}")
        return jsonify({'error': 'Failed to upload receipt'}), 500


@receipts_bp.route('/parse-tasks/<task_id>', methods=['GET'])
@login_required
def get_parse_task(task_id):
    """Status of a background parse task"""
    try:
        task = _parse_runner().status(task_id)
        if task is None:
            raise NotFoundError('Parse task not found')
        check_access(current_user.id, storage.receipt_ownership(task['receiptId']), allow_unassigned=True)
        return jsonify(task)
    except AppError:
        raise
    except Exception as e:
        logger.error(f"Error retrieving parse task {task_id}: {str(e)}")
        return jsonify({'error': 'Failed to retrieve parse task'}), 500


@receipts_bp.route('/<receipt_id>', methods=['GET'])
@login_required
def get_receipt(receipt_id):
    """Get a specific receipt"""
    try:
        check_access(current_user.id, storage.receipt_ownership(receipt_id), allow_unassigned=True)
        return jsonify(storage.get_receipt(receipt_id).to_dict())
    except AppError:
        raise
    except Exception as e:
        logger.error(f"Error retrieving receipt {receipt_id}: {str(e)}")
        return jsonify({'error': 'Failed to retrieve receipt'}), 500


@receipts_bp.route('/<receipt_id>', methods=['PUT'])
@login_required
def update_receipt(receipt_id):
    """Review a receipt: status, vendor, date, total or assignment"""
    try:
        check_access(current_user.id, storage.receipt_ownership(receipt_id), allow_unassigned=True)
        fields = validate_receipt_update(get_json_body())

        receipt = storage.get_receipt(receipt_id)
        requested_project_id = fields.get('project_id', receipt.project_id)
        project_id = _check_assignment(requested_project_id, fields.get('contract_id', receipt.contract_id))
        if project_id != requested_project_id:
            fields['project_id'] = project_id

        receipt = storage.update_receipt(receipt_id, fields)
        logger.info(f"Receipt {receipt_id} updated by user {current_user.id}")
        return jsonify(receipt.to_dict())
    except AppError:
        raise
    except Exception as e:
        db.session.rollback()
        logger.error(f"Error updating receipt {receipt_id}: {str(e)}")
        return jsonify({'error': 'Failed to update receipt'}), 500


@receipts_bp.route('/<receipt_id>', methods=['DELETE'])
@login_required
def delete_receipt(receipt_id):
    """Delete a receipt record; the stored file is left in place"""
    try:
        check_access(current_user.id, storage.receipt_ownership(receipt_id), allow_unassigned=True)
        storage.delete_receipt(receipt_id)
        logger.info(f"Receipt {receipt_id} deleted by user {current_user.id}")
        return jsonify({'message': 'Receipt deleted successfully'})
    except AppError:
        raise
    except Exception as e:
        db.session.rollback()
        logger.error(f"Error deleting receipt {receipt_id}: {str(e)}")
        return jsonify({'error': 'Failed to delete receipt'}), 500


@receipts_bp.route('/<receipt_id>/line-items', methods=['GET'])
@login_required
def get_receipt_line_items(receipt_id):
    """Get the line items extracted from a receipt"""
    try:
        check_access(current_user.id, storage.receipt_ownership(receipt_id), allow_unassigned=True)
        line_items = storage.get_receipt_line_items(receipt_id)
        return jsonify([item.to_dict() for item in line_items])
    except AppError:
        raise
    except Exception as e:
        logger.error(f"Error retrieving line items for receipt {receipt_id}: {str(e)}")
        return jsonify({'error': 'Failed to retrieve receipt line items'}), 500


@receipts_bp.route('/<receipt_id>/parse', methods=['POST'])
@login_required
def reparse_receipt(receipt_id):
    """Run AI parsing again; new line items are added alongside any existing ones"""
    try:
        check_access(current_user.id, storage.receipt_ownership(receipt_id), allow_unassigned=True)
        receipt = storage.get_receipt(receipt_id)
        if not os.path.exists(receipt.file_path):
            raise NotFoundError('Receipt file not found')

        task_id = _parse_runner().submit(receipt.id, receipt.file_path)
        return jsonify({'parseTaskId': task_id, 'receiptId': receipt.id}), 202
    except AppError:
        raise
    except Exception as e:
        logger.error(f"Error queueing parse for receipt {receipt_id}: {str(e)}")
        return jsonify({'error': 'Failed to queue receipt parsing'}), 500
