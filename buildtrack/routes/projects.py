# buildtrack/routes/projects.py
from flask import Blueprint, jsonify
from flask_login import login_required, current_user
import logging

from . import get_json_body
from ..errors import AppError, ValidationError
from ..models import db
from ..services.authorization import check_access
from ..services.storage import storage
from ..services.validation import validate_project

projects_bp = Blueprint('projects', __name__)
logger = logging.getLogger(__name__)


@projects_bp.route('', methods=['GET'])
@login_required
def get_projects():
    """Get all projects across the current user's clients"""
    try:
        projects = storage.get_projects(current_user.id)
        return jsonify([project.to_dict() for project in projects])
    except Exception as e:
        logger.error(f"Error retrieving projects for user {current_user.id}: {str(e)}")
        return jsonify({'error': 'Failed to retrieve projects'}), 500


@projects_bp.route('', methods=['POST'])
@login_required
def create_project():
    """Create a new project for one of the user's clients"""
    try:
        fields = validate_project(get_json_body())
        check_access(current_user.id, storage.client_ownership(fields['client_id']))
        project = storage.create_project(fields)
        logger.info(f"Project {project.id} created for client {project.client_id}")
        return jsonify(project.to_dict()), 201
    except AppError:
        raise
    except Exception as e:
        db.session.rollback()
        logger.error(f"Error creating project: {str(e)}")
        return jsonify({'error': 'Failed to create project'}), 500


@projects_bp.route('/<project_id>', methods=['GET'])
@login_required
def get_project(project_id):
    """Get a specific project"""
    try:
        check_access(current_user.id, storage.project_ownership(project_id))
        return jsonify(storage.get_project(project_id).to_dict())
    except AppError:
        raise
    except Exception as e:
        logger.error(f"Error retrieving project {project_id}: {str(e)}")
        return jsonify({'error': 'Failed to retrieve project'}), 500


@projects_bp.route('/<project_id>', methods=['PUT'])
@login_required
def update_project(project_id):
    """Update a project; only the fields sent are changed"""
    try:
        check_access(current_user.id, storage.project_ownership(project_id))
        fields = validate_project(get_json_body(), partial=True)
        if 'client_id' in fields:
            check_access(current_user.id, storage.client_ownership(fields['client_id']))

        project = storage.get_project(project_id)
        start = fields.get('start_date', project.start_date)
        end = fields.get('end_date', project.end_date)
        if start and end and end < start:
            raise ValidationError("'endDate' cannot be before 'startDate'")

        project = storage.update_project(project_id, fields)
        return jsonify(project.to_dict())
    except AppError:
        raise
    except Exception as e:
        db.session.rollback()
        logger.error(f"Error updating project {project_id}: {str(e)}")
        return jsonify({'error': 'Failed to update project'}), 500


@projects_bp.route('/<project_id>', methods=['DELETE'])
@login_required
def delete_project(project_id):
    """Delete a project; its receipts are kept and become unassigned"""
    try:
        check_access(current_user.id, storage.project_ownership(project_id))
        storage.delete_project(project_id)
        logger.info(f"Project {project_id} deleted by user {current_user.id}")
        return jsonify({'message': 'Project deleted successfully'})
    except AppError:
        raise
    except Exception as e:
        db.session.rollback()
        logger.error(f"Error deleting project {project_id}: {str(e)}")
        return jsonify({'error': 'Failed to delete project'}), 500


@projects_bp.route('/<project_id>/contracts', methods=['GET'])
@login_required
def get_project_contracts(project_id):
    """Get all contracts, estimates and change orders of a project"""
    try:
        check_access(current_user.id, storage.project_ownership(project_id))
        contracts = storage.get_contracts(project_id)
        return jsonify([contract.to_dict() for contract in contracts])
    except AppError:
        raise
    except Exception as e:
        logger.error(f"Error retrieving contracts for project {project_id}: {str(e)}")
        return jsonify({'error': 'Failed to retrieve contracts'}), 500
