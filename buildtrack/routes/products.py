# buildtrack/routes/products.py
from flask import Blueprint, jsonify
from flask_login import login_required, current_user
import logging

from . import get_json_body
from ..errors import AppError
from ..models import db
from ..services.authorization import check_access
from ..services.storage import storage
from ..services.validation import validate_product

products_bp = Blueprint('products', __name__)
logger = logging.getLogger(__name__)


@products_bp.route('', methods=['GET'])
@login_required
def get_products():
    """Get the current user's product catalogue"""
    try:
        products = storage.get_products(current_user.id)
        return jsonify([product.to_dict() for product in products])
    except Exception as e:
        logger.error(f"Error retrieving products for user {current_user.id}: {str(e)}")
        return jsonify({'error': 'Failed to retrieve products'}), 500


@products_bp.route('', methods=['POST'])
@login_required
def create_product():
    """Create a product; a SKU is assigned from the category when none is given"""
    try:
        fields = validate_product(get_json_body())
        product = storage.create_product(current_user.id, fields)
        logger.info(f"Product {product.sku} created by user {current_user.id}")
        return jsonify(product.to_dict()), 201
    except AppError:
        raise
    except Exception as e:
        db.session.rollback()
        logger.error(f"Error creating product: {str(e)}")
        return jsonify({'error': 'Failed to create product'}), 500


@products_bp.route('/similar/<path:name>', methods=['GET'])
@login_required
def get_similar_products(name):
    """Products with names close to the given one, best matches first"""
    try:
        products = storage.find_similar_products(current_user.id, name)
        return jsonify([product.to_dict() for product in products])
    except Exception as e:
        logger.error(f"Error finding products similar to '{name}': {str(e)}")
        return jsonify({'error': 'Failed to find similar products'}), 500


@products_bp.route('/<product_id>', methods=['GET'])
@login_required
def get_product(product_id):
    """Get a specific product"""
    try:
        check_access(current_user.id, storage.product_ownership(product_id))
        return jsonify(storage.get_product(product_id).to_dict())
    except AppError:
        raise
    except Exception as e:
        logger.error(f"Error retrieving product {product_id}: {str(e)}")
        return jsonify({'error': 'Failed to retrieve product'}), 500


@products_bp.route('/<product_id>', methods=['PUT'])
@login_required
def update_product(product_id):
    """Update a product"""
    try:
        check_access(current_user.id, storage.product_ownership(product_id))
        fields = validate_product(get_json_body(), partial=True)
        if 'sku' in fields and not fields['sku']:
            fields.pop('sku')
        product = storage.update_product(product_id, fields)
        return jsonify(product.to_dict())
    except AppError:
        raise
    except Exception as e:
        db.session.rollback()
        logger.error(f"Error updating product {product_id}: {str(e)}")
        return jsonify({'error': 'Failed to update product'}), 500


@products_bp.route('/<product_id>', methods=['DELETE'])
@login_required
def delete_product(product_id):
    """Delete a product"""
    try:
        check_access(current_user.id, storage.product_ownership(product_id))
        storage.delete_product(product_id)
        return jsonify({'message': 'Product deleted successfully'})
    except AppError:
        raise
    except Exception as e:
        db.session.rollback()
        logger.error(f"Error deleting product {product_id}: {str(e)}")
        return jsonify({'error': 'Failed to delete product'}), 500
