# buildtrack/models/__init__.py

from .base import db

# --- Model Import Order ---
# Parents before children so every foreign key target is registered first.

# 1. Foundational Models
from .user import User
from .client import Client

# 2. Core Business Models
from .project import Project, PROJECT_STATUSES
from .contract import Contract, CONTRACT_TYPES, CONTRACT_STATUSES
from .line_item import LineItem
from .product import Product

# 3. Receipt Models
from .receipt import Receipt, ReceiptLineItem, RECEIPT_STATUSES

__all__ = [
    'db',
    'User',
    'Client',
    'Project',
    'Contract',
    'LineItem',
    'Product',
    'Receipt',
    'ReceiptLineItem',
    'PROJECT_STATUSES',
    'CONTRACT_TYPES',
    'CONTRACT_STATUSES',
    'RECEIPT_STATUSES',
]
