# buildtrack/services/storage.py
"""
Repository-style access to the BuildTrack tables.

Routes and the receipt pipeline go through ``DatabaseStorage`` rather than
querying models directly. Every write commits its own session unless noted;
``apply_receipt_extraction`` is the one multi-row write and commits once.
"""
import logging
import re
from difflib import SequenceMatcher

from flask import current_app
from sqlalchemy import func, or_
from sqlalchemy.exc import IntegrityError

from ..errors import NotFoundError, ValidationError
from ..models import (
    db, User, Client, Project, Contract, LineItem, Receipt, ReceiptLineItem, Product,
)
from .authorization import Ownership
from .date_utils import current_year

logger = logging.getLogger(__name__)

PARSE_FAILURE_MARKER = {'error': 'AI parsing failed'}
SIMILARITY_THRESHOLD = 0.6
MAX_SIMILAR_PRODUCTS = 10


def _apply_fields(instance, fields):
    for attribute, value in fields.items():
        setattr(instance, attribute, value)


def _sku_prefix(category):
    letters = re.sub(r'[^A-Za-z0-9]', '', category or '')
    return (letters[:3] or 'GEN').upper()


def _contract_prefix(contract_type, is_change_order):
    if is_change_order:
        return 'CHG'
    if contract_type == 'contract':
        return 'CON'
    return 'EST'


class DatabaseStorage:
    """CRUD and aggregate queries over the Flask-SQLAlchemy session."""

    def __init__(self, session=None):
        self._session = session

    @property
    def session(self):
        return self._session if self._session is not None else db.session

    def _commit(self, duplicate_message=None):
        try:
            self.session.commit()
        except IntegrityError as e:
            self.session.rollback()
            logger.warning(f"Integrity error on commit: {e.orig}")
            raise ValidationError(duplicate_message or 'Record conflicts with existing data')
        except Exception:
            self.session.rollback()
            raise

    def _get_or_raise(self, model, record_id, label):
        instance = self.session.get(model, record_id)
        if instance is None:
            raise NotFoundError(f"{label} not found")
        return instance

    def _delete(self, model, record_id, label):
        instance = self._get_or_raise(model, record_id, label)
        self.session.delete(instance)
        self._commit()

    # --- Users -------------------------------------------------------------

    def get_user(self, user_id):
        return self.session.get(User, user_id)

    def get_user_by_email(self, email):
        return User.query.filter(func.lower(User.email) == email.lower()).first()

    def create_user(self, email, password, first_name=None, last_name=None):
        user = User(email=email, first_name=first_name, last_name=last_name)
        user.set_password(password)
        self.session.add(user)
        self._commit('An account with this email already exists')
        return user

    # --- Clients -----------------------------------------------------------

    def get_clients(self, user_id):
        return (Client.query
                .filter(Client.user_id == user_id)
                .order_by(Client.created_at.desc())
                .all())

    def get_client(self, client_id):
        return self.session.get(Client, client_id)

    def create_client(self, user_id, fields):
        client = Client(user_id=user_id, **fields)
        self.session.add(client)
        self._commit()
        return client

    def update_client(self, client_id, fields):
        client = self._get_or_raise(Client, client_id, 'Client')
        _apply_fields(client, fields)
        self._commit()
        return client

    def delete_client(self, client_id):
        self._delete(Client, client_id, 'Client')

    # --- Projects ----------------------------------------------------------

    def get_projects(self, user_id):
        return (Project.query
                .join(Client, Project.client_id == Client.id)
                .filter(Client.user_id == user_id)
                .order_by(Project.created_at.desc())
                .all())

    def get_project(self, project_id):
        return self.session.get(Project, project_id)

    def create_project(self, fields):
        project = Project(**fields)
        self.session.add(project)
        self._commit()
        return project

    def update_project(self, project_id, fields):
        project = self._get_or_raise(Project, project_id, 'Project')
        _apply_fields(project, fields)
        self._commit()
        return project

    def delete_project(self, project_id):
        self._delete(Project, project_id, 'Project')

    # --- Contracts ---------------------------------------------------------

    def get_contracts(self, project_id):
        return (Contract.query
                .filter(Contract.project_id == project_id)
                .order_by(Contract.created_at.desc())
                .all())

    def get_contract(self, contract_id):
        return self.session.get(Contract, contract_id)

    def generate_contract_number(self, contract_type='estimate', is_change_order=False, year=None):
        """Next free number like EST-2024-002, CON-2024-001 or CHG-2024-001."""
        year = year or current_year(current_app.config.get('TIMEZONE', 'America/Los_Angeles'))
        prefix = f"{_contract_prefix(contract_type, is_change_order)}-{year}"
        sequence = Contract.query.filter(Contract.contract_number.like(f'{prefix}-%')).count() + 1
        while True:
            number = f"{prefix}-{sequence:03d}"
            if not Contract.query.filter_by(contract_number=number).first():
                return number
            sequence += 1

    def create_contract(self, fields):
        fields = dict(fields)
        if not fields.get('contract_number'):
            fields['contract_number'] = self.generate_contract_number(
                fields.get('type', 'estimate'), fields.get('is_change_order', False)
            )
        contract = Contract(**fields)
        self.session.add(contract)
        self._commit('Contract number already exists')
        return contract

    def update_contract(self, contract_id, fields):
        contract = self._get_or_raise(Contract, contract_id, 'Contract')
        _apply_fields(contract, fields)
        self._commit('Contract number already exists')
        return contract

    def delete_contract(self, contract_id):
        self._delete(Contract, contract_id, 'Contract')

    # --- Line Items --------------------------------------------------------

    def get_line_items(self, contract_id):
        return (LineItem.query
                .filter(LineItem.contract_id == contract_id)
                .order_by(LineItem.created_at.asc())
                .all())

    def get_line_item(self, line_item_id):
        return self.session.get(LineItem, line_item_id)

    def create_line_item(self, fields):
        line_item = LineItem(**fields)
        self.session.add(line_item)
        self._commit()
        return line_item

    def update_line_item(self, line_item_id, fields):
        line_item = self._get_or_raise(LineItem, line_item_id, 'Line item')
        _apply_fields(line_item, fields)
        self._commit()
        return line_item

    def delete_line_item(self, line_item_id):
        self._delete(LineItem, line_item_id, 'Line item')

    # --- Receipts ----------------------------------------------------------

    def get_receipts(self, user_id):
        # Receipts with no project are listed for every user (unassigned inbox)
        return (Receipt.query
                .outerjoin(Project, Receipt.project_id == Project.id)
                .outerjoin(Client, Project.client_id == Client.id)
                .filter(or_(Client.user_id == user_id, Receipt.project_id.is_(None)))
                .order_by(Receipt.created_at.desc())
                .all())

    def get_receipt(self, receipt_id):
        return self.session.get(Receipt, receipt_id)

    def create_receipt(self, fields):
        receipt = Receipt(**fields)
        self.session.add(receipt)
        self._commit()
        return receipt

    def update_receipt(self, receipt_id, fields):
        receipt = self._get_or_raise(Receipt, receipt_id, 'Receipt')
        _apply_fields(receipt, fields)
        self._commit()
        return receipt

    def delete_receipt(self, receipt_id):
        # The uploaded file stays on disk
        self._delete(Receipt, receipt_id, 'Receipt')

    def apply_receipt_extraction(self, receipt_id, fields, line_items):
        """
        Write a successful extraction back in a single transaction.

        Updates the receipt columns in ``fields`` and inserts one
        ReceiptLineItem per dict in ``line_items``. Either everything is
        committed or nothing is.
        """
        receipt = self._get_or_raise(Receipt, receipt_id, 'Receipt')
        try:
            _apply_fields(receipt, fields)
            for item in line_items:
                self.session.add(ReceiptLineItem(receipt_id=receipt.id, **item))
            self.session.commit()
        except Exception:
            self.session.rollback()
            raise
        return receipt

    def mark_receipt_parse_failed(self, receipt_id):
        receipt = self._get_or_raise(Receipt, receipt_id, 'Receipt')
        receipt.ai_parsed = False
        receipt.parsed_data = dict(PARSE_FAILURE_MARKER)
        self._commit()
        return receipt

    # --- Receipt Line Items ------------------------------------------------

    def get_receipt_line_items(self, receipt_id):
        return ReceiptLineItem.query.filter(ReceiptLineItem.receipt_id == receipt_id).all()

    def create_receipt_line_item(self, fields):
        line_item = ReceiptLineItem(**fields)
        self.session.add(line_item)
        self._commit()
        return line_item

    def update_receipt_line_item(self, line_item_id, fields):
        line_item = self._get_or_raise(ReceiptLineItem, line_item_id, 'Receipt line item')
        _apply_fields(line_item, fields)
        self._commit()
        return line_item

    def delete_receipt_line_item(self, line_item_id):
        self._delete(ReceiptLineItem, line_item_id, 'Receipt line item')

    # --- Products ----------------------------------------------------------

    def get_products(self, user_id):
        return (Product.query
                .filter(Product.user_id == user_id)
                .order_by(Product.name.asc())
                .all())

    def get_product(self, product_id):
        return self.session.get(Product, product_id)

    def generate_next_sku(self, user_id, category=None):
        """
        Next SKU for ``category`` in the owner's catalogue, e.g. LUM-0003.

        The counter starts after the owner's existing products with the
        same prefix and is bumped until the SKU is unused.
        """
        prefix = _sku_prefix(category)
        sequence = (Product.query
                    .filter(Product.user_id == user_id, Product.sku.like(f'{prefix}-%'))
                    .count()) + 1
        while True:
            sku = f"{prefix}-{sequence:04d}"
            if not Product.query.filter_by(sku=sku).first():
                return sku
            sequence += 1

    def create_product(self, user_id, fields):
        fields = dict(fields)
        if not fields.get('sku'):
            fields['sku'] = self.generate_next_sku(user_id, fields.get('category'))
        product = Product(user_id=user_id, **fields)
        self.session.add(product)
        self._commit('SKU already exists')
        return product

    def update_product(self, product_id, fields):
        product = self._get_or_raise(Product, product_id, 'Product')
        _apply_fields(product, fields)
        self._commit('SKU already exists')
        return product

    def delete_product(self, product_id):
        self._delete(Product, product_id, 'Product')

    def find_similar_products(self, user_id, name, limit=MAX_SIMILAR_PRODUCTS):
        """
        Products of ``user_id`` whose names resemble ``name``.

        Case-insensitive substring matches (either direction) are always
        returned first; other names qualify on SequenceMatcher ratio.
        """
        needle = (name or '').strip().lower()
        if not needle:
            return []

        scored = []
        for product in self.get_products(user_id):
            candidate = (product.name or '').lower()
            is_substring = needle in candidate or candidate in needle
            ratio = SequenceMatcher(None, needle, candidate).ratio()
            if is_substring or ratio >= SIMILARITY_THRESHOLD:
                scored.append((is_substring, ratio, product))

        scored.sort(key=lambda entry: (entry[0], entry[1]), reverse=True)
        return [product for _, _, product in scored[:limit]]

    # --- Ownership lookups ---------------------------------------------------

    def client_ownership(self, client_id):
        client = self.get_client(client_id)
        if client is None:
            return Ownership.missing('client', client_id)
        return Ownership('client', client_id, True, client.user_id)

    def project_ownership(self, project_id):
        row = (self.session.query(Project.id, Client.user_id)
               .join(Client, Project.client_id == Client.id)
               .filter(Project.id == project_id)
               .first())
        if row is None:
            return Ownership.missing('project', project_id)
        return Ownership('project', project_id, True, row.user_id)

    def contract_ownership(self, contract_id):
        row = (self.session.query(Contract.id, Client.user_id)
               .join(Project, Contract.project_id == Project.id)
               .join(Client, Project.client_id == Client.id)
               .filter(Contract.id == contract_id)
               .first())
        if row is None:
            return Ownership.missing('contract', contract_id)
        return Ownership('contract', contract_id, True, row.user_id)

    def line_item_ownership(self, line_item_id):
        line_item = self.get_line_item(line_item_id)
        if line_item is None:
            return Ownership.missing('line item', line_item_id)
        contract = self.contract_ownership(line_item.contract_id)
        return Ownership('line item', line_item_id, True, contract.owner_id)

    def product_ownership(self, product_id):
        product = self.get_product(product_id)
        if product is None:
            return Ownership.missing('product', product_id)
        return Ownership('product', product_id, True, product.user_id)

    def receipt_ownership(self, receipt_id):
        receipt = self.get_receipt(receipt_id)
        if receipt is None:
            return Ownership.missing('receipt', receipt_id)
        if receipt.project_id:
            owner_id = self.project_ownership(receipt.project_id).owner_id
        elif receipt.contract_id:
            owner_id = self.contract_ownership(receipt.contract_id).owner_id
        else:
            owner_id = None
        return Ownership('receipt', receipt_id, True, owner_id)

    # --- Dashboard ---------------------------------------------------------

    def get_project_stats(self, user_id):
        """Headline numbers for the dashboard, recomputed on every call."""
        active_projects = (self.session.query(func.count(Project.id))
                           .join(Client, Project.client_id == Client.id)
                           .filter(Client.user_id == user_id, Project.status == 'active')
                           .scalar())

        pending_receipts = (self.session.query(func.count(Receipt.id))
                            .join(Project, Receipt.project_id == Project.id)
                            .join(Client, Project.client_id == Client.id)
                            .filter(Client.user_id == user_id, Receipt.status == 'pending')
                            .scalar())

        total_revenue = (self.session.query(func.sum(Contract.total_amount))
                         .join(Project, Contract.project_id == Project.id)
                         .join(Client, Project.client_id == Client.id)
                         .filter(Client.user_id == user_id, Contract.status == 'approved')
                         .scalar())

        change_orders = (self.session.query(func.count(Contract.id))
                         .join(Project, Contract.project_id == Project.id)
                         .join(Client, Project.client_id == Client.id)
                         .filter(Client.user_id == user_id, Contract.is_change_order.is_(True))
                         .scalar())

        return {
            'activeProjects': active_projects or 0,
            'pendingReceipts': pending_receipts or 0,
            'totalRevenue': float(total_revenue or 0),
            'changeOrders': change_orders or 0,
        }


storage = DatabaseStorage()
