# buildtrack/models/contract.py

from datetime import datetime

from .base import db, generate_uuid, format_money, isoformat

CONTRACT_TYPES = ('estimate', 'contract')
CONTRACT_STATUSES = ('draft', 'pending', 'approved', 'rejected')


class Contract(db.Model):
    __tablename__ = 'contracts'

    id = db.Column(db.String(36), primary_key=True, default=generate_uuid)
    project_id = db.Column(db.String(36), db.ForeignKey('projects.id', ondelete='CASCADE'), nullable=False, index=True)
    parent_contract_id = db.Column(db.String(36), db.ForeignKey('contracts.id', ondelete='SET NULL'), nullable=True)
    contract_number = db.Column(db.String(50), unique=True, nullable=False)
    title = db.Column(db.String(200), nullable=False)
    type = db.Column(db.String(20), nullable=False, default='estimate')
    is_change_order = db.Column(db.Boolean, nullable=False, default=False)
    status = db.Column(db.String(20), nullable=False, default='draft')
    total_amount = db.Column(db.Numeric(12, 2), nullable=False, default=0)
    contract_date = db.Column(db.DateTime)
    created_at = db.Column(db.DateTime, default=datetime.utcnow)

    # Relationships
    line_items = db.relationship('LineItem', backref='contract', cascade="all, delete-orphan")
    receipts = db.relationship('Receipt', backref='contract')
    change_orders = db.relationship('Contract', backref=db.backref('parent_contract', remote_side=[id]))

    def to_dict(self):
        return {
            'id': self.id,
            'projectId': self.project_id,
            'parentContractId': self.parent_contract_id,
            'contractNumber': self.contract_number,
            'title': self.title,
            'type': self.type,
            'isChangeOrder': bool(self.is_change_order),
            'status': self.status,
            'totalAmount': format_money(self.total_amount),
            'contractDate': isoformat(self.contract_date),
            'createdAt': isoformat(self.created_at),
        }
