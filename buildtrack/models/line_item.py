# buildtrack/models/line_item.py

from datetime import datetime

from .base import db, generate_uuid, format_money, format_quantity, isoformat


class LineItem(db.Model):
    __tablename__ = 'line_items'

    id = db.Column(db.String(36), primary_key=True, default=generate_uuid)
    contract_id = db.Column(db.String(36), db.ForeignKey('contracts.id', ondelete='CASCADE'), nullable=False, index=True)
    sku = db.Column(db.String(50))
    description = db.Column(db.Text, nullable=False)
    quantity = db.Column(db.Numeric(10, 2), nullable=False)
    unit_price = db.Column(db.Numeric(10, 2), nullable=False)
    # Expected to equal quantity * unit_price, not enforced
    total_price = db.Column(db.Numeric(12, 2), nullable=False)
    notes = db.Column(db.Text)
    created_at = db.Column(db.DateTime, default=datetime.utcnow)

    def to_dict(self):
        return {
            'id': self.id,
            'contractId': self.contract_id,
            'sku': self.sku,
            'description': self.description,
            'quantity': format_quantity(self.quantity),
            'unitPrice': format_money(self.unit_price),
            'totalPrice': format_money(self.total_price),
            'notes': self.notes,
            'createdAt': isoformat(self.created_at),
        }
