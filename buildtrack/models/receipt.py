# buildtrack/models/receipt.py

from datetime import datetime

from .base import db, generate_uuid, format_money, format_quantity, isoformat

RECEIPT_STATUSES = ('pending', 'approved', 'rejected')


class Receipt(db.Model):
    __tablename__ = 'receipts'

    id = db.Column(db.String(36), primary_key=True, default=generate_uuid)
    # Both nullable: a receipt may sit unassigned until someone files it
    project_id = db.Column(db.String(36), db.ForeignKey('projects.id', ondelete='SET NULL'), nullable=True, index=True)
    contract_id = db.Column(db.String(36), db.ForeignKey('contracts.id', ondelete='SET NULL'), nullable=True)
    file_name = db.Column(db.String(255), nullable=False)
    file_path = db.Column(db.String(512), nullable=False)
    vendor = db.Column(db.String(200))
    receipt_date = db.Column(db.DateTime)
    total_amount = db.Column(db.Numeric(12, 2))
    status = db.Column(db.String(20), nullable=False, default='pending')
    parsed_data = db.Column(db.JSON)
    ai_parsed = db.Column(db.Boolean, default=False)
    created_at = db.Column(db.DateTime, default=datetime.utcnow)

    # Relationships
    line_items = db.relationship('ReceiptLineItem', backref='receipt', cascade="all, delete-orphan")

    def to_dict(self):
        return {
            'id': self.id,
            'projectId': self.project_id,
            'contractId': self.contract_id,
            'fileName': self.file_name,
            'filePath': self.file_path,
            'vendor': self.vendor,
            'receiptDate': isoformat(self.receipt_date),
            'totalAmount': format_money(self.total_amount),
            'status': self.status,
            'parsedData': self.parsed_data,
            'aiParsed': bool(self.ai_parsed),
            'createdAt': isoformat(self.created_at),
        }


class ReceiptLineItem(db.Model):
    __tablename__ = 'receipt_line_items'

    id = db.Column(db.String(36), primary_key=True, default=generate_uuid)
    receipt_id = db.Column(db.String(36), db.ForeignKey('receipts.id', ondelete='CASCADE'), nullable=False, index=True)
    description = db.Column(db.Text, nullable=False)
    quantity = db.Column(db.Numeric(10, 2))
    unit_price = db.Column(db.Numeric(10, 2))
    total_price = db.Column(db.Numeric(12, 2), nullable=False)
    sku = db.Column(db.String(50))

    def to_dict(self):
        return {
            'id': self.id,
            'receiptId': self.receipt_id,
            'description': self.description,
            'quantity': format_quantity(self.quantity),
            'unitPrice': format_money(self.unit_price),
            'totalPrice': format_money(self.total_price),
            'sku': self.sku,
        }
