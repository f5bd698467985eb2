# buildtrack/models/product.py

from datetime import datetime

from .base import db, generate_uuid, format_money, isoformat


class Product(db.Model):
    __tablename__ = 'products'

    id = db.Column(db.String(36), primary_key=True, default=generate_uuid)
    user_id = db.Column(db.String(36), db.ForeignKey('users.id', ondelete='CASCADE'), nullable=False, index=True)
    sku = db.Column(db.String(50), unique=True, nullable=False)
    name = db.Column(db.String(200), nullable=False)
    description = db.Column(db.String(500))
    category = db.Column(db.String(100))
    unit_price = db.Column(db.Numeric(10, 2))
    unit = db.Column(db.String(30), default='each')  # each, linear ft, sq ft, etc.
    created_at = db.Column(db.DateTime, default=datetime.utcnow)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    def to_dict(self):
        return {
            'id': self.id,
            'userId': self.user_id,
            'sku': self.sku,
            'name': self.name,
            'description': self.description,
            'category': self.category,
            'unitPrice': format_money(self.unit_price),
            'unit': self.unit,
            'createdAt': isoformat(self.created_at),
            'updatedAt': isoformat(self.updated_at),
        }
