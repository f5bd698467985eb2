# buildtrack/models/project.py

from datetime import datetime

from .base import db, generate_uuid, format_money, isoformat

PROJECT_STATUSES = ('planning', 'active', 'completed', 'on_hold')


class Project(db.Model):
    __tablename__ = 'projects'

    id = db.Column(db.String(36), primary_key=True, default=generate_uuid)
    client_id = db.Column(db.String(36), db.ForeignKey('clients.id', ondelete='CASCADE'), nullable=False, index=True)
    name = db.Column(db.String(200), nullable=False)
    description = db.Column(db.Text)
    status = db.Column(db.String(20), nullable=False, default='planning')
    budget = db.Column(db.Numeric(12, 2))
    actual_cost = db.Column(db.Numeric(12, 2), default=0)
    start_date = db.Column(db.DateTime)
    end_date = db.Column(db.DateTime)
    created_at = db.Column(db.DateTime, default=datetime.utcnow)

    # Relationships
    contracts = db.relationship('Contract', backref='project', cascade="all, delete-orphan")
    # Receipts outlive their project; deleting the project detaches them
    receipts = db.relationship('Receipt', backref='project')

    def to_dict(self):
        return {
            'id': self.id,
            'clientId': self.client_id,
            'name': self.name,
            'description': self.description,
            'status': self.status,
            'budget': format_money(self.budget),
            'actualCost': format_money(self.actual_cost),
            'startDate': isoformat(self.start_date),
            'endDate': isoformat(self.end_date),
            'createdAt': isoformat(self.created_at),
        }
