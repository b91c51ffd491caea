from booking import db
from datetime import datetime

class Service(db.Model):
    __tablename__ = 'services'

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(100), nullable=False)
    description = db.Column(db.Text, nullable=True)
    price = db.Column(db.Numeric(10, 2), nullable=False, default=0)
    duration_minutes = db.Column(db.Integer, nullable=False)  # Duration in minutes
    provider_id = db.Column(db.Integer, nullable=True)
    is_active = db.Column(db.Boolean, default=True)
    created_at = db.Column(db.DateTime, default=datetime.utcnow)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    def __init__(self, name, duration_minutes, price=0, description=None, provider_id=None, is_active=True):
        self.name = name
        self.price = price
        self.duration_minutes = duration_minutes
        self.description = description
        self.provider_id = provider_id
        self.is_active = is_active

    def __repr__(self):
        return f'<Service {self.name}>'
