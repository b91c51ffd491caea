from booking import db
from datetime import datetime

# User roles
ROLE_CLIENT = 'client'
ROLE_PROVIDER = 'provider'
ROLE_ADMIN = 'admin'

class User(db.Model):
    """Directory entry for a client, provider or admin; accounts live elsewhere"""
    __tablename__ = 'users'

    id = db.Column(db.Integer, primary_key=True)
    email = db.Column(db.String(120), unique=True, nullable=False)
    first_name = db.Column(db.String(50), nullable=False)
    last_name = db.Column(db.String(50), nullable=False)
    role = db.Column(db.String(20), default=ROLE_CLIENT)
    provider_type = db.Column(db.String(50), nullable=True)
    is_active = db.Column(db.Boolean, default=True)
    created_at = db.Column(db.DateTime, default=datetime.utcnow)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    def __init__(self, email, first_name, last_name, role=ROLE_CLIENT, provider_type=None):
        self.email = email
        self.first_name = first_name
        self.last_name = last_name
        self.role = role
        self.provider_type = provider_type

    def is_admin(self):
        return self.role == ROLE_ADMIN

    def is_provider(self):
        return self.role == ROLE_PROVIDER

    def is_client(self):
        return self.role == ROLE_CLIENT

    def get_full_name(self):
        return f"{self.first_name} {self.last_name}"

    def __repr__(self):
        return f'<User {self.email}>'
