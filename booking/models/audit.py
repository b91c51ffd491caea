from booking import db
from datetime import datetime
import json
from booking.utils.json_utils import BookingJSONEncoder

class AuditLog(db.Model):
    """Model for tracking audit logs of booking events"""
    __tablename__ = 'audit_logs'

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, nullable=True)
    timestamp = db.Column(db.DateTime, default=datetime.utcnow)
    action = db.Column(db.String(50), nullable=False)  # create, update, cancel, reserve, etc.
    entity_type = db.Column(db.String(50), nullable=False)  # appointment, slot, schedule, etc.
    entity_id = db.Column(db.Integer, nullable=True)
    details = db.Column(db.Text, nullable=True)  # JSON-serialized additional details

    def __init__(self, action, entity_type, user_id=None, entity_id=None, details=None):
        self.user_id = user_id
        self.action = action
        self.entity_type = entity_type
        self.entity_id = entity_id
        self.details = json.dumps(details, cls=BookingJSONEncoder) if isinstance(details, (dict, list)) else details

    def get_details_dict(self):
        """Convert stored JSON details back to dictionary"""
        if not self.details:
            return {}
        try:
            return json.loads(self.details)
        except ValueError:
            return {"raw": self.details}

    def __repr__(self):
        return f'<AuditLog {self.action} {self.entity_type} {self.entity_id}>'
