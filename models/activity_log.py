from datetime import datetime
from models.db import db

class ActivityLog(db.Model):
    __tablename__ = "activity_log"

    id = db.Column(db.Integer, primary_key=True)
    customer_id = db.Column(db.Integer, nullable=True, index=True)  # nullable for anonymous events
    action = db.Column(db.String(80), nullable=False)  # e.g. adoption_started, visit_booked
    message = db.Column(db.Text, nullable=False)

    created_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=False, index=True)
