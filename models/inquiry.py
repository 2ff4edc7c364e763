from datetime import datetime
from models.db import db

INQUIRY_STATUSES = ("new", "answered", "declined")

class Inquiry(db.Model):
    __tablename__ = "inquiries"

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(120), nullable=False)
    email = db.Column(db.String(255), nullable=False)
    activity = db.Column(db.String(40), nullable=True)
    proposed_date = db.Column(db.String(120), nullable=False)  # free text from the request form
    message = db.Column(db.Text, nullable=True)

    status = db.Column(db.String(20), nullable=False, default="new", index=True)
    created_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=False)
