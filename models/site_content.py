from datetime import datetime
from models.db import db

class SiteContent(db.Model):
    __tablename__ = "site_content"

    key = db.Column(db.String(80), primary_key=True)
    value = db.Column(db.Text, nullable=False, default="")
    last_updated = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)
