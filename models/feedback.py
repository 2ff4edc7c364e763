from datetime import datetime
from models.db import db

SURVEY_TYPES = ("farmshop", "experience")

class Feedback(db.Model):
    __tablename__ = "feedback"

    id = db.Column(db.Integer, primary_key=True)
    survey_type = db.Column(db.String(20), nullable=False, index=True)
    rating = db.Column(db.Integer, nullable=False)  # 1-5
    experience = db.Column(db.String(120), nullable=True)  # which experience (experience surveys)
    highlight = db.Column(db.Text, nullable=True)
    improvement = db.Column(db.Text, nullable=True)
    would_recommend = db.Column(db.Boolean, default=False, nullable=False)
    email = db.Column(db.String(255), nullable=True)

    created_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=False)
