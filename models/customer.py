from datetime import datetime
from models.db import db

CUSTOMER_STATUSES = ("interested", "paid", "email_sent", "subscribed")
NEWSLETTER_STAGES = ("none", "welcome", "monthly")

class Customer(db.Model):
    __tablename__ = "customers"

    id = db.Column(db.Integer, primary_key=True)

    name = db.Column(db.String(120), nullable=False)
    email = db.Column(db.String(255), nullable=False, index=True)
    country = db.Column(db.String(80), nullable=True)
    tree_type = db.Column(db.String(40), nullable=False)
    years = db.Column(db.Integer, nullable=False, default=1)

    promo_code = db.Column(db.String(40), nullable=True)  # code the discount came from
    is_gift = db.Column(db.Boolean, default=False, nullable=False)
    gift_code = db.Column(db.String(40), nullable=True)  # issued after payment when is_gift
    amount_paid_cents = db.Column(db.Integer, nullable=False, default=0)

    status = db.Column(db.String(20), nullable=False, default="interested", index=True)
    newsletter_stage = db.Column(db.String(20), nullable=False, default="none")

    created_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=False)
