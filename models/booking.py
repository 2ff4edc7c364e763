from datetime import datetime
from models.db import db

BOOKING_STATUSES = ("pending", "paid", "confirmed")

class Booking(db.Model):
    __tablename__ = "bookings"

    id = db.Column(db.Integer, primary_key=True)

    slot_id = db.Column(db.Integer, db.ForeignKey("slots.id"), nullable=False, index=True)
    customer_name = db.Column(db.String(120), nullable=False)
    customer_email = db.Column(db.String(255), nullable=False, index=True)

    quantity = db.Column(db.Integer, nullable=False, default=1)
    amount_cents = db.Column(db.Integer, nullable=False, default=0)

    status = db.Column(db.String(20), nullable=False, default="pending", index=True)
    # status values: pending, paid, confirmed
    payment_token = db.Column(db.String(64), nullable=False, unique=True)

    created_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=False)
    paid_at = db.Column(db.DateTime, nullable=True)

    slot = db.relationship("Slot", lazy="joined")

    __table_args__ = (
        db.CheckConstraint("quantity >= 1", name="ck_booking_quantity_positive"),
    )
