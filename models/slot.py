from datetime import datetime
from models.db import db

class Slot(db.Model):
    __tablename__ = "slots"

    id = db.Column(db.Integer, primary_key=True)

    activity = db.Column(db.String(40), nullable=False, index=True)  # safari, tasting, picnic
    start_time = db.Column(db.DateTime, nullable=False, index=True)
    end_time = db.Column(db.DateTime, nullable=False)

    capacity = db.Column(db.Integer, nullable=False, default=0)
    # Only the reservation ledger writes this column
    booked = db.Column(db.Integer, nullable=False, default=0)

    price_cents = db.Column(db.Integer, nullable=False, default=0)  # per spot
    is_active = db.Column(db.Boolean, default=True, nullable=False)

    created_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=False)

    __table_args__ = (
        # One slot per activity and start time
        db.UniqueConstraint("activity", "start_time", name="uq_slot_activity_start"),
        db.CheckConstraint("capacity >= 0", name="ck_slot_capacity_non_negative"),
        db.CheckConstraint("booked >= 0 AND booked <= capacity", name="ck_slot_booked_within_capacity"),
    )

    @property
    def available(self) -> int:
        return max(self.capacity - self.booked, 0)
