from datetime import datetime
from models.db import db

class PromoCode(db.Model):
    __tablename__ = "promo_codes"

    id = db.Column(db.Integer, primary_key=True)
    code = db.Column(db.String(40), unique=True, nullable=False, index=True)  # stored upper-case

    discount_percent = db.Column(db.Integer, nullable=False, default=0)
    one_time = db.Column(db.Boolean, default=False, nullable=False)
    # Only the reservation ledger writes this column
    used = db.Column(db.Boolean, default=False, nullable=False)

    is_gift = db.Column(db.Boolean, default=False, nullable=False)
    issued_for_customer_id = db.Column(db.Integer, db.ForeignKey("customers.id"), nullable=True)

    created_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=False)
    used_at = db.Column(db.DateTime, nullable=True)

    __table_args__ = (
        db.CheckConstraint(
            "discount_percent >= 0 AND discount_percent <= 100",
            name="ck_promo_discount_range",
        ),
    )

    @property
    def consumed(self) -> bool:
        return bool(self.one_time and self.used)
