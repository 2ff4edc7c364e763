from flask import current_app

from models import db
from services.ledger import ReservationLedger
from utils.notifier import get_notifier


def get_ledger() -> ReservationLedger:
    """Ledger bound to the request's session and the app's shared lock registry."""
    return ReservationLedger(
        db.session,
        locks=current_app.extensions["reservation_locks"],
        notifier=get_notifier(),
        gift_code_attempts=current_app.config.get("GIFT_CODE_ATTEMPTS", 5),
    )
