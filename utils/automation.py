import logging
import threading
import time

from flask import current_app

from models import db
from models.booking import Booking
from models.customer import Customer
from utils.notifier import Notifier

logger = logging.getLogger(__name__)


def dispatch(task, *args):
    """
    Run a mocked automation task after the response has been committed.
    Detached thread with its own app context; AUTOMATION_INLINE runs it in
    the calling thread instead.
    """
    app = current_app._get_current_object()
    if app.config.get("AUTOMATION_INLINE"):
        task(app, *args)
        return None

    thread = threading.Thread(
        target=task,
        args=(app, *args),
        name=f"automation-{task.__name__}",
        daemon=True,
    )
    thread.start()
    return thread


def post_payment_automation(app, customer_id: int):
    """Simulated confirmation email, then newsletter signup when enabled."""
    delay = app.config.get("AUTOMATION_DELAY_SECONDS", 1.0)
    with app.app_context():
        notifier = Notifier(db.session, app.config.get("AUTOMATION_WEBHOOKS", {}))
        try:
            customer = db.session.get(Customer, customer_id)
            if customer is None:
                logger.warning("Automation skipped: customer #%s not found", customer_id)
                return
            name, email = customer.name, customer.email

            time.sleep(delay)
            customer.status = "email_sent"
            db.session.commit()
            notifier.email_sent(customer_id, email, "Confirmation")

            if app.config.get("FEATURES", {}).get("newsletter_enabled", True):
                time.sleep(delay)
                customer = db.session.get(Customer, customer_id)
                customer.status = "subscribed"
                customer.newsletter_stage = "welcome"
                db.session.commit()
                notifier.newsletter_subscribed(customer_id, name)
        except Exception:
            db.session.rollback()
            logger.exception("Post-payment automation failed for customer #%s", customer_id)


def booking_confirmation_automation(app, booking_id: int):
    delay = app.config.get("AUTOMATION_DELAY_SECONDS", 1.0)
    with app.app_context():
        notifier = Notifier(db.session, app.config.get("AUTOMATION_WEBHOOKS", {}))
        try:
            booking = db.session.get(Booking, booking_id)
            if booking is None:
                logger.warning("Automation skipped: booking #%s not found", booking_id)
                return
            time.sleep(delay)
            notifier.email_sent(None, booking.customer_email, "Booking confirmation")
        except Exception:
            db.session.rollback()
            logger.exception("Booking confirmation failed for booking #%s", booking_id)
