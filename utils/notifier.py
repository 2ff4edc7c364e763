import logging

from flask import current_app
from sqlalchemy.exc import SQLAlchemyError

from models import db
from models.activity_log import ActivityLog
from utils.money import format_eur

logger = logging.getLogger(__name__)


class Notifier:
    """
    Automation hooks. Every event becomes an activity_log row plus a log line;
    events with a configured webhook also log the URL they would be posted to.
    Nothing here raises: a failed write is rolled back and logged.
    """

    def __init__(self, session, webhooks=None):
        self._session = session
        self._webhooks = webhooks or {}

    def record(self, action: str, message: str, customer_id=None, webhook: str = None):
        try:
            self._session.add(ActivityLog(customer_id=customer_id, action=action, message=message))
            self._session.commit()
        except SQLAlchemyError:
            self._session.rollback()
            logger.exception("Could not record activity %s", action)

        logger.info("HOOK %s: %s", action, message)

        url = self._webhooks.get(webhook) if webhook else None
        if url:
            logger.info("  -> would notify webhook: %s", url)

    # ---------- adoption flow ----------

    def adoption_started(self, customer):
        message = f"Customer {customer.name} ({customer.email}) started adoption process for {customer.tree_type} tree"
        if customer.is_gift:
            message += " as a gift"
        self.record("adoption_started", message, customer_id=customer.id, webhook="webhook_on_adoption")

    def payment_completed(self, customer_id: int, amount_cents: int):
        message = f"Payment of {format_eur(amount_cents)} received (simulated)"
        self.record("payment_completed", message, customer_id=customer_id, webhook="webhook_on_payment")

    def email_sent(self, customer_id, email: str, email_type: str):
        self.record("email_sent", f"{email_type} email sent to {email} (simulated)", customer_id=customer_id)

    def newsletter_subscribed(self, customer_id: int, name: str):
        message = f"{name} added to Apple Tree Newsletter - Welcome series"
        self.record("newsletter_subscribed", message, customer_id=customer_id)

    # ---------- ledger callbacks ----------

    def slot_reserved(self, booking):
        message = (
            f"{booking.customer_name} ({booking.customer_email}) booked {booking.quantity} "
            f"spot(s) on slot #{booking.slot_id}"
        )
        self.record("visit_booked", message, webhook="webhook_on_booking")

    def promo_redeemed(self, result):
        message = (
            f"Promo code {result.code} applied ({result.discount_percent}% off, "
            f"{format_eur(result.base_price_cents)} -> {format_eur(result.final_price_cents)})"
        )
        self.record("promo_redeemed", message)

    def gift_code_issued(self, customer_id: int, code: str):
        self.record("gift_code_issued", f"Gift code {code} issued", customer_id=customer_id)

    # ---------- other site events ----------

    def booking_paid(self, booking):
        message = f"Payment of {format_eur(booking.amount_cents)} received for booking #{booking.id} (simulated)"
        self.record("booking_paid", message, webhook="webhook_on_payment")

    def feedback_submitted(self, survey_type: str, rating: int, email: str = None):
        message = f"New {survey_type} feedback received (Rating: {rating}/5)"
        if email:
            message += f" from {email}"
        self.record("feedback_received", message, webhook="webhook_on_feedback")

    def inquiry_received(self, inquiry):
        message = f"Time request from {inquiry.name} ({inquiry.email}) for {inquiry.activity or 'a visit'}: {inquiry.proposed_date}"
        self.record("inquiry_received", message)

    def newsletter_sent(self, newsletter):
        message = f"Newsletter '{newsletter.subject}' sent to {newsletter.recipients} subscriber(s) (simulated)"
        self.record("newsletter_sent", message)


def get_notifier() -> Notifier:
    return Notifier(db.session, current_app.config.get("AUTOMATION_WEBHOOKS", {}))
