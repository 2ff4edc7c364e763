import secrets
from datetime import datetime, timedelta

from flask import Blueprint, request, jsonify, current_app

from models import db
from models.booking import Booking
from models.inquiry import Inquiry
from models.slot import Slot
from services import get_ledger
from services.ledger import ReservationStatus
from utils.automation import booking_confirmation_automation, dispatch
from utils.money import cents_to_eur
from utils.notifier import get_notifier
from utils.validation import ValidationError, email_field, int_field, text_field

booking_bp = Blueprint("booking", __name__, url_prefix="/api")

# ReservationStatus -> (http status, client message)
RESERVATION_FAILURES = {
    ReservationStatus.SLOT_NOT_FOUND: (404, "Slot not found"),
    ReservationStatus.SLOT_CLOSED: (409, "This time has already started"),
    ReservationStatus.CAPACITY_EXCEEDED: (409, "Fully booked"),
}


def slot_json(s: Slot) -> dict:
    return {
        "id": s.id,
        "activity": s.activity,
        "startTime": s.start_time.isoformat(),
        "endTime": s.end_time.isoformat(),
        "capacity": s.capacity,
        "booked": s.booked,
        "available": s.available,
        "price": cents_to_eur(s.price_cents),
        "isActive": s.is_active,
    }


def _bookings_enabled() -> bool:
    return current_app.config.get("FEATURES", {}).get("bookings_enabled", True)


# ---------- PUBLIC: view upcoming slots ----------
@booking_bp.get("/slots")
def list_slots():
    # optional filters: activity, date (YYYY-MM-DD)
    activity = (request.args.get("activity") or "").strip()
    date_str = request.args.get("date")

    q = Slot.query.filter(Slot.is_active.is_(True), Slot.start_time > datetime.utcnow())
    if activity:
        q = q.filter(Slot.activity == activity)

    if date_str:
        try:
            day = datetime.fromisoformat(date_str)
        except ValueError:
            return jsonify(error="Invalid date. Use YYYY-MM-DD"), 400
        start = datetime(day.year, day.month, day.day)
        q = q.filter(Slot.start_time >= start, Slot.start_time < start + timedelta(days=1))

    slots = q.order_by(Slot.start_time.asc()).all()
    return jsonify([slot_json(s) for s in slots]), 200


# ---------- PUBLIC: book a visit (capacity safe) ----------
@booking_bp.post("/book-visit")
def book_visit():
    if not _bookings_enabled():
        return jsonify(error="Bookings are currently disabled"), 503

    data = request.get_json(silent=True) or {}
    slot_id = int_field(data, "slotId", minimum=1)
    quantity = int_field(data, "quantity", default=1, minimum=1)
    name = text_field(data, "customerName", required=True, max_length=120)
    email = email_field(data, "customerEmail")

    result = get_ledger().reserve_slot(slot_id, quantity, customer_name=name, customer_email=email)

    if not result.ok:
        status_code, message = RESERVATION_FAILURES[result.status]
        return jsonify(
            success=False,
            error=result.status.value,
            message=message,
            available=result.available,
        ), status_code

    booking = result.booking
    return jsonify(
        success=True,
        id=booking.id,
        name=booking.customer_name,
        activity=booking.slot.activity,
        quantity=booking.quantity,
        amount=cents_to_eur(booking.amount_cents),
        status=booking.status,
        paymentToken=booking.payment_token,
        available=result.available,
    ), 201


# ---------- PUBLIC: simulated payment for a booking ----------
@booking_bp.post("/confirm-booking-payment")
def confirm_booking_payment():
    data = request.get_json(silent=True) or {}
    booking_id = int_field(data, "bookingId", minimum=1)
    token = text_field(data, "paymentToken", required=True)

    booking = db.session.get(Booking, booking_id)
    if not booking or not secrets.compare_digest(booking.payment_token, token):
        return jsonify(error="Booking not found"), 404

    updated = (
        Booking.query
        .filter_by(id=booking_id, status="pending")
        .update({"status": "paid", "paid_at": datetime.utcnow()})
    )
    db.session.commit()
    if not updated:
        return jsonify(error="Booking already paid"), 409

    get_notifier().booking_paid(booking)
    dispatch(booking_confirmation_automation, booking_id)

    return jsonify(success=True, message="Payment confirmed!", id=booking_id, status="paid"), 200


# ---------- PUBLIC: ask for a custom time ----------
@booking_bp.post("/inquiry")
def create_inquiry():
    data = request.get_json(silent=True) or {}
    name = text_field(data, "name", required=True, max_length=120)
    email = email_field(data, "email")
    proposed_date = text_field(data, "proposedDate", required=True, max_length=120)
    activity = text_field(data, "activity", max_length=40)
    message = text_field(data, "message", max_length=2000)

    activities = current_app.config.get("ACTIVITIES") or []
    if activity and activity != "General" and activities and activity not in activities:
        raise ValidationError(f"activity must be one of: {', '.join(activities)}")

    inquiry = Inquiry(
        name=name,
        email=email,
        proposed_date=proposed_date,
        activity=activity,
        message=message,
        status="new",
    )
    db.session.add(inquiry)
    db.session.commit()

    get_notifier().inquiry_received(inquiry)
    return jsonify(success=True, id=inquiry.id, status=inquiry.status), 201
