import re
from datetime import datetime, timedelta

from flask import Blueprint, jsonify, request, current_app
from sqlalchemy.exc import IntegrityError

from models import db
from models.activity_log import ActivityLog
from models.booking import Booking
from models.customer import Customer
from models.feedback import Feedback
from models.inquiry import Inquiry, INQUIRY_STATUSES
from models.newsletter import Newsletter
from models.promo_code import PromoCode
from models.slot import Slot
from routes.booking import slot_json
from routes.feedback import feedback_json, feedback_stats
from services.ledger import normalize_code
from utils.money import cents_to_eur, eur_to_cents
from utils.notifier import get_notifier
from utils.validation import ValidationError, bool_field, db_int, int_field, parse_iso, text_field

admin_bp = Blueprint("admin", __name__, url_prefix="/admin")

PROMO_CODE_PATTERN = re.compile(r"^[A-Z0-9-]{3,40}$")
REPEAT_STEPS = {"daily": timedelta(days=1), "weekly": timedelta(weeks=1)}
MAX_REPEAT = 52
MAX_PRICE_EUR = 100000


def _limit() -> int:
    return current_app.config.get("ADMIN_LIST_LIMIT", 200)


def customer_json(c: Customer) -> dict:
    return {
        "id": c.id,
        "name": c.name,
        "email": c.email,
        "country": c.country,
        "treeType": c.tree_type,
        "years": c.years,
        "promoCode": c.promo_code,
        "isGift": c.is_gift,
        "giftCode": c.gift_code,
        "amountPaid": cents_to_eur(c.amount_paid_cents),
        "status": c.status,
        "newsletterStage": c.newsletter_stage,
        "createdAt": c.created_at.isoformat(),
    }


def booking_json(b: Booking) -> dict:
    return {
        "id": b.id,
        "slotId": b.slot_id,
        "activity": b.slot.activity if b.slot else None,
        "startTime": b.slot.start_time.isoformat() if b.slot else None,
        "customerName": b.customer_name,
        "customerEmail": b.customer_email,
        "quantity": b.quantity,
        "amount": cents_to_eur(b.amount_cents),
        "status": b.status,
        "createdAt": b.created_at.isoformat(),
        "paidAt": b.paid_at.isoformat() if b.paid_at else None,
    }


def promo_json(p: PromoCode) -> dict:
    return {
        "id": p.id,
        "code": p.code,
        "discountPercent": p.discount_percent,
        "oneTime": p.one_time,
        "used": p.used,
        "isGift": p.is_gift,
        "createdAt": p.created_at.isoformat(),
        "usedAt": p.used_at.isoformat() if p.used_at else None,
    }


# ---------- customers & activity ----------
@admin_bp.get("/customers")
def list_customers():
    status = request.args.get("status")
    q = Customer.query
    if status:
        q = q.filter_by(status=status)
    rows = q.order_by(Customer.created_at.desc(), Customer.id.desc()).limit(_limit()).all()
    return jsonify([customer_json(c) for c in rows]), 200


@admin_bp.get("/activity")
def list_activity():
    limit = request.args.get("limit", type=db_int) or current_app.config.get("ACTIVITY_FEED_LIMIT", 50)
    limit = max(1, min(limit, 500))

    q = ActivityLog.query
    action = request.args.get("action")
    if action:
        q = q.filter_by(action=action)
    rows = q.order_by(ActivityLog.created_at.desc(), ActivityLog.id.desc()).limit(limit).all()
    return jsonify([
        {
            "id": a.id,
            "customerId": a.customer_id,
            "action": a.action,
            "message": a.message,
            "createdAt": a.created_at.isoformat(),
        }
        for a in rows
    ]), 200


@admin_bp.get("/stats")
def stats():
    now = datetime.utcnow()
    seats = db.session.query(db.func.coalesce(db.func.sum(Booking.quantity), 0)).scalar()
    return jsonify(
        totalCustomers=Customer.query.count(),
        paidCustomers=Customer.query.filter(Customer.status.in_(("paid", "email_sent", "subscribed"))).count(),
        newsletterSubscribers=Customer.query.filter(Customer.newsletter_stage != "none").count(),
        totalBookings=Booking.query.count(),
        seatsBooked=int(seats or 0),
        upcomingSlots=Slot.query.filter(Slot.is_active.is_(True), Slot.start_time > now).count(),
        openInquiries=Inquiry.query.filter_by(status="new").count(),
    ), 200


# ---------- slots ----------
@admin_bp.get("/slots")
def list_all_slots():
    q = Slot.query
    activity = request.args.get("activity")
    if activity:
        q = q.filter_by(activity=activity)
    if request.args.get("upcoming") == "1":
        q = q.filter(Slot.start_time > datetime.utcnow())
    rows = q.order_by(Slot.start_time.asc()).limit(_limit()).all()
    return jsonify([slot_json(s) for s in rows]), 200


@admin_bp.post("/slots")
def create_slots():
    """
    Create one slot, or a recurring series with
    "repeat": {"frequency": "daily" | "weekly", "count": N}.
    Times that already exist for the activity are skipped.
    """
    data = request.get_json(silent=True) or {}
    activity = text_field(data, "activity", required=True, max_length=40)
    activities = current_app.config.get("ACTIVITIES") or []
    if activities and activity not in activities:
        raise ValidationError(f"activity must be one of: {', '.join(activities)}")

    start = parse_iso(data.get("startTime"), "startTime")
    end = parse_iso(data.get("endTime"), "endTime")
    if end <= start:
        raise ValidationError("endTime must be after startTime")
    if start <= datetime.utcnow():
        raise ValidationError("startTime must be in the future")

    capacity = int_field(data, "capacity", minimum=0)
    price = data.get("price", 0)
    if isinstance(price, bool) or not isinstance(price, (int, float)) or not 0 <= price <= MAX_PRICE_EUR:
        raise ValidationError(f"price must be a number between 0 and {MAX_PRICE_EUR}")

    repeat = data.get("repeat") or {}
    if not isinstance(repeat, dict):
        raise ValidationError("repeat must be an object")
    step = None
    count = 1
    if repeat:
        frequency = repeat.get("frequency")
        if frequency not in REPEAT_STEPS:
            raise ValidationError("repeat.frequency must be daily or weekly")
        step = REPEAT_STEPS[frequency]
        count = int_field(repeat, "count", minimum=1, maximum=MAX_REPEAT)

    starts = [start + (step * i if step else timedelta(0)) for i in range(count)]
    existing = {
        s.start_time
        for s in Slot.query.filter(Slot.activity == activity, Slot.start_time.in_(starts)).all()
    }
    if len(starts) == 1 and existing:
        return jsonify(error="Slot already exists for that activity and time"), 409

    created = []
    for st in starts:
        if st in existing:
            continue
        slot = Slot(
            activity=activity,
            start_time=st,
            end_time=st + (end - start),
            capacity=capacity,
            booked=0,
            price_cents=eur_to_cents(price),
        )
        db.session.add(slot)
        created.append(slot)

    try:
        db.session.commit()
    except IntegrityError:
        db.session.rollback()
        return jsonify(error="Slot already exists for that activity and time"), 409

    get_notifier().record(
        "slots_created",
        f"{len(created)} {activity} slot(s) scheduled from {start.isoformat()}",
    )
    return jsonify(
        created=[s.id for s in created],
        skipped=sorted(st.isoformat() for st in existing),
    ), 201


@admin_bp.post("/slots/<id:slot_id>/deactivate")
def deactivate_slot(slot_id: int):
    slot = db.session.get(Slot, slot_id)
    if not slot:
        return jsonify(error="Slot not found"), 404

    # Only hides the slot; existing bookings keep their seats
    slot.is_active = False
    db.session.commit()
    return jsonify(message="Slot deactivated"), 200


# ---------- promo codes ----------
@admin_bp.get("/promo-codes")
def list_promo_codes():
    q = PromoCode.query
    if request.args.get("gift") == "1":
        q = q.filter_by(is_gift=True)
    rows = q.order_by(PromoCode.created_at.desc()).limit(_limit()).all()
    return jsonify([promo_json(p) for p in rows]), 200


@admin_bp.post("/promo-codes")
def create_promo_code():
    data = request.get_json(silent=True) or {}
    code = normalize_code(data.get("code"))
    if not PROMO_CODE_PATTERN.match(code):
        raise ValidationError("code must be 3-40 letters, digits or dashes")
    discount = int_field(data, "discountPercent", minimum=0, maximum=100)
    one_time = bool_field(data, "oneTime")

    promo = PromoCode(code=code, discount_percent=discount, one_time=one_time, used=False)
    db.session.add(promo)
    try:
        db.session.commit()
    except IntegrityError:
        db.session.rollback()
        return jsonify(error="Promo code already exists"), 409

    get_notifier().record("promo_created", f"Promo code {code} created ({discount}% off)")
    return jsonify(promo_json(promo)), 201


# ---------- bookings ----------
@admin_bp.get("/bookings")
def list_bookings():
    q = Booking.query
    status = request.args.get("status")
    if status:
        q = q.filter_by(status=status)
    slot_id = request.args.get("slot_id", type=db_int)
    if slot_id:
        q = q.filter_by(slot_id=slot_id)
    rows = q.order_by(Booking.created_at.desc(), Booking.id.desc()).limit(_limit()).all()
    return jsonify([booking_json(b) for b in rows]), 200


@admin_bp.post("/bookings/<id:booking_id>/confirm")
def confirm_booking(booking_id: int):
    booking = db.session.get(Booking, booking_id)
    if not booking:
        return jsonify(error="Booking not found"), 404

    updated = Booking.query.filter_by(id=booking_id, status="paid").update({"status": "confirmed"})
    db.session.commit()
    if not updated:
        return jsonify(error="Only paid bookings can be confirmed"), 409

    get_notifier().record("booking_confirmed", f"Booking #{booking_id} confirmed")
    return jsonify(message="Booking confirmed", status="confirmed"), 200


# ---------- inquiries ----------
@admin_bp.get("/inquiries")
def list_inquiries():
    q = Inquiry.query
    status = request.args.get("status")
    if status:
        q = q.filter_by(status=status)
    rows = q.order_by(Inquiry.created_at.desc(), Inquiry.id.desc()).limit(_limit()).all()
    return jsonify([
        {
            "id": i.id,
            "name": i.name,
            "email": i.email,
            "activity": i.activity,
            "proposedDate": i.proposed_date,
            "message": i.message,
            "status": i.status,
            "createdAt": i.created_at.isoformat(),
        }
        for i in rows
    ]), 200


@admin_bp.post("/inquiries/<id:inquiry_id>/status")
def update_inquiry_status(inquiry_id: int):
    data = request.get_json(silent=True) or {}
    status = text_field(data, "status", required=True)
    if status not in INQUIRY_STATUSES:
        raise ValidationError(f"status must be one of: {', '.join(INQUIRY_STATUSES)}")

    inquiry = db.session.get(Inquiry, inquiry_id)
    if not inquiry:
        return jsonify(error="Inquiry not found"), 404

    # Inquiries never hold slot capacity, so declining releases nothing
    inquiry.status = status
    db.session.commit()
    get_notifier().record("inquiry_updated", f"Inquiry #{inquiry_id} from {inquiry.name} marked {status}")
    return jsonify(message="Inquiry updated", status=status), 200


# ---------- feedback ----------
@admin_bp.get("/feedback")
def feedback_dashboard():
    recent = Feedback.query.order_by(Feedback.created_at.desc(), Feedback.id.desc()).limit(20).all()
    out = feedback_stats()
    out["recentFeedback"] = [feedback_json(f) for f in recent]
    return jsonify(out), 200


# ---------- newsletters ----------
@admin_bp.get("/newsletters")
def list_newsletters():
    rows = Newsletter.query.order_by(Newsletter.created_at.desc()).limit(_limit()).all()
    return jsonify([
        {
            "id": n.id,
            "subject": n.subject,
            "status": n.status,
            "recipients": n.recipients,
            "createdAt": n.created_at.isoformat(),
            "sentAt": n.sent_at.isoformat() if n.sent_at else None,
        }
        for n in rows
    ]), 200


@admin_bp.post("/newsletters")
def create_newsletter():
    data = request.get_json(silent=True) or {}
    newsletter = Newsletter(
        subject=text_field(data, "subject", required=True, max_length=200),
        body=text_field(data, "body", required=True),
        status="draft",
    )
    db.session.add(newsletter)
    db.session.commit()
    return jsonify(id=newsletter.id, status=newsletter.status), 201


@admin_bp.post("/newsletters/<id:newsletter_id>/send")
def send_newsletter(newsletter_id: int):
    if not current_app.config.get("FEATURES", {}).get("newsletter_enabled", True):
        return jsonify(error="Newsletter is currently disabled"), 503

    newsletter = db.session.get(Newsletter, newsletter_id)
    if not newsletter:
        return jsonify(error="Newsletter not found"), 404
    if newsletter.status == "sent":
        return jsonify(error="Newsletter already sent"), 409

    subscribers = Customer.query.filter(Customer.newsletter_stage != "none")
    newsletter.recipients = subscribers.count()
    newsletter.status = "sent"
    newsletter.sent_at = datetime.utcnow()
    # After their first regular issue, welcome-series readers move to the monthly list
    Customer.query.filter_by(newsletter_stage="welcome").update({"newsletter_stage": "monthly"})
    db.session.commit()

    get_notifier().newsletter_sent(newsletter)
    return jsonify(message="Newsletter sent (simulated)", recipients=newsletter.recipients), 200
