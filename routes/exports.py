import csv
import io

from flask import Blueprint, Response

from models.activity_log import ActivityLog
from models.booking import Booking
from models.customer import Customer
from models.feedback import Feedback
from utils.money import cents_to_eur

exports_bp = Blueprint("exports", __name__, url_prefix="/api/export")


# Spreadsheet apps evaluate cells starting with these as formulas
FORMULA_PREFIXES = ("=", "+", "-", "@", "\t", "\r")


def _cell(value):
    if isinstance(value, str) and value.startswith(FORMULA_PREFIXES):
        return "'" + value
    return value


def _csv_response(filename: str, header, rows) -> Response:
    buf = io.StringIO()
    writer = csv.writer(buf)
    writer.writerow(header)
    writer.writerows([_cell(v) for v in row] for row in rows)
    return Response(
        buf.getvalue(),
        mimetype="text/csv",
        headers={"Content-Disposition": f"attachment; filename={filename}"},
    )


def _iso(value):
    return value.isoformat() if value else ""


@exports_bp.get("/customers")
def export_customers():
    rows = Customer.query.order_by(Customer.created_at.desc(), Customer.id.desc()).all()
    return _csv_response(
        "customers.csv",
        ["ID", "Name", "Email", "Country", "Tree Type", "Years", "Promo Code",
         "Gift", "Gift Code", "Amount Paid", "Status", "Newsletter", "Created"],
        (
            [c.id, c.name, c.email, c.country or "", c.tree_type, c.years, c.promo_code or "",
             "yes" if c.is_gift else "no", c.gift_code or "", f"{cents_to_eur(c.amount_paid_cents):.2f}",
             c.status, c.newsletter_stage, _iso(c.created_at)]
            for c in rows
        ),
    )


@exports_bp.get("/feedback")
def export_feedback():
    rows = Feedback.query.order_by(Feedback.created_at.desc(), Feedback.id.desc()).all()
    return _csv_response(
        "feedback.csv",
        ["ID", "Survey", "Rating", "Experience", "Highlight", "Improvement", "Recommend", "Email", "Created"],
        (
            [f.id, f.survey_type, f.rating, f.experience or "", f.highlight or "", f.improvement or "",
             "yes" if f.would_recommend else "no",
             f.email or "", _iso(f.created_at)]
            for f in rows
        ),
    )


@exports_bp.get("/activity")
def export_activity():
    rows = ActivityLog.query.order_by(ActivityLog.created_at.desc(), ActivityLog.id.desc()).all()
    return _csv_response(
        "activity.csv",
        ["ID", "Customer ID", "Action", "Message", "Created"],
        ([a.id, a.customer_id or "", a.action, a.message, _iso(a.created_at)] for a in rows),
    )


@exports_bp.get("/bookings")
def export_bookings():
    rows = Booking.query.order_by(Booking.created_at.desc(), Booking.id.desc()).all()
    return _csv_response(
        "bookings.csv",
        ["ID", "Slot ID", "Activity", "Start", "Name", "Email", "Quantity", "Amount", "Status", "Created", "Paid"],
        (
            [b.id, b.slot_id, b.slot.activity, _iso(b.slot.start_time), b.customer_name, b.customer_email,
             b.quantity, f"{cents_to_eur(b.amount_cents):.2f}", b.status, _iso(b.created_at), _iso(b.paid_at)]
            for b in rows
        ),
    )
