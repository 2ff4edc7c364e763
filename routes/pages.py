from flask import Blueprint, current_app, request
from markupsafe import escape

from models import db
from models.booking import Booking
from models.site_content import SiteContent
from utils.seed import DEFAULT_CONTENT, default_content_value
from utils.validation import db_int

pages_bp = Blueprint("pages", __name__)

# Newest first
ORCHARD_UPDATES = [
    {
        "title": "Winter Pruning Complete",
        "date": "January 10, 2026",
        "text": "The orchard is resting under a blanket of frost. We've finished pruning the apple trees "
                "this week, careful cuts to help them grow strong and healthy come spring.",
    },
    {
        "title": "First Snow of the Season",
        "date": "December 15, 2025",
        "text": "Åland woke up to its first real snowfall today. The trees are dormant now, storing "
                "energy for the busy months ahead.",
    },
    {
        "title": "Harvest Season Wrapped Up",
        "date": "October 28, 2025",
        "text": "What a harvest! Your adopted trees contributed to over 200 bottles of fresh-pressed juice. "
                "Thank you for being part of this journey.",
    },
    {
        "title": "Apple Picking Has Begun",
        "date": "September 15, 2025",
        "text": "The Amorosa and Discovery apples are ready. We're picking by hand, one apple at a time.",
    },
]

_PAGE = """
    <html>
      <head><meta charset="utf-8"><title>{title} | Öfvergårds</title></head>
      <body style="font-family: system-ui; max-width: 720px; margin: 40px auto;">
        {body}
      </body>
    </html>
    """


def _page(title: str, body: str):
    return _PAGE.format(title=escape(title), body=body), 200


def _paragraphs(text: str) -> str:
    return "".join(f"<p>{escape(p)}</p>" for p in (text or "").split("\n\n") if p.strip())


def _content(key: str) -> str:
    row = db.session.get(SiteContent, key)
    return row.value if row else default_content_value(key)


@pages_bp.get("/")
def front_page():
    blocks = {key: _content(key) for key in DEFAULT_CONTENT}
    body = (
        f"<h1>Öfvergårds</h1><p><em>{escape(blocks['hero_tagline'])}</em></p>"
        f"<h2>About</h2>{_paragraphs(blocks['about_text'])}"
        f"<h2>Light in the Dark</h2>{_paragraphs(blocks['light_in_dark_text'])}"
        f"<h2>Nourished by Nature</h2>{_paragraphs(blocks['experience_nourish'])}"
        f"<h2>Adopt an Apple Tree</h2>{_paragraphs(blocks['cta_text'])}"
    )
    return _page("Welcome", body)


@pages_bp.get("/my-tree")
def my_tree():
    items = "".join(
        f"<article><h3>{escape(u['title'])}</h3><small>{escape(u['date'])}</small>"
        f"<p>{escape(u['text'])}</p></article>"
        for u in ORCHARD_UPDATES
    )
    return _page("My Apple Tree", f"<h1>My Apple Tree</h1>{items}")


@pages_bp.get("/pay/success")
def pay_success():
    # Simulated checkout lands here
    base_url = current_app.config.get("FRONTEND_BASE_URL", "").rstrip("/")
    kind = request.args.get("type")
    if kind == "visit":
        booking_id = request.args.get("id", type=db_int)
        booking = db.session.get(Booking, booking_id) if booking_id else None
        detail = (
            f"<p>Booking #{booking.id} for {booking.quantity} spot(s) is <b>{escape(booking.status)}</b>.</p>"
            if booking else "<p>Your visit is booked.</p>"
        )
    else:
        detail = "<p>Your tree adoption is confirmed. A confirmation email is on its way.</p>"
    body = (
        "<h1>Payment Successful</h1>" + detail +
        f'<a href="{escape(base_url)}/my-tree" style="display: inline-block; padding: 12px 18px; '
        'background: #4a6741; color: white; text-decoration: none; border-radius: 8px;">Go to My Tree</a>'
    )
    return _page("Payment Success", body)


@pages_bp.get("/pay/cancel")
def pay_cancel():
    body = (
        "<h1>Payment Cancelled</h1>"
        "<p>No payment was taken. You can start again from the adoption or booking page.</p>"
    )
    return _page("Payment Cancelled", body)
