from datetime import datetime, timedelta

from sqlalchemy import event
from sqlalchemy.exc import OperationalError

from models import db
from models.activity_log import ActivityLog
from models.booking import Booking
from models.inquiry import Inquiry
from models.slot import Slot


def _book(client, slot_id, quantity=2, **overrides):
    payload = {
        "slotId": slot_id,
        "quantity": quantity,
        "customerName": "Erik",
        "customerEmail": "erik@example.com",
    }
    payload.update(overrides)
    return client.post("/api/book-visit", json=payload)


def test_list_slots_shows_only_upcoming_active(client, make_slot):
    upcoming = make_slot(activity="safari")
    make_slot(activity="tasting", starts_in=timedelta(days=3))
    make_slot(activity="safari", starts_in=timedelta(hours=-2))
    make_slot(activity="picnic", is_active=False)

    body = client.get("/api/slots").get_json()
    assert [s["activity"] for s in body] == ["safari", "tasting"]
    assert body[0]["id"] == upcoming
    assert body[0]["available"] == 10
    assert body[0]["price"] == 25.0

    only_tasting = client.get("/api/slots?activity=tasting").get_json()
    assert [s["activity"] for s in only_tasting] == ["tasting"]


def test_list_slots_by_date(client, make_slot):
    make_slot(starts_in=timedelta(days=2))
    day = (datetime.utcnow() + timedelta(days=2)).date().isoformat()

    assert len(client.get(f"/api/slots?date={day}").get_json()) == 1
    assert client.get("/api/slots?date=tomorrow").status_code == 400


def test_book_visit_reserves_capacity(client, app, make_slot):
    slot_id = make_slot(capacity=10, price_cents=2500)

    resp = _book(client, slot_id, quantity=4)
    assert resp.status_code == 201
    body = resp.get_json()
    assert body["amount"] == 100.0
    assert body["status"] == "pending"
    assert body["available"] == 6
    assert body["paymentToken"]

    with app.app_context():
        assert db.session.get(Slot, slot_id).booked == 4


def test_book_visit_fully_booked(client, app, make_slot):
    slot_id = make_slot(capacity=10, booked=8)

    resp = _book(client, slot_id, quantity=3)
    assert resp.status_code == 409
    body = resp.get_json()
    assert body["error"] == "capacity_exceeded"
    assert body["available"] == 2

    with app.app_context():
        assert db.session.get(Slot, slot_id).booked == 8
        assert Booking.query.count() == 0


def test_book_visit_errors(client, make_slot):
    past = make_slot(starts_in=timedelta(hours=-1))
    slot_id = make_slot()

    assert _book(client, 999).status_code == 404
    assert _book(client, past).status_code == 409
    assert _book(client, slot_id, quantity=0).status_code == 400
    assert _book(client, slot_id, quantity=True).status_code == 400
    assert _book(client, slot_id, customerEmail="nope").status_code == 400


def test_book_visit_disabled(client, app, make_slot):
    slot_id = make_slot()
    app.config["FEATURES"]["bookings_enabled"] = False
    assert _book(client, slot_id).status_code == 503


def test_booking_payment_flow(client, app, make_slot):
    slot_id = make_slot()
    body = _book(client, slot_id).get_json()

    wrong = client.post("/api/confirm-booking-payment", json={"bookingId": body["id"], "paymentToken": "guess"})
    assert wrong.status_code == 404

    payload = {"bookingId": body["id"], "paymentToken": body["paymentToken"]}
    assert client.post("/api/confirm-booking-payment", json=payload).status_code == 200
    assert client.post("/api/confirm-booking-payment", json=payload).status_code == 409

    with app.app_context():
        booking = db.session.get(Booking, body["id"])
        assert booking.status == "paid"
        assert booking.paid_at is not None
        actions = {a.action for a in ActivityLog.query.all()}
        assert {"visit_booked", "booking_paid", "email_sent"} <= actions


def test_inquiry_is_recorded_without_touching_slots(client, app, make_slot):
    slot_id = make_slot(capacity=2)
    resp = client.post("/api/inquiry", json={
        "name": "Lena",
        "email": "lena@example.com",
        "activity": "picnic",
        "proposedDate": "Any weekend in March",
        "message": "Group of 8",
    })
    assert resp.status_code == 201
    assert resp.get_json()["status"] == "new"

    with app.app_context():
        assert Inquiry.query.one().proposed_date == "Any weekend in March"
        assert db.session.get(Slot, slot_id).booked == 0
        assert ActivityLog.query.filter_by(action="inquiry_received").count() == 1


def test_inquiry_validation(client):
    base = {"name": "Lena", "email": "lena@example.com", "proposedDate": "soon"}
    assert client.post("/api/inquiry", json={**base, "activity": "General"}).status_code == 201
    assert client.post("/api/inquiry", json={**base, "activity": "skydiving"}).status_code == 400
    assert client.post("/api/inquiry", json={"name": "Lena", "email": "lena@example.com"}).status_code == 400


def test_out_of_range_ids_are_client_errors(client, make_slot):
    huge = 10**20
    resp = _book(client, huge)
    assert resp.status_code == 400
    assert "slotId" in resp.get_json()["error"]

    assert _book(client, make_slot(), quantity=huge).status_code == 400
    assert client.post("/api/confirm-booking-payment", json={
        "bookingId": huge, "paymentToken": "x",
    }).status_code == 400
    # a junk id on the landing page is ignored
    assert client.get(f"/pay/success?type=visit&id={huge}").status_code == 200


def test_store_failure_is_a_json_500_and_rolls_back(client, app, make_slot):
    slot_id = make_slot(capacity=10, booked=8)
    with app.app_context():
        engine = db.engine

    def fail_booking_insert(conn, cursor, statement, parameters, context, executemany):
        if statement.startswith("INSERT INTO bookings"):
            raise OperationalError(statement, parameters, Exception("disk I/O error"))

    event.listen(engine, "before_cursor_execute", fail_booking_insert)
    try:
        failed = _book(client, slot_id, quantity=1)
    finally:
        event.remove(engine, "before_cursor_execute", fail_booking_insert)

    assert failed.status_code == 500
    assert failed.get_json() == {"error": "Something went wrong"}
    # distinct from a business conflict
    full = _book(client, slot_id, quantity=3)
    assert full.status_code == 409
    assert full.get_json()["error"] == "capacity_exceeded"

    with app.app_context():
        assert db.session.get(Slot, slot_id).booked == 8
        assert Booking.query.count() == 0

    ok = _book(client, slot_id, quantity=2)
    assert ok.status_code == 201
    assert ok.get_json()["available"] == 0
