from datetime import datetime, timedelta

import pytest

from models import db
from models.activity_log import ActivityLog
from models.booking import Booking
from models.customer import Customer
from models.promo_code import PromoCode
from models.slot import Slot
from services import get_ledger
from services.ledger import (
    GiftCodeUnavailable,
    InvalidLedgerRequest,
    RedemptionStatus,
    ReservationLedger,
    ReservationStatus,
    apply_discount,
)


# ---------- reserve_slot ----------

def test_reserve_within_capacity_creates_pending_booking(app, make_slot):
    slot_id = make_slot(capacity=10, price_cents=2500)
    with app.app_context():
        result = get_ledger().reserve_slot(slot_id, 3, customer_name="Anna", customer_email="anna@example.com")

        assert result.ok
        assert result.status is ReservationStatus.RESERVED
        assert result.available == 7
        assert result.booking.status == "pending"
        assert result.booking.amount_cents == 7500
        assert result.booking.payment_token

        assert db.session.get(Slot, slot_id).booked == 3
        assert ActivityLog.query.filter_by(action="visit_booked").count() == 1


def test_reserve_can_fill_slot_exactly(app, make_slot):
    slot_id = make_slot(capacity=10, booked=8)
    with app.app_context():
        result = get_ledger().reserve_slot(slot_id, 2)
        assert result.ok
        assert result.available == 0
        assert db.session.get(Slot, slot_id).booked == 10


def test_reserve_over_capacity_changes_nothing(app, make_slot):
    slot_id = make_slot(capacity=10, booked=8)
    with app.app_context():
        result = get_ledger().reserve_slot(slot_id, 3)

        assert not result.ok
        assert result.status is ReservationStatus.CAPACITY_EXCEEDED
        assert result.available == 2
        assert db.session.get(Slot, slot_id).booked == 8
        assert Booking.query.count() == 0


def test_zero_capacity_slot_rejects_everything(app, make_slot):
    slot_id = make_slot(capacity=0)
    with app.app_context():
        result = get_ledger().reserve_slot(slot_id, 1)
        assert result.status is ReservationStatus.CAPACITY_EXCEEDED
        assert result.available == 0


@pytest.mark.parametrize("quantity", [0, -2, True, 1.5, "2"])
def test_reserve_rejects_bad_quantity(app, make_slot, quantity):
    slot_id = make_slot(capacity=10)
    with app.app_context():
        with pytest.raises(InvalidLedgerRequest):
            get_ledger().reserve_slot(slot_id, quantity)
        assert db.session.get(Slot, slot_id).booked == 0


def test_reserve_unknown_or_inactive_slot(app, make_slot):
    inactive_id = make_slot(is_active=False)
    with app.app_context():
        assert get_ledger().reserve_slot(9999, 1).status is ReservationStatus.SLOT_NOT_FOUND
        assert get_ledger().reserve_slot(inactive_id, 1).status is ReservationStatus.SLOT_NOT_FOUND


def test_reserve_started_slot_is_closed(app, make_slot):
    slot_id = make_slot(starts_in=timedelta(hours=-1))
    with app.app_context():
        result = get_ledger().reserve_slot(slot_id, 1)
        assert result.status is ReservationStatus.SLOT_CLOSED
        assert db.session.get(Slot, slot_id).booked == 0


def test_reserve_uses_injected_clock(app, make_slot):
    slot_id = make_slot(starts_in=timedelta(days=1))
    with app.app_context():
        ledger = ReservationLedger(db.session, clock=lambda: datetime.utcnow() + timedelta(days=2))
        assert ledger.reserve_slot(slot_id, 1).status is ReservationStatus.SLOT_CLOSED


def test_successive_reservations_accumulate(app, make_slot):
    slot_id = make_slot(capacity=5)
    with app.app_context():
        ledger = get_ledger()
        outcomes = [ledger.reserve_slot(slot_id, 2).status for _ in range(3)]
        assert outcomes == [
            ReservationStatus.RESERVED,
            ReservationStatus.RESERVED,
            ReservationStatus.CAPACITY_EXCEEDED,
        ]
        assert db.session.get(Slot, slot_id).booked == 4
        assert Booking.query.count() == 2


# ---------- redeem_promo_code ----------

def test_reusable_code_discounts_and_stays_unused(app, make_promo):
    make_promo("SAVE10", 10)
    with app.app_context():
        ledger = get_ledger()
        first = ledger.redeem_promo_code("save10", 6000)
        second = ledger.redeem_promo_code(" SAVE10 ", 6000)

        assert first.status is RedemptionStatus.APPLIED
        assert first.final_price_cents == 5400
        assert first.discount_cents == 600
        assert second.applied
        assert PromoCode.query.filter_by(code="SAVE10").one().used is False


def test_one_time_gift_code_is_consumed_once(app, make_promo):
    make_promo("GIFT-ABC", 100, one_time=True, is_gift=True)
    with app.app_context():
        ledger = get_ledger()
        first = ledger.redeem_promo_code("GIFT-ABC", 12000)
        assert first.applied
        assert first.final_price_cents == 0

        promo = PromoCode.query.filter_by(code="GIFT-ABC").one()
        assert promo.used is True
        assert promo.used_at is not None

        second = ledger.redeem_promo_code("GIFT-ABC", 12000)
        assert second.status is RedemptionStatus.ALREADY_USED
        assert second.final_price_cents == 12000


def test_unknown_code_is_not_found_and_creates_nothing(app):
    with app.app_context():
        result = get_ledger().redeem_promo_code("NOPE", 5000)
        assert result.status is RedemptionStatus.NOT_FOUND
        assert result.final_price_cents == 5000
        assert PromoCode.query.count() == 0


def test_redeem_rejects_empty_code_and_bad_price(app, make_promo):
    make_promo("SAVE10", 10)
    with app.app_context():
        with pytest.raises(InvalidLedgerRequest):
            get_ledger().redeem_promo_code("  ", 5000)
        with pytest.raises(InvalidLedgerRequest):
            get_ledger().redeem_promo_code("SAVE10", 0)


def test_failed_persist_rolls_back_the_claim(app, make_promo):
    make_promo("ONCE", 50, one_time=True)

    def persist(result):
        db.session.add(Customer(name="X", email="x@example.com", tree_type="Amorosa",
                                amount_paid_cents=result.final_price_cents))
        raise RuntimeError("downstream failure")

    with app.app_context():
        with pytest.raises(RuntimeError):
            get_ledger().redeem_promo_code("ONCE", 4000, persist=persist)

        assert PromoCode.query.filter_by(code="ONCE").one().used is False
        assert Customer.query.count() == 0
        assert get_ledger().redeem_promo_code("ONCE", 4000).applied


def test_persist_sees_outcome_and_commits_with_code(app, make_promo):
    make_promo("HALF", 50, one_time=True)
    seen = []

    def persist(result):
        seen.append(result.status)
        db.session.add(Customer(name="Y", email="y@example.com", tree_type="Collina",
                                amount_paid_cents=result.final_price_cents, promo_code=result.code))

    with app.app_context():
        get_ledger().redeem_promo_code("HALF", 5000, persist=persist)
        get_ledger().redeem_promo_code("HALF", 5000, persist=persist)

        assert seen == [RedemptionStatus.APPLIED, RedemptionStatus.ALREADY_USED]
        assert sorted(c.amount_paid_cents for c in Customer.query.all()) == [2500, 5000]


@pytest.mark.parametrize(
    "base, percent, expected",
    [(6000, 10, 5400), (999, 50, 500), (3333, 15, 2833), (12000, 100, 0), (4200, 0, 4200)],
)
def test_apply_discount_rounds_half_up(base, percent, expected):
    assert apply_discount(base, percent) == expected


# ---------- generate_gift_code ----------

def test_gift_code_is_issued_and_stored_on_customer(app, make_customer):
    customer_id = make_customer(is_gift=True, status="paid")
    with app.app_context():
        promo = get_ledger().generate_gift_code(customer_id)

        assert promo.code.startswith(f"GIFT-{customer_id}-")
        assert len(promo.code.rsplit("-", 1)[1]) == 6
        assert promo.discount_percent == 100
        assert promo.one_time and promo.is_gift and not promo.used
        assert db.session.get(Customer, customer_id).gift_code == promo.code
        assert ActivityLog.query.filter_by(action="gift_code_issued", customer_id=customer_id).count() == 1


def test_gift_code_retries_on_collision(app, make_customer, make_promo, monkeypatch):
    customer_id = make_customer(is_gift=True)
    make_promo(f"GIFT-{customer_id}-AAAAAA", 100, one_time=True, is_gift=True)
    values = iter(["aaaaaa", "bbbbbb"])
    monkeypatch.setattr("services.ledger.secrets.token_hex", lambda n: next(values))

    with app.app_context():
        promo = get_ledger().generate_gift_code(customer_id)
        assert promo.code == f"GIFT-{customer_id}-BBBBBB"


def test_gift_code_gives_up_after_attempts(app, make_customer, make_promo, monkeypatch):
    customer_id = make_customer(is_gift=True)
    make_promo(f"GIFT-{customer_id}-AAAAAA", 100, one_time=True, is_gift=True)
    monkeypatch.setattr("services.ledger.secrets.token_hex", lambda n: "aaaaaa")

    with app.app_context():
        with pytest.raises(GiftCodeUnavailable):
            get_ledger().generate_gift_code(customer_id)
        assert db.session.get(Customer, customer_id).gift_code is None


def test_gift_code_for_missing_customer(app):
    with app.app_context():
        with pytest.raises(InvalidLedgerRequest):
            get_ledger().generate_gift_code(424242)
        assert PromoCode.query.count() == 0


def test_gift_code_is_issued_once_per_customer(app, make_customer):
    customer_id = make_customer(is_gift=True)
    with app.app_context():
        first = get_ledger().generate_gift_code(customer_id).code
        second = get_ledger().generate_gift_code(customer_id).code

        assert first == second
        assert PromoCode.query.filter_by(issued_for_customer_id=customer_id).count() == 1


def test_ledger_rejects_ids_outside_integer_range(app):
    with app.app_context():
        with pytest.raises(InvalidLedgerRequest):
            get_ledger().reserve_slot(10**20, 1)
        with pytest.raises(InvalidLedgerRequest):
            get_ledger().reserve_slot(1, 2**63)
        with pytest.raises(InvalidLedgerRequest):
            get_ledger().generate_gift_code(10**20)
