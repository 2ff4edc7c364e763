import threading
import time

from models import db
from models.booking import Booking
from models.promo_code import PromoCode
from models.slot import Slot
from services import get_ledger
from services.ledger import RedemptionStatus, ReservationStatus
from services.locks import KeyedLocks


def _run_concurrently(app, work, count):
    """Start `count` threads at once, each with its own app context and session."""
    barrier = threading.Barrier(count)
    results = [None] * count
    errors = []

    def runner(i):
        with app.app_context():
            barrier.wait()
            try:
                results[i] = work(i)
            except Exception as exc:  # surfaced by the assertion below
                errors.append(exc)

    threads = [threading.Thread(target=runner, args=(i,)) for i in range(count)]
    for t in threads:
        t.start()
    for t in threads:
        t.join(timeout=30)

    assert not errors, errors
    return results


def test_two_reservations_cannot_oversell(app, make_slot):
    slot_id = make_slot(capacity=10)

    results = _run_concurrently(app, lambda i: get_ledger().reserve_slot(slot_id, 6).status, 2)

    assert sorted(results) == sorted([ReservationStatus.RESERVED, ReservationStatus.CAPACITY_EXCEEDED])
    with app.app_context():
        assert db.session.get(Slot, slot_id).booked == 6
        assert Booking.query.count() == 1


def test_many_reservers_never_exceed_capacity(app, make_slot):
    slot_id = make_slot(capacity=15)
    quantities = [1, 2, 3, 1, 2, 3, 1, 2, 3, 1, 2, 3]

    results = _run_concurrently(
        app, lambda i: (quantities[i], get_ledger().reserve_slot(slot_id, quantities[i]).status), len(quantities)
    )

    reserved = sum(q for q, status in results if status is ReservationStatus.RESERVED)
    with app.app_context():
        slot = db.session.get(Slot, slot_id)
        assert slot.booked == reserved
        assert slot.booked <= slot.capacity
        assert sum(b.quantity for b in Booking.query.all()) == reserved


def test_one_time_code_is_applied_exactly_once(app, make_promo):
    make_promo("GIFT-RACE", 100, one_time=True, is_gift=True)

    results = _run_concurrently(app, lambda i: get_ledger().redeem_promo_code("GIFT-RACE", 5000).status, 6)

    assert results.count(RedemptionStatus.APPLIED) == 1
    assert results.count(RedemptionStatus.ALREADY_USED) == 5
    with app.app_context():
        assert PromoCode.query.filter_by(code="GIFT-RACE").one().used is True


def test_keyed_locks_serialize_same_key_only():
    locks = KeyedLocks()
    inside = []
    overlap = []

    def worker(key):
        with locks.hold(key):
            inside.append(key)
            if inside.count(key) > 1:
                overlap.append(key)
            time.sleep(0.01)
            inside.remove(key)

    threads = [threading.Thread(target=worker, args=(("slot", i % 2),)) for i in range(8)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    assert overlap == []
    # entries are dropped once nobody waits on them
    assert len(locks) == 0
