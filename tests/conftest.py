from datetime import datetime, timedelta

import pytest

from app import create_app
from models import db
from models.customer import Customer
from models.promo_code import PromoCode
from models.slot import Slot


@pytest.fixture
def app(tmp_path):
    app = create_app({
        "TESTING": True,
        "SQLALCHEMY_DATABASE_URI": f"sqlite:///{tmp_path / 'farm.db'}",
        # missing file -> built-in site defaults
        "SITE_CONFIG_PATH": str(tmp_path / "config.json"),
        "AUTO_CREATE_TABLES": True,
        "AUTOMATION_INLINE": True,
        "AUTOMATION_DELAY_SECONDS": 0,
    })
    yield app
    with app.app_context():
        db.session.remove()
        db.drop_all()
        db.engine.dispose()


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def make_slot(app):
    def _make(capacity=10, booked=0, activity="safari", starts_in=timedelta(days=2), price_cents=2500,
              is_active=True):
        start = datetime.utcnow().replace(microsecond=0) + starts_in
        with app.app_context():
            slot = Slot(
                activity=activity,
                start_time=start,
                end_time=start + timedelta(hours=2),
                capacity=capacity,
                booked=booked,
                price_cents=price_cents,
                is_active=is_active,
            )
            db.session.add(slot)
            db.session.commit()
            return slot.id
    return _make


@pytest.fixture
def make_promo(app):
    def _make(code, discount_percent, one_time=False, used=False, is_gift=False):
        with app.app_context():
            promo = PromoCode(
                code=code,
                discount_percent=discount_percent,
                one_time=one_time,
                used=used,
                is_gift=is_gift,
            )
            db.session.add(promo)
            db.session.commit()
            return promo.id
    return _make


@pytest.fixture
def make_customer(app):
    def _make(name="Anna", email="anna@example.com", is_gift=False, status="interested"):
        with app.app_context():
            customer = Customer(
                name=name,
                email=email,
                tree_type="Amorosa",
                years=1,
                is_gift=is_gift,
                amount_paid_cents=5000,
                status=status,
            )
            db.session.add(customer)
            db.session.commit()
            return customer.id
    return _make
