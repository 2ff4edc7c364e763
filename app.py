import logging

import click
from flask import Flask, jsonify, request
from flask_migrate import Migrate
from sqlalchemy import inspect
from sqlalchemy.exc import SQLAlchemyError

from config import Config, load_site_config
from models import db
from models.site_content import SiteContent
from routes import (
    health_bp, pages_bp, adoption_bp, booking_bp, feedback_bp,
    content_bp, admin_bp, exports_bp,
)
from services.ledger import GiftCodeUnavailable, InvalidLedgerRequest
from services.locks import KeyedLocks
from utils.seed import seed_site_content
from utils.validation import IdConverter, ValidationError

logger = logging.getLogger(__name__)


def create_app(test_config=None):
    app = Flask(__name__)
    app.config.from_object(Config)
    if test_config:
        app.config.update(test_config)

    # Site settings, then explicit overrides win again
    app.config.update(load_site_config(app.config["SITE_CONFIG_PATH"]))
    if test_config:
        app.config.update(test_config)

    logging.basicConfig(
        level=getattr(logging, str(app.config["LOG_LEVEL"]).upper(), logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    # Must exist before any rule using <id:...> is added
    app.url_map.converters["id"] = IdConverter

    # Register routes
    app.register_blueprint(health_bp)
    app.register_blueprint(pages_bp)
    app.register_blueprint(adoption_bp)
    app.register_blueprint(booking_bp)
    app.register_blueprint(feedback_bp)
    app.register_blueprint(content_bp)
    app.register_blueprint(admin_bp)
    app.register_blueprint(exports_bp)

    # Database init
    db.init_app(app)

    # Migrations
    Migrate(app, db)

    # One registry per process; only consulted when the database can't lock rows
    app.extensions["reservation_locks"] = KeyedLocks()

    with app.app_context():
        if app.config["AUTO_CREATE_TABLES"]:
            db.create_all()
        # Safe & idempotent; a fresh database managed by `flask db upgrade` has no tables yet
        if inspect(db.engine).has_table(SiteContent.__tablename__):
            seed_site_content()
        else:
            logger.info("Skipping content seed: no %s table yet", SiteContent.__tablename__)

    @app.errorhandler(ValidationError)
    @app.errorhandler(InvalidLedgerRequest)
    def _bad_request(exc):
        return jsonify(error=str(exc)), 400

    @app.errorhandler(GiftCodeUnavailable)
    def _gift_code_unavailable(exc):
        logger.error("%s", exc)
        return jsonify(error="Gift code could not be issued, please try again"), 503

    @app.errorhandler(SQLAlchemyError)
    def _db_error(exc):
        db.session.rollback()
        logger.exception("Database error on %s %s", request.method, request.path)
        return jsonify(error="Something went wrong"), 500

    @app.after_request
    def add_security_headers(resp):
        resp.headers["X-Content-Type-Options"] = "nosniff"
        resp.headers["X-Frame-Options"] = "DENY"
        resp.headers["Referrer-Policy"] = "no-referrer"
        resp.headers["Permissions-Policy"] = "geolocation=(), microphone=(), camera=()"
        # Landing pages carry inline styles; JSON and CSV get the strict policy
        if resp.mimetype != "text/html":
            resp.headers["Content-Security-Policy"] = "default-src 'none'; frame-ancestors 'none';"
        return resp

    register_cli(app)

    return app


#-------------------------
def register_cli(app):
    from datetime import datetime, timedelta

    from sqlalchemy.exc import IntegrityError

    from models.promo_code import PromoCode
    from models.slot import Slot
    from services.ledger import normalize_code
    from utils.money import eur_to_cents

    @app.cli.command("seed-content")
    def seed_content():
        """Insert any missing editable content blocks."""
        added = seed_site_content()
        click.echo(f"{added} content block(s) added")

    @app.cli.command("create-promo")
    @click.argument("code")
    @click.option("--percent", type=click.IntRange(0, 100), required=True)
    @click.option("--one-time", is_flag=True, default=False)
    def create_promo(code, percent, one_time):
        """Create a promo code (e.g. SAVE10 --percent 10)."""
        promo = PromoCode(code=normalize_code(code), discount_percent=percent, one_time=one_time, used=False)
        db.session.add(promo)
        try:
            db.session.commit()
        except IntegrityError:
            db.session.rollback()
            raise click.ClickException(f"{promo.code} already exists")
        click.echo(f"{promo.code} created ({percent}% off{', one-time' if one_time else ''})")

    @app.cli.command("create-slots")
    @click.argument("activity")
    @click.option("--start", "start", required=True, help="First start time, ISO 8601 (UTC)")
    @click.option("--minutes", type=click.IntRange(1), default=120, show_default=True)
    @click.option("--capacity", type=click.IntRange(0), default=10, show_default=True)
    @click.option("--price", type=click.FloatRange(0), default=0.0, show_default=True)
    @click.option("--days", type=click.IntRange(1, 366), default=1, show_default=True,
                  help="Number of consecutive daily slots")
    def create_slots(activity, start, minutes, capacity, price, days):
        """Schedule daily slots for an activity, skipping times that already exist."""
        try:
            first = datetime.fromisoformat(start)
        except ValueError:
            raise click.BadParameter("use ISO 8601, e.g. 2026-06-01T10:00", param_hint="--start")

        created = 0
        for i in range(days):
            st = first + timedelta(days=i)
            if Slot.query.filter_by(activity=activity, start_time=st).first():
                continue
            db.session.add(Slot(
                activity=activity,
                start_time=st,
                end_time=st + timedelta(minutes=minutes),
                capacity=capacity,
                booked=0,
                price_cents=eur_to_cents(price),
            ))
            created += 1
        db.session.commit()
        click.echo(f"{created} slot(s) created for {activity}")

#-------------------------


if __name__ == "__main__":
    app = create_app()
    # Run locally
    app.run(host="127.0.0.1", port=5002)
