from flask import Blueprint, request, jsonify, current_app

from models import db
from models.customer import Customer
from services import get_ledger
from utils.automation import dispatch, post_payment_automation
from utils.money import cents_to_eur, eur_to_cents
from utils.notifier import get_notifier
from utils.validation import ValidationError, bool_field, email_field, int_field, text_field

adoption_bp = Blueprint("adoption", __name__, url_prefix="/api")


def _defaults() -> dict:
    return current_app.config.get("DEFAULTS", {})


def _adoption_price_cents(years: int) -> int:
    return eur_to_cents(_defaults().get("adoption_price_eur", 50)) * years


# ---------- PUBLIC: adopt a tree ----------
@adoption_bp.post("/adopt")
def adopt():
    if not current_app.config.get("FEATURES", {}).get("adoptions_enabled", True):
        return jsonify(error="Adoptions are currently disabled"), 503

    data = request.get_json(silent=True) or {}
    name = text_field(data, "name", required=True, max_length=120)
    email = email_field(data, "email")
    country = text_field(data, "country", max_length=80)
    tree_type = text_field(data, "treeType", required=True, max_length=40)
    years = int_field(data, "years", default=1, minimum=1, maximum=_defaults().get("max_adoption_years", 5))
    is_gift = bool_field(data, "isGift")
    promo_code = text_field(data, "promoCode", max_length=40)

    tree_types = _defaults().get("tree_types") or []
    if tree_types and tree_type not in tree_types:
        raise ValidationError(f"treeType must be one of: {', '.join(tree_types)}")

    base_price = _adoption_price_cents(years)

    def new_customer(amount_cents, code=None):
        return Customer(
            name=name,
            email=email,
            country=country,
            tree_type=tree_type,
            years=years,
            is_gift=is_gift,
            promo_code=code,
            amount_paid_cents=amount_cents,
            status="interested",
            newsletter_stage="none",
        )

    redemption = None
    if promo_code and base_price > 0:
        created = {}

        # Runs inside the ledger's transaction so the code's used flag and the
        # customer row commit together
        def persist(result):
            customer = new_customer(result.final_price_cents, result.code if result.applied else None)
            db.session.add(customer)
            db.session.flush()
            created["customer"] = customer

        redemption = get_ledger().redeem_promo_code(promo_code, base_price, persist=persist)
        customer = created["customer"]
    else:
        customer = new_customer(base_price)
        db.session.add(customer)
        db.session.commit()

    get_notifier().adoption_started(customer)

    return jsonify(
        success=True,
        message="Interest registered! Proceeding to payment.",
        id=customer.id,
        name=customer.name,
        treeType=customer.tree_type,
        years=customer.years,
        isGift=customer.is_gift,
        basePrice=cents_to_eur(base_price),
        amount=cents_to_eur(customer.amount_paid_cents),
        promoApplied=bool(redemption and redemption.applied),
        promoStatus=redemption.status.value if redemption else None,
    ), 201


# ---------- PUBLIC: advisory promo check (no redemption) ----------
@adoption_bp.post("/promo/validate")
def validate_promo():
    data = request.get_json(silent=True) or {}
    code = text_field(data, "code", required=True, max_length=40)

    promo = get_ledger().find_promo_code(code)
    if promo is None:
        return jsonify(valid=False, reason="not_found"), 200
    if promo.consumed:
        return jsonify(valid=False, reason="already_used"), 200

    return jsonify(
        valid=True,
        code=promo.code,
        discountPercent=promo.discount_percent,
        oneTime=promo.one_time,
    ), 200


# ---------- PUBLIC: simulated payment for an adoption ----------
@adoption_bp.post("/confirm-payment")
def confirm_payment():
    data = request.get_json(silent=True) or {}
    customer_id = int_field(data, "customerId", minimum=1)

    customer = db.session.get(Customer, customer_id)
    if not customer:
        return jsonify(error="Customer not found"), 404

    # Guarded transition so a double submit pays once
    updated = Customer.query.filter_by(id=customer_id, status="interested").update({"status": "paid"})
    db.session.commit()

    # A paid gift without its code (issuing failed last time) may retry here
    owes_gift_code = customer.is_gift and not customer.gift_code
    if not updated and not owes_gift_code:
        return jsonify(error="Payment already confirmed"), 409

    if updated:
        get_notifier().payment_completed(customer_id, customer.amount_paid_cents)
        dispatch(post_payment_automation, customer_id)

    gift_code = None
    if customer.is_gift:
        # GiftCodeUnavailable -> 503; the payment stays confirmed and the client can retry
        gift_code = get_ledger().generate_gift_code(customer_id).code

    return jsonify(
        success=True,
        message="Payment confirmed!",
        amount=cents_to_eur(customer.amount_paid_cents),
        giftCode=gift_code,
    ), 200
