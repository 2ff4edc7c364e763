import logging

from flask import Blueprint, request, jsonify, current_app

from models import db
from models.site_content import SiteContent
from utils.seed import DEFAULT_CONTENT, default_content_value
from utils.validation import ValidationError, text_field

logger = logging.getLogger(__name__)

content_bp = Blueprint("content", __name__, url_prefix="/api")


@content_bp.get("/content")
def list_content():
    rows = {r.key: r for r in SiteContent.query.all()}
    out = []
    for key, (label, _) in DEFAULT_CONTENT.items():
        row = rows.get(key)
        out.append({
            "key": key,
            "label": label,
            "value": row.value if row else default_content_value(key),
            "lastUpdated": row.last_updated.isoformat() if row else None,
        })
    return jsonify(out), 200


@content_bp.route("/content", methods=["PUT", "POST"])
def update_content():
    data = request.get_json(silent=True) or {}
    key = text_field(data, "key", required=True)
    if key not in DEFAULT_CONTENT:
        raise ValidationError("Invalid content key")
    value = data.get("value")
    if not isinstance(value, str):
        raise ValidationError("value must be a string")

    row = db.session.get(SiteContent, key)
    if row is None:
        row = SiteContent(key=key)
        db.session.add(row)
    row.value = value
    db.session.commit()

    logger.info("Content updated: %s", key)
    return jsonify(success=True, message="Content updated successfully", key=key), 200


@content_bp.get("/config")
def get_config():
    # Read-only view; webhooks stay server-side
    return jsonify(
        features=current_app.config.get("FEATURES", {}),
        defaults=current_app.config.get("DEFAULTS", {}),
        activities=current_app.config.get("ACTIVITIES", []),
    ), 200


@content_bp.get("/products")
def list_products():
    return jsonify(current_app.config.get("PRODUCTS", [])), 200
