import logging

from flask import current_app

from models import db
from models.site_content import SiteContent

logger = logging.getLogger(__name__)

# key -> (label, default value)
DEFAULT_CONTENT = {
    "hero_tagline": (
        "Hero Tagline",
        "Nature, apples, and quiet moments in the Åland archipelago",
    ),
    "about_text": (
        "About Öfvergårds",
        "Öfvergårds is a small family-run farm nestled in the beautiful Åland archipelago, "
        "between Sweden and Finland. Here, life follows the rhythm of the seasons.\n\n"
        "We grow apples, tend to our land, and welcome visitors who seek a slower pace, "
        "a chance to reconnect with nature and experience authentic island life.",
    ),
    "light_in_dark_text": (
        "Light in the Dark Description",
        "While most visitors come in summer, we believe there's something magical about the "
        "quieter months. When the days grow shorter and the world slows down, Åland reveals a "
        "different kind of beauty.\n\nLight in the Dark is our invitation to experience the low "
        "season: cozy gatherings, candlelit evenings, and the peace that comes from truly "
        "stepping away.",
    ),
    "cta_text": (
        "Call to Action Text",
        "When you adopt an apple tree at Öfvergårds, you're not just getting apples. You're "
        "joining our farm family and supporting sustainable, small-scale agriculture.",
    ),
    "experience_nourish": (
        "Nourished by Nature Description",
        "Forest walks, foraging sessions, and farm-to-table meals. Let the island's natural "
        "abundance restore you.",
    ),
}


def default_content_value(key: str) -> str:
    overrides = current_app.config.get("CONTENT_DEFAULTS") or {}
    if key in overrides:
        return overrides[key]
    return DEFAULT_CONTENT[key][1] if key in DEFAULT_CONTENT else ""


def seed_site_content() -> int:
    """Insert missing content blocks; existing edits are left alone (idempotent)."""
    existing = {row.key for row in SiteContent.query.all()}
    added = 0
    for key in DEFAULT_CONTENT:
        if key not in existing:
            db.session.add(SiteContent(key=key, value=default_content_value(key)))
            added += 1
    db.session.commit()
    if added:
        logger.info("Site content initialized (%d block(s))", added)
    return added
