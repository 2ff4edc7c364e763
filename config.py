import copy
import json
import logging
import os

from dotenv import load_dotenv

BASE_DIR = os.path.abspath(os.path.dirname(__file__))
load_dotenv(os.path.join(BASE_DIR, ".env"))

logger = logging.getLogger(__name__)

# Used when config.json is missing or unreadable
DEFAULT_SITE_CONFIG = {
    "features": {
        "surveys_enabled": True,
        "adoptions_enabled": True,
        "newsletter_enabled": True,
        "bookings_enabled": True,
    },
    "defaults": {
        "adoption_price_eur": 50,
        "currency": "EUR",
        "tree_types": ["Amorosa", "Discovery", "Collina"],
        "max_adoption_years": 5,
    },
    "activities": ["safari", "tasting", "picnic"],
    "products": [],
    "content_defaults": {},
    "automation": {
        "webhook_on_adoption": "",
        "webhook_on_feedback": "",
        "webhook_on_payment": "",
        "webhook_on_booking": "",
    },
}


def load_site_config(path: str) -> dict:
    """
    Read config.json and merge it over DEFAULT_SITE_CONFIG, section by section.
    Returns Flask config keys (FEATURES, DEFAULTS, ...).
    """
    site = copy.deepcopy(DEFAULT_SITE_CONFIG)
    try:
        with open(path, encoding="utf-8") as fh:
            loaded = json.load(fh)
    except FileNotFoundError:
        logger.warning("%s not found, using defaults", path)
        loaded = {}
    except (OSError, ValueError) as exc:
        logger.warning("Error parsing %s: %s (using defaults)", path, exc)
        loaded = {}
    else:
        logger.info("Configuration loaded from %s", path)

    for section, value in loaded.items():
        if isinstance(site.get(section), dict) and isinstance(value, dict):
            site[section].update(value)
        elif section in site:
            site[section] = value

    return {
        "FEATURES": site["features"],
        "DEFAULTS": site["defaults"],
        "ACTIVITIES": list(site["activities"]),
        "PRODUCTS": list(site["products"]),
        "CONTENT_DEFAULTS": dict(site["content_defaults"]),
        "AUTOMATION_WEBHOOKS": site["automation"],
    }


class Config:
    # Secrets
    SECRET_KEY = os.getenv("SECRET_KEY", "dev-only-change-me")

    # SQLite database file stored next to the app as ofvergards.db
    SQLALCHEMY_DATABASE_URI = os.getenv(
        "DATABASE_URL",
        "sqlite:///" + os.path.join(BASE_DIR, "ofvergards.db")
    )
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    # create_all() at startup; turn off when the schema is managed with `flask db upgrade`
    AUTO_CREATE_TABLES = os.getenv("AUTO_CREATE_TABLES", "true").lower() == "true"

    # Site settings file (features, prices, products, webhooks)
    SITE_CONFIG_PATH = os.getenv("SITE_CONFIG_PATH", os.path.join(BASE_DIR, "config.json"))

    # Mocked post-payment automation
    AUTOMATION_DELAY_SECONDS = float(os.getenv("AUTOMATION_DELAY_SECONDS", "1"))
    AUTOMATION_INLINE = False  # run in the request thread (tests)

    # Gift codes
    GIFT_CODE_ATTEMPTS = 5

    # Admin listings
    ACTIVITY_FEED_LIMIT = 50
    ADMIN_LIST_LIMIT = 200

    # Payment landing pages link back here
    FRONTEND_BASE_URL = os.getenv("FRONTEND_BASE_URL", "http://localhost:8080")

    LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")

    # Basic app settings
    DEBUG = False
