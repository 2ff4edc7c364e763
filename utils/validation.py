from datetime import datetime, timezone

from werkzeug.routing import IntegerConverter

# Largest value an INTEGER column holds (SQLite and BIGINT)
MAX_DB_INT = 2**63 - 1


class ValidationError(ValueError):
    """Client-input error; rendered as a 400 by the app."""


class IdConverter(IntegerConverter):
    """`<id:...>` URL part; ids the database can't hold don't match (404)."""

    def __init__(self, map, *args, **kwargs):
        kwargs.setdefault("max", MAX_DB_INT)
        super().__init__(map, *args, **kwargs)


def db_int(value) -> int:
    """`type=` for query args; out-of-range values fall back to the default."""
    number = int(value)
    if abs(number) > MAX_DB_INT:
        raise ValueError(f"{value} is out of range")
    return number


def text_field(data: dict, key: str, required: bool = False, max_length: int = None):
    value = data.get(key)
    if value is None:
        value = ""
    if not isinstance(value, str):
        raise ValidationError(f"{key} must be a string")
    value = value.strip()
    if required and not value:
        raise ValidationError(f"{key} is required")
    if max_length and len(value) > max_length:
        raise ValidationError(f"{key} must be at most {max_length} characters")
    return value or None


def int_field(data: dict, key: str, default=None, minimum: int = None, maximum: int = None):
    value = data.get(key, default)
    if value is None:
        raise ValidationError(f"{key} is required")
    # bool is an int subclass; "true" is not a count
    if isinstance(value, bool):
        raise ValidationError(f"{key} must be a whole number")
    if isinstance(value, str) and value.strip().lstrip("-").isdigit():
        value = int(value.strip())
    if not isinstance(value, int):
        raise ValidationError(f"{key} must be a whole number")
    if maximum is None or maximum > MAX_DB_INT:
        maximum = MAX_DB_INT
    if minimum is None or minimum < -MAX_DB_INT:
        minimum = -MAX_DB_INT
    if value < minimum:
        raise ValidationError(f"{key} must be at least {minimum}")
    if value > maximum:
        raise ValidationError(f"{key} must be at most {maximum}")
    return value


def bool_field(data: dict, key: str, default: bool = False) -> bool:
    value = data.get(key, default)
    if isinstance(value, bool):
        return value
    if isinstance(value, str):
        return value.strip().lower() in ("1", "true", "yes", "on")
    return bool(value)


def is_valid_email(email) -> bool:
    return isinstance(email, str) and "@" in email and len(email) <= 255


def email_field(data: dict, key: str, required: bool = True):
    value = text_field(data, key, required=required)
    if value is None:
        return None
    value = value.lower()
    if not is_valid_email(value):
        raise ValidationError(f"{key} is not a valid email")
    return value


def parse_iso(dt_str: str, key: str = "time") -> datetime:
    # Expect ISO format like "2026-07-20T10:00:00"; aware values are converted to naive UTC
    if not isinstance(dt_str, str) or not dt_str.strip():
        raise ValidationError(f"{key} is required")
    try:
        value = datetime.fromisoformat(dt_str.strip().replace("Z", "+00:00"))
    except ValueError:
        raise ValidationError(f"Invalid {key}. Use ISO e.g. 2026-07-20T10:00:00")
    if value.tzinfo is not None:
        value = value.astimezone(timezone.utc).replace(tzinfo=None)
    return value
