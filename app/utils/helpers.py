import math
import re
import unicodedata
from datetime import datetime, timezone
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP

from flask import request

TWO_PLACES = Decimal("0.01")


def utcnow():
    """Naive UTC timestamp, matching what the DATETIME columns store."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def slugify(value):
    """Turn a title into a url slug (accents stripped, lower-case, dashes)."""
    if not value:
        return ""
    value = unicodedata.normalize("NFKD", str(value))
    value = value.encode("ascii", "ignore").decode("ascii")
    value = re.sub(r"[^a-zA-Z0-9]+", "-", value.lower())
    return value.strip("-")


def parse_datetime(value):
    """Parse an ISO-8601 string (``Z`` suffix allowed) into naive UTC.

    Returns None for empty input and raises ValueError for garbage.
    """
    if value in (None, ""):
        return None
    if isinstance(value, datetime):
        parsed = value
    else:
        text = str(value).strip()
        if text.endswith("Z"):
            text = text[:-1] + "+00:00"
        parsed = datetime.fromisoformat(text)
    if parsed.tzinfo is not None:
        parsed = parsed.astimezone(timezone.utc).replace(tzinfo=None)
    return parsed


def parse_decimal(value, field="value"):
    if value is None or value == "":
        return None
    try:
        return Decimal(str(value))
    except (InvalidOperation, ValueError):
        raise ValueError(f"{field} must be a number")


def parse_bool(value):
    if isinstance(value, bool):
        return value
    if value is None:
        return None
    return str(value).strip().lower() in ("1", "true", "yes", "on")


def quantize(amount):
    return Decimal(amount).quantize(TWO_PLACES, rounding=ROUND_HALF_UP)


def money(value):
    """Decimal -> float for JSON payloads (None stays None)."""
    if value is None:
        return None
    return float(value)


def iso(value):
    return value.isoformat() if value else None


def get_pagination(default_limit=10, max_limit=100):
    """Read ``page`` / ``limit`` from the query string."""
    try:
        page = max(int(request.args.get("page", 1)), 1)
    except (TypeError, ValueError):
        page = 1
    try:
        limit = int(request.args.get("limit", default_limit))
    except (TypeError, ValueError):
        limit = default_limit
    limit = min(max(limit, 1), max_limit)
    return page, limit, (page - 1) * limit


def build_pagination(page, limit, total):
    return {
        "page": page,
        "limit": limit,
        "total": total,
        "totalPages": math.ceil(total / limit) if limit else 0,
    }


def normalize_email(email):
    return (email or "").strip().lower()
