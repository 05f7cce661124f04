"""Field-level request validation.

Each helper reads one field from a request payload (JSON body or form data),
appends ``{"field", "message"}`` to ``errors`` when the value is unusable,
and returns the coerced value (or None when absent/invalid). Callers raise
``ValidationError`` once every field has been checked so the client sees all
problems at once.
"""

import re
from datetime import datetime, timezone
from typing import Optional

from flask import request

from utils.errors import ValidationError

EMAIL_REGEX = r"^[^\s@]+@[^\s@]+\.[^\s@]+$"


def _error(errors: list, field: str, message: str):
    errors.append({"field": field, "message": message})


def json_object() -> dict:
    """The JSON body as a dict ({} when absent); arrays and scalars are rejected."""
    data = request.get_json(silent=True)
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ValidationError([{"field": "body", "message": "JSON object required"}])
    return data


def is_present(data: dict, field: str) -> bool:
    """A field counts as present only when sent with a non-null value."""
    return field in data and data[field] is not None


def require_string(data: dict, field: str, errors: list) -> Optional[str]:
    value = data.get(field)
    if not isinstance(value, str) or not value.strip():
        _error(errors, field, f"{field} is required")
        return None
    return value.strip()


def optional_string(data: dict, field: str, errors: list) -> Optional[str]:
    if not is_present(data, field):
        return None
    value = data[field]
    if not isinstance(value, str):
        _error(errors, field, f"{field} must be a string")
        return None
    return value


def _coerce_int(value) -> Optional[int]:
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, str) and re.fullmatch(r"-?\d+", value.strip()):
        return int(value.strip())
    return None


def _coerce_float(value) -> Optional[float]:
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return float(value)
    if isinstance(value, str):
        try:
            return float(value.strip())
        except ValueError:
            return None
    return None


def require_int(
    data: dict, field: str, errors: list, minimum: Optional[int] = None
) -> Optional[int]:
    if not is_present(data, field):
        _error(errors, field, f"{field} is required")
        return None
    return optional_int(data, field, errors, minimum=minimum)


def optional_int(
    data: dict, field: str, errors: list, minimum: Optional[int] = None
) -> Optional[int]:
    if not is_present(data, field):
        return None
    value = _coerce_int(data[field])
    if value is None:
        _error(errors, field, f"{field} must be an integer")
        return None
    if minimum is not None and value < minimum:
        _error(errors, field, f"{field} must be at least {minimum}")
        return None
    return value


def require_number(
    data: dict, field: str, errors: list, minimum: Optional[float] = None
) -> Optional[float]:
    if not is_present(data, field):
        _error(errors, field, f"{field} is required")
        return None
    value = _coerce_float(data[field])
    if value is None or value != value:  # NaN
        _error(errors, field, f"{field} must be a number")
        return None
    if minimum is not None and value < minimum:
        _error(errors, field, f"{field} must be at least {minimum}")
        return None
    return value


def optional_datetime(data: dict, field: str, errors: list) -> Optional[str]:
    """Parse an ISO-8601 value and return it as a naive UTC 'YYYY-MM-DD HH:MM:SS'."""
    if not is_present(data, field):
        return None
    value = data[field]
    if not isinstance(value, str):
        _error(errors, field, f"{field} must be an ISO-8601 date")
        return None
    try:
        parsed = datetime.fromisoformat(value.strip().replace("Z", "+00:00"))
    except ValueError:
        _error(errors, field, f"{field} must be an ISO-8601 date")
        return None
    if parsed.tzinfo is not None:
        parsed = parsed.astimezone(timezone.utc).replace(tzinfo=None)
    return parsed.strftime("%Y-%m-%d %H:%M:%S")


def require_email(data: dict, field: str, errors: list) -> Optional[str]:
    value = require_string(data, field, errors)
    if value is None:
        return None
    if not re.match(EMAIL_REGEX, value):
        _error(errors, field, "Please enter a valid email address")
        return None
    return value.lower()


def require_choice(data: dict, field: str, errors: list, choices) -> Optional[str]:
    value = data.get(field)
    if value not in choices:
        _error(errors, field, f"{field} must be one of: {', '.join(choices)}")
        return None
    return value


def raise_if_errors(errors: list):
    if errors:
        raise ValidationError(errors)


def merge_updates(existing: dict, updates: dict) -> dict:
    """Field-by-field merge: an absent update keeps the stored value."""
    merged = dict(existing)
    for column, value in updates.items():
        if value is not None:
            merged[column] = value
    return merged
