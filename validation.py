"""Field format checks shared by request models and bulk imports."""

import re
from typing import Any, Iterable, List


EMAIL_RE = re.compile(r"^[A-Za-z0-9._%+-]+@[A-Za-z0-9.-]+\.[A-Za-z]{2,}$")
PHONE_RE = re.compile(r"^[+]?[0-9\s\-()]{10,20}$")

MIN_PASSWORD_LENGTH = 6
MAX_PRICE = 999999999999.99


def is_valid_email(email: Any) -> bool:
    return isinstance(email, str) and bool(EMAIL_RE.match(email))


def is_valid_phone_number(phone: Any) -> bool:
    if not phone:
        return True
    return isinstance(phone, str) and bool(PHONE_RE.match(phone))


def is_valid_password(password: Any) -> bool:
    return isinstance(password, str) and len(password) >= MIN_PASSWORD_LENGTH


def is_valid_price(price: Any) -> bool:
    try:
        value = float(price)
    except (TypeError, ValueError):
        return False
    return 0 < value < MAX_PRICE


def sanitize_input(data: Any) -> Any:
    """Recursively trim every string in a JSON-like structure."""
    if isinstance(data, str):
        return data.strip()
    if isinstance(data, dict):
        return {key: sanitize_input(value) for key, value in data.items()}
    if isinstance(data, list):
        return [sanitize_input(item) for item in data]
    return data


def format_validation_errors(errors: Iterable[dict]) -> List[str]:
    """Turn pydantic error dicts into ``"<field>: <reason>"`` strings."""
    formatted = []
    for error in errors:
        loc = [str(part) for part in error.get("loc", ()) if part not in ("body", "query", "path")]
        field = ".".join(loc) or "body"
        message = error.get("msg", "Invalid value")
        if message.startswith("Value error, "):
            message = message[len("Value error, "):]
        formatted.append(f"{field}: {message}")
    return formatted
