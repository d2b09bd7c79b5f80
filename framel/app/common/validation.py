from __future__ import annotations

import re
from typing import Any, Dict, Iterable, List, Mapping

from framel.app.common.errors import ValidationFailed

EMAIL_REGEX = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")
KENYAN_PHONE_REGEX = re.compile(r"^(?:254|\+254|0)?([17]\d{8})$")

MIN_PASSWORD_LENGTH = 8
MAX_PASSWORD_LENGTH = 100


def form_data(source: Mapping[str, Any], fields: Iterable[str]) -> Dict[str, str]:
    """Stripped string values for the given form fields ("" when absent)."""
    return {f: (source.get(f) or "").strip() for f in fields}


def require_fields(data: Mapping[str, Any], fields: Iterable[str]) -> None:
    missing = [f for f in fields if not data.get(f)]
    if missing:
        raise ValidationFailed("Missing required fields: " + ", ".join(missing), {"missing": missing})


def is_valid_email(email: str) -> bool:
    return bool(EMAIL_REGEX.match(email or ""))


def password_errors(password: str) -> List[str]:
    errors = []

    if len(password) < MIN_PASSWORD_LENGTH:
        errors.append(f"Password must be at least {MIN_PASSWORD_LENGTH} characters")

    if len(password) > MAX_PASSWORD_LENGTH:
        errors.append("Password is too long")

    if not re.search(r"[A-Z]", password):
        errors.append("Password must include one uppercase letter")

    if not re.search(r"[a-z]", password):
        errors.append("Password must include one lowercase letter")

    if not re.search(r"[0-9]", password):
        errors.append("Password must include one number")

    return errors


def normalize_kenyan_phone(phone: str) -> str:
    """Return the number as 254XXXXXXXXX (the format M-Pesa expects)."""
    cleaned = re.sub(r"[\s-]", "", phone or "")
    match = KENYAN_PHONE_REGEX.match(cleaned)
    if not match:
        raise ValidationFailed("Invalid Kenyan phone number", {"phone": phone})
    return "254" + match.group(1)


def safe_redirect_path(target: Any, fallback: str) -> str:
    """Only follow same-site relative paths."""
    if isinstance(target, str) and target.startswith("/") and not target.startswith("//"):
        return target
    return fallback


def parse_rating(raw: Any) -> int:
    try:
        rating = int(raw)
    except (TypeError, ValueError):
        rating = 0
    if rating < 1 or rating > 5:
        raise ValidationFailed("Rating must be between 1 and 5.")
    return rating


def parse_non_negative_int(raw: Any, name: str) -> int:
    try:
        value = int(raw)
    except (TypeError, ValueError):
        raise ValidationFailed(f"{name} must be a whole number") from None
    if value < 0:
        raise ValidationFailed(f"{name} must not be negative")
    return value
