"""Input validation and sanitization for form payloads and query params"""
import re
from typing import Any, Dict, Iterable, Optional


EMAIL_PATTERN = re.compile(r'^[a-zA-Z0-9._%+-]+@[a-zA-Z0-9.-]+\.[a-zA-Z]{2,}$')
CONTROL_CHARS = re.compile(r'[\x00-\x08\x0b-\x0c\x0e-\x1f]')

MAX_FIELD_LENGTH = 500
MAX_ID_LENGTH = 64
MAX_EMAIL_LENGTH = 320

TRUTHY = ('true', '1', 'yes')


def sanitize_string(value: Any, max_length: Optional[int] = None, allow_empty: bool = True) -> Optional[str]:
    """Strip whitespace and control characters (newlines and tabs survive), then truncate"""
    if value is None:
        return None if allow_empty else ""

    cleaned = CONTROL_CHARS.sub('', str(value).strip())
    if max_length:
        cleaned = cleaned[:max_length]

    if not cleaned and not allow_empty:
        return None
    return cleaned


def validate_email(email: str) -> bool:
    if not email or len(email) > MAX_EMAIL_LENGTH:
        return False
    return bool(EMAIL_PATTERN.match(email))


def validate_integer(value: Any, min_value: Optional[int] = None, max_value: Optional[int] = None) -> Optional[int]:
    """Convert to int and clamp into [min_value, max_value]; None when not a number"""
    if value is None:
        return None
    try:
        number = int(value)
    except (ValueError, TypeError):
        return None

    if min_value is not None:
        number = max(number, min_value)
    if max_value is not None:
        number = min(number, max_value)
    return number


def validate_enum(value: Any, allowed_values: Iterable[str], case_sensitive: bool = True) -> Optional[str]:
    """Return the value when it is one of allowed_values, else None"""
    if not value:
        return None

    candidate = str(value).strip()
    allowed = list(allowed_values)
    if not case_sensitive:
        candidate = candidate.lower()
        allowed = [v.lower() for v in allowed]

    return candidate if candidate in allowed else None


def validate_boolean(value: Any) -> bool:
    """Query-string style flag: 'true', '1' or 'yes'"""
    if isinstance(value, bool):
        return value
    if value is None:
        return False
    return str(value).strip().lower() in TRUTHY


def sanitize_payload(data: Dict[str, Any], allowed_keys: Iterable[str], max_length: int = MAX_FIELD_LENGTH) -> Dict[str, Any]:
    """
    Keep only known keys from a JSON body and sanitize their string values.

    Non-string values (e.g. numbers sent for amounts) are kept as-is so the
    field mapper can report them precisely.
    """
    sanitized = {}
    for key in allowed_keys:
        if key not in data:
            continue
        value = data[key]
        sanitized[key] = sanitize_string(value, max_length=max_length) if isinstance(value, str) else value
    return sanitized
