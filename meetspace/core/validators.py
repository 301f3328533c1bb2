"""
Input format checks shared by the order and payment paths.
"""

from typing import Any
from urllib.parse import urlparse

from pydantic import EmailStr, TypeAdapter, ValidationError

_EMAIL_ADAPTER = TypeAdapter(EmailStr)


def is_valid_email(value: Any) -> bool:
    """Syntax check backed by email-validator; no DNS lookups."""
    # EmailStr also accepts the "Name <addr>" form
    if not isinstance(value, str) or "<" in value:
        return False
    try:
        _EMAIL_ADAPTER.validate_python(value.strip())
    except ValidationError:
        return False
    return True


def is_valid_url(value: Any) -> bool:
    """Absolute http(s) URL with a host."""
    if not isinstance(value, str) or not value:
        return False
    parsed = urlparse(value)
    return parsed.scheme in ("http", "https") and bool(parsed.netloc)
