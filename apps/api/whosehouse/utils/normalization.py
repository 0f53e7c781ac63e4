"""Input normalization and sanitization helpers."""

import re
from typing import Optional

import nh3


EMAIL_PATTERN = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")

# C0/C1 control characters except tab, newline and carriage return
_CONTROL_CHARS = re.compile(r"[\x00-\x08\x0b\x0c\x0e-\x1f\x7f-\x9f]")


def normalize_email(email: Optional[str]) -> Optional[str]:
    """Normalize email to lowercase (None if empty)."""
    if not email:
        return None
    return email.strip().lower()


def is_valid_email(email: Optional[str]) -> bool:
    return bool(email) and EMAIL_PATTERN.match(email) is not None


def normalize_name(name: Optional[str]) -> Optional[str]:
    """Strip whitespace and collapse internal spaces (None if empty)."""
    if not name:
        return None
    return " ".join(name.split()) or None


def sanitize_text(value: str) -> str:
    """
    Make user-supplied plain text safe to store and render.

    HTML tags are stripped (their text content is kept), control
    characters are removed and surrounding whitespace trimmed.
    """
    cleaned = nh3.clean(value, tags=set(), attributes={})
    cleaned = _CONTROL_CHARS.sub("", cleaned)
    return cleaned.strip()
