"""
Input Normalisation & Validation.

Every value a caller supplies for a new user passes through one of the
``check_*`` functions before any write.  Each returns the normalised
value or raises :class:`~identitykeeper.errors.InvalidInputError`.
"""

from __future__ import annotations

import re
from typing import Optional
from urllib.parse import urlparse

from identitykeeper.errors import InvalidInputError

__all__ = [
    "check_email",
    "check_name",
    "check_password",
    "check_url",
    "normalize_email",
    "sanitize_name",
]

_EMAIL_RE: re.Pattern[str] = re.compile(
    r"^[a-zA-Z0-9.!#$%&'*+/=?^_`{|}~-]+"
    r"@[a-zA-Z0-9](?:[a-zA-Z0-9-]{0,61}[a-zA-Z0-9])?"
    r"(?:\.[a-zA-Z0-9](?:[a-zA-Z0-9-]{0,61}[a-zA-Z0-9])?)+$"
)

# C0 and C1 control characters, including newlines and tabs.
_CONTROL_CHAR_RE: re.Pattern[str] = re.compile(r"[\x00-\x1f\x7f-\x9f]")

# Tag delimiters only; ``&`` and quotes are allowed in names.
_MARKUP_CHAR_RE: re.Pattern[str] = re.compile(r"[<>]")

_URL_MAX_LENGTH: int = 1000


def normalize_email(email: str) -> str:
    """Strip whitespace and lowercase."""
    return email.strip().lower()


def check_email(email: Optional[str], max_length: int = 100) -> str:
    """Return the normalised email or raise ``InvalidInputError``."""
    if email is None or not email.strip():
        raise InvalidInputError("Email address is required.", field="email")
    normalized = normalize_email(email)
    if len(normalized) > max_length:
        raise InvalidInputError(
            f"Email address must be at most {max_length} characters.", field="email"
        )
    if not _EMAIL_RE.match(normalized):
        raise InvalidInputError("Invalid email address.", field="email")
    return normalized


def check_name(name: Optional[str], max_length: int = 100) -> str:
    """Trim a display name and reject empty, oversized or unsafe values."""
    if name is None:
        raise InvalidInputError("Name is required.", field="name")
    stripped = name.strip()
    if not stripped:
        raise InvalidInputError("Name is required.", field="name")
    if len(stripped) > max_length:
        raise InvalidInputError(
            f"Name must be at most {max_length} characters.", field="name"
        )
    if _CONTROL_CHAR_RE.search(stripped) or _MARKUP_CHAR_RE.search(stripped):
        raise InvalidInputError(
            "Name contains invalid characters.", field="name"
        )
    return stripped


def sanitize_name(name: Optional[str], fallback: str, max_length: int = 100) -> str:
    """Best-effort display name for provider-supplied values.

    Unsafe characters are dropped rather than rejected, the result is
    truncated to *max_length*, and *fallback* is used when nothing
    printable remains.
    """
    cleaned = _MARKUP_CHAR_RE.sub("", _CONTROL_CHAR_RE.sub("", name or "")).strip()
    if not cleaned:
        cleaned = fallback
    return cleaned[:max_length]


def check_url(url: Optional[str], default: str) -> str:
    """Return *url* if it is an absolute http(s) URL or a root-relative path.

    ``None`` and blank strings yield *default*.
    """
    if url is None or not url.strip():
        return default
    candidate = url.strip()
    if len(candidate) > _URL_MAX_LENGTH or _CONTROL_CHAR_RE.search(candidate):
        raise InvalidInputError("Invalid URL.", field="image_url")
    if candidate.startswith("/") and not candidate.startswith("//"):
        return candidate
    parsed = urlparse(candidate)
    if parsed.scheme not in ("http", "https") or not parsed.netloc:
        raise InvalidInputError("Invalid URL.", field="image_url")
    return candidate


def check_password(password: Optional[str]) -> str:
    """Passwords are opaque; only emptiness is rejected here."""
    if not password:
        raise InvalidInputError("Password is required.", field="password")
    return password
