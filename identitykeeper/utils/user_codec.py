"""
Versioned Cache Encoding for ``User``.

Cache entries are JSON envelopes::

    {"v": 1, "user": {"id": "...", "email": "...", ...}}

:func:`decode_user` returns ``None`` for anything it cannot read (bad
JSON, another version, a payload that fails model validation), so the
caller treats the entry as a miss and overwrites it from the store.
"""

from __future__ import annotations

import json
from typing import Optional

from pydantic import ValidationError

from identitykeeper.models.user import User

__all__ = ["USER_CODEC_VERSION", "decode_user", "encode_user"]

USER_CODEC_VERSION: int = 1


def encode_user(user: User) -> str:
    """Serialise *user* into the current envelope version."""
    return json.dumps(
        {"v": USER_CODEC_VERSION, "user": user.model_dump(mode="json")},
        ensure_ascii=False,
        separators=(",", ":"),
    )


def decode_user(raw: Optional[str]) -> Optional[User]:
    """Parse an envelope produced by :func:`encode_user`; ``None`` if unreadable."""
    if not raw:
        return None
    try:
        envelope = json.loads(raw)
    except (TypeError, ValueError):
        return None
    if not isinstance(envelope, dict) or envelope.get("v") != USER_CODEC_VERSION:
        return None
    payload = envelope.get("user")
    if not isinstance(payload, dict):
        return None
    try:
        return User.model_validate(payload)
    except ValidationError:
        return None
