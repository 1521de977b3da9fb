"""
User Model.

Pydantic model for a row of the ``users`` table.  Timestamps are epoch
milliseconds, matching the ``locked_until`` and credential expiry columns.
"""

from __future__ import annotations

import time
from typing import Optional

from pydantic import BaseModel

from identitykeeper.models.enums import Role


def current_millis() -> int:
    """Wall-clock time as epoch milliseconds."""
    return int(time.time() * 1000)


class User(BaseModel):
    """Represents an identity record.

    ``email`` is unique in the store.  Accounts created through a
    federated login carry a synthetic ``{id}@{provider}`` address.
    ``locked_until`` of ``0`` means the account was never locked.
    """

    id: str
    email: str
    name: str
    image_url: str
    role: Role = Role.SUBSCRIBER
    locked_until: int = 0
    created_at: int = 0
    updated_at: int = 0

    model_config = {"from_attributes": True}

    def is_locked(self, now_ms: Optional[int] = None) -> bool:
        """``True`` while *now_ms* (default: current time) is before ``locked_until``."""
        now = current_millis() if now_ms is None else now_ms
        return now < self.locked_until
