"""
Time-Sortable Identifier Generator.

Identifiers are 24 lowercase hex characters::

    <12 hex: epoch millis><4 hex: per-millisecond sequence><8 hex: random node>

Fixed width makes lexicographic order equal to creation order, which the
``users`` listing (``ORDER BY id DESC``) relies on.
"""

from __future__ import annotations

import secrets
import threading
import time
from typing import Callable, Optional

__all__ = ["IdGenerator"]

_SEQUENCE_LIMIT: int = 0x10000


class IdGenerator:
    """Thread-safe generator of unique, time-ordered string ids.

    Parameters
    ----------
    node:
        8-hex-digit discriminator for this process.  Random by default so
        that several processes sharing one store never collide.
    clock:
        Callable returning epoch milliseconds (injectable for tests).
    """

    def __init__(
        self,
        node: Optional[str] = None,
        clock: Optional[Callable[[], int]] = None,
    ) -> None:
        self._node: str = node if node is not None else secrets.token_hex(4)
        if len(self._node) != 8 or any(c not in "0123456789abcdef" for c in self._node):
            raise ValueError("node must be 8 lowercase hex digits")
        self._clock: Callable[[], int] = clock or (lambda: int(time.time() * 1000))
        self._lock: threading.Lock = threading.Lock()
        self._last_ms: int = -1
        self._sequence: int = 0

    def next_id(self) -> str:
        """Return a new identifier strictly greater than every earlier one from this generator."""
        with self._lock:
            now = self._clock()
            if now < self._last_ms:
                # Clock went backwards; keep issuing from the last instant.
                now = self._last_ms
            if now == self._last_ms:
                self._sequence += 1
                if self._sequence >= _SEQUENCE_LIMIT:
                    now = self._last_ms + 1
                    self._sequence = 0
            else:
                self._sequence = 0
            self._last_ms = now
            return f"{now:012x}{self._sequence:04x}{self._node}"
