"""
Base Service Class.

Minimal base class standardizing the logger and id-generator pattern for
all services.  Services extend this and add their repository
dependencies via __init__.
"""

from __future__ import annotations

from identitykeeper.logger import StructuredLogger
from identitykeeper.utils.ids import IdGenerator


class BaseService:
    """Base class for all service classes. Provides a logger and id source."""

    def __init__(self, logger: StructuredLogger, id_generator: IdGenerator) -> None:
        self._logger: StructuredLogger = logger
        self._ids: IdGenerator = id_generator
