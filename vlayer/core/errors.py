"""
vlayer Errors

Fatal errors abort a scan before any file is read. Everything else is a
ScanWarning collected on the result.
"""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass
from typing import Any, Optional

logger = logging.getLogger(__name__)


class VlayerError(Exception):
    """Base class for all vlayer errors."""


class ConfigurationError(VlayerError):
    """Invalid root path, options or explicit config file."""


class BaselineError(VlayerError):
    """An explicitly requested baseline file is missing or corrupt."""


@dataclass(frozen=True)
class ScanWarning:
    source: str
    message: str
    details: Optional[str] = None

    def to_dict(self) -> dict[str, Any]:
        result: dict[str, Any] = {"source": self.source, "message": self.message}
        if self.details:
            result["details"] = self.details
        return result


class WarningLog:
    """Scan-scoped, thread-safe collector of non-fatal problems."""

    def __init__(self) -> None:
        self._items: list[ScanWarning] = []
        self._seen: set[tuple[str, str]] = set()
        self._lock = threading.Lock()

    def add(self, source: str, message: str, details: Optional[str] = None) -> None:
        with self._lock:
            key = (source, message)
            if key in self._seen:
                return
            self._seen.add(key)
            self._items.append(ScanWarning(source, message, details))
        logger.warning("%s: %s", source, message)

    def items(self) -> list[ScanWarning]:
        with self._lock:
            return list(self._items)

    def __len__(self) -> int:
        return len(self._items)
