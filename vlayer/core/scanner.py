"""
vlayer Base Scanner

A scanner is a component that inspects a batch of files and returns
compliance findings. Scanners are stateless; everything a scan needs
(root, config, warnings, the per-batch source cache) travels in a frozen
ScanContext.
"""

from __future__ import annotations

import logging
import threading
from abc import ABC, abstractmethod
from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import Optional

from vlayer.core.config import VlayerConfig
from vlayer.core.errors import WarningLog
from vlayer.core.files import relative_posix
from vlayer.core.finding import Category, Finding

logger = logging.getLogger(__name__)


class SourceCache:
    """Lines of each file read during one batch."""

    def __init__(self, warnings: Optional[WarningLog] = None) -> None:
        self._lines: dict[Path, Optional[list[str]]] = {}
        self._lock = threading.Lock()
        self._warnings = warnings

    def lines(self, file_path: Path) -> Optional[list[str]]:
        with self._lock:
            if file_path in self._lines:
                return self._lines[file_path]
        try:
            content = file_path.read_text(errors="ignore")
            lines: Optional[list[str]] = content.splitlines()
        except OSError as exc:
            logger.debug("Cannot read %s: %s", file_path, exc)
            if self._warnings is not None:
                self._warnings.add("file", f"Cannot read {file_path}", str(exc))
            lines = None
        with self._lock:
            self._lines[file_path] = lines
        return lines


@dataclass(frozen=True)
class ScanContext:
    root: Path
    config: VlayerConfig = field(default_factory=VlayerConfig)
    warnings: WarningLog = field(default_factory=WarningLog)
    sources: SourceCache = field(default_factory=SourceCache)

    def for_batch(self) -> "ScanContext":
        """Same context with a fresh source cache."""
        return replace(self, sources=SourceCache(self.warnings))

    def relative(self, file_path: Path) -> str:
        return relative_posix(file_path, self.root)

    def read_lines(self, file_path: Path) -> Optional[list[str]]:
        return self.sources.lines(file_path)


class BaseScanner(ABC):
    """
    Minimal scanner interface.
    Each scanner must implement scan(); scan_project() is optional and runs
    once per scan over the full file list.
    """

    name: str = "base"
    category: Category = Category.ACCESS_CONTROL

    @abstractmethod
    def scan(self, files: list[Path], context: ScanContext) -> list[Finding]:
        """
        Scan one batch of files and return findings.
        """
        raise NotImplementedError

    def scan_project(self, files: list[Path], context: ScanContext) -> list[Finding]:
        """Project-wide checks over every selected file."""
        return []

    def __repr__(self) -> str:
        return f"<{type(self).__name__} {self.name} ({self.category.value})>"
