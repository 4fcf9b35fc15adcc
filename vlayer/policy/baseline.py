"""
vlayer Baseline

A baseline is a JSON snapshot of accepted findings:

    {"version": "1.0", "createdAt": "...", "findings": [{"hash": ..., "id": ...,
     "file": ..., "line": ..., "title": ..., "severity": ..., "category": ...}]}

Findings present in the baseline are marked `is_baseline` and no longer
count towards the score. Identity is a hash of file, line, id and title;
entries without a hash (older snapshots) fall back to id + file.
"""

from __future__ import annotations

import hashlib
import json
import logging
from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Optional

from vlayer.core.errors import BaselineError
from vlayer.core.finding import Finding

logger = logging.getLogger(__name__)

BASELINE_VERSION = "1.0"


def finding_hash(finding: Finding) -> str:
    key = f"{finding.file}:{finding.line or 0}:{finding.id}:{finding.title}"
    return hashlib.sha256(key.encode("utf-8")).hexdigest()[:16]


def baseline_entry(finding: Finding) -> dict[str, Any]:
    return {
        "hash": finding_hash(finding),
        "id": finding.id,
        "file": finding.file,
        "line": finding.line,
        "title": finding.title,
        "severity": finding.severity.value,
        "category": finding.category.value,
    }


@dataclass
class Baseline:
    version: str = BASELINE_VERSION
    created_at: str = ""
    entries: list[dict[str, Any]] = field(default_factory=list)

    def __post_init__(self) -> None:
        self._hashes = {e["hash"] for e in self.entries if e.get("hash")}
        self._legacy = {
            (e.get("id"), e.get("file")) for e in self.entries if not e.get("hash")
        }

    def contains(self, finding: Finding) -> bool:
        if finding_hash(finding) in self._hashes:
            return True
        return (finding.id, finding.file) in self._legacy

    def __len__(self) -> int:
        return len(self.entries)

    @classmethod
    def _from_dict(cls, data: dict[str, Any]) -> "Baseline":
        entries = data.get("findings")
        if not isinstance(entries, list) or not all(isinstance(e, dict) for e in entries):
            raise ValueError("'findings' must be a list of objects")
        for entry in entries:
            for key in ("hash", "id", "file"):
                value = entry.get(key)
                if value is not None and not isinstance(value, str):
                    raise ValueError(f"finding '{key}' must be a string, got {type(value).__name__}")
        return cls(
            version=str(data.get("version", BASELINE_VERSION)),
            created_at=str(data.get("createdAt", "")),
            entries=entries,
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "version": self.version,
            "createdAt": self.created_at,
            "findings": list(self.entries),
        }


def load_baseline(path: Path) -> Baseline:
    """Load a baseline snapshot.

    Raises:
        BaselineError: The file is missing, not JSON, or not a baseline.
    """
    try:
        with open(path, encoding="utf-8") as f:
            data = json.load(f)
    except FileNotFoundError as exc:
        raise BaselineError(f"Baseline file not found: {path}") from exc
    except (OSError, json.JSONDecodeError) as exc:
        raise BaselineError(f"Cannot read baseline {path}: {exc}") from exc

    if not isinstance(data, dict):
        raise BaselineError(f"Baseline {path} must contain a JSON object")
    try:
        baseline = Baseline._from_dict(data)
    except ValueError as exc:
        raise BaselineError(f"Invalid baseline {path}: {exc}") from exc

    logger.debug("Loaded baseline with %d finding(s) from %s", len(baseline), path)
    return baseline


def apply_baseline(findings: list[Finding], baseline: Optional[Baseline]) -> list[Finding]:
    if baseline is None:
        return list(findings)
    return [
        replace(f, is_baseline=True) if not f.is_baseline and baseline.contains(f) else f
        for f in findings
    ]


def create_baseline(findings: list[Finding], now: Optional[datetime] = None) -> Baseline:
    created = (now or datetime.now(timezone.utc)).isoformat()
    return Baseline(
        version=BASELINE_VERSION,
        created_at=created,
        entries=[baseline_entry(f) for f in findings],
    )


def save_baseline(path: Path, findings: list[Finding], now: Optional[datetime] = None) -> Baseline:
    """Write a snapshot of `findings` to `path` and return it."""
    baseline = create_baseline(findings, now)
    try:
        path.write_text(json.dumps(baseline.to_dict(), indent=2), encoding="utf-8")
    except OSError as exc:
        raise BaselineError(f"Cannot write baseline {path}: {exc}") from exc
    logger.info("Wrote baseline with %d finding(s) to %s", len(baseline), path)
    return baseline
