"""
vlayer Acknowledgment Loader

Acknowledgments are accepted risks declared in the config file under
`acknowledgedFindings`. Each entry names a file glob plus optional id,
category and severity filters, and records who accepted the risk and why.

Invalid entries are reported as `acknowledgedFindings[i]: ...` messages
and dropped; the rest of the config still loads.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime, timezone
from typing import Any, Optional


@dataclass(frozen=True)
class AcknowledgmentRule:
    """A single accepted-risk declaration."""

    file_pattern: str
    reason: str
    acknowledged_by: str
    acknowledged_at: str
    id: Optional[str] = None
    category: Optional[str] = None
    severity: Optional[str] = None
    expires_at: Optional[str] = None
    ticket_url: Optional[str] = None

    @classmethod
    def _from_dict(cls, data: dict[str, Any]) -> "AcknowledgmentRule":
        return cls(
            file_pattern=_pattern_of(data),
            reason=data["reason"],
            acknowledged_by=data["acknowledgedBy"],
            acknowledged_at=_date_text(data["acknowledgedAt"]),
            id=data.get("id"),
            category=data.get("category"),
            severity=data.get("severity"),
            expires_at=_date_text(data["expiresAt"]) if data.get("expiresAt") else None,
            ticket_url=data.get("ticketUrl"),
        )

    def is_expired(self, now: datetime) -> bool:
        if not self.expires_at:
            return False
        expires = parse_iso_datetime(self.expires_at)
        return expires is not None and expires < now


def load_acknowledgment_rules(entries: list[Any]) -> tuple[list[AcknowledgmentRule], list[str]]:
    """Parse the raw `acknowledgedFindings` list.

    Returns:
        (valid rules in declared order, validation error messages)
    """
    rules: list[AcknowledgmentRule] = []
    errors: list[str] = []

    if not isinstance(entries, list):
        return rules, ["acknowledgedFindings: must be a list"]

    for index, entry in enumerate(entries):
        if not isinstance(entry, dict):
            errors.append(f"acknowledgedFindings[{index}]: entry must be a mapping")
            continue
        entry_errors = validate_acknowledgment(entry, index)
        if entry_errors:
            errors.extend(entry_errors)
            continue
        rules.append(AcknowledgmentRule._from_dict(entry))

    return rules, errors


def validate_acknowledgment(entry: dict[str, Any], index: int) -> list[str]:
    """Return the validation messages for one acknowledgment entry."""
    errors: list[str] = []
    prefix = f"acknowledgedFindings[{index}]"

    if not _pattern_of(entry) or not isinstance(_pattern_of(entry), str):
        errors.append(f"{prefix}: 'pattern' is required and must be a string")

    for key in ("reason", "acknowledgedBy"):
        if not entry.get(key) or not isinstance(entry.get(key), str):
            errors.append(f"{prefix}: '{key}' is required and must be a string")

    acknowledged_at = entry.get("acknowledgedAt")
    if not acknowledged_at or not isinstance(acknowledged_at, (str, date)):
        errors.append(f"{prefix}: 'acknowledgedAt' is required and must be a string")
    elif parse_iso_datetime(_date_text(acknowledged_at)) is None:
        errors.append(f"{prefix}: 'acknowledgedAt' must be a valid ISO 8601 date")

    expires_at = entry.get("expiresAt")
    if expires_at and parse_iso_datetime(_date_text(expires_at)) is None:
        errors.append(f"{prefix}: 'expiresAt' must be a valid ISO 8601 date")

    return errors


def parse_iso_datetime(value: str) -> Optional[datetime]:
    """Parse an ISO 8601 date or timestamp. Naive values are taken as UTC."""
    if not isinstance(value, str):
        return None
    text = value.strip()
    if text.endswith(("Z", "z")):
        text = text[:-1] + "+00:00"
    try:
        parsed = datetime.fromisoformat(text)
    except ValueError:
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def _pattern_of(entry: dict[str, Any]) -> Any:
    return entry.get("pattern", entry.get("filePattern"))


def _date_text(value: Any) -> str:
    # YAML turns unquoted dates into date/datetime objects
    if isinstance(value, (date, datetime)):
        return value.isoformat()
    return str(value)
