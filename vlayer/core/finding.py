"""
vlayer Finding Model

A Finding represents one compliance issue found during scanning.
Covers PHI exposure, encryption, audit logging, access control and
data retention findings.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Optional


class Severity(Enum):
    CRITICAL = "critical"
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"
    INFO = "info"

    @classmethod
    def from_string(cls, value: str) -> "Severity":
        """Parse a severity from a string (case-insensitive)."""
        return cls[value.upper()]

    @property
    def rank(self) -> int:
        """Sort rank, 0 for the most severe."""
        return _SEVERITY_ORDER.index(self)

    def __ge__(self, other: "Severity") -> bool:
        return self.rank <= other.rank

    def __gt__(self, other: "Severity") -> bool:
        return self.rank < other.rank

    def __le__(self, other: "Severity") -> bool:
        return not self.__gt__(other)

    def __lt__(self, other: "Severity") -> bool:
        return not self.__ge__(other)


_SEVERITY_ORDER = [
    Severity.CRITICAL,
    Severity.HIGH,
    Severity.MEDIUM,
    Severity.LOW,
    Severity.INFO,
]


class Confidence(Enum):
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"

    @classmethod
    def from_string(cls, value: str) -> "Confidence":
        return cls[value.upper()]

    @property
    def level(self) -> int:
        return {"low": 0, "medium": 1, "high": 2}[self.value]


class Category(Enum):
    PHI_EXPOSURE = "phi-exposure"
    ENCRYPTION = "encryption"
    AUDIT_LOGGING = "audit-logging"
    ACCESS_CONTROL = "access-control"
    DATA_RETENTION = "data-retention"

    @classmethod
    def from_string(cls, value: str) -> "Category":
        for category in cls:
            if category.value == value.lower():
                return category
        raise ValueError(f"Unknown category: {value}")


ALL_CATEGORIES = list(Category)

# Reserved `file` values for project-wide findings that are not tied to a
# single source line. These are deduplicated by id after scanning.
PROJECT_LEVEL = "project-level"
ASSET_INVENTORY = "ASSET-INVENTORY"
PHI_FLOW_MAP = "PHI-FLOW-MAP"
AGGREGATE_MARKERS = frozenset({PROJECT_LEVEL, ASSET_INVENTORY, PHI_FLOW_MAP})


@dataclass(frozen=True)
class Acknowledgment:
    reason: str
    acknowledged_by: str
    acknowledged_at: str
    ticket_url: Optional[str] = None
    expired: bool = False

    def to_dict(self) -> dict[str, Any]:
        result: dict[str, Any] = {
            "reason": self.reason,
            "acknowledgedBy": self.acknowledged_by,
            "acknowledgedAt": self.acknowledged_at,
        }
        if self.ticket_url:
            result["ticketUrl"] = self.ticket_url
        if self.expired:
            result["expired"] = True
        return result

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Acknowledgment":
        return cls(
            reason=data.get("reason", ""),
            acknowledged_by=data.get("acknowledgedBy", ""),
            acknowledged_at=data.get("acknowledgedAt", ""),
            ticket_url=data.get("ticketUrl"),
            expired=bool(data.get("expired", False)),
        )


@dataclass(frozen=True)
class Suppression:
    """An inline `vlayer-ignore` comment that silenced a finding."""

    reason: str
    comment: str


@dataclass(frozen=True)
class Finding:
    id: str
    category: Category
    severity: Severity
    title: str
    description: str
    file: str
    recommendation: str
    compliance_reference: str = ""
    line: Optional[int] = None
    column: Optional[int] = None
    confidence: Optional[Confidence] = None
    pattern_id: Optional[str] = None
    adjust_confidence_by_context: bool = True
    acknowledged: bool = False
    acknowledgment: Optional[Acknowledgment] = None
    is_baseline: bool = False
    suppressed: bool = False
    suppression: Optional[Suppression] = None
    ai_classification: Optional[str] = None
    ai_confidence: Optional[float] = None
    ai_reasoning: Optional[str] = None

    @property
    def is_aggregate(self) -> bool:
        """True for project-wide findings attached to a reserved marker."""
        return self.file in AGGREGATE_MARKERS

    @property
    def is_active(self) -> bool:
        """True when the finding counts towards the compliance score."""
        return not self.is_baseline and not self.suppressed

    def display(self) -> str:
        """Human-readable output for console printing."""
        loc = self.file
        if self.line is not None:
            loc = f"{self.file}:{self.line}"

        parts = [
            f"[{self.severity.value.upper()}] {self.title}",
            f"  Rule: {self.id}",
            f"  Location: {loc}",
            f"  {self.description}",
        ]
        if self.recommendation:
            parts.append(f"  Fix: {self.recommendation}")
        return "\n".join(parts)

    def to_dict(self) -> dict[str, Any]:
        """Convert finding to a dictionary for JSON serialization."""
        result: dict[str, Any] = {
            "id": self.id,
            "category": self.category.value,
            "severity": self.severity.value,
            "title": self.title,
            "description": self.description,
            "file": self.file,
            "recommendation": self.recommendation,
            "complianceReference": self.compliance_reference,
        }
        if self.line is not None:
            result["line"] = self.line
        if self.column is not None:
            result["column"] = self.column
        if self.confidence is not None:
            result["confidence"] = self.confidence.value
        if self.pattern_id:
            result["patternId"] = self.pattern_id
        if not self.adjust_confidence_by_context:
            result["adjustConfidenceByContext"] = False
        if self.acknowledged:
            result["acknowledged"] = True
        if self.acknowledgment:
            result["acknowledgment"] = self.acknowledgment.to_dict()
        if self.is_baseline:
            result["isBaseline"] = True
        if self.suppressed:
            result["suppressed"] = True
        if self.suppression:
            result["suppression"] = {
                "reason": self.suppression.reason,
                "comment": self.suppression.comment,
            }
        if self.ai_classification:
            result["aiClassification"] = self.ai_classification
        if self.ai_confidence is not None:
            result["aiConfidence"] = self.ai_confidence
        if self.ai_reasoning:
            result["aiReasoning"] = self.ai_reasoning
        return result

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Finding":
        """Rebuild a finding from its `to_dict()` form."""
        confidence = data.get("confidence")
        acknowledgment = data.get("acknowledgment")
        suppression = data.get("suppression")
        return cls(
            id=data["id"],
            category=Category.from_string(data["category"]),
            severity=Severity.from_string(data["severity"]),
            title=data.get("title", ""),
            description=data.get("description", ""),
            file=data.get("file", ""),
            recommendation=data.get("recommendation", ""),
            compliance_reference=data.get("complianceReference", ""),
            line=data.get("line"),
            column=data.get("column"),
            confidence=Confidence.from_string(confidence) if confidence else None,
            pattern_id=data.get("patternId"),
            adjust_confidence_by_context=data.get("adjustConfidenceByContext", True),
            acknowledged=bool(data.get("acknowledged", False)),
            acknowledgment=Acknowledgment.from_dict(acknowledgment) if acknowledgment else None,
            is_baseline=bool(data.get("isBaseline", False)),
            suppressed=bool(data.get("suppressed", False)),
            suppression=Suppression(**suppression) if suppression else None,
            ai_classification=data.get("aiClassification"),
            ai_confidence=data.get("aiConfidence"),
            ai_reasoning=data.get("aiReasoning"),
        )


def sort_by_severity(findings: list[Finding]) -> list[Finding]:
    """Stable sort, most severe first."""
    return sorted(findings, key=lambda f: f.severity.rank)


@dataclass
class StackInfo:
    """Advisory description of the scanned project's technology stack."""

    framework: str = "unknown"
    database: str = "unknown"
    auth: str = "unknown"
    recommendations: list[str] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "framework": self.framework,
            "database": self.database,
            "auth": self.auth,
            "recommendations": list(self.recommendations),
        }
