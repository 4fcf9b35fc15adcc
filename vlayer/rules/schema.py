"""
vlayer Custom Rule Schema

A rules file is a YAML document:

    version: "1.0"
    rules:
      - id: no-patient-console
        name: Patient data in console output
        description: Patient objects must not be printed
        category: phi-exposure
        severity: high
        pattern: console\\.log\\(.*patient
        recommendation: Use the audit logger instead
        include: ["src/**"]
        exclude: ["**/*.test.ts"]
        mustNotContain: redact

Validation mirrors the field rules users see in error messages, e.g.
`id: Rule ID must be lowercase alphanumeric with hyphens`.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import Any, Optional

from vlayer.core.finding import Category, Confidence, Severity

RULE_ID_PATTERN = re.compile(r"^[a-z0-9-]+$")
DEFAULT_FLAGS = "i"

_FLAG_MAP = {
    "i": re.IGNORECASE,
    "m": re.MULTILINE,
    "s": re.DOTALL,
    "x": re.VERBOSE,
}
# Accepted for compatibility with JavaScript-style flag strings, no effect
_IGNORED_FLAGS = set("guy")

_CATEGORY_VALUES = [c.value for c in Category]
_SEVERITY_VALUES = [s.value for s in Severity]
_CONFIDENCE_VALUES = [c.value for c in Confidence]

_REQUIRED_TEXT = {
    "name": "Rule name is required",
    "description": "Rule description is required",
    "pattern": "Pattern is required",
    "recommendation": "Recommendation is required",
}


def parse_flags(flags: str) -> int:
    value = 0
    for char in flags:
        if char in _FLAG_MAP:
            value |= _FLAG_MAP[char]
    return value


def validate_rules_document(data: Any) -> list[str]:
    """Top-level shape checks. Returns `path: message` issues."""
    if not isinstance(data, dict):
        return ["(root): Expected object"]
    issues = []
    if not isinstance(data.get("version"), str):
        issues.append("version: Required string")
    if not isinstance(data.get("rules"), list):
        issues.append("rules: Required array")
    return issues


def validate_rule(data: Any) -> list[str]:
    """Field checks for one rule entry. Returns `path: message` issues."""
    if not isinstance(data, dict):
        return ["(rule): Expected object"]

    issues: list[str] = []

    rule_id = data.get("id")
    if not isinstance(rule_id, str):
        issues.append("id: Required string")
    elif not RULE_ID_PATTERN.match(rule_id):
        issues.append("id: Rule ID must be lowercase alphanumeric with hyphens")

    for key, message in _REQUIRED_TEXT.items():
        value = data.get(key)
        if not isinstance(value, str) or not value:
            issues.append(f"{key}: {message}")

    if data.get("category") not in _CATEGORY_VALUES:
        issues.append(f"category: Expected one of {', '.join(_CATEGORY_VALUES)}")
    if data.get("severity") not in _SEVERITY_VALUES:
        issues.append(f"severity: Expected one of {', '.join(_SEVERITY_VALUES)}")

    flags = data.get("flags")
    if flags is not None:
        if not isinstance(flags, str):
            issues.append("flags: Expected string")
        else:
            unknown = sorted(set(flags) - set(_FLAG_MAP) - _IGNORED_FLAGS)
            if unknown:
                issues.append(f"flags: Unsupported flag(s) {''.join(unknown)}")

    for key in ("include", "exclude"):
        value = data.get(key)
        if value is not None and not (
            isinstance(value, list) and all(isinstance(v, str) for v in value)
        ):
            issues.append(f"{key}: Expected array of strings")

    for key in ("complianceReference", "hipaaReference", "mustNotContain"):
        value = data.get(key)
        if value is not None and not isinstance(value, str):
            issues.append(f"{key}: Expected string")

    confidence = data.get("confidence")
    if confidence is not None and confidence not in _CONFIDENCE_VALUES:
        issues.append(f"confidence: Expected one of {', '.join(_CONFIDENCE_VALUES)}")

    adjust = data.get("adjustConfidenceByContext")
    if adjust is not None and not isinstance(adjust, bool):
        issues.append("adjustConfidenceByContext: Expected boolean")

    return issues


@dataclass(frozen=True)
class CustomRule:
    """A validated, compiled user rule."""

    id: str
    name: str
    description: str
    category: Category
    severity: Severity
    pattern: str
    recommendation: str
    flags: str = DEFAULT_FLAGS
    include: tuple[str, ...] = ()
    exclude: tuple[str, ...] = ()
    compliance_reference: str = ""
    must_not_contain: Optional[str] = None
    confidence: Optional[Confidence] = None
    adjust_confidence_by_context: bool = True
    source: str = ""
    regex: re.Pattern = field(init=False, repr=False, compare=False)
    negative_regex: Optional[re.Pattern] = field(init=False, repr=False, compare=False)

    def __post_init__(self) -> None:
        # re.error propagates to the loader, which reports it per rule
        flags = parse_flags(self.flags)
        object.__setattr__(self, "regex", re.compile(self.pattern, flags))
        negative = re.compile(self.must_not_contain, flags) if self.must_not_contain else None
        object.__setattr__(self, "negative_regex", negative)

    @classmethod
    def _from_dict(cls, data: dict[str, Any], source: str = "") -> "CustomRule":
        confidence = data.get("confidence")
        return cls(
            id=data["id"],
            name=data["name"],
            description=data["description"],
            category=Category.from_string(data["category"]),
            severity=Severity.from_string(data["severity"]),
            pattern=data["pattern"],
            recommendation=data["recommendation"],
            flags=data.get("flags") or DEFAULT_FLAGS,
            include=tuple(data.get("include") or ()),
            exclude=tuple(data.get("exclude") or ()),
            compliance_reference=data.get("complianceReference") or data.get("hipaaReference") or "",
            must_not_contain=data.get("mustNotContain") or None,
            confidence=Confidence.from_string(confidence) if confidence else None,
            adjust_confidence_by_context=data.get("adjustConfidenceByContext", True),
            source=source,
        )

    def to_dict(self) -> dict[str, Any]:
        result: dict[str, Any] = {
            "id": self.id,
            "name": self.name,
            "description": self.description,
            "category": self.category.value,
            "severity": self.severity.value,
            "pattern": self.pattern,
            "flags": self.flags,
            "recommendation": self.recommendation,
        }
        if self.include:
            result["include"] = list(self.include)
        if self.exclude:
            result["exclude"] = list(self.exclude)
        if self.compliance_reference:
            result["complianceReference"] = self.compliance_reference
        if self.must_not_contain:
            result["mustNotContain"] = self.must_not_contain
        if self.confidence:
            result["confidence"] = self.confidence.value
        if not self.adjust_confidence_by_context:
            result["adjustConfidenceByContext"] = False
        return result
