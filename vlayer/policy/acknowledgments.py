"""
vlayer Acknowledgment Engine

Marks findings covered by an accepted-risk declaration.

Rules are evaluated in declared order and the first rule that matches a
finding is authoritative; later rules are never consulted for it. A rule
matches when its file glob matches the finding's file and each optional
filter (id with `*` wildcards, category, severity) agrees.
"""

from __future__ import annotations

import re
from dataclasses import replace
from datetime import datetime, timezone
from typing import Optional

from vlayer.core.files import matches_path
from vlayer.core.finding import Acknowledgment, Finding
from vlayer.policy.loader import AcknowledgmentRule


def _id_regex(pattern: str) -> re.Pattern:
    return re.compile(".*".join(re.escape(part) for part in pattern.split("*")))


class AcknowledgmentEngine:
    """
    Applies acknowledgment rules to findings.
    """

    def __init__(self, rules: list[AcknowledgmentRule], now: Optional[datetime] = None) -> None:
        self.rules = list(rules)
        self.now = now or datetime.now(timezone.utc)
        # Naive datetimes are UTC, as in parse_iso_datetime
        if self.now.tzinfo is None:
            self.now = self.now.replace(tzinfo=timezone.utc)

    def match(self, finding: Finding) -> Optional[AcknowledgmentRule]:
        """Return the first rule matching the finding, if any."""
        for rule in self.rules:
            if self._rule_matches(rule, finding):
                return rule
        return None

    def apply(self, findings: list[Finding]) -> list[Finding]:
        if not self.rules:
            return list(findings)

        result = []
        for finding in findings:
            rule = self.match(finding)
            if rule is None:
                result.append(finding)
                continue
            acknowledgment = Acknowledgment(
                reason=rule.reason,
                acknowledged_by=rule.acknowledged_by,
                acknowledged_at=rule.acknowledged_at,
                ticket_url=rule.ticket_url,
                expired=rule.is_expired(self.now),
            )
            result.append(replace(finding, acknowledged=True, acknowledgment=acknowledgment))
        return result

    @staticmethod
    def _rule_matches(rule: AcknowledgmentRule, finding: Finding) -> bool:
        """Check if an acknowledgment rule matches a finding."""
        if not matches_path(finding.file, rule.file_pattern):
            return False

        # Unanchored, so "phi-" also covers "phi-ssn-hardcoded-3"
        if rule.id and not _id_regex(rule.id).search(finding.id):
            return False

        if rule.category and rule.category != finding.category.value:
            return False

        if rule.severity and rule.severity != finding.severity.value:
            return False

        return True


def apply_acknowledgments(
    findings: list[Finding],
    rules: list[AcknowledgmentRule],
    now: Optional[datetime] = None,
) -> list[Finding]:
    return AcknowledgmentEngine(rules, now).apply(findings)
