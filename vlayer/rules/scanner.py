"""
vlayer Custom Rule Scanner

Runs user-defined rules line by line. Unlike the built-in pattern tables,
custom rules also match comment lines: a rule author who wants to flag
commented-out code can. `mustNotContain` is checked on the matching line
only.
"""

from __future__ import annotations

from pathlib import Path

from vlayer.core.files import matches_path
from vlayer.core.finding import Category, Finding
from vlayer.core.scanner import BaseScanner, ScanContext
from vlayer.rules.schema import CustomRule


def rule_applies(rule: CustomRule, rel_path: str) -> bool:
    if rule.include and not any(matches_path(rel_path, p) for p in rule.include):
        return False
    if rule.exclude and any(matches_path(rel_path, p) for p in rule.exclude):
        return False
    return True


class CustomRuleScanner(BaseScanner):
    """Wraps a set of compiled custom rules in the scanner interface."""

    name = "Custom Rules"
    category = Category.ACCESS_CONTROL

    def __init__(self, rules: list[CustomRule]) -> None:
        self.rules = list(rules)

    def scan(self, files: list[Path], context: ScanContext) -> list[Finding]:
        findings: list[Finding] = []
        if not self.rules:
            return findings

        for file_path in files:
            rel_path = context.relative(file_path)
            applicable = [rule for rule in self.rules if rule_applies(rule, rel_path)]
            if not applicable:
                continue
            lines = context.read_lines(file_path)
            if lines is None:
                continue

            for index, line in enumerate(lines):
                for rule in applicable:
                    match = rule.regex.search(line)
                    if match is None:
                        continue
                    if rule.negative_regex is not None and rule.negative_regex.search(line):
                        continue
                    findings.append(self._finding(rule, rel_path, index, match.start()))
        return findings

    @staticmethod
    def _finding(rule: CustomRule, rel_path: str, index: int, start: int) -> Finding:
        return Finding(
            id=f"custom-{rule.id}-{rel_path}-{index}",
            category=rule.category,
            severity=rule.severity,
            title=rule.name,
            description=rule.description,
            file=rel_path,
            line=index + 1,
            column=start + 1,
            recommendation=rule.recommendation,
            compliance_reference=rule.compliance_reference,
            confidence=rule.confidence,
            pattern_id=rule.id,
            adjust_confidence_by_context=rule.adjust_confidence_by_context,
        )

    def __repr__(self) -> str:
        return f"<CustomRuleScanner {len(self.rules)} rule(s)>"
