"""
vlayer Pattern Scanner

Table-driven line matching shared by the built-in scanners.

For each line (comment lines skipped) and each PatternRule:
  1. search the rule's patterns on the line
  2. take a context window around the match, drop comment lines from it
  3. if any negative pattern matches the window, the finding is suppressed
  4. run the rule's optional check on the match
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable, Optional

from vlayer.core.finding import Category, Confidence, Finding, Severity
from vlayer.core.scanner import BaseScanner, ScanContext

COMMENT_PREFIXES = ("//", "#", "/*", "*")

CODE_EXTENSIONS = (".ts", ".js", ".tsx", ".jsx", ".py", ".java", ".go", ".rb", ".php")
JS_EXTENSIONS = (".ts", ".tsx", ".js", ".jsx", ".mjs", ".cjs")


def is_comment_line(line: str) -> bool:
    return line.strip().startswith(COMMENT_PREFIXES)


def context_window(lines: list[str], index: int, before: int = 0, after: int = 0) -> list[str]:
    """Lines index-before .. index+after inclusive, clipped to the file."""
    start = max(0, index - before)
    return lines[start:index + after + 1]


def strip_comments(window: list[str]) -> list[str]:
    return [line for line in window if not is_comment_line(line)]


def has_extension(rel_path: str, extensions: tuple[str, ...]) -> bool:
    lowered = rel_path.lower()
    return any(lowered.endswith(ext) for ext in extensions)


@dataclass(frozen=True)
class LineMatch:
    """A primary-pattern hit handed to a rule's check."""

    file_path: Path
    rel_path: str
    lines: list[str]
    index: int
    match: re.Match
    context: ScanContext

    @property
    def line(self) -> str:
        return self.lines[self.index]

    def window(self, before: int = 0, after: int = 0) -> list[str]:
        return context_window(self.lines, self.index, before, after)


@dataclass(frozen=True)
class PatternRule:
    id: str
    title: str
    description: str
    severity: Severity
    patterns: tuple[str, ...]
    recommendation: str
    compliance_reference: str = ""
    negative_patterns: tuple[str, ...] = ()
    confidence: Confidence = Confidence.HIGH
    context_before: int = 0
    context_after: int = 0
    category: Optional[Category] = None
    check: Optional[Callable[[LineMatch], bool]] = None
    file_filter: Optional[Callable[[str, list[str]], bool]] = None
    _compiled: tuple[re.Pattern, ...] = field(init=False, repr=False, compare=False)
    _negatives: tuple[re.Pattern, ...] = field(init=False, repr=False, compare=False)

    def __post_init__(self) -> None:
        object.__setattr__(self, "_compiled", tuple(re.compile(p) for p in self.patterns))
        object.__setattr__(self, "_negatives", tuple(re.compile(p) for p in self.negative_patterns))

    def search(self, line: str) -> Optional[re.Match]:
        for regex in self._compiled:
            match = regex.search(line)
            if match:
                return match
        return None

    def is_negated(self, text: str) -> bool:
        return any(regex.search(text) for regex in self._negatives)

    def applies_to(self, rel_path: str, lines: list[str]) -> bool:
        return self.file_filter is None or self.file_filter(rel_path, lines)


class PatternScanner(BaseScanner):
    """
    Walks a PatternRule table over every eligible file in a batch.
    Subclasses set `rules`, `extensions` and optionally `id_prefix`.
    """

    rules: list[PatternRule] = []
    extensions: tuple[str, ...] = CODE_EXTENSIONS
    compliance_reference: str = ""
    # "phi" gives ids like phi-ssn-hardcoded-12; None uses the bare rule id
    id_prefix: Optional[str] = None
    skip_comments: bool = True

    def supports_file(self, rel_path: str) -> bool:
        return has_extension(rel_path, self.extensions)

    def scan(self, files: list[Path], context: ScanContext) -> list[Finding]:
        findings: list[Finding] = []
        for file_path in files:
            rel_path = context.relative(file_path)
            if not self.supports_file(rel_path):
                continue
            lines = context.read_lines(file_path)
            if lines is None:
                continue
            findings.extend(self.scan_lines(file_path, rel_path, lines, context))
        return findings

    def scan_lines(
        self,
        file_path: Path,
        rel_path: str,
        lines: list[str],
        context: ScanContext,
    ) -> list[Finding]:
        rules = [rule for rule in self.rules if rule.applies_to(rel_path, lines)]
        if not rules:
            return []

        findings: list[Finding] = []
        for index, line in enumerate(lines):
            if self.skip_comments and is_comment_line(line):
                continue
            for rule in rules:
                match = rule.search(line)
                if match is None:
                    continue
                if rule.negative_patterns:
                    window = context_window(lines, index, rule.context_before, rule.context_after)
                    if rule.is_negated("\n".join(strip_comments(window))):
                        continue
                hit = LineMatch(file_path, rel_path, lines, index, match, context)
                if rule.check is not None and not rule.check(hit):
                    continue
                findings.append(self.make_finding(rule, hit))
        return findings

    def finding_id(self, rule: PatternRule, index: int) -> str:
        if self.id_prefix:
            return f"{self.id_prefix}-{rule.id}-{index}"
        return rule.id

    def make_finding(self, rule: PatternRule, hit: LineMatch) -> Finding:
        return Finding(
            id=self.finding_id(rule, hit.index),
            category=rule.category or self.category,
            severity=rule.severity,
            title=rule.title,
            description=rule.description,
            file=hit.rel_path,
            line=hit.index + 1,
            column=hit.match.start() + 1,
            recommendation=rule.recommendation,
            compliance_reference=rule.compliance_reference or self.compliance_reference,
            confidence=rule.confidence,
            pattern_id=rule.id,
        )
