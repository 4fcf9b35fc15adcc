"""
vlayer Inline Suppression

A finding is suppressed by a comment on its own line or the line before:

    // vlayer-ignore phi-ssn-* -- synthetic fixture data
    # vlayer-ignore CRED-002 -- rotated, kept for the migration script

The rule pattern may use `*` wildcards and is matched against the finding
id and the id of the rule that produced it. A marker without a reason
after `--` does not suppress anything.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, replace
from pathlib import Path
from typing import Optional

from vlayer.core.finding import Finding, Suppression

logger = logging.getLogger(__name__)

SUPPRESSION_PATTERN = re.compile(r"(//|#)\s*vlayer-ignore\s+([a-zA-Z0-9\-*]+)\s+--\s+(.+)")
SUPPRESSION_PATTERN_NO_REASON = re.compile(r"(//|#)\s*vlayer-ignore\s+([a-zA-Z0-9\-*]+)\s*$")


@dataclass(frozen=True)
class SuppressionComment:
    line: int
    marker: str
    rule_pattern: str
    reason: str

    def render(self) -> str:
        return f"{self.marker} vlayer-ignore {self.rule_pattern} -- {self.reason}"


def extract_suppressions(lines: list[str]) -> dict[int, SuppressionComment]:
    """Suppression comments keyed by 1-based line number."""
    found: dict[int, SuppressionComment] = {}
    for index, line in enumerate(lines):
        if "vlayer-ignore" not in line:
            continue
        match = SUPPRESSION_PATTERN.search(line)
        if match:
            found[index + 1] = SuppressionComment(
                index + 1, match.group(1), match.group(2), match.group(3).strip()
            )
            continue
        match = SUPPRESSION_PATTERN_NO_REASON.search(line)
        if match:
            found[index + 1] = SuppressionComment(index + 1, match.group(1), match.group(2), "")
    return found


def matches_suppression_pattern(value: str, pattern: str) -> bool:
    if pattern == "*" or pattern == value:
        return True
    regex = ".*".join(re.escape(part) for part in pattern.split("*"))
    return re.fullmatch(regex, value) is not None


def _covers(comment: SuppressionComment, finding: Finding) -> bool:
    if matches_suppression_pattern(finding.id, comment.rule_pattern):
        return True
    return bool(finding.pattern_id) and matches_suppression_pattern(
        finding.pattern_id, comment.rule_pattern
    )


def check_suppression(
    finding: Finding, comments: dict[int, SuppressionComment]
) -> Optional[Suppression]:
    if not finding.line:
        return None
    # The line before wins over a same-line marker
    for line in (finding.line - 1, finding.line):
        comment = comments.get(line)
        if comment is None or not _covers(comment, finding):
            continue
        if not comment.reason:
            return None
        return Suppression(reason=comment.reason, comment=comment.render())
    return None


def apply_suppressions(findings: list[Finding], root: Path) -> list[Finding]:
    """Flag suppressed findings; each source file is read at most once."""
    cache: dict[str, dict[int, SuppressionComment]] = {}
    result = []

    for finding in findings:
        if finding.is_aggregate or not finding.line:
            result.append(finding)
            continue

        if finding.file not in cache:
            try:
                text = (root / finding.file).read_text(errors="ignore")
                cache[finding.file] = extract_suppressions(text.splitlines())
            except OSError as exc:
                logger.debug("Cannot read %s for suppressions: %s", finding.file, exc)
                cache[finding.file] = {}

        suppression = check_suppression(finding, cache[finding.file])
        if suppression is None:
            result.append(finding)
        else:
            result.append(replace(finding, suppressed=True, suppression=suppression))

    return result
