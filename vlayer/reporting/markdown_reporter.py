"""
vlayer Markdown Reporter

A report for pull requests, wikis and audit folders: scan metadata, the
compliance score, a severity table, then the active findings grouped by
category. Baseline and suppressed findings are counted but not listed.
"""

from __future__ import annotations

from collections import Counter
from pathlib import Path
from typing import Optional

from vlayer import __version__
from vlayer.core.finding import Category, Finding, Severity
from vlayer.core.scan import ScanResult
from vlayer.core.score import format_score

CATEGORY_TITLES = {
    Category.PHI_EXPOSURE: "PHI Exposure",
    Category.ENCRYPTION: "Encryption",
    Category.AUDIT_LOGGING: "Audit Logging",
    Category.ACCESS_CONTROL: "Access Control",
    Category.DATA_RETENTION: "Data Retention",
}


def _escape_cell(text: str) -> str:
    return text.replace("|", "\\|").replace("\n", " ")


class MarkdownReporter:
    """Generates Markdown-formatted scan reports."""

    def __init__(self, target: str) -> None:
        self.target = target

    def report(self, result: ScanResult, output_file: Optional[str] = None) -> str:
        """
        Generate Markdown report.

        Args:
            result: The finished scan.
            output_file: Optional file path to write the report to.

        Returns:
            The Markdown text.
        """
        active = result.active_findings
        lines = self._header(result)
        lines += self._summary(active)

        if active:
            lines += self._findings(active)
        else:
            lines += ["## No Issues Found", "", "The scan did not detect any active HIPAA compliance issues.", ""]

        lines += self._set_aside(result.findings)
        lines += self._warnings(result)

        markdown = "\n".join(lines)
        if output_file:
            Path(output_file).write_text(markdown, encoding="utf-8")
        return markdown

    def _header(self, result: ScanResult) -> list[str]:
        return [
            "# HIPAA Compliance Report",
            "",
            f"**Target:** `{self.target}`",
            f"**Tool:** vlayer {__version__}",
            f"**Files Scanned:** {result.scanned_files}",
            f"**Duration:** {result.scan_duration_ms}ms",
            f"**Compliance Score:** {format_score(result.compliance_score)}",
            "",
        ]

    def _summary(self, active: list[Finding]) -> list[str]:
        counts = Counter(f.severity for f in active)
        lines = ["## Summary", "", "| Severity | Count |", "|----------|-------|"]
        for severity in Severity:
            lines.append(f"| {severity.value.capitalize()} | {counts[severity]} |")
        lines += [f"| **Total** | **{len(active)}** |", ""]
        return lines

    def _findings(self, active: list[Finding]) -> list[str]:
        lines = ["## Findings", ""]
        for category in Category:
            group = [f for f in active if f.category == category]
            if not group:
                continue
            lines += [f"### {CATEGORY_TITLES[category]}", ""]
            for finding in group:
                lines += self._finding(finding)
        return lines

    def _finding(self, finding: Finding) -> list[str]:
        location = finding.file if finding.line is None else f"{finding.file}:{finding.line}"
        lines = [
            f"#### [{finding.severity.value.upper()}] {finding.title}",
            "",
            f"- **Rule:** `{finding.id}`",
            f"- **File:** `{location}`",
        ]
        if finding.confidence is not None:
            lines.append(f"- **Confidence:** {finding.confidence.value}")
        if finding.compliance_reference:
            lines.append(f"- **HIPAA Reference:** {finding.compliance_reference}")
        if finding.acknowledgment is not None:
            ack = finding.acknowledgment
            status = "Acknowledgment expired" if ack.expired else "Acknowledged"
            lines.append(f"- **{status}:** {ack.acknowledged_by} ({ack.acknowledged_at}): {ack.reason}")
        if finding.ai_classification:
            lines.append(f"- **AI Triage:** {finding.ai_classification}")
        lines += ["", finding.description, ""]
        if finding.recommendation:
            lines += [f"**Recommendation:** {finding.recommendation}", ""]
        lines += ["---", ""]
        return lines

    def _set_aside(self, findings: list[Finding]) -> list[str]:
        baseline = sum(1 for f in findings if f.is_baseline)
        suppressed = sum(1 for f in findings if f.suppressed)
        if not baseline and not suppressed:
            return []
        return [f"_Not scored: {baseline} baseline, {suppressed} suppressed._", ""]

    def _warnings(self, result: ScanResult) -> list[str]:
        if not result.warnings:
            return []
        lines = ["## Warnings", "", "| Source | Message |", "|--------|---------|"]
        for warning in result.warnings:
            lines.append(f"| {_escape_cell(warning.source)} | {_escape_cell(warning.message)} |")
        lines.append("")
        return lines
