"""
vlayer Console Reporter

Human-readable colored output: header, compliance score, severity
summary, active findings, then a short note on what was set aside
(baseline, suppressed, acknowledged) and any scan warnings.
"""

from __future__ import annotations

import sys
from collections import Counter

import click

from vlayer import __version__
from vlayer.core.finding import Finding, Severity
from vlayer.core.scan import ScanResult
from vlayer.core.score import format_score, score_color


def _safe_echo(text: str = "", **kwargs) -> None:
    """Echo text, handling Unicode issues on Windows consoles."""
    try:
        click.echo(text, **kwargs)
    except UnicodeEncodeError:
        safe = text.encode(sys.stdout.encoding or "utf-8", errors="replace").decode(
            sys.stdout.encoding or "utf-8", errors="replace"
        )
        click.echo(safe, **kwargs)


SEVERITY_COLORS = {
    Severity.CRITICAL: "bright_red",
    Severity.HIGH: "red",
    Severity.MEDIUM: "yellow",
    Severity.LOW: "cyan",
    Severity.INFO: "white",
}


class ConsoleReporter:
    """Prints a formatted compliance report to the console."""

    def __init__(self, target: str, verbose: bool = False) -> None:
        self.target = target
        self.verbose = verbose

    def report(self, result: ScanResult) -> None:
        active = result.active_findings

        self._print_header(result)
        self._print_score(result)
        self._print_severity_summary(active)

        if active:
            self._print_detailed_findings(active)

        self._print_set_aside(result.findings)
        self._print_warnings(result)
        self._print_footer(active)

    def _print_header(self, result: ScanResult) -> None:
        _safe_echo("")
        _safe_echo(click.style("=" * 55, fg="bright_blue"))
        _safe_echo(click.style("  vlayer HIPAA Compliance Report", fg="bright_white", bold=True))
        _safe_echo(click.style(f"  Version: {__version__}", fg="white"))
        _safe_echo(click.style(f"  Target: {self.target}", fg="white"))
        _safe_echo(
            click.style(
                f"  Scanned {result.scanned_files} file(s) in {result.scan_duration_ms} ms",
                fg="bright_black",
            )
        )
        _safe_echo(click.style("=" * 55, fg="bright_blue"))

    def _print_score(self, result: ScanResult) -> None:
        score = result.compliance_score
        _safe_echo("")
        _safe_echo(
            click.style("  Compliance Score: ", fg="bright_white", bold=True)
            + click.style(format_score(score), fg=score_color(score.score), bold=True)
        )
        for recommendation in score.recommendations:
            _safe_echo(click.style(f"    - {recommendation}", fg="white"))

    def _print_severity_summary(self, findings: list[Finding]) -> None:
        _safe_echo("")
        _safe_echo(click.style("  Active Findings:", fg="bright_white", bold=True))
        counter = Counter(f.severity for f in findings)
        for sev in Severity:
            label = sev.value.upper()
            _safe_echo(
                click.style(f"     {label:10s}: ", fg=SEVERITY_COLORS[sev])
                + click.style(str(counter.get(sev, 0)), fg="white")
            )

    def _print_detailed_findings(self, findings: list[Finding]) -> None:
        _safe_echo("")
        _safe_echo(click.style("  Detailed Findings:", fg="bright_white", bold=True))
        _safe_echo(click.style("-" * 55, fg="bright_black"))

        for idx, finding in enumerate(findings, start=1):
            color = SEVERITY_COLORS[finding.severity]
            loc = finding.file if finding.line is None else f"{finding.file}:{finding.line}"

            _safe_echo("")
            _safe_echo(
                click.style(f"  {idx}. ", fg="white")
                + click.style(f" {finding.severity.value.upper()} ", fg=color, bold=True)
                + click.style(f" {finding.title}", fg="bright_white")
            )
            _safe_echo(click.style(f"      Rule: {finding.id}", fg="bright_black"))
            _safe_echo(click.style(f"      Location: {loc}", fg="bright_black"))
            if finding.confidence is not None:
                _safe_echo(
                    click.style(f"      Confidence: {finding.confidence.value}", fg="bright_black")
                )
            if finding.compliance_reference:
                _safe_echo(
                    click.style(f"      HIPAA: {finding.compliance_reference}", fg="bright_black")
                )
            _safe_echo(click.style(f"      {finding.description}", fg="white"))
            if finding.acknowledgment is not None:
                ack = finding.acknowledgment
                status = "EXPIRED acknowledgment" if ack.expired else "Acknowledged"
                _safe_echo(
                    click.style(
                        f"      {status} by {ack.acknowledged_by}: {ack.reason}",
                        fg="yellow" if ack.expired else "magenta",
                    )
                )
            if finding.ai_classification:
                _safe_echo(
                    click.style(f"      AI triage: {finding.ai_classification}", fg="bright_black")
                )
            if finding.recommendation:
                fix = finding.recommendation
                if not self.verbose and "\n" in fix:
                    fix = fix.splitlines()[0]
                _safe_echo(click.style(f"      Fix: {fix}", fg="green"))

    def _print_set_aside(self, findings: list[Finding]) -> None:
        baseline = sum(1 for f in findings if f.is_baseline)
        suppressed = sum(1 for f in findings if f.suppressed)
        if not baseline and not suppressed:
            return
        _safe_echo("")
        _safe_echo(
            click.style(
                f"  Not scored: {baseline} baseline, {suppressed} suppressed",
                fg="bright_black",
            )
        )

    def _print_warnings(self, result: ScanResult) -> None:
        if not result.warnings:
            return
        _safe_echo("")
        _safe_echo(click.style(f"  Warnings ({len(result.warnings)}):", fg="yellow", bold=True))
        for warning in result.warnings:
            _safe_echo(click.style(f"    [!] {warning.source}: {warning.message}", fg="yellow"))
            if warning.details and self.verbose:
                _safe_echo(click.style(f"        {warning.details}", fg="bright_black"))

    def _print_footer(self, active: list[Finding]) -> None:
        _safe_echo("")
        _safe_echo(click.style("=" * 55, fg="bright_blue"))

        if any(f.severity == Severity.CRITICAL for f in active):
            _safe_echo(
                click.style(
                    "  [X] FAILED - Critical compliance issues must be resolved",
                    fg="bright_red",
                    bold=True,
                )
            )
        elif not active:
            _safe_echo(
                click.style("  [OK] PASSED - No active compliance issues", fg="green", bold=True)
            )
        else:
            _safe_echo(
                click.style(
                    "  [!] WARNINGS - Review compliance findings above",
                    fg="yellow",
                    bold=True,
                )
            )

        _safe_echo(click.style("=" * 55, fg="bright_blue"))
        _safe_echo("")
