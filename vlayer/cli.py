"""
vlayer CLI

Command-line interface for HIPAA compliance scans.

Commands:
    vlayer scan [PATH]              - Scan a project and print the report
    vlayer init                     - Create a default .vlayer.yaml
    vlayer baseline [PATH]          - Snapshot current findings as a baseline
    vlayer rules list [PATH]        - Show the custom rules a project loads
    vlayer rules validate FILE      - Check a custom rules file
"""

from __future__ import annotations

import logging
import sys
from pathlib import Path
from typing import Optional

import click

from vlayer import __version__
from vlayer.core.config import CONFIG_FILENAMES, generate_default_config
from vlayer.core.errors import VlayerError
from vlayer.core.finding import Category, Confidence, Severity
from vlayer.core.scan import DEFAULT_BATCH_SIZE, ScanOptions, ScanResult, scan as run_scan
from vlayer.policy.baseline import save_baseline
from vlayer.reporting.console import ConsoleReporter, _safe_echo
from vlayer.reporting.json_reporter import JSONReporter
from vlayer.reporting.markdown_reporter import MarkdownReporter
from vlayer.rules.loader import load_custom_rules, validate_rules_file

CATEGORY_CHOICES = [c.value for c in Category]
CONFIDENCE_CHOICES = [c.value for c in Confidence]


def _configure_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
        stream=sys.stderr,
    )


def _fail(message: str, code: int = 2) -> None:
    _safe_echo(click.style(f"  [X] {message}", fg="red"), err=True)
    sys.exit(code)


def _build_options(
    path: str,
    categories: tuple,
    exclude: tuple,
    config_path: Optional[str],
    rules_path: Optional[str],
    baseline_path: Optional[str],
    min_confidence: Optional[str],
    batch_size: int,
    workers: int,
) -> ScanOptions:
    return ScanOptions(
        root_path=Path(path).resolve(),
        categories=[Category.from_string(c) for c in categories] or None,
        exclude_patterns=list(exclude),
        config_file=Path(config_path) if config_path else None,
        custom_rules_path=rules_path,
        baseline_file=Path(baseline_path) if baseline_path else None,
        min_confidence=Confidence.from_string(min_confidence) if min_confidence else None,
        batch_size=batch_size,
        workers=workers,
    )


def _execute(options: ScanOptions) -> ScanResult:
    try:
        return run_scan(options)
    except VlayerError as exc:
        _fail(str(exc))
        raise


@click.group()
@click.version_option(version=__version__, prog_name="vlayer")
@click.option("--verbose", "-v", is_flag=True, help="Enable debug logging.")
@click.pass_context
def cli(ctx: click.Context, verbose: bool) -> None:
    """
    vlayer - HIPAA Compliance Scanner

    Detect PHI exposure, weak encryption, missing audit logging,
    access-control gaps and retention issues in your source code.
    """
    ctx.ensure_object(dict)
    ctx.obj["verbose"] = verbose
    _configure_logging(verbose)


def _scan_options(func):
    """Options shared by `scan` and `baseline`."""
    decorators = [
        click.option("--category", "-c", "categories", multiple=True,
                     type=click.Choice(CATEGORY_CHOICES), help="Category to check (repeatable)."),
        click.option("--exclude", "-e", multiple=True, help="Glob pattern to exclude (repeatable)."),
        click.option("--config", "config_path", type=click.Path(), default=None,
                     help="Path to a .vlayer.yaml / .vlayerrc.json file."),
        click.option("--rules", "rules_path", type=click.Path(), default=None,
                     help="Path to a custom rules YAML file."),
        click.option("--batch-size", type=click.IntRange(min=1), default=DEFAULT_BATCH_SIZE,
                     show_default=True, help="Files per scanning batch."),
        click.option("--workers", type=click.IntRange(min=1), default=1, show_default=True,
                     help="Scanner threads per batch."),
    ]
    for decorator in reversed(decorators):
        func = decorator(func)
    return func


# ═══════════════════════════════════════════════════════
#  vlayer scan
# ═══════════════════════════════════════════════════════
@cli.command()
@click.argument("path", type=click.Path(exists=True, file_okay=False), default=".")
@_scan_options
@click.option("--baseline", "baseline_path", type=click.Path(), default=None,
              help="Baseline JSON; matching findings are not scored.")
@click.option("--min-confidence", type=click.Choice(CONFIDENCE_CHOICES), default=None,
              help="Treat findings below this confidence as baseline.")
@click.option("--format", "-f", "output_format", type=click.Choice(["console", "json", "markdown"]),
              default="console", help="Output format.")
@click.option("--output", "-o", "output_file", type=click.Path(), default=None,
              help="Write the report to a file (JSON when the format is console).")
@click.pass_context
def scan(
    ctx: click.Context,
    path: str,
    categories: tuple,
    exclude: tuple,
    config_path: Optional[str],
    rules_path: Optional[str],
    batch_size: int,
    workers: int,
    baseline_path: Optional[str],
    min_confidence: Optional[str],
    output_format: str,
    output_file: Optional[str],
) -> None:
    """Scan a project for HIPAA compliance issues.

    Exits with status 1 when active critical findings remain.

    Examples:

        vlayer scan

        vlayer scan ./api --category phi-exposure --category encryption

        vlayer scan --baseline .vlayer-baseline.json --format json -o report.json

        vlayer scan --format markdown -o HIPAA-REPORT.md
    """
    options = _build_options(
        path, categories, exclude, config_path, rules_path, baseline_path,
        min_confidence, batch_size, workers,
    )
    result = _execute(options)
    target = str(options.root_path)

    # ── Report ──
    if output_format in ("json", "markdown"):
        reporter_cls = JSONReporter if output_format == "json" else MarkdownReporter
        content = reporter_cls(target=target).report(result, output_file=output_file)
        if not output_file:
            _safe_echo(content)
    else:
        ConsoleReporter(target=target, verbose=ctx.obj.get("verbose", False)).report(result)
        if output_file:
            JSONReporter(target=target).report(result, output_file=output_file)

    # ── Exit code ──
    if any(f.severity == Severity.CRITICAL for f in result.active_findings):
        sys.exit(1)


# ═══════════════════════════════════════════════════════
#  vlayer baseline
# ═══════════════════════════════════════════════════════
@cli.command()
@click.argument("path", type=click.Path(exists=True, file_okay=False), default=".")
@_scan_options
@click.option("--output", "-o", "output_file", type=click.Path(), default=".vlayer-baseline.json",
              show_default=True, help="Where to write the baseline (relative to PATH).")
def baseline(
    path: str,
    categories: tuple,
    exclude: tuple,
    config_path: Optional[str],
    rules_path: Optional[str],
    batch_size: int,
    workers: int,
    output_file: str,
) -> None:
    """Record the current findings so later scans only score new ones."""
    options = _build_options(
        path, categories, exclude, config_path, rules_path, None, None, batch_size, workers,
    )
    result = _execute(options)

    out = Path(output_file)
    if not out.is_absolute():
        out = options.root_path / out
    try:
        snapshot = save_baseline(out, result.active_findings)
    except VlayerError as exc:
        _fail(str(exc))
        return

    _safe_echo(click.style(f"  [+] Baseline with {len(snapshot)} finding(s) written to {out}", fg="green"))


# ═══════════════════════════════════════════════════════
#  vlayer init
# ═══════════════════════════════════════════════════════
@cli.command()
@click.option("--path", "-p", "target_path", type=click.Path(), default=".",
              help="Directory to create the config file in.")
def init(target_path: str) -> None:
    """Create a default .vlayer.yaml."""
    target = Path(target_path).resolve()
    target.mkdir(parents=True, exist_ok=True)

    existing = [target / name for name in CONFIG_FILENAMES if (target / name).exists()]
    if existing:
        _safe_echo(click.style(f"  [!] {existing[0]} already exists, skipping.", fg="yellow"))
        return

    config_file = target / CONFIG_FILENAMES[0]
    config_file.write_text(generate_default_config(), encoding="utf-8")
    _safe_echo(click.style(f"  [+] Created {config_file}", fg="green"))
    _safe_echo("")
    _safe_echo("  Edit this file to customize the scan.")
    _safe_echo("  Run 'vlayer scan' to start scanning.")


# ═══════════════════════════════════════════════════════
#  vlayer rules
# ═══════════════════════════════════════════════════════
@cli.group()
def rules() -> None:
    """Manage custom compliance rules."""


@rules.command("list")
@click.argument("path", type=click.Path(exists=True, file_okay=False), default=".")
@click.option("--rules", "rules_path", type=click.Path(), default=None,
              help="Path to a custom rules YAML file.")
def rules_list(path: str, rules_path: Optional[str]) -> None:
    """List the custom rules loaded for a project."""
    loaded = load_custom_rules(Path(path).resolve(), rules_path)

    if loaded.errors:
        _safe_echo(click.style("\n  Warnings:", fg="yellow"))
        for error in loaded.errors:
            _safe_echo(click.style(f"    - {error.error} ({error.file})", fg="yellow"))
            if error.details:
                _safe_echo(click.style(f"      {error.details}", fg="bright_black"))

    if not loaded.rules:
        _safe_echo(click.style("\n  No custom rules found.", fg="yellow"))
        _safe_echo(click.style("  Create a vlayer-rules.yaml file or add rules to .vlayer/rules/",
                               fg="bright_black"))
        return

    _safe_echo(click.style(f"\n  Loaded {len(loaded.rules)} custom rule(s):\n", bold=True))
    for rule in loaded.rules:
        _safe_echo(click.style(f"  {rule.id}", fg="cyan"))
        _safe_echo(f"    Name: {rule.name}")
        _safe_echo(f"    Category: {rule.category.value}")
        _safe_echo(f"    Severity: {rule.severity.value}")
        _safe_echo(f"    Pattern: {click.style(rule.pattern, fg='bright_black')}")
        if rule.include:
            _safe_echo(f"    Include: {click.style(', '.join(rule.include), fg='bright_black')}")
        if rule.exclude:
            _safe_echo(f"    Exclude: {click.style(', '.join(rule.exclude), fg='bright_black')}")
        _safe_echo("")


@rules.command("validate")
@click.argument("file", type=click.Path())
def rules_validate(file: str) -> None:
    """Validate a custom rules YAML file."""
    result = validate_rules_file(Path(file).resolve())

    if result["valid"]:
        _safe_echo(click.style(f"  [OK] Valid! Found {result['rules']} rule(s).", fg="green"))
        return

    _safe_echo(click.style("  [X] Validation failed", fg="red"))
    for error in result["errors"]:
        _safe_echo(click.style(f"    - {error['error']}", fg="red"))
        if error.get("details"):
            _safe_echo(click.style(f"      {error['details']}", fg="bright_black"))
    sys.exit(1)


def main() -> None:
    cli()


if __name__ == "__main__":
    main()
