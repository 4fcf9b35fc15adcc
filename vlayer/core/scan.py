"""
vlayer Scan Orchestrator

Runs a complete scan:

  1. validate options, load config, custom rules and baseline
  2. select files (default + option + config excludes, ignorePaths, size cap)
  3. run every active scanner over fixed-size batches of files
  4. run the project-wide checks once over the full file list
  5. collapse duplicate project-level findings, sort by severity
  6. post-process (acknowledge, suppress, classify, triage, baseline, demote)
  7. score

Batches only bound memory: scanning with batch size 1 or 50 produces the
same findings. Configuration problems raise before any file is read; every
later problem becomes a ScanWarning on the result.
"""

from __future__ import annotations

import concurrent.futures
import logging
import time
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import Any, Callable, Optional

from vlayer.analysis.semantic import Classifier, LocalContextClassifier
from vlayer.analysis.triage import AnthropicTriager, Triager
from vlayer.core.config import DEFAULT_EXCLUDE_PATTERNS, VlayerConfig
from vlayer.core.errors import ConfigurationError, ScanWarning, WarningLog
from vlayer.core.files import DEFAULT_MAX_FILE_SIZE, batched, select_files
from vlayer.core.finding import (
    ALL_CATEGORIES,
    Category,
    Confidence,
    Finding,
    StackInfo,
    sort_by_severity,
)
from vlayer.core.pipeline import PostProcessor
from vlayer.core.scanner import ScanContext
from vlayer.core.score import ComplianceScore, calculate_compliance_score
from vlayer.policy.baseline import Baseline, load_baseline
from vlayer.rules.loader import load_custom_rules
from vlayer.rules.scanner import CustomRuleScanner
from vlayer.scanners.registry import ScannerRef, custom, resolve_scanners

logger = logging.getLogger(__name__)

DEFAULT_BATCH_SIZE = 50

StackDetector = Callable[[Path], StackInfo]


@dataclass
class ScanOptions:
    root_path: Path
    categories: Optional[list[Category]] = None
    exclude_patterns: list[str] = field(default_factory=list)
    config_file: Optional[Path] = None
    custom_rules_path: Optional[str] = None
    baseline_file: Optional[Path] = None
    min_confidence: Optional[Confidence] = None
    batch_size: int = DEFAULT_BATCH_SIZE
    max_file_size: int = DEFAULT_MAX_FILE_SIZE
    workers: int = 1


@dataclass
class ScanResult:
    findings: list[Finding]
    scanned_files: int
    scan_duration_ms: int
    stack: StackInfo
    compliance_score: ComplianceScore
    warnings: list[ScanWarning] = field(default_factory=list)

    @property
    def active_findings(self) -> list[Finding]:
        return [f for f in self.findings if f.is_active]

    def to_dict(self) -> dict[str, Any]:
        return {
            "findings": [f.to_dict() for f in self.findings],
            "scannedFiles": self.scanned_files,
            "scanDurationMs": self.scan_duration_ms,
            "stack": self.stack.to_dict(),
            "complianceScore": self.compliance_score.to_dict(),
            "warnings": [w.to_dict() for w in self.warnings],
        }


def _validate_options(options: ScanOptions) -> Path:
    root = Path(options.root_path)
    if not root.exists():
        raise ConfigurationError(f"Scan path does not exist: {root}")
    if not root.is_dir():
        raise ConfigurationError(f"Scan path is not a directory: {root}")
    if options.batch_size < 1:
        raise ConfigurationError(f"batch_size must be at least 1, got {options.batch_size}")
    if options.workers < 1:
        raise ConfigurationError(f"workers must be at least 1, got {options.workers}")
    if options.max_file_size < 1:
        raise ConfigurationError(f"max_file_size must be positive, got {options.max_file_size}")
    return root.resolve()


def _custom_scanner(
    root: Path,
    rules_path: Optional[str],
    categories: list[Category],
    warnings: WarningLog,
) -> Optional[ScannerRef]:
    loaded = load_custom_rules(root, rules_path)
    for error in loaded.errors:
        warnings.add("custom-rules", f"{error.error} ({error.file})", error.details)

    active = set(categories)
    rules = [rule for rule in loaded.rules if rule.category in active]
    if not rules:
        return None
    logger.debug("Using %d custom rule(s)", len(rules))
    return custom(CustomRuleScanner(rules))


def _run_scanner(ref: ScannerRef, files: list[Path], context: ScanContext) -> list[Finding]:
    try:
        return ref.scanner.scan(files, context)
    except Exception as exc:
        logger.debug("Scanner %s failed", ref.name, exc_info=True)
        context.warnings.add("scanner", f"{ref.name} failed", str(exc))
        return []


def _run_project_checks(ref: ScannerRef, files: list[Path], context: ScanContext) -> list[Finding]:
    try:
        return ref.scanner.scan_project(files, context)
    except Exception as exc:
        logger.debug("Project checks of %s failed", ref.name, exc_info=True)
        context.warnings.add("scanner", f"{ref.name} project checks failed", str(exc))
        return []


def dedupe_aggregates(findings: list[Finding]) -> list[Finding]:
    """Keep the first finding per id among those on reserved markers."""
    seen: set[str] = set()
    result = []
    for finding in findings:
        if finding.is_aggregate:
            if finding.id in seen:
                continue
            seen.add(finding.id)
        result.append(finding)
    return result


def run_scanners(
    refs: list[ScannerRef],
    files: list[Path],
    context: ScanContext,
    batch_size: int = DEFAULT_BATCH_SIZE,
    workers: int = 1,
) -> list[Finding]:
    """Scan `files` batch by batch, then run the project-wide checks."""
    findings: list[Finding] = []
    executor = concurrent.futures.ThreadPoolExecutor(max_workers=workers) if workers > 1 else None

    try:
        for number, batch in enumerate(batched(files, batch_size), start=1):
            batch_context = context.for_batch()
            if executor is None:
                results = [_run_scanner(ref, batch, batch_context) for ref in refs]
            else:
                futures = [executor.submit(_run_scanner, ref, batch, batch_context) for ref in refs]
                # Collected in registry order regardless of completion order
                results = [future.result() for future in futures]
            for batch_findings in results:
                findings.extend(batch_findings)
            logger.debug("Batch %d: %d file(s), %d finding(s) so far", number, len(batch), len(findings))
    finally:
        if executor is not None:
            executor.shutdown(wait=True)

    for ref in refs:
        findings.extend(_run_project_checks(ref, files, context))

    return findings


def scan(
    options: ScanOptions,
    *,
    classifier: Optional[Classifier] = None,
    triager: Optional[Triager] = None,
    stack_detector: Optional[StackDetector] = None,
    now: Optional[datetime] = None,
) -> ScanResult:
    """
    Scan a project and return scored findings.

    Args:
        options: What to scan and how.
        classifier: Confidence classifier; defaults to LocalContextClassifier.
        triager: AI triage client; defaults to AnthropicTriager when
            `ai.enableTriage` is set in the config.
        stack_detector: Optional callable describing the project's stack.
        now: Clock for acknowledgment expiry.

    Raises:
        ConfigurationError: Bad root path, options or config file.
        BaselineError: The requested baseline is missing or corrupt.
    """
    started = time.monotonic()
    root = _validate_options(options)

    config = VlayerConfig.load(root, options.config_file)
    warnings = WarningLog()
    for message in config.acknowledgment_errors:
        warnings.add("config", message)

    baseline: Optional[Baseline] = None
    if options.baseline_file is not None:
        baseline_path = Path(options.baseline_file)
        if not baseline_path.is_absolute():
            baseline_path = root / baseline_path
        baseline = load_baseline(baseline_path)

    categories = options.categories or config.categories or list(ALL_CATEGORIES)
    exclude = DEFAULT_EXCLUDE_PATTERNS + list(options.exclude_patterns) + config.exclude

    selection = select_files(root, exclude, config.is_path_ignored, options.max_file_size)
    for rel_path in selection.skipped_unreadable:
        warnings.add("file", f"Cannot stat {rel_path}")

    rules_path = options.custom_rules_path or config.custom_rules_path
    refs = resolve_scanners(categories, _custom_scanner(root, rules_path, categories, warnings))
    logger.info(
        "Scanning %d file(s) with %d scanner(s) for %s",
        len(selection.files),
        len(refs),
        ", ".join(c.value for c in categories),
    )

    context = ScanContext(root=root, config=config, warnings=warnings)
    findings = run_scanners(refs, selection.files, context, options.batch_size, options.workers)
    findings = sort_by_severity(dedupe_aggregates(findings))

    if triager is None and config.ai.enable_triage:
        triager = AnthropicTriager.from_config(config.ai)

    processor = PostProcessor(
        root=root,
        config=config,
        warnings=warnings,
        classifier=classifier if classifier is not None else LocalContextClassifier(root),
        triager=triager,
        baseline=baseline,
        min_confidence=options.min_confidence or config.min_confidence,
        now=now,
    )
    findings = processor.run(findings)

    stack = StackInfo()
    if stack_detector is not None:
        try:
            stack = stack_detector(root)
        except Exception as exc:
            warnings.add("stack", "Stack detection failed", str(exc))

    duration_ms = int((time.monotonic() - started) * 1000)
    logger.info("Scan finished in %d ms with %d finding(s)", duration_ms, len(findings))

    return ScanResult(
        findings=findings,
        scanned_files=len(selection.files),
        scan_duration_ms=duration_ms,
        stack=stack,
        compliance_score=calculate_compliance_score(findings),
        warnings=warnings.items(),
    )
