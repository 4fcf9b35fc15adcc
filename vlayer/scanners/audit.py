"""
vlayer Audit Logging Scanner

Two checks:
- project-wide: a package manifest exists but declares no logging framework
- per file: PHI-related create/read/update/delete/auth operations in files
  that never call a logger
"""

from __future__ import annotations

import logging
import re
from pathlib import Path

from vlayer.core.finding import Category, Confidence, Finding, Severity
from vlayer.core.patterns import has_extension, is_comment_line
from vlayer.core.scanner import BaseScanner, ScanContext

logger = logging.getLogger(__name__)

AUDIT_REFERENCE = "§164.312(b)"

LOGGING_FRAMEWORKS = [
    "winston", "bunyan", "pino", "log4js", "morgan",
    "logging", "logger", "structlog", "loguru",
]

# (action, pattern)
AUDIT_REQUIRED_ACTIONS: list[tuple[str, re.Pattern]] = [
    ("create", re.compile(r"(?i)\.(create|insert|save|add)\s*\(")),
    ("update", re.compile(r"(?i)\.(update|modify|patch|put)\s*\(")),
    ("delete", re.compile(r"(?i)\.(delete|remove|destroy)\s*\(")),
    ("read", re.compile(r"(?i)\.(read|get|find|fetch|select)\s*\(")),
    ("auth", re.compile(r"(?i)\.(login|authenticate|authorize)\s*\(")),
]

PHI_KEYWORDS = re.compile(r"(?i)patient|health|medical|diagnosis|treatment")
HAS_LOGGING = re.compile(r"(?i)\.(log|info|warn|warning|error|audit)\s*\(|logger\.")

CODE_EXTENSIONS = (".ts", ".js", ".tsx", ".jsx", ".py", ".java", ".go")


class AuditScanner(BaseScanner):
    """Missing audit trail for PHI operations."""

    name = "Audit Logging Scanner"
    category = Category.AUDIT_LOGGING

    def scan(self, files: list[Path], context: ScanContext) -> list[Finding]:
        findings: list[Finding] = []
        for file_path in files:
            rel_path = context.relative(file_path)
            if not has_extension(rel_path, CODE_EXTENSIONS):
                continue
            if "test" in rel_path or "spec" in rel_path:
                continue
            lines = context.read_lines(file_path)
            if lines is None:
                continue
            findings.extend(self._unlogged_actions(rel_path, lines))
        return findings

    def scan_project(self, files: list[Path], context: ScanContext) -> list[Finding]:
        manifests = [f for f in files if f.name == "package.json"]
        if not manifests:
            return []

        for manifest in manifests:
            try:
                content = manifest.read_text(errors="ignore")
            except OSError as exc:
                logger.debug("Cannot read %s: %s", manifest, exc)
                continue
            if any(framework in content for framework in LOGGING_FRAMEWORKS):
                return []

        return [
            Finding(
                id="audit-no-framework",
                category=self.category,
                severity=Severity.HIGH,
                title="No audit logging framework detected",
                description="No recognized logging framework found in dependencies.",
                file=context.relative(manifests[0]),
                recommendation="Implement structured audit logging using winston, pino, or similar.",
                compliance_reference=AUDIT_REFERENCE,
                confidence=Confidence.MEDIUM,
                pattern_id="audit-no-framework",
            )
        ]

    def _unlogged_actions(self, rel_path: str, lines: list[str]) -> list[Finding]:
        content = "\n".join(lines)
        if not PHI_KEYWORDS.search(content) or HAS_LOGGING.search(content):
            return []

        findings: list[Finding] = []
        for index, line in enumerate(lines):
            if is_comment_line(line):
                continue
            for action, pattern in AUDIT_REQUIRED_ACTIONS:
                match = pattern.search(line)
                if match is None:
                    continue
                findings.append(
                    Finding(
                        id=f"audit-unlogged-{action}-{index}",
                        category=self.category,
                        severity=Severity.MEDIUM,
                        title=f"PHI {action} operation may lack audit logging",
                        description=(
                            f"A {action} operation on PHI-related data was found without "
                            "apparent audit logging in this file."
                        ),
                        file=rel_path,
                        line=index + 1,
                        column=match.start() + 1,
                        recommendation=(
                            f"Log all {action} operations on PHI with timestamp, user ID, "
                            "and action details."
                        ),
                        compliance_reference=AUDIT_REFERENCE,
                        confidence=Confidence.MEDIUM,
                        pattern_id=f"audit-unlogged-{action}",
                    )
                )
                # one action per line
                break
        return findings
