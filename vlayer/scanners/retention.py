"""
vlayer Data Retention Scanner

Detects retention periods shorter than the six years HIPAA requires,
deletions without audit trail, bulk deletes, disabled backups and
uncontrolled PHI caching.
"""

from __future__ import annotations

from vlayer.core.finding import Category, Severity
from vlayer.core.patterns import CODE_EXTENSIONS, LineMatch, PatternRule, PatternScanner

RETENTION_REFERENCE = "§164.530(j)"

# Six years, the HIPAA documentation retention minimum
MIN_RETENTION_DAYS = 2190


def _too_short(hit: LineMatch) -> bool:
    value = int(hit.match.group(1))
    unit = hit.match.group(2).lower()
    if unit == "day":
        return value < MIN_RETENTION_DAYS
    return unit in ("hour", "minute")


class RetentionScanner(PatternScanner):
    """Primary scanner for the data-retention category."""

    name = "Data Retention Scanner"
    category = Category.DATA_RETENTION
    id_prefix = "retention"
    compliance_reference = RETENTION_REFERENCE
    extensions = CODE_EXTENSIONS + (".sql", ".yaml", ".yml")

    rules = [
        PatternRule(
            "short-retention", "PHI retention period may be too short",
            "Data deletion configured with period shorter than HIPAA requirements.",
            Severity.HIGH,
            (r"(?i)delete_?after\s*[:=]\s*(\d+)\s*(day|hour|minute)",),
            "HIPAA requires PHI retention for 6 years from creation or last effective date.",
            check=_too_short,
        ),
        PatternRule(
            "unlogged-delete", "Data deletion without apparent logging",
            "Data deletion operation without visible audit logging.",
            Severity.MEDIUM,
            (r"(?i)\.delete\s*\(\s*\)(?!.*audit|.*log)",),
            "Log all PHI deletions with timestamp, user, and record identifiers.",
        ),
        PatternRule(
            "bulk-delete", "Bulk data deletion operation",
            "Bulk deletion (TRUNCATE/DROP) could delete PHI without proper retention.",
            Severity.CRITICAL,
            (r"(?i)truncate\s+table|drop\s+table",),
            "Implement soft-delete with retention periods before permanent deletion.",
        ),
        PatternRule(
            "backup-disabled", "Backup may be disabled",
            "Code pattern suggests backups might be disabled.",
            Severity.HIGH,
            (r"(?i)backup.*disable|disable.*backup",),
            "Maintain encrypted backups with proper retention for disaster recovery.",
        ),
        PatternRule(
            "phi-cache", "PHI caching detected",
            "Patient data may be cached, requiring retention policy consideration.",
            Severity.MEDIUM,
            (r"(?i)cache.*patient|patient.*cache",),
            "Ensure cached PHI has appropriate TTL and is encrypted at rest.",
        ),
    ]
