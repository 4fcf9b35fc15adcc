"""
vlayer Operational Security Scanner

- BACKUP-001: database in use but no backup configuration anywhere in the
  project (advisory, computed once per scan)
- RETENTION-001: PHI records created without retention fields
- API-002: JSON body parser without a size limit
"""

from __future__ import annotations

import logging
import re
from pathlib import Path

from vlayer.core.finding import Category, Confidence, Finding, Severity
from vlayer.core.patterns import JS_EXTENSIONS, PatternRule, PatternScanner, has_extension
from vlayer.core.scanner import ScanContext

logger = logging.getLogger(__name__)

RETENTION_WINDOW_BEFORE = 5
RETENTION_WINDOW_AFTER = 10
BODY_LIMIT_WINDOW = 2

BACKUP_EXTENSIONS = JS_EXTENSIONS + (".json", ".yml", ".yaml")

DATABASE_USAGE = [
    re.compile(r"""(?i)import.*from\s+['"](?:@supabase/supabase-js|@prisma/client|prisma|mongoose|drizzle-orm|typeorm|sequelize|knex)['"]"""),
    re.compile(r"(?i)new\s+PrismaClient\s*\("),
    re.compile(r"(?i)mongoose\.connect\s*\("),
    re.compile(r"(?i)createClient\s*\(.*supabase"),
    re.compile(r"(?i)new\s+Sequelize\s*\("),
    re.compile(r"(?i)createConnection\s*\(.*typeorm"),
]
BACKUP_MARKERS = re.compile(
    r"(?i)backup|snapshot|replicate|pg_dump|mongodump|restore|backupSchedule|automaticBackup"
)


class OperationalScanner(PatternScanner):
    """Additional data-retention scanner for operational controls."""

    name = "Operational Security Scanner"
    category = Category.DATA_RETENTION
    extensions = JS_EXTENSIONS

    rules = [
        PatternRule(
            "RETENTION-001", "PHI Records Created Without Retention Fields",
            "PHI record creation on patient/health/medical/clinical tables without retention "
            "fields (expiresAt, ttl, retainUntil, retentionPeriod, deleteAfter).",
            Severity.MEDIUM,
            (
                r"(?i)prisma\.(?:patient|health\w*|medical\w*|clinical\w*)\.(?:create|upsert)\s*\(",
                r"(?i)(?:Patient|Health\w*|Medical\w*|Clinical\w*)\.create\s*\(",
                r"(?i)new\s+Patient\s*\(.*\)\.save\s*\(",
                r"(?i)db\.insert\s*\(\s*(?:patient|health|medical|clinical)",
                r"""(?i)\.insert\s*\(.*\)\s*\.into\s*\(\s*['"`](?:patient|health)""",
                r"(?i)Medical\w*\.upsert\s*\(",
                r"(?i)insertInto\s*\(\s*patient",
                r"""(?i)supabase\.from\s*\(\s*['"`](?:patient|health|medical)[^)]*\)\.insert""",
            ),
            "Add retention fields to PHI record creation, e.g. { ...patientData, "
            "expiresAt: retentionDate } or { ...data, retentionPeriod: \"7years\" }.",
            compliance_reference="45 CFR §164.316(b)(2)(i) - Retention Period",
            negative_patterns=(
                r"(?i)expiresAt", r"(?i)ttl", r"(?i)retainUntil", r"(?i)retentionPeriod",
                r"(?i)deleteAfter", r"(?i)retention_date", r"(?i)expiration",
                r"(?i)expires_at", r"(?i)retain_until", r"(?i)delete_after",
                r"(?i)\.test\.", r"(?i)\.spec\.", r"(?i)describe\(", r"\bit\(",
            ),
            confidence=Confidence.MEDIUM,
            context_before=RETENTION_WINDOW_BEFORE,
            context_after=RETENTION_WINDOW_AFTER,
        ),
        PatternRule(
            "API-002", "JSON Body Parser Without Size Limit",
            "express.json() or bodyParser.json() configured without a limit option. "
            "Unlimited body size can lead to DoS via large payloads.",
            Severity.LOW,
            (
                r"(?i)express\.json\s*\(\s*(?:\{\s*\})?\s*\)",
                r"(?i)bodyParser\.json\s*\(\s*(?:\{\s*\})?\s*\)",
            ),
            'Configure body size limits. Example: app.use(express.json({ limit: "1mb" })).',
            compliance_reference="45 CFR §164.308(a)(1)(ii)(D) - System Security",
            negative_patterns=(
                r"(?i)limit\s*:", r"(?i)\{\s*limit", r"""(?i)["']limit["']""",
                r"(?i)size:", r"(?i)maxBodySize",
            ),
            confidence=Confidence.MEDIUM,
            context_before=BODY_LIMIT_WINDOW,
            context_after=BODY_LIMIT_WINDOW,
            category=Category.ACCESS_CONTROL,
        ),
    ]

    def scan_project(self, files: list[Path], context: ScanContext) -> list[Finding]:
        """BACKUP-001: look for database usage and backup config across all files."""
        first_use = None
        has_backup = False

        for file_path in files:
            rel_path = context.relative(file_path)
            if not has_extension(rel_path, BACKUP_EXTENSIONS):
                continue
            try:
                content = file_path.read_text(errors="ignore")
            except OSError as exc:
                logger.debug("Cannot read %s: %s", file_path, exc)
                continue

            if first_use is None:
                for index, line in enumerate(content.splitlines()):
                    if any(p.search(line) for p in DATABASE_USAGE):
                        first_use = (rel_path, index + 1)
                        break
            if not has_backup and BACKUP_MARKERS.search(content):
                has_backup = True
            if first_use is not None and has_backup:
                break

        if first_use is None or has_backup:
            return []

        rel_path, line = first_use
        return [
            Finding(
                id="BACKUP-001",
                category=Category.DATA_RETENTION,
                severity=Severity.MEDIUM,
                title="Database Without Backup Configuration",
                description=(
                    "Database usage detected without backup/snapshot/replicate configuration "
                    "references in the project. Advisory: full verification requires "
                    "infrastructure inspection."
                ),
                file=rel_path,
                line=line,
                recommendation=(
                    "Configure automated database backups (managed provider backups, "
                    "pg_dump/mongodump in CI/CD) and document the backup schedule and "
                    "retention policy."
                ),
                compliance_reference="45 CFR §164.308(a)(7)(ii)(A) - Data Backup Plan",
                confidence=Confidence.LOW,
                pattern_id="BACKUP-001",
            )
        ]
