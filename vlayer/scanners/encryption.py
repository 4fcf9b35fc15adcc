"""
vlayer Encryption Scanner

Detects weak cryptographic primitives (MD5, SHA1, DES, RC4, ECB) and
missing transport or backup encryption (plain HTTP, disabled TLS
verification, unencrypted backups).
"""

from __future__ import annotations

from vlayer.core.finding import Category, Severity
from vlayer.core.patterns import LineMatch, PatternRule, PatternScanner

WEAK_CRYPTO_REFERENCE = "§164.312(a)(2)(iv), §164.312(e)(2)(ii)"
TRANSMISSION_REFERENCE = "§164.312(e)(1)"

WEAK_RECOMMENDATION = "Use AES-256-GCM for encryption and SHA-256 or stronger for hashing."
MISSING_RECOMMENDATION = "Enforce TLS 1.2+ for all data transmission containing PHI."


def _not_safe_http(hit: LineMatch) -> bool:
    return not hit.context.config.is_safe_http_url(hit.line)


def _weak(rule_id: str, issue: str, severity: Severity, pattern: str) -> PatternRule:
    return PatternRule(
        f"weak-{rule_id}", f"Weak cryptography: {issue}",
        f"{issue} is not suitable for protecting PHI.",
        severity, (pattern,), WEAK_RECOMMENDATION,
        compliance_reference=WEAK_CRYPTO_REFERENCE,
    )


def _missing(rule_id: str, issue: str, severity: Severity, pattern: str, check=None) -> PatternRule:
    return PatternRule(
        f"missing-{rule_id}", f"Encryption issue: {issue}",
        f"{issue} may expose PHI during transmission.",
        severity, (pattern,), MISSING_RECOMMENDATION,
        compliance_reference=TRANSMISSION_REFERENCE,
        check=check,
    )


class EncryptionScanner(PatternScanner):
    """Weak crypto and unencrypted transport/backups."""

    name = "Encryption Scanner"
    category = Category.ENCRYPTION
    id_prefix = "enc"
    extensions = (
        ".ts", ".js", ".tsx", ".jsx", ".py", ".java", ".go", ".rb", ".php",
        ".env", ".yaml", ".yml", ".json", ".xml",
    )

    rules = [
        _weak("md5", "MD5 hash function", Severity.HIGH, r"(?i)\bmd5\s*\("),
        _weak("sha1", "SHA1 hash function", Severity.MEDIUM, r"(?i)\bsha1\s*\("),
        _weak("des", "DES encryption", Severity.CRITICAL, r"(?i)\bdes\b"),
        _weak("rc4", "RC4 encryption", Severity.CRITICAL, r"(?i)\b(rc4|arcfour)\b"),
        _weak("create-cipher", "Deprecated cipher method", Severity.HIGH, r"(?i)createCipher\s*\("),
        _weak("ecb", "ECB mode encryption", Severity.HIGH, r"\bECB\b"),
        _missing(
            "http", "Unencrypted HTTP URL", Severity.HIGH,
            r"(?i)http://(?!localhost|127\.0\.0\.1)", check=_not_safe_http,
        ),
        _missing("ssl-disabled", "SSL disabled", Severity.CRITICAL, r"(?i)ssl\s*[:=]\s*false"),
        _missing(
            "ssl-verify", "SSL verification disabled", Severity.CRITICAL,
            r"(?i)verify\s*[:=]\s*false.*ssl|verify\s*=\s*False",
        ),
        _missing(
            "tls-unauthorized", "TLS certificate validation disabled", Severity.CRITICAL,
            r"(?i)rejectUnauthorized\s*:\s*false",
        ),
        _missing(
            "backup-encrypt", "Backup encryption disabled", Severity.CRITICAL,
            r"(?i)backup.*encrypt\s*[:=]\s*false|encrypt\s*[:=]\s*false.*backup",
        ),
        _missing(
            "backup-ssl", "Database backup without SSL", Severity.HIGH,
            r"(?i)mysqldump(?!.*--ssl).*password|pg_dump(?!.*--ssl)",
        ),
        _missing(
            "backup-format", "Unencrypted backup file format", Severity.HIGH,
            r"(?i)backup.*(\.sql|\.csv|\.json|\.txt)\b(?!.*encrypt|.*gpg|.*aes)",
        ),
        _missing(
            "backup-phi", "PHI backup without encryption", Severity.CRITICAL,
            r"(?i)writeFile.*backup.*patient|patient.*backup.*writeFile",
        ),
        _missing(
            "backup-s3", "S3 backup without server-side encryption", Severity.HIGH,
            r"(?i)s3.*upload.*backup(?!.*encrypt|.*sse|.*kms)",
        ),
        _missing(
            "backup-storage", "Backup storage without encryption specified", Severity.MEDIUM,
            r"(?i)backup.*storage(?!.*encrypt)|storage.*backup(?!.*encrypt)",
        ),
    ]
