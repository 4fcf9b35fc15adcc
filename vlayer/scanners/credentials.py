"""
vlayer Credential Security Scanner

Detects weak password hashing, credentials hardcoded as string literals,
and secrets exposed to browsers through NEXT_PUBLIC_ variables.
"""

from __future__ import annotations

import re

from vlayer.core.finding import Category, Severity
from vlayer.core.patterns import LineMatch, PatternRule, PatternScanner

# Lines searched around a weak hash call for password-related code
PASSWORD_HASH_WINDOW = 5

_PASSWORD_CONTEXT = re.compile(r"(?i)password|passwd|pwd|credential|auth")
_NON_PASSWORD_USE = re.compile(r"(?i)checksum|file.*hash|integrity")
_ASSIGNED_VALUE = re.compile(r"""[:=]\s*['"`]([^'"`]+)['"`]""")
_PLACEHOLDER_VALUE = re.compile(
    r"(?i)^(?:your|my|the|a|an|test|example|demo|sample|placeholder|xxx|changeme|replace|todo)"
)
_WEAK_VALUE = re.compile(r"(?i)^(?:12345|qwerty|password|admin|test)")


def _password_related(hit: LineMatch) -> bool:
    """Weak hash only matters when it is hashing credentials."""
    if _NON_PASSWORD_USE.search(hit.line):
        return False
    window = hit.window(PASSWORD_HASH_WINDOW, PASSWORD_HASH_WINDOW)
    return bool(_PASSWORD_CONTEXT.search("\n".join(window)))


def _real_secret_value(hit: LineMatch) -> bool:
    value = _ASSIGNED_VALUE.search(hit.line)
    if value is None:
        return True
    text = value.group(1)
    if _PLACEHOLDER_VALUE.search(text):
        return False
    return len(text) >= 8 and not _WEAK_VALUE.search(text)


class CredentialsScanner(PatternScanner):
    """Password hashing and hardcoded credential checks."""

    name = "Credential Security Scanner"
    category = Category.ENCRYPTION
    extensions = (
        ".js", ".ts", ".jsx", ".tsx", ".py", ".java", ".go", ".rb", ".php",
        ".cs", ".env", ".yml", ".yaml", ".json",
    )

    rules = [
        PatternRule(
            "CRED-001", "Weak Password Hashing Algorithm Detected",
            "Using MD5, SHA1, or SHA256 for password hashing instead of secure "
            "algorithms like bcrypt, argon2, or scrypt.",
            Severity.CRITICAL,
            (
                r"""(?i)createHash\s*\(\s*['"`](?:md5|sha1|sha-?1|sha256|sha-?256)['"`]\s*\)""",
                r"(?i)hashlib\.(?:md5|sha1|sha256)\s*\(",
                r"(?i)(?:md5|sha1|sha256).*?(?:password|pass|pwd|hash)",
                r"(?i)(?:password|pass|pwd).*?(?:md5|sha1|sha256)",
            ),
            "Use bcrypt, argon2, or scrypt for password hashing. Example: "
            "bcrypt.hashpw(password, bcrypt.gensalt()) or await argon2.hash(password). "
            "Never use MD5, SHA1, or simple SHA256 for passwords.",
            compliance_reference="45 CFR §164.312(d) - Person or Entity Authentication",
            negative_patterns=(r"(?i)bcrypt", r"(?i)argon2", r"(?i)scrypt", r"(?i)pbkdf2"),
            context_before=PASSWORD_HASH_WINDOW,
            context_after=PASSWORD_HASH_WINDOW,
            check=_password_related,
        ),
        PatternRule(
            "CRED-002", "Hardcoded Credentials Detected",
            "Credentials (password, apiKey, secret, token, connectionString) hardcoded "
            "as string literals instead of using environment variables.",
            Severity.CRITICAL,
            (
                r"""(?i)(?:password|passwd|pwd)\s*[:=]\s*['"`][^'"`]{8,}['"`]""",
                r"""(?i)(?:api[-_]?key|apikey)\s*[:=]\s*['"`][^'"`]{8,}['"`]""",
                r"""(?i)(?:secret|private[-_]?key|privatekey)\s*[:=]\s*['"`][^'"`]{8,}['"`]""",
                r"""(?i)(?:token|auth[-_]?token|access[-_]?token)\s*[:=]\s*['"`][^'"`]{16,}['"`]""",
                r"""(?i)(?:connection[-_]?string|connectionstring|database[-_]?url)\s*[:=]\s*['"`][^'"`]{10,}['"`]""",
                r"""(?i)['"`]Bearer\s+[A-Za-z0-9_\-\.]{16,}['"`]""",
                r"""(?i)(?:aws|service|client)[-_]?(?:key|secret)\s*[:=]\s*['"`][A-Za-z0-9+/]{20,}['"`]""",
            ),
            "Move credentials to environment variables or a secrets manager. "
            "Never commit credentials to source control.",
            compliance_reference="45 CFR §164.312(a)(2)(i) - Unique User Identification",
            negative_patterns=(
                r"(?i)process\.env", r"(?i)import\.meta\.env", r"(?i)env\.", r"(?i)ENV\[",
                r"(?i)getenv", r"(?i)environ",
                r"(?i)your[-_]?(?:key|secret|password|token)",
                r"(?i)(?:placeholder|example|dummy|test|sample)",
                r"(?i)changeme", r"(?i)replace[-_]?(?:this|me)", r"(?i)(?:xxx|yyy|zzz)",
                r"""['"]\s*['"]""", r"\$\{",
                r"(?:^|\s)//", r"/\*",
            ),
            check=_real_secret_value,
        ),
        PatternRule(
            "CRED-003", "Secrets Exposed to Client via NEXT_PUBLIC_ Prefix",
            "Sensitive credentials exposed to client-side code using the NEXT_PUBLIC_ "
            "environment variable prefix.",
            Severity.CRITICAL,
            (
                r"(?i)NEXT_PUBLIC_SECRET",
                r"(?i)NEXT_PUBLIC_.*?KEY",
                r"(?i)NEXT_PUBLIC_.*?PASSWORD",
                r"(?i)NEXT_PUBLIC_SERVICE_ROLE",
                r"(?i)NEXT_PUBLIC_.*?TOKEN",
                r"(?i)NEXT_PUBLIC_.*?PRIVATE",
                r"(?i)NEXT_PUBLIC_DATABASE",
                r"(?i)NEXT_PUBLIC_.*?ADMIN",
            ),
            "Remove the NEXT_PUBLIC_ prefix from sensitive variables and read them only "
            "in server-side code. Use NEXT_PUBLIC_ for truly public values such as "
            "publishable keys.",
            compliance_reference="45 CFR §164.312(a)(2)(i) - Unique User Identification",
            negative_patterns=(
                r"(?i)NEXT_PUBLIC_(?:SUPABASE|FIREBASE|CLERK)_(?:ANON|PUBLISHABLE)_KEY",
                r"(?i)NEXT_PUBLIC_.*?PUBLISHABLE",
                r"(?i)NEXT_PUBLIC_.*?PUBLIC_KEY",
                r"(?i)NEXT_PUBLIC_(?:GA|GTM|ANALYTICS|MIXPANEL|SEGMENT)_",
                r"(?i)NEXT_PUBLIC_(?:APP|SITE|BASE)_(?:URL|NAME|VERSION)",
                r"(?i)NEXT_PUBLIC_FEATURE_",
            ),
        ),
    ]
