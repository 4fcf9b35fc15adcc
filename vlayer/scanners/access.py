"""
vlayer Access Control Scanner

Detects over-broad queries on sensitive tables, hardcoded admin roles and
flags, authentication bypasses, public password fields, wildcard CORS and
sessions that never expire.
"""

from __future__ import annotations

from vlayer.core.finding import Category, Severity
from vlayer.core.patterns import CODE_EXTENSIONS, PatternRule, PatternScanner

ACCESS_REFERENCE = "§164.312(a)(1), §164.312(d)"


class AccessControlScanner(PatternScanner):
    """Primary scanner for the access-control category."""

    name = "Access Control Scanner"
    category = Category.ACCESS_CONTROL
    id_prefix = "access"
    compliance_reference = ACCESS_REFERENCE
    extensions = CODE_EXTENSIONS + (".sql",)

    rules = [
        PatternRule(
            "select-star", "SELECT * on sensitive table",
            "Using SELECT * may retrieve more PHI than necessary.",
            Severity.MEDIUM,
            (r"(?i)\*\s*FROM\s+(patient|user|health|medical)",),
            "Select only required columns to minimize PHI exposure (minimum necessary).",
        ),
        PatternRule(
            "hardcoded-admin", "Hardcoded admin role",
            "Hardcoded administrative role assignment detected.",
            Severity.HIGH,
            (r"""(?i)role\s*[:=]\s*['"`](admin|root|superuser)['"`]""",),
            "Use role-based access control (RBAC) with proper authentication.",
        ),
        PatternRule(
            "auth-bypass", "Potential authentication bypass",
            "Code pattern suggests authentication may be bypassed.",
            Severity.CRITICAL,
            (r"(?i)bypass.*auth|auth.*bypass|skip.*auth",),
            "Remove any authentication bypass mechanisms in production code.",
        ),
        PatternRule(
            "admin-flag", "Hardcoded admin flag",
            "Admin privileges set via hardcoded flag.",
            Severity.MEDIUM,
            (r"(?i)isAdmin\s*[:=]\s*true|admin\s*[:=]\s*true",),
            "Determine admin status through secure authentication flow.",
        ),
        PatternRule(
            "public-password", "Password field with public visibility",
            "Password field may have public accessibility.",
            Severity.CRITICAL,
            (r"(?i)public\s+(static\s+)?.*password|password.*public",),
            "Password fields should be private and never exposed.",
        ),
        PatternRule(
            "cors-wildcard", "CORS wildcard origin",
            "CORS configured to allow all origins.",
            Severity.HIGH,
            (r"(?i)allow.*origin.*\*",),
            "Restrict CORS to specific trusted domains for PHI-handling endpoints.",
        ),
        PatternRule(
            "no-session-expiry", "Session without expiration",
            "Session configured without expiration.",
            Severity.HIGH,
            (r"(?i)session.*expires?\s*[:=]\s*0|maxAge\s*:\s*0",),
            "Implement automatic session timeout for PHI access "
            "(HIPAA recommends 15 min idle).",
        ),
    ]
