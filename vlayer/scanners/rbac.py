"""
vlayer Role-Based Access Control Scanner

- RBAC-001: PHI tables queried with no role/permission check nearby
- RBAC-002: service-role keys or admin defaults in client-side code
- RBAC-003: SELECT * on PHI tables (minimum necessary)
"""

from __future__ import annotations

import re

from vlayer.core.finding import Category, Severity
from vlayer.core.patterns import PatternRule, PatternScanner

AUTHZ_WINDOW_BEFORE = 10
AUTHZ_WINDOW_AFTER = 5
SELECT_WINDOW = 2

ACCESS_REFERENCE = "45 CFR §164.312(a)(1) - Access Control"

_PHI_TABLES = (
    r"(?:patients?|health_records?|medical_records?|diagnos[ei]s|treatments?|"
    r"prescriptions?|medications?|encounters?|visits?|lab_results?)"
)

_CLIENT_MARKERS = [
    re.compile(r"(?i)/(?:components?|pages?|app)/"),
    re.compile(r"(?i)\.client\."),
    re.compile(r"(?i)use client"),
    re.compile(r"(?i)useState|useEffect|useContext"),
    re.compile(r"(?i)window\."),
    re.compile(r"(?i)document\."),
]
_SERVER_MARKERS = [
    re.compile(r"(?i)/api/"),
    re.compile(r"(?i)\.server\."),
    re.compile(r"(?i)getServerSideProps"),
    re.compile(r"(?i)getStaticProps"),
    re.compile(r"(?i)use server"),
]
_CLIENT_SAFE = [
    re.compile(r"(?i)process\.env"),
    re.compile(r"(?i)\.test\."),
    re.compile(r"(?i)\.spec\."),
    re.compile(r"(?i)describe\("),
]


def is_client_side_file(rel_path: str, content: str) -> bool:
    """Server markers win; otherwise client markers or a web source directory."""
    path = "/" + rel_path
    if any(p.search(path) or p.search(content) for p in _SERVER_MARKERS):
        return False
    if any(p.search(path) or p.search(content) for p in _CLIENT_MARKERS):
        return True
    return bool(re.search(r"(?i)/(?:src|components?|pages?|app|views?)/", path))


def _client_code(rel_path: str, lines: list[str]) -> bool:
    content = "\n".join(lines)
    if not is_client_side_file(rel_path, content):
        return False
    return not any(p.search(rel_path) or p.search(content) for p in _CLIENT_SAFE)


class RBACScanner(PatternScanner):
    """Authorization and minimum-necessary checks."""

    name = "Role-Based Access Control Scanner"
    category = Category.ACCESS_CONTROL
    compliance_reference = ACCESS_REFERENCE
    extensions = (".js", ".ts", ".jsx", ".tsx", ".sql", ".prisma")

    rules = [
        PatternRule(
            "RBAC-001", "PHI Data Access Without Role/Permission Verification",
            "Database query accessing PHI data without role or permission verification "
            "in the surrounding code.",
            Severity.HIGH,
            (
                r"(?i)from\s+" + _PHI_TABLES,
                r"""(?i)\.(?:from|table)\s*\(\s*['"`]""" + _PHI_TABLES + r"""['"`]""",
                r"(?i)(?:Patient|HealthRecord|MedicalRecord|Diagnosis|Treatment|Prescription|"
                r"Medication|Encounter|Visit|LabResult)\.(?:find|findOne|findAll|findMany|query|where)",
                r"(?i)prisma\.(?:patient|healthRecord|medicalRecord|diagnosis|treatment|"
                r"prescription|medication)\.(?:findMany|findUnique|findFirst)",
            ),
            'Add role/permission verification before accessing PHI data. Example: '
            'if (!hasPermission(user, "read:patients")) throw new Error("Unauthorized").',
            negative_patterns=(
                r"(?i)role", r"(?i)permission", r"(?i)authorize", r"(?i)isAdmin",
                r"(?i)canAccess", r"(?i)checkAccess", r"(?i)verifyRole", r"(?i)requireRole",
                r"(?i)isAuthorized",
            ),
            context_before=AUTHZ_WINDOW_BEFORE,
            context_after=AUTHZ_WINDOW_AFTER,
        ),
        PatternRule(
            "RBAC-002", "Service Role Key or Admin Default in Client Code",
            "Privileged service_role key exposed in client-side code, isAdmin defaulting "
            "to true, or a condition that always grants admin access.",
            Severity.CRITICAL,
            (
                r"(?i)service_?role",
                r"(?i)isAdmin\s*[:=]\s*true",
                r"""(?i)role\s*[:=]\s*['"`]admin['"`]""",
                r"(?i)admin\s*:\s*true",
                r"(?i)if\s*\(\s*true\s*\).*admin",
                r"""(?i)userId\s*===?\s*['"`]admin['"`]""",
                r"""(?i)email\s*===?\s*['"`]admin@""",
            ),
            "Keep service_role keys in server-side code only. Never default isAdmin to "
            "true; derive roles from authenticated user data on the backend.",
            file_filter=_client_code,
        ),
        PatternRule(
            "RBAC-003", "SELECT * on PHI Tables Violates Minimum Necessary Principle",
            'Query uses SELECT * or .select("*") on tables containing PHI, retrieving '
            "more data than necessary.",
            Severity.MEDIUM,
            (
                r"(?i)SELECT\s+\*\s+FROM\s+" + _PHI_TABLES,
                r"""(?i)\.select\s*\(\s*['"`]\*['"`]\s*\)""",
                r"(?i)\.select\s*\(\s*\*\s*\)",
            ),
            "Select only the minimum necessary fields. Example: SELECT id, name, dob FROM "
            "patients instead of SELECT * FROM patients.",
            compliance_reference="45 CFR §164.502(b) - Minimum Necessary Requirement",
            negative_patterns=(
                r"""(?i)\.select\s*\(\s*['"`][a-zA-Z_,\s]+['"`]\s*\)""",
                r"(?i)SELECT\s+[a-zA-Z_,\s]+\s+FROM",
                r"(?i)select\s*:\s*\{",
                r"(?i)pick\s*\(",
                r"(?i)omit\s*\(",
            ),
            context_before=SELECT_WINDOW,
            context_after=SELECT_WINDOW,
        ),
    ]
