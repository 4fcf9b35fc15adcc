"""
vlayer Security Scanner

General application-security patterns that weaken access control around
PHI: provider-specific keys and tokens, credentials embedded in database
URIs, unsanitized HTML sinks, dynamic code execution and SQL injection.

Quoted password, secret, API key and token assignments belong to CRED-002
in the credentials scanner and are not matched here.
"""

from __future__ import annotations

from vlayer.core.finding import Category, Severity
from vlayer.core.patterns import PatternRule, PatternScanner

ACCESS_REFERENCE = "§164.312(a)(1), §164.312(d)"

DB_URI_RECOMMENDATION = "Use environment variables for database connection strings."
PARAMETERIZE = "Use parameterized queries instead of string concatenation or interpolation."

# Assignments CRED-002 already reports as a hardcoded credential
CREDENTIAL_ASSIGNMENT = r"""(?i)(?:aws|service|client)[-_]?(?:key|secret)\s*[:=]\s*['"`]"""
CONNECTION_ASSIGNMENT = (
    r"""(?i)(?:connection[-_]?string|connectionstring|database[-_]?url)\s*[:=]\s*['"`]"""
)


def _rule(rule_id, title, description, severity, pattern, recommendation, negative=()):
    return PatternRule(
        rule_id, title, description, severity, (pattern,), recommendation,
        negative_patterns=negative,
    )


class SecurityScanner(PatternScanner):
    """Provider keys, injection and unsafe execution sinks."""

    name = "Security Scanner"
    category = Category.ACCESS_CONTROL
    id_prefix = "security"
    compliance_reference = ACCESS_REFERENCE
    extensions = (".ts", ".js", ".tsx", ".jsx", ".py", ".java", ".go", ".rb", ".php", ".env", ".sql")

    rules = [
        _rule("credentials-object", "Credentials object with password",
              "A credentials object containing password field was detected.",
              Severity.HIGH, r"(?i)credentials?\s*[:=]\s*\{[^}]*password\s*:",
              "Load credentials from secure configuration, not source code."),

        # ── Provider keys ──
        _rule("stripe-key-exposed", "Stripe API key exposed",
              "A Stripe API key pattern was detected in the source code.",
              Severity.CRITICAL, r"(?i)(sk|pk)[_-](live|test)[_-][A-Za-z0-9]{20,}",
              "Never commit Stripe keys. Use environment variables and restrict key permissions."),
        _rule("aws-key-exposed", "AWS Access Key exposed",
              "An AWS Access Key ID pattern was detected.",
              Severity.CRITICAL, r"AKIA[0-9A-Z]{16}",
              "Rotate this key immediately. Use IAM roles or environment variables instead.",
              negative=(CREDENTIAL_ASSIGNMENT,)),
        # A quoted "Bearer ..." literal is CRED-002's
        _rule("bearer-token-exposed", "Bearer token in source",
              "A bearer token appears to be hardcoded.",
              Severity.HIGH, r"""(?i)(?<!['"`])\bbearer\s+[A-Za-z0-9_\-\.]{20,}""",
              "Tokens should be fetched at runtime, not hardcoded."),

        # ── Database credentials ──
        _rule("mongodb-uri-credentials", "MongoDB URI with credentials",
              "A MongoDB connection string with embedded credentials was detected.",
              Severity.CRITICAL, r"(?i)mongodb(\+srv)?://[^:\s]+:[^@\s]+@", DB_URI_RECOMMENDATION,
              negative=(CONNECTION_ASSIGNMENT,)),
        _rule("postgres-uri-credentials", "PostgreSQL URI with credentials",
              "A PostgreSQL connection string with embedded credentials was detected.",
              Severity.CRITICAL, r"(?i)postgres(ql)?://[^:\s]+:[^@\s]+@", DB_URI_RECOMMENDATION,
              negative=(CONNECTION_ASSIGNMENT,)),
        _rule("mysql-uri-credentials", "MySQL URI with credentials",
              "A MySQL connection string with embedded credentials was detected.",
              Severity.CRITICAL, r"(?i)mysql://[^:\s]+:[^@\s]+@", DB_URI_RECOMMENDATION,
              negative=(CONNECTION_ASSIGNMENT,)),

        # ── Input sanitization ──
        _rule("innerhtml-unsanitized", "Unsanitized innerHTML assignment",
              "Direct innerHTML assignment without sanitization can lead to XSS vulnerabilities.",
              Severity.HIGH, r"""(?i)innerHTML\s*=\s*[^'"`\s;]+""",
              "Use textContent for text, or sanitize HTML with DOMPurify before assignment."),
        _rule("dangerous-innerhtml-react", "dangerouslySetInnerHTML usage",
              "Using dangerouslySetInnerHTML can expose the application to XSS attacks.",
              Severity.HIGH, r"(?i)dangerouslySetInnerHTML\s*=\s*\{\s*\{\s*__html:",
              "Sanitize content with DOMPurify before using dangerouslySetInnerHTML."),
        _rule("eval-usage", "eval() usage detected",
              "Using eval() can execute arbitrary code and is a security risk.",
              Severity.CRITICAL, r"(?i)\beval\s*\(\s*[^)]*\)",
              "Avoid eval(). Use safer alternatives like JSON parsing for data."),
        _rule("function-constructor", "Function constructor usage",
              "The Function constructor can execute arbitrary code like eval().",
              Severity.HIGH, r"(?i)new\s+Function\s*\([^)]*\)",
              "Avoid dynamic code execution. Use predefined functions instead."),
        _rule("document-write", "document.write usage",
              "document.write can be exploited for XSS and blocks page rendering.",
              Severity.MEDIUM, r"(?i)document\.write\s*\(",
              "Use DOM manipulation methods (appendChild, insertAdjacentHTML) instead."),

        # ── SQL injection ──
        _rule("sql-string-concat", "SQL query string concatenation",
              "Building SQL queries with string concatenation is vulnerable to SQL injection.",
              Severity.CRITICAL,
              r"""(?i)['"`]\s*\+\s*[^+]+\s*\+\s*['"`]\s*(FROM|WHERE|AND|OR|INSERT|UPDATE|DELETE|SELECT)""",
              PARAMETERIZE),
        _rule("sql-template-literal", "SQL query with template literal interpolation",
              "Interpolating variables directly into SQL queries enables SQL injection.",
              Severity.CRITICAL, r"(?i)\$\{[^}]+\}\s*(FROM|WHERE|AND|OR|INSERT|UPDATE|DELETE|SELECT)",
              PARAMETERIZE),
        _rule("query-template-injection", "Database query with template interpolation",
              "Template literal interpolation in database queries can lead to injection attacks.",
              Severity.CRITICAL, r"""(?i)query\s*\(\s*['"`].*\$\{""",
              PARAMETERIZE),
        _rule("execute-string-concat", "SQL execute with string concatenation",
              "Concatenating strings in SQL execute statements enables injection.",
              Severity.CRITICAL, r"""(?i)execute\s*\(\s*['"`].*\+""",
              PARAMETERIZE),
        _rule("execute-fstring", "SQL execute with f-string interpolation",
              "Formatting values into SQL execute statements enables injection.",
              Severity.CRITICAL, r"""(?i)execute\s*\(\s*f['"]""",
              PARAMETERIZE),
        _rule("raw-query-injection", "Raw SQL query with interpolation",
              "Raw SQL queries with interpolated values are vulnerable to injection.",
              Severity.CRITICAL, r"""(?i)raw\s*\(\s*['"`].*\$\{""",
              "Even with raw queries, use parameter binding for user-supplied values."),
    ]
