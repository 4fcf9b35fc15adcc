"""
vlayer API Security Scanner

- RATE-001: authentication routes without rate limiting
- CORS-001: CORS opened to every origin (matched across a few lines)
- API-001: PHI passed in URL query parameters
"""

from __future__ import annotations

import re

from vlayer.core.finding import Category, Severity
from vlayer.core.patterns import JS_EXTENSIONS, LineMatch, PatternRule, PatternScanner

RATE_LIMIT_WINDOW = 10
CORS_WINDOW_BEFORE = 2
CORS_WINDOW_AFTER = 2
QUERY_PARAM_WINDOW = 1

_AUTH_PATHS = r"""['"`]/(?:api/)?(?:auth|login|signin|register|signup|password-reset|forgot-password)"""
_PHI_PARAMS = r"(?:ssn|dob|patient[-_]?name|patientName|diagnosis|medication|mrn|health[-_]?record)"

_OPEN_CORS = [
    re.compile(r"""(?i)cors\s*\(\s*\{[^}]*origin\s*:\s*['"`]\*['"`]"""),
    re.compile(r"""(?i)Access-Control-Allow-Origin['"`]?\s*[,:]?\s*['"`]\*"""),
    re.compile(r"""(?i)setHeader\s*\(\s*['"`]Access-Control-Allow-Origin['"`]\s*,\s*['"`]\*['"`]"""),
    re.compile(r"""(?i)\.header\s*\(\s*['"`]Access-Control-Allow-Origin['"`]\s*,\s*['"`]\*['"`]"""),
    re.compile(r"""(?i)headers\.set\s*\(\s*['"`]Access-Control-Allow-Origin['"`]\s*,\s*['"`]\*['"`]"""),
]


def _opens_cors(hit: LineMatch) -> bool:
    """A CORS call often spans lines, so match against the joined window."""
    window = hit.window(CORS_WINDOW_BEFORE, CORS_WINDOW_AFTER)
    joined = re.sub(r"\s+", " ", " ".join(window))
    return any(regex.search(joined) for regex in _OPEN_CORS)


class APISecurityScanner(PatternScanner):
    """Additional access-control scanner for HTTP APIs."""

    name = "API Security Scanner"
    category = Category.ACCESS_CONTROL
    extensions = JS_EXTENSIONS

    rules = [
        PatternRule(
            "RATE-001", "Authentication Routes Without Rate Limiting",
            "Authentication route defined without rate limiting middleware "
            "(rateLimit, rateLimiter, throttle, slowDown). Vulnerable to brute force attacks.",
            Severity.HIGH,
            (
                r"(?i)(?:app|router)\.(?:post|get|put|patch|delete|all)\s*\(\s*" + _AUTH_PATHS,
                r"(?i)fastify\.(?:post|get|route)\s*\(\s*" + _AUTH_PATHS,
                r"(?i)route\s*\(\s*" + _AUTH_PATHS,
            ),
            "Add rate limiting middleware to authentication routes. Example: "
            "const limiter = rateLimit({ windowMs: 15 * 60 * 1000, max: 5 }); "
            'app.post("/login", limiter, loginHandler).',
            compliance_reference="45 CFR §164.312(a)(1) - Access Control",
            negative_patterns=(
                r"(?i)rateLimit", r"(?i)rate-limit", r"(?i)throttle", r"(?i)slowDown",
                r"(?i)slow-down", r"(?i)@upstash/ratelimit", r"(?i)upstash.*limit",
                r"(?i)redis.*limit", r"(?i)limitAttempts", r"(?i)checkRateLimit",
            ),
            context_before=RATE_LIMIT_WINDOW,
            context_after=RATE_LIMIT_WINDOW,
        ),
        PatternRule(
            "CORS-001", 'Open CORS Configuration (origin: "*")',
            'CORS configured with origin: "*" or Access-Control-Allow-Origin: *. '
            "PHI endpoints must restrict access to trusted domains only.",
            Severity.HIGH,
            (r"(?i)cors|setHeader|\.header|headers\.set|origin.*\*",),
            'Restrict CORS to trusted domains. Example: cors({ origin: ["https://app.example.com"] }) '
            'or read allowed origins from the environment. Never use origin: "*" for PHI endpoints.',
            compliance_reference="45 CFR §164.312(e)(1) - Transmission Security",
            negative_patterns=(
                r"(?i)allowedOrigins", r"(?i)whitelist", r"(?i)allowlist", r"(?i)trustedOrigins",
                r"(?i)process\.env", r"(?i)env\.[A-Z_]*ORIGIN", r"(?i)ALLOWED_ORIGIN",
                r"(?i)validateOrigin", r"(?i)checkOrigin", r"(?i)\[.*?https?://",
                r"(?i)public", r"(?i)assets", r"(?i)static",
            ),
            context_before=CORS_WINDOW_BEFORE,
            context_after=CORS_WINDOW_AFTER,
            check=_opens_cors,
        ),
        PatternRule(
            "API-001", "PHI Data in URL Query Parameters",
            "PHI data passed as URL query parameters (?ssn=, &dob=). URLs are logged by "
            "servers, proxies, and browsers, exposing PHI in logs.",
            Severity.HIGH,
            (
                r"(?i)[?&]" + _PHI_PARAMS + "=",
                r"(?i)`[^`]*\?[^`]*" + _PHI_PARAMS + "=",
                r"""(?i)(?:params|searchParams|query)\.(?:append|set)\s*\(\s*['"`]""" + _PHI_PARAMS + r"""['"`]""",
            ),
            "Never pass PHI in URL query parameters. Send it in a POST request body instead.",
            compliance_reference="45 CFR §164.312(a)(1) - Access Control",
            negative_patterns=(
                r"(?i)\.post\s*\(", r"(?i)\.put\s*\(", r"(?i)\.patch\s*\(",
                r"(?i)body:", r"(?i)data:", r"(?i)req\.body", r"(?i)request\.body",
                r"(?i)example", r"TODO", r"(?i)describe\(",
            ),
            context_before=QUERY_PARAM_WINDOW,
            context_after=QUERY_PARAM_WINDOW,
            category=Category.PHI_EXPOSURE,
        ),
    ]
