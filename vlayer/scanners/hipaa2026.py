"""
vlayer HIPAA 2026 Security Rule Scanner

Technical safeguards that the 2026 Security Rule update makes required:
MFA, encryption at rest, session timeout, access revocation, breach
notification and network segmentation are matched line by line.

Three checks run once per scan over the whole project and report on
reserved markers:
- HIPAA-PENTEST-001 on `project-level`: no vulnerability scanning configured
- HIPAA-ASSET-001 on `ASSET-INVENTORY`: inventory of systems touching ePHI
- HIPAA-FLOW-001 on `PHI-FLOW-MAP`: where PHI enters, moves and leaves
"""

from __future__ import annotations

import logging
import re
from collections import OrderedDict
from dataclasses import dataclass
from pathlib import Path

from vlayer.core.finding import (
    ASSET_INVENTORY,
    PHI_FLOW_MAP,
    PROJECT_LEVEL,
    Category,
    Confidence,
    Finding,
    Severity,
)
from vlayer.core.patterns import PatternRule, PatternScanner, has_extension
from vlayer.core.scanner import ScanContext

logger = logging.getLogger(__name__)

# Negative patterns are checked on the matching line and the next three
COMPLIANCE_LOOKAHEAD = 3

RISK_ANALYSIS_REFERENCE = "45 CFR §164.308(a)(1)(ii)(A) - Risk Analysis (Required)"

HIPAA_EXTENSIONS = (".js", ".ts", ".jsx", ".tsx", ".py", ".java", ".go", ".rb", ".php", ".cs")

VULN_SCANNING_FILES = [
    ".github/dependabot.yml",
    ".github/dependabot.yaml",
    ".github/workflows/security.yml",
    ".github/workflows/security.yaml",
    ".snyk",
    ".semgrep.yml",
    ".semgrep.yaml",
    "snyk.json",
    ".trivyignore",
    "trivy.yaml",
]
VULN_WORKFLOW_NAME = re.compile(r"(?i)security|codeql|snyk|trivy|semgrep|dependabot|vulnerability|sast|dast")
VULN_WORKFLOW_CONTENT = re.compile(r"(?i)snyk|trivy|semgrep|codeql|npm audit|pip-audit|security.scan|vulnerability")
VULN_PACKAGE_SCRIPTS = re.compile(r"snyk|audit|security")

# (asset type, detection pattern, PHI marker searched in the whole file)
ASSET_PATTERNS = [
    ("database", re.compile(r"(?i)(?:mongoose|sequelize|prisma|typeorm|knex)\.(?:connect|model)"),
     re.compile(r"(?i)patient|phi|medical|health")),
    ("storage", re.compile(r"(?i)(?:s3|azure\.storage|gcs)\."), re.compile(r"(?i)patient|phi|medical")),
    ("third-party", re.compile(r"(?i)(?:stripe|twilio|sendgrid|mailgun)\.(?:api|client)"),
     re.compile(r"(?i)patient|phi|medical")),
    ("api", re.compile(r"(?i)(?:axios|fetch|got|request|requests|httpx)\."), re.compile(r"(?i)patient|phi|medical")),
]

FLOW_STAGES = [
    ("input", re.compile(r"(?i)(?:req\.body|req\.params|req\.query|request\.json|request\.form).*?(?:patient|phi|medical)")),
    ("processing", re.compile(r"(?i)(?:process|transform|validate).*?(?:patient|phi)")),
    ("storage", re.compile(r"(?i)(?:save|insert|update|create).*?(?:patient|phi)")),
    ("output", re.compile(r"(?i)(?:res\.(?:send|json)|return).*?(?:patient|phi)")),
]
FLOW_ITEMS_PER_STAGE = 5

_QUOTED = re.compile(r"""['"`]([^'"`]+)['"`]""")


@dataclass(frozen=True)
class Asset:
    type: str
    name: str
    file: str
    line: int
    processes_phi: bool


@dataclass(frozen=True)
class FlowPoint:
    stage: str
    file: str
    line: int
    context: str


def _rule(rule_id, title, description, severity, reference, patterns, negatives, fix,
          category=Category.ACCESS_CONTROL, confidence=Confidence.HIGH):
    return PatternRule(
        rule_id, title, description, severity, tuple(patterns), fix,
        compliance_reference=reference,
        negative_patterns=tuple(negatives),
        confidence=confidence,
        context_after=COMPLIANCE_LOOKAHEAD,
        category=category,
    )


class HIPAA2026Scanner(PatternScanner):
    """Additional access-control scanner for the 2026 Security Rule."""

    name = "HIPAA 2026 Security Rule Scanner"
    category = Category.ACCESS_CONTROL
    extensions = HIPAA_EXTENSIONS

    rules = [
        _rule(
            "HIPAA-MFA-001", "Missing Multi-Factor Authentication for PHI Access",
            "Endpoints accessing PHI must enforce MFA. All auth configs must require "
            "multi-factor authentication.",
            Severity.CRITICAL, "45 CFR §164.312(a)(2)(i) - Access Control (Required)",
            [
                r"(?i)(?:login|authenticate|signin|auth).*?(?:patient|phi|medical|health)"
                r"(?!.*?(?:mfa|multi.?factor|2fa|totp|authenticator))",
                r"(?i)(?:passport|auth0|okta|cognito)\.(?:use|configure)(?!.*?(?:mfa|multiFactor|requireMFA))",
                r"(?i)/admin.*?(?:patient|medical|phi)(?!.*?(?:mfa|2fa))",
                r"(?i)createSession.*?(?:user|admin)(?!.*?mfaVerified)",
                r"(?i)jwt\.sign\(.*?(?:patient|phi)(?!.*?mfaVerified)",
            ],
            [r"(?i)requireMFA:\s*true", r"(?i)mfaVerified", r"(?i)authenticator\.verify", r"(?i)totp\.validate"],
            "Add MFA enforcement: requireMFA: true, verify TOTP/authenticator before granting access",
        ),
        _rule(
            "HIPAA-ENC-REST-001", "ePHI Stored Without Encryption at Rest",
            "All ePHI must be encrypted at rest using AES-256 or stronger.",
            Severity.CRITICAL, "45 CFR §164.312(a)(2)(iv) - Encryption (Required)",
            [
                r"(?i)(?:mongoose|sequelize|typeorm|prisma)\.(?:connect|createConnection)(?!.*?(?:encrypt|ssl|tls))",
                r"(?i)(?:fs\.writeFile|writeFileSync|s3\.putObject).*?(?:patient|phi|medical)(?!.*?(?:encrypt|cipher))",
                r"(?i)localStorage\.setItem.*?(?:patient|ssn|mrn|phi)",
                r"(?i)(?:res\.cookie|setCookie).*?(?:patient|phi|medical)(?!.*?(?:encrypt|secure|httpOnly))",
                r"(?i)MongoClient\.connect(?!.*?(?:ssl|tls|encryption))",
                r"(?i)\b(?:pg|postgres)\.(?:connect|Pool)(?!.*?ssl)",
            ],
            [r"(?i)encrypt:\s*true", r"(?i)ssl:\s*true", r"(?i)cipher\.", r"(?i)aes-256"],
            "Enable encryption at rest: Set encrypt: true in DB config, use crypto.cipher for file storage",
            category=Category.ENCRYPTION,
        ),
        _rule(
            "HIPAA-SESSION-001", "Missing Automatic Session Timeout",
            "PHI access sessions must auto-expire within 15 minutes of inactivity.",
            Severity.HIGH, "45 CFR §164.312(a)(2)(iii) - Session Control (Required)",
            [
                r"(?i)(?:express-session|session)\.(?:configure|use)(?!.*?(?:maxAge|expires|timeout))",
                r"(?i)maxAge:\s*(?:9[0-9]{5}[0-9]+|[1-9][0-9]{6,})",
                r"(?i)jwt\.sign\((?!.*?expiresIn)",
                r"(?i)cookie-session(?!.*?maxAge)",
            ],
            [
                r"(?i)maxAge:\s*[1-8][0-9]{5}\b",
                r"""(?i)expiresIn:\s*['"](?:1[0-5]m|[1-9]m)['"]""",
                r"(?i)idleTimeout",
            ],
            "Set session timeout: maxAge: 900000 (15 min), implement idle timeout detector",
        ),
        _rule(
            "HIPAA-REVOKE-001", "Missing Immediate Access Revocation",
            "User deactivation must immediately invalidate all sessions and tokens.",
            Severity.CRITICAL, "45 CFR §164.308(a)(3)(ii)(C) - Termination Procedures (Required)",
            [
                r"(?i)(?:deactivate|disable|remove)User(?!.*?(?:revoke|invalidate|blacklist).*?(?:token|session))",
                r"(?i)(?:deleteUser|removeUser)(?!.*?(?:logout|invalidate|clearSessions))",
                r"(?i)(?:user|admin).*?(?:deactivat|terminat)(?!.*?blacklist)",
                r"(?i)(?:updateRole|changePermissions)(?!.*?(?:logout|reauth|invalidate))",
            ],
            [r"(?i)revokeAllTokens", r"(?i)invalidateAllSessions", r"(?i)tokenBlacklist\.add", r"(?i)clearUserSessions"],
            "Add token revocation: Call revokeAllTokens() and invalidateAllSessions() on user deactivation",
            confidence=Confidence.MEDIUM,
        ),
        _rule(
            "HIPAA-BREACH-001", "Missing Breach Notification Mechanism",
            "Must have automated breach detection and notification within 24 hours.",
            Severity.CRITICAL, "45 CFR §164.308(a)(6)(ii) - Security Incident Procedures (Required)",
            [
                r"(?i)catch\s*\(.*?error.*?\).*?(?:security|unauthorized|breach)"
                r"(?!.*?(?:notifyBreach|incidentResponse|alertSecurity))",
                r"(?i)(?:failed|invalid).*?(?:login|auth)(?!.*?(?:monitor|alert|notify))",
                r"(?i)(?:unusual|suspicious).*?access(?!.*?(?:alert|notify|incident))",
            ],
            [r"(?i)breachNotification\.", r"(?i)incidentResponse\.trigger", r"(?i)securityAlert\.send", r"(?i)notifyBreach"],
            "Implement breach notification: Create incident response handler, set up 24h alert system",
            category=Category.AUDIT_LOGGING,
            confidence=Confidence.MEDIUM,
        ),
        _rule(
            "HIPAA-SEGMENT-001", "Missing Network Segmentation for PHI",
            "PHI services must be network-segmented with restricted CORS and firewall rules.",
            Severity.CRITICAL, "45 CFR §164.312(e)(1) - Transmission Security (Required)",
            [
                r"""(?i)cors\(\{?\s*origin:\s*['"]?\*['"]?.*?(?:patient|phi|medical)""",
                r"(?i)/api.*?(?:patient|phi|medical)(?!.*?(?:firewall|vpc|subnet|private))",
                r"(?i)(?:express|fastify|koa)\.listen.*?(?:patient|phi)(?!.*?(?:localhost|127\.0\.0\.1|private))",
                r"(?i)(?:database|storage).*?(?:patient|phi)(?!.*?(?:vpc|subnet|securityGroup))",
            ],
            [r"(?i)origin:\s*\[.*?\]", r"(?i)private.*?subnet", r"(?i)securityGroup", r"(?i)firewall.*?rules"],
            "Implement network segmentation: Use VPC/subnet isolation, restrict CORS to whitelisted origins",
        ),
    ]

    def scan_project(self, files: list[Path], context: ScanContext) -> list[Finding]:
        findings: list[Finding] = []
        if not has_vulnerability_scanning(context.root):
            findings.append(missing_vulnerability_scanning())

        assets: list[Asset] = []
        flows: list[FlowPoint] = []

        for file_path in files:
            rel_path = context.relative(file_path)
            if not has_extension(rel_path, HIPAA_EXTENSIONS):
                continue
            try:
                content = file_path.read_text(errors="ignore")
            except OSError as exc:
                logger.debug("Cannot read %s: %s", file_path, exc)
                continue
            lines = content.splitlines()
            assets.extend(collect_assets(rel_path, content, lines))
            flows.extend(map_phi_flow(rel_path, lines))

        if assets:
            findings.append(
                Finding(
                    id="HIPAA-ASSET-001",
                    category=Category.DATA_RETENTION,
                    severity=Severity.INFO,
                    title="ePHI Technology Asset Inventory Generated",
                    description=f"Found {len(assets)} assets processing ePHI",
                    file=ASSET_INVENTORY,
                    line=1,
                    recommendation=format_asset_inventory(assets),
                    compliance_reference=RISK_ANALYSIS_REFERENCE,
                    confidence=Confidence.HIGH,
                    pattern_id="HIPAA-ASSET-001",
                    adjust_confidence_by_context=False,
                )
            )
        if flows:
            findings.append(
                Finding(
                    id="HIPAA-FLOW-001",
                    category=Category.DATA_RETENTION,
                    severity=Severity.INFO,
                    title="ePHI Flow Map Generated",
                    description=f"Identified {len(flows)} PHI data flow points",
                    file=PHI_FLOW_MAP,
                    line=1,
                    recommendation=format_phi_flow_map(flows),
                    compliance_reference=RISK_ANALYSIS_REFERENCE,
                    confidence=Confidence.HIGH,
                    pattern_id="HIPAA-FLOW-001",
                    adjust_confidence_by_context=False,
                )
            )
        return findings


def missing_vulnerability_scanning() -> Finding:
    return Finding(
        id="HIPAA-PENTEST-001",
        category=Category.AUDIT_LOGGING,
        severity=Severity.HIGH,
        title="Missing Vulnerability Scanning Configuration",
        description="Must have automated vulnerability scanning (Dependabot, Snyk, Trivy) in CI/CD.",
        file=PROJECT_LEVEL,
        line=1,
        recommendation="Add vulnerability scanning: Enable Dependabot, add Snyk/Trivy to CI/CD pipeline",
        compliance_reference="45 CFR §164.308(a)(8) - Evaluation (Required)",
        confidence=Confidence.MEDIUM,
        pattern_id="HIPAA-PENTEST-001",
    )


def has_vulnerability_scanning(root: Path) -> bool:
    """True when dependency/vulnerability scanning is configured for the project."""
    if any((root / name).exists() for name in VULN_SCANNING_FILES):
        return True

    workflows = root / ".github" / "workflows"
    if workflows.is_dir():
        for entry in sorted(workflows.iterdir()):
            if VULN_WORKFLOW_NAME.search(entry.name):
                return True
            try:
                if VULN_WORKFLOW_CONTENT.search(entry.read_text(errors="ignore")):
                    return True
            except OSError:
                continue

    package_json = root / "package.json"
    try:
        if package_json.is_file() and VULN_PACKAGE_SCRIPTS.search(package_json.read_text(errors="ignore")):
            return True
    except OSError:
        pass

    return False


def collect_assets(rel_path: str, content: str, lines: list[str]) -> list[Asset]:
    assets: list[Asset] = []
    for index, line in enumerate(lines):
        for asset_type, pattern, phi_marker in ASSET_PATTERNS:
            if not pattern.search(line):
                continue
            quoted = _QUOTED.search(line)
            name = quoted.group(1) if quoted else f"{asset_type}@{rel_path}:{index + 1}"
            assets.append(
                Asset(asset_type, name, rel_path, index + 1, bool(phi_marker.search(content)))
            )
    return assets


def map_phi_flow(rel_path: str, lines: list[str]) -> list[FlowPoint]:
    flows: list[FlowPoint] = []
    for index, line in enumerate(lines):
        for stage, pattern in FLOW_STAGES:
            if pattern.search(line):
                flows.append(FlowPoint(stage, rel_path, index + 1, line.strip()))
    return flows


def format_asset_inventory(assets: list[Asset]) -> str:
    by_type: "OrderedDict[str, list[Asset]]" = OrderedDict()
    for asset in assets:
        by_type.setdefault(asset.type, []).append(asset)

    report = "## ePHI Technology Asset Inventory\n\n"
    for asset_type, items in by_type.items():
        report += f"### {asset_type.upper()}\n"
        for item in items:
            phi = " [processes PHI]" if item.processes_phi else ""
            report += f"- {item.name} ({item.file}:{item.line}){phi}\n"
        report += "\n"
    return report


def format_phi_flow_map(flows: list[FlowPoint]) -> str:
    report = "## ePHI Data Flow Map\n\n"
    for stage, _ in FLOW_STAGES:
        items = [flow for flow in flows if flow.stage == stage]
        if not items:
            continue
        report += f"### {stage.upper()} ({len(items)} points)\n"
        for item in items[:FLOW_ITEMS_PER_STAGE]:
            report += f"- {item.file}:{item.line} - {item.context[:60]}...\n"
        if len(items) > FLOW_ITEMS_PER_STAGE:
            report += f"- ... and {len(items) - FLOW_ITEMS_PER_STAGE} more\n"
        report += "\n"
    return report
