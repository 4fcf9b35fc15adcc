"""
vlayer Configuration Management

Loads and manages configuration from .vlayer.yaml / .vlayerrc.json files.
List settings (exclude, ignorePaths, safeHttpDomains) are appended to the
defaults rather than replacing them.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Optional

import yaml

from vlayer.core.errors import ConfigurationError
from vlayer.core.finding import Category, Confidence
from vlayer.policy.loader import AcknowledgmentRule, load_acknowledgment_rules

logger = logging.getLogger(__name__)

CONFIG_FILENAMES = (".vlayer.yaml", ".vlayer.yml", ".vlayerrc.json")

DEFAULT_EXCLUDE_PATTERNS = [
    "**/node_modules/**",
    "**/dist/**",
    "**/build/**",
    "**/.git/**",
    "**/coverage/**",
    "**/__pycache__/**",
    "**/.venv/**",
    "**/venv/**",
    "**/.tox/**",
]

DEFAULT_SAFE_HTTP_DOMAINS = [
    # XML namespaces
    "www.w3.org", "w3.org", "xmlns.com", "purl.org", "ns.adobe.com",
    # CDNs
    "cdnjs.cloudflare.com", "unpkg.com", "jsdelivr.net", "cdn.jsdelivr.net",
    "googleapis.com", "fonts.googleapis.com", "ajax.googleapis.com",
    "gstatic.com", "fonts.gstatic.com", "cloudflare.com", "bootstrapcdn.com",
    "maxcdn.bootstrapcdn.com", "stackpath.bootstrapcdn.com", "code.jquery.com",
    "cdn.tailwindcss.com",
    # Schema/standards
    "schema.org", "ogp.me", "rdfs.org",
    # Healthcare standards
    "hl7.org", "www.hl7.org", "fhir.org", "terminology.hl7.org", "loinc.org",
    "snomed.info", "icd.who.int", "unitsofmeasure.org", "nucc.org", "ada.org",
    "x12.org",
    # Tooling / package registries
    "opensource.org", "creativecommons.org", "spdx.org", "json-schema.org",
    "yaml.org", "xml.org", "maven.apache.org", "www.apache.org",
    "registry.npmjs.org", "pypi.org", "rubygems.org", "crates.io",
    "pkg.go.dev", "mvnrepository.com",
    # Documentation
    "example.com", "example.org", "localhost", "127.0.0.1",
]

DEFAULT_AI_MODEL = "claude-3-5-haiku-latest"


@dataclass
class AIConfig:
    enable_triage: bool = False
    filter_false_positives: bool = False
    model: str = DEFAULT_AI_MODEL
    timeout: float = 30.0
    max_file_bytes: int = 100_000
    max_calls_per_minute: int = 20
    max_calls_per_scan: int = 50

    @classmethod
    def _from_dict(cls, data: dict[str, Any]) -> "AIConfig":
        return cls(
            enable_triage=bool(data.get("enableTriage", False)),
            filter_false_positives=bool(data.get("filterFalsePositives", False)),
            model=data.get("model", DEFAULT_AI_MODEL),
            timeout=float(data.get("timeout", 30.0)),
            max_file_bytes=int(data.get("maxFileBytes", 100_000)),
            max_calls_per_minute=int(data.get("maxCallsPerMinute", 20)),
            max_calls_per_scan=int(data.get("maxCallsPerScan", 50)),
        )


@dataclass
class VlayerConfig:
    """Root configuration object for vlayer."""

    categories: Optional[list[Category]] = None
    exclude: list[str] = field(default_factory=list)
    ignore_paths: list[str] = field(default_factory=list)
    safe_http_domains: list[str] = field(default_factory=lambda: list(DEFAULT_SAFE_HTTP_DOMAINS))
    context_lines: int = 2
    custom_rules_path: Optional[str] = None
    acknowledged_findings: list[AcknowledgmentRule] = field(default_factory=list)
    min_confidence: Optional[Confidence] = None
    ai: AIConfig = field(default_factory=AIConfig)
    # acknowledgedFindings[i] validation messages; the entries are dropped
    acknowledgment_errors: list[str] = field(default_factory=list)
    source: Optional[Path] = None

    @classmethod
    def load(cls, root: Path, config_file: Optional[Path] = None) -> "VlayerConfig":
        """Load configuration from the root directory or an explicit file.

        A missing implicit config yields the defaults. An explicit file that
        does not exist, or any config file that cannot be parsed, raises
        ConfigurationError.
        """
        if config_file is not None:
            config_path = config_file if config_file.is_absolute() else root / config_file
            if not config_path.is_file():
                raise ConfigurationError(f"Config file not found: {config_path}")
        else:
            config_path = next(
                (root / name for name in CONFIG_FILENAMES if (root / name).is_file()),
                None,
            )
            if config_path is None:
                return cls._default()

        try:
            with open(config_path, encoding="utf-8") as f:
                raw = yaml.safe_load(f) or {}
        except (OSError, yaml.YAMLError) as exc:
            raise ConfigurationError(f"Failed to parse config file {config_path}: {exc}") from exc

        if not isinstance(raw, dict):
            raise ConfigurationError(f"Config file {config_path} must contain a mapping")

        config = cls._from_dict(raw)
        config.source = config_path
        logger.debug("Loaded configuration from %s", config_path)
        return config

    @classmethod
    def _default(cls) -> "VlayerConfig":
        """Return default configuration."""
        return cls()

    @classmethod
    def _from_dict(cls, data: dict[str, Any]) -> "VlayerConfig":
        """Build config from a parsed YAML/JSON dictionary."""
        categories = None
        if data.get("categories"):
            try:
                categories = [Category.from_string(c) for c in data["categories"]]
            except ValueError as exc:
                raise ConfigurationError(str(exc)) from exc

        min_confidence = None
        if data.get("minConfidence"):
            try:
                min_confidence = Confidence.from_string(data["minConfidence"])
            except KeyError as exc:
                raise ConfigurationError(
                    f"Invalid minConfidence: {data['minConfidence']}"
                ) from exc

        rules, errors = load_acknowledgment_rules(data.get("acknowledgedFindings") or [])

        return cls(
            categories=categories,
            exclude=_as_list(data.get("exclude")),
            ignore_paths=_as_list(data.get("ignorePaths")),
            safe_http_domains=list(DEFAULT_SAFE_HTTP_DOMAINS) + _as_list(data.get("safeHttpDomains")),
            context_lines=int(data.get("contextLines", 2)),
            custom_rules_path=data.get("customRulesPath"),
            acknowledged_findings=rules,
            min_confidence=min_confidence,
            ai=AIConfig._from_dict(data.get("ai") or {}),
            acknowledgment_errors=errors,
        )

    def is_path_ignored(self, file_path: str) -> bool:
        """True when a path matches an ignorePaths entry (substring or `*` glob)."""
        for pattern in self.ignore_paths:
            if "*" in pattern:
                regex = ".*".join(re.escape(part) for part in pattern.split("*"))
                if re.search(regex, file_path):
                    return True
            elif pattern in file_path:
                return True
        return False

    def is_safe_http_url(self, text: str) -> bool:
        return any(domain in text for domain in self.safe_http_domains)


def _as_list(value: Any) -> list[str]:
    if not value:
        return []
    if isinstance(value, str):
        return [value]
    return [str(v) for v in value]


def generate_default_config() -> str:
    """Generate a default .vlayer.yaml configuration file content."""
    return """\
# vlayer Configuration

# Categories to scan (default: all)
# categories:
#   - phi-exposure
#   - encryption
#   - audit-logging
#   - access-control
#   - data-retention

# Extra glob patterns to exclude (node_modules, dist, build, .git and
# coverage are always excluded)
exclude:
  - "**/*.min.js"

# Paths to ignore (substring or * glob)
ignorePaths: []

# Extra domains where plain HTTP URLs are acceptable
safeHttpDomains: []

# Custom rules file, relative to the project root
# customRulesPath: vlayer-rules.yaml

# Findings below this confidence are treated as baseline (high, medium, low)
# minConfidence: medium

# Accepted risks
acknowledgedFindings: []
#  - pattern: "src/legacy/**"
#    id: "phi-*"
#    reason: "Legacy module scheduled for removal"
#    acknowledgedBy: "security@example.com"
#    acknowledgedAt: "2025-01-15"
#    expiresAt: "2025-06-30"
#    ticketUrl: "https://tracker.example.com/SEC-42"

# AI triage (requires ANTHROPIC_API_KEY or VLAYER_AI_KEY)
ai:
  enableTriage: false
  filterFalsePositives: false
  maxCallsPerMinute: 20
  maxCallsPerScan: 50
"""
