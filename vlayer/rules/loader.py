"""
vlayer Custom Rule Loader

Rule files are looked up in priority order:
  1. an explicit customRulesPath (config or --rules), relative to the root
  2. vlayer-rules.yaml / vlayer-rules.yml at the root
  3. every *.yaml / *.yml under .vlayer/rules/, in name order

When a path is given explicitly, the other locations are not consulted.
A bad file or rule is reported as a RuleLoadError and skipped; it never
aborts the scan. When two files define the same id, the later one wins.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Optional

import yaml

from vlayer.rules.schema import CustomRule, validate_rule, validate_rules_document

logger = logging.getLogger(__name__)

ROOT_RULE_FILES = ("vlayer-rules.yaml", "vlayer-rules.yml")
RULES_DIR = Path(".vlayer") / "rules"


@dataclass(frozen=True)
class RuleLoadError:
    file: str
    error: str
    details: Optional[str] = None

    def to_dict(self) -> dict[str, Any]:
        result: dict[str, Any] = {"file": self.file, "error": self.error}
        if self.details:
            result["details"] = self.details
        return result


@dataclass
class LoadRulesResult:
    rules: list[CustomRule] = field(default_factory=list)
    errors: list[RuleLoadError] = field(default_factory=list)


def load_rules_file(path: Path) -> LoadRulesResult:
    """Parse, validate and compile every rule in one YAML file."""
    result = LoadRulesResult()
    source = str(path)

    try:
        with open(path, encoding="utf-8") as f:
            data = yaml.safe_load(f)
    except (OSError, yaml.YAMLError) as exc:
        result.errors.append(RuleLoadError(source, "Failed to parse YAML file", str(exc)))
        return result

    issues = validate_rules_document(data)
    if issues:
        result.errors.append(RuleLoadError(source, "Invalid rules file format", "; ".join(issues)))
        return result

    for entry in data["rules"]:
        rule_id = entry.get("id") if isinstance(entry, dict) else None
        issues = validate_rule(entry)
        if issues:
            result.errors.append(
                RuleLoadError(source, f'Validation error in rule "{rule_id}"', "; ".join(issues))
            )
            continue

        try:
            re.compile(entry["pattern"])
        except re.error as exc:
            result.errors.append(
                RuleLoadError(source, f'Invalid regex pattern in rule "{rule_id}"', str(exc))
            )
            continue

        if entry.get("mustNotContain"):
            try:
                re.compile(entry["mustNotContain"])
            except re.error as exc:
                result.errors.append(
                    RuleLoadError(source, f'Invalid mustNotContain regex in rule "{rule_id}"', str(exc))
                )
                continue

        try:
            result.rules.append(CustomRule._from_dict(entry, source=source))
        except (re.error, ValueError, KeyError) as exc:
            result.errors.append(
                RuleLoadError(source, f'Error processing rule "{rule_id}"', str(exc))
            )

    logger.debug("Loaded %d custom rule(s) from %s", len(result.rules), path)
    return result


def discover_rule_files(root: Path) -> list[Path]:
    """Implicit rule file locations that exist under root, in load order."""
    found = [root / name for name in ROOT_RULE_FILES if (root / name).is_file()]
    rules_dir = root / RULES_DIR
    if rules_dir.is_dir():
        found.extend(
            sorted(p for p in rules_dir.iterdir() if p.is_file() and p.suffix in (".yaml", ".yml"))
        )
    return found


def load_custom_rules(root: Path, custom_rules_path: Optional[str] = None) -> LoadRulesResult:
    """Load custom rules for a project.

    Args:
        root: Project root.
        custom_rules_path: Explicit rules file; relative paths resolve against root.

    Returns:
        LoadRulesResult with duplicate ids collapsed, later definitions winning.
    """
    combined = LoadRulesResult()

    if custom_rules_path:
        path = Path(custom_rules_path)
        if not path.is_absolute():
            path = root / path
        if not path.is_file():
            combined.errors.append(RuleLoadError(str(path), "Specified rules file not found"))
            return combined
        files = [path]
    else:
        try:
            files = discover_rule_files(root)
        except OSError as exc:
            combined.errors.append(
                RuleLoadError(str(root / RULES_DIR), "Failed to read rules directory", str(exc))
            )
            files = [root / name for name in ROOT_RULE_FILES if (root / name).is_file()]

    by_id: dict[str, CustomRule] = {}
    for path in files:
        loaded = load_rules_file(path)
        combined.errors.extend(loaded.errors)
        for rule in loaded.rules:
            by_id[rule.id] = rule

    combined.rules = list(by_id.values())
    return combined


def validate_rules_file(path: Path) -> dict[str, Any]:
    """Report on a single rules file without scanning anything."""
    loaded = load_rules_file(path)
    return {
        "valid": not loaded.errors,
        "rules": len(loaded.rules),
        "errors": [e.to_dict() for e in loaded.errors],
    }
