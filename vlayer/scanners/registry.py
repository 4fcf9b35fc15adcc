"""
vlayer Scanner Registry

Static map from compliance category to the scanners that run for it.
The first entry of each list is the category's primary scanner; the rest
are additional scanners attached to the same category. Custom rules are
wrapped in the same ScannerRef so the orchestrator treats both uniformly.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable, Optional

from vlayer.core.finding import ALL_CATEGORIES, Category
from vlayer.core.scanner import BaseScanner
from vlayer.scanners.access import AccessControlScanner
from vlayer.scanners.api_security import APISecurityScanner
from vlayer.scanners.audit import AuditScanner
from vlayer.scanners.credentials import CredentialsScanner
from vlayer.scanners.encryption import EncryptionScanner
from vlayer.scanners.hipaa2026 import HIPAA2026Scanner
from vlayer.scanners.operational import OperationalScanner
from vlayer.scanners.phi import PHIScanner
from vlayer.scanners.rbac import RBACScanner
from vlayer.scanners.retention import RetentionScanner
from vlayer.scanners.security import SecurityScanner

BUILTIN = "builtin"
CUSTOM = "custom"


@dataclass(frozen=True)
class ScannerRef:
    kind: str
    scanner: BaseScanner

    @property
    def name(self) -> str:
        return self.scanner.name

    @property
    def is_custom(self) -> bool:
        return self.kind == CUSTOM


def builtin(scanner: BaseScanner) -> ScannerRef:
    return ScannerRef(BUILTIN, scanner)


def custom(scanner: BaseScanner) -> ScannerRef:
    return ScannerRef(CUSTOM, scanner)


REGISTRY: dict[Category, list[ScannerRef]] = {
    Category.PHI_EXPOSURE: [builtin(PHIScanner())],
    Category.ENCRYPTION: [builtin(EncryptionScanner()), builtin(CredentialsScanner())],
    Category.AUDIT_LOGGING: [builtin(AuditScanner())],
    Category.ACCESS_CONTROL: [
        builtin(AccessControlScanner()),
        builtin(SecurityScanner()),
        builtin(APISecurityScanner()),
        builtin(RBACScanner()),
        builtin(HIPAA2026Scanner()),
    ],
    Category.DATA_RETENTION: [builtin(RetentionScanner()), builtin(OperationalScanner())],
}


def primary_scanner(category: Category) -> BaseScanner:
    return REGISTRY[category][0].scanner


def resolve_scanners(
    categories: Iterable[Category],
    custom_ref: Optional[ScannerRef] = None,
) -> list[ScannerRef]:
    """Scanners for the active categories in registry order, custom rules last.

    Categories are visited in their canonical order regardless of how the
    caller listed them, so the merged finding order never depends on it.
    """
    active = set(categories)
    refs: list[ScannerRef] = []
    for category in ALL_CATEGORIES:
        if category in active:
            refs.extend(REGISTRY[category])
    if custom_ref is not None:
        refs.append(custom_ref)
    return refs
