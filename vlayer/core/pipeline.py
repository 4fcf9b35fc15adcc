"""
vlayer Finding Post-Processing

The ordered chain every scan result goes through:

    acknowledgment -> inline suppression -> semantic confidence
        -> AI triage -> baseline -> minimum-confidence demotion

Each stage returns new Finding objects and never drops one, except AI
triage when it is configured to filter false positives. Running the chain
on its own output gives the same output.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, replace
from datetime import datetime
from pathlib import Path
from typing import Optional

from vlayer.analysis.semantic import Classifier, apply_semantic_confidence
from vlayer.analysis.triage import Triager, apply_triage
from vlayer.core.config import VlayerConfig
from vlayer.core.errors import WarningLog
from vlayer.core.finding import Confidence, Finding
from vlayer.policy.acknowledgments import apply_acknowledgments
from vlayer.policy.baseline import Baseline, apply_baseline
from vlayer.policy.suppression import apply_suppressions

logger = logging.getLogger(__name__)


def apply_min_confidence(findings: list[Finding], threshold: Optional[Confidence]) -> list[Finding]:
    """Findings below `threshold` become baseline; they stay in the list."""
    if threshold is None:
        return list(findings)
    result = []
    for finding in findings:
        confidence = finding.confidence or Confidence.HIGH
        if confidence.level < threshold.level and not finding.is_baseline:
            result.append(replace(finding, is_baseline=True))
        else:
            result.append(finding)
    return result


@dataclass
class PostProcessor:
    """Everything the chain needs, resolved once per scan."""

    root: Path
    config: VlayerConfig
    warnings: WarningLog
    classifier: Optional[Classifier] = None
    triager: Optional[Triager] = None
    baseline: Optional[Baseline] = None
    min_confidence: Optional[Confidence] = None
    now: Optional[datetime] = None

    def run(self, findings: list[Finding]) -> list[Finding]:
        findings = apply_acknowledgments(findings, self.config.acknowledged_findings, self.now)
        findings = apply_suppressions(findings, self.root)
        findings = apply_semantic_confidence(findings, self.classifier, self.warnings)
        findings = apply_triage(findings, self.root, self.triager, self.config.ai, self.warnings)
        findings = apply_baseline(findings, self.baseline)
        findings = apply_min_confidence(findings, self.min_confidence)

        logger.debug(
            "Post-processing done: %d finding(s), %d acknowledged, %d suppressed, %d baseline",
            len(findings),
            sum(1 for f in findings if f.acknowledged),
            sum(1 for f in findings if f.suppressed),
            sum(1 for f in findings if f.is_baseline),
        )
        return findings
