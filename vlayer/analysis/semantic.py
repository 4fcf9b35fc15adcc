"""
vlayer Semantic Confidence

Adjusts finding confidence from the context of the matched line.

Classifiers receive (file, line, pattern) requests in one batch and answer
with one Confidence per request, in the same order. The default
LocalContextClassifier is offline and deterministic:

    comment line                      -> low
    test file                         -> low
    inside a multi-line string        -> low
    line that is only a string literal -> low
    template literal                  -> medium
    non-code file                     -> medium
    anything else                     -> high

The classifier can lower a finding's declared confidence but never raise
it; a finding with no declared confidence takes the classifier's answer.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, replace
from pathlib import Path
from typing import Optional, Protocol

from vlayer.core.errors import WarningLog
from vlayer.core.finding import Confidence, Finding
from vlayer.core.patterns import CODE_EXTENSIONS, JS_EXTENSIONS, has_extension, is_comment_line

logger = logging.getLogger(__name__)

SEMANTIC_EXTENSIONS = CODE_EXTENSIONS + JS_EXTENSIONS + (".cs",)

_TEST_FILE_PATTERNS = [
    re.compile(r"\.(?:test|spec)\.[a-z]+$"),
    re.compile(r"/__tests__/"),
    re.compile(r"/tests?/"),
    re.compile(r"/test_[^/]*\.py$"),
    re.compile(r"_test\.(?:py|go)$"),
]
_STRING_ONLY_LINE = re.compile(
    r"""^[rRbBuUfF]{0,2}(?:\"\"\"[^"]*\"\"\"|'''[^']*'''|"[^"]*"|'[^']*')\s*[,;)]?\s*$"""
)
_TRIPLE_QUOTE = re.compile(r"\"\"\"|'''")


@dataclass(frozen=True)
class ClassifyRequest:
    file: str
    line: int
    pattern: Optional[str] = None


class Classifier(Protocol):
    def is_available(self) -> bool:
        ...

    def classify(self, batch: list[ClassifyRequest]) -> list[Confidence]:
        ...


def is_test_file(rel_path: str) -> bool:
    path = "/" + rel_path
    return any(p.search(path) for p in _TEST_FILE_PATTERNS)


def string_context(lines: list[str]) -> dict[int, str]:
    """Map 0-based line index to "string" or "template" for lines spanned
    by a multi-line string (triple quotes) or template literal (backticks)."""
    spans: dict[int, str] = {}
    in_triple = False
    in_template = False
    for index, line in enumerate(lines):
        if in_triple:
            spans[index] = "string"
        elif in_template:
            spans[index] = "template"

        if len(_TRIPLE_QUOTE.findall(line)) % 2 == 1:
            in_triple = not in_triple
            if in_triple:
                spans[index] = "string"
        elif not in_triple and line.count("`") % 2 == 1:
            in_template = not in_template
            if in_template:
                spans[index] = "template"
    return spans


class LocalContextClassifier:
    """Line-context heuristics over files under `root`."""

    def __init__(self, root: Path) -> None:
        self.root = root

    def is_available(self) -> bool:
        return True

    def classify(self, batch: list[ClassifyRequest]) -> list[Confidence]:
        files: dict[str, tuple[Optional[list[str]], dict[int, str]]] = {}
        results = []
        for request in batch:
            if request.file not in files:
                lines = self._read(request.file)
                files[request.file] = (lines, string_context(lines) if lines else {})
            lines, spans = files[request.file]
            results.append(self.classify_line(request, lines, spans))
        return results

    def classify_line(
        self,
        request: ClassifyRequest,
        lines: Optional[list[str]],
        spans: Optional[dict[int, str]] = None,
    ) -> Confidence:
        if not lines or request.line < 1 or request.line > len(lines):
            return Confidence.MEDIUM

        text = lines[request.line - 1]
        if is_comment_line(text):
            return Confidence.LOW
        if is_test_file(request.file):
            return Confidence.LOW

        if spans is None:
            spans = string_context(lines)
        span = spans.get(request.line - 1)
        if span == "string" or _STRING_ONLY_LINE.match(text.strip()):
            return Confidence.LOW
        if span == "template" or "`" in text:
            return Confidence.MEDIUM
        if not has_extension(request.file, SEMANTIC_EXTENSIONS):
            return Confidence.MEDIUM
        return Confidence.HIGH

    def _read(self, rel_path: str) -> Optional[list[str]]:
        try:
            return (self.root / rel_path).read_text(errors="ignore").splitlines()
        except OSError as exc:
            logger.debug("Cannot read %s: %s", rel_path, exc)
            return None


def _eligible(finding: Finding) -> bool:
    if finding.is_aggregate or not finding.line:
        return False
    return finding.confidence is None or finding.adjust_confidence_by_context


def _combine(declared: Optional[Confidence], classified: Confidence) -> Confidence:
    if declared is None or classified.level < declared.level:
        return classified
    return declared


def apply_semantic_confidence(
    findings: list[Finding],
    classifier: Optional[Classifier],
    warnings: Optional[WarningLog] = None,
) -> list[Finding]:
    """Run the classifier once over every eligible finding."""
    if classifier is None or not classifier.is_available():
        return list(findings)

    positions = [i for i, f in enumerate(findings) if _eligible(f)]
    if not positions:
        return list(findings)

    batch = [
        ClassifyRequest(findings[i].file, findings[i].line, findings[i].pattern_id)
        for i in positions
    ]
    try:
        answers = classifier.classify(batch)
    except Exception as exc:
        if warnings is not None:
            warnings.add("semantic", "Confidence classifier failed", str(exc))
        return list(findings)

    if len(answers) != len(batch):
        if warnings is not None:
            warnings.add(
                "semantic",
                "Confidence classifier returned a mismatched batch",
                f"expected {len(batch)}, got {len(answers)}",
            )
        return list(findings)

    result = list(findings)
    for i, answer in zip(positions, answers):
        confidence = _combine(result[i].confidence, answer)
        if confidence != result[i].confidence:
            result[i] = replace(result[i], confidence=confidence)
    return result
