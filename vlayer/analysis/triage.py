"""
vlayer AI Triage

Asks a language model whether each finding is a real issue:

    confirmed | likely | possible | false_positive

Source code is scrubbed of PHI-looking values (SSNs, emails, phone numbers,
dates of birth, MRNs, IP addresses) before it leaves the machine. Only
files of at most `max_file_bytes` are sent, and project-wide findings are
never triaged.

Within a scan, verdicts are cached by file content and finding, and calls
are held to a per-minute rate and a per-scan budget.

Any failure (no key, network error, bad response, a broken client) is
recorded as a scan warning and the affected findings are kept exactly as
they were.
"""

from __future__ import annotations

import hashlib
import json
import logging
import os
import re
import time
from collections import deque
from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import Any, Callable, Optional, Protocol

import requests

from vlayer.core.config import DEFAULT_AI_MODEL, AIConfig
from vlayer.core.errors import WarningLog
from vlayer.core.finding import Finding

logger = logging.getLogger(__name__)

ANTHROPIC_API_URL = "https://api.anthropic.com/v1/messages"
ANTHROPIC_VERSION = "2023-06-01"
API_KEY_VARIABLES = ("ANTHROPIC_API_KEY", "VLAYER_AI_KEY")

MAX_TOKENS = 1024
TEMPERATURE = 0.1
CONTEXT_RADIUS = 10
DEFAULT_TIMEOUT = 30.0
DEFAULT_CALLS_PER_MINUTE = 20
DEFAULT_CALLS_PER_SCAN = 50

CLASSIFICATIONS = ("confirmed", "likely", "possible", "false_positive")
FALSE_POSITIVE = "false_positive"

TRIAGE_SYSTEM_PROMPT = """You are a HIPAA compliance expert analyzing potential security findings.
Your job is to classify findings as:
- confirmed: Definitely a real security issue
- likely: Probably real, needs review
- possible: Might be a false positive
- false_positive: Not a real issue

Common false positives to watch for:
- http://www.w3.org in XML namespaces (NOT an encryption issue)
- Variable names like "dateOfBirth" or "ssn" in forms (NOT PHI exposure unless actual data)
- Test data with fake SSNs/emails in test files
- HTTP URLs in comments or documentation
- Development/localhost URLs

Be conservative - when in doubt, classify as "likely" rather than "false_positive"."""

# (name, pattern, placeholder tag)
PHI_PATTERNS = [
    ("SSN", re.compile(r"\b\d{3}-\d{2}-\d{4}\b"), "SSN"),
    ("Email", re.compile(r"\b[A-Za-z0-9._%+-]+@[A-Za-z0-9.-]+\.[A-Za-z]{2,}\b"), "EMAIL"),
    ("Phone", re.compile(r"\b(?:\+?1[-.]?)?\(?\d{3}\)?[-.]?\d{3}[-.]?\d{4}\b"), "PHONE"),
    (
        "Date of Birth",
        re.compile(r"\b(?:0[1-9]|1[0-2])[-/](?:0[1-9]|[12]\d|3[01])[-/](?:19|20)\d{2}\b"),
        "DOB",
    ),
    ("Medical Record Number", re.compile(r"(?i)\bMRN[-:\s]*\d{6,10}\b"), "MRN"),
    ("IP Address", re.compile(r"\b(?:\d{1,3}\.){3}\d{1,3}\b"), "IP"),
]

_JSON_OBJECT = re.compile(r"\{.*\}", re.DOTALL)


@dataclass
class SanitizationResult:
    sanitized_code: str
    phi_found: int = 0
    replacements: dict[str, str] = field(default_factory=dict)
    warnings: list[str] = field(default_factory=list)


def sanitize_code(code: str, file_path: str) -> SanitizationResult:
    """Replace PHI-looking values with numbered placeholders like [PHI_SSN_1]."""
    result = SanitizationResult(sanitized_code=code)

    for name, pattern, tag in PHI_PATTERNS:
        counter = 0

        def _placeholder(match: re.Match) -> str:
            nonlocal counter
            counter += 1
            placeholder = f"[PHI_{tag}_{counter}]"
            result.replacements[placeholder] = match.group(0)
            return placeholder

        result.sanitized_code = pattern.sub(_placeholder, result.sanitized_code)
        if counter:
            result.phi_found += counter
            result.warnings.append(f"Found {counter} {name} pattern(s) in {file_path}")

    if result.phi_found:
        result.warnings.append(
            f"PHI detected and sanitized before AI analysis ({result.phi_found} instances)"
        )
    return result


@dataclass(frozen=True)
class TriageResult:
    classification: str
    confidence: float
    reasoning: str = ""

    @classmethod
    def _from_dict(cls, data: dict[str, Any]) -> "TriageResult":
        classification = data.get("classification")
        if classification not in CLASSIFICATIONS:
            raise ValueError(f"Unknown classification: {classification!r}")
        confidence = float(data.get("confidence", 0.5))
        return cls(classification, min(1.0, max(0.0, confidence)), str(data.get("reasoning", "")))


class Triager(Protocol):
    def is_available(self) -> bool:
        ...

    def triage(self, finding: Finding, source: str) -> TriageResult:
        ...


def api_key_from_env() -> Optional[str]:
    for name in API_KEY_VARIABLES:
        value = os.environ.get(name)
        if value:
            return value
    return None


def build_prompt(finding: Finding, source: str) -> str:
    lines = source.splitlines()
    line = finding.line or 1
    start = max(0, line - CONTEXT_RADIUS)
    end = min(len(lines), line + CONTEXT_RADIUS)
    context = "\n".join(lines[start:end])
    return f"""Finding to triage:
File: {finding.file}
Line: {finding.line}
Category: {finding.category.value}
Severity: {finding.severity.value}
Title: {finding.title}
Description: {finding.description}

Code context (lines {start + 1}-{end}):
```
{context}
```

Is this a real security issue or a false positive? Respond in JSON:
{{
  "classification": "confirmed" | "likely" | "possible" | "false_positive",
  "confidence": 0.0-1.0,
  "reasoning": "brief explanation"
}}"""


def parse_response_text(text: str) -> TriageResult:
    """Pull the JSON object out of a model reply (which may be fenced)."""
    match = _JSON_OBJECT.search(text)
    if match is None:
        raise ValueError("No JSON object in triage response")
    return TriageResult._from_dict(json.loads(match.group(0)))


class AnthropicTriager:
    """Triage client for the Anthropic Messages API."""

    def __init__(
        self,
        api_key: Optional[str] = None,
        model: str = DEFAULT_AI_MODEL,
        timeout: float = DEFAULT_TIMEOUT,
        session: Optional[requests.Session] = None,
    ) -> None:
        self.api_key = api_key if api_key is not None else api_key_from_env()
        self.model = model
        self.timeout = timeout
        self.session = session or requests.Session()

    @classmethod
    def from_config(cls, config: AIConfig) -> "AnthropicTriager":
        return cls(model=config.model, timeout=config.timeout)

    def is_available(self) -> bool:
        return bool(self.api_key)

    def triage(self, finding: Finding, source: str) -> TriageResult:
        """
        Classify one finding. `source` must already be sanitized.

        Raises:
            requests.RequestException: Transport or HTTP error.
            ValueError: The reply could not be interpreted.
        """
        payload = {
            "model": self.model,
            "max_tokens": MAX_TOKENS,
            "temperature": TEMPERATURE,
            "system": TRIAGE_SYSTEM_PROMPT,
            "messages": [{"role": "user", "content": build_prompt(finding, source)}],
        }
        headers = {
            "x-api-key": self.api_key or "",
            "anthropic-version": ANTHROPIC_VERSION,
            "content-type": "application/json",
        }
        resp = self.session.post(ANTHROPIC_API_URL, json=payload, headers=headers, timeout=self.timeout)
        resp.raise_for_status()

        data = resp.json()
        blocks = data.get("content") or []
        text = next((b.get("text", "") for b in blocks if b.get("type") == "text"), None)
        if text is None:
            raise ValueError("Unexpected response type from triage model")
        return parse_response_text(text)


class TriageCache:
    """Verdicts for one scan, keyed by file content, finding id and line.

    Identical code in two files shares a verdict, as do repeated findings
    on the same line.
    """

    def __init__(self) -> None:
        self._verdicts: dict[str, TriageResult] = {}
        self.hits = 0

    @staticmethod
    def key(finding: Finding, source: str) -> str:
        digest = hashlib.sha256(source.encode("utf-8")).hexdigest()
        return f"{digest}-{finding.id}-{finding.line}"

    def get(self, finding: Finding, source: str) -> Optional[TriageResult]:
        verdict = self._verdicts.get(self.key(finding, source))
        if verdict is not None:
            self.hits += 1
        return verdict

    def put(self, finding: Finding, source: str, verdict: TriageResult) -> None:
        self._verdicts[self.key(finding, source)] = verdict

    def __len__(self) -> int:
        return len(self._verdicts)


class RateLimiter:
    """Sliding one-minute window plus a cap on calls per scan."""

    WINDOW_SECONDS = 60.0

    def __init__(
        self,
        max_per_minute: int = DEFAULT_CALLS_PER_MINUTE,
        max_per_scan: int = DEFAULT_CALLS_PER_SCAN,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self.max_per_minute = max(1, max_per_minute)
        self.max_per_scan = max_per_scan
        self.clock = clock
        self.sleep = sleep
        self.total_calls = 0
        self._calls: deque[float] = deque()

    @classmethod
    def from_config(cls, config: AIConfig) -> "RateLimiter":
        return cls(config.max_calls_per_minute, config.max_calls_per_scan)

    @property
    def exhausted(self) -> bool:
        return self.total_calls >= self.max_per_scan

    def _expire(self, now: float) -> None:
        while self._calls and now - self._calls[0] >= self.WINDOW_SECONDS:
            self._calls.popleft()

    def wait(self) -> None:
        """Block until one more call fits in the current minute."""
        now = self.clock()
        self._expire(now)
        if len(self._calls) < self.max_per_minute:
            return
        delay = self.WINDOW_SECONDS - (now - self._calls[0])
        logger.info("Triage rate limit reached, waiting %.1fs", delay)
        self.sleep(delay)
        self._expire(self.clock())

    def record(self) -> None:
        self._calls.append(self.clock())
        self.total_calls += 1


def _read_capped(root: Path, rel_path: str, max_bytes: int) -> Optional[str]:
    path = root / rel_path
    try:
        if path.stat().st_size > max_bytes:
            logger.debug("Skipping triage for %s: larger than %d bytes", rel_path, max_bytes)
            return None
        return path.read_text(errors="ignore")
    except OSError as exc:
        logger.debug("Cannot read %s for triage: %s", rel_path, exc)
        return None


def apply_triage(
    findings: list[Finding],
    root: Path,
    triager: Optional[Triager],
    config: AIConfig,
    warnings: Optional[WarningLog] = None,
    cache: Optional[TriageCache] = None,
    limiter: Optional[RateLimiter] = None,
) -> list[Finding]:
    """Attach AI classifications, or drop false positives when configured to.

    Findings that already carry a classification are not sent again. Once
    the per-scan call budget is spent the rest are kept untriaged.
    """
    if not config.enable_triage:
        return list(findings)
    if triager is None or not triager.is_available():
        if warnings is not None:
            warnings.add(
                "ai-triage",
                "AI triage disabled: ANTHROPIC_API_KEY or VLAYER_AI_KEY not found",
            )
        return list(findings)

    cache = cache if cache is not None else TriageCache()
    limiter = limiter if limiter is not None else RateLimiter.from_config(config)
    sources: dict[str, Optional[str]] = {}
    result: list[Finding] = []
    triaged = filtered = 0

    for finding in findings:
        if finding.is_aggregate or finding.ai_classification:
            result.append(finding)
            continue

        if finding.file not in sources:
            content = _read_capped(root, finding.file, config.max_file_bytes)
            if content is not None:
                sanitized = sanitize_code(content, finding.file)
                for message in sanitized.warnings:
                    logger.info(message)
                content = sanitized.sanitized_code
            sources[finding.file] = content

        source = sources[finding.file]
        if source is None:
            result.append(finding)
            continue

        verdict = cache.get(finding, source)
        if verdict is None:
            if limiter.exhausted:
                if warnings is not None:
                    warnings.add(
                        "ai-triage",
                        f"Triage call budget of {limiter.max_per_scan} reached",
                        "remaining findings were kept untriaged",
                    )
                result.append(finding)
                continue
            limiter.wait()
            limiter.record()
            try:
                verdict = triager.triage(finding, source)
            except Exception as exc:
                if warnings is not None:
                    warnings.add("ai-triage", f"Triage failed for {finding.id}", str(exc))
                result.append(finding)
                continue
            cache.put(finding, source, verdict)

        triaged += 1
        if config.filter_false_positives and verdict.classification == FALSE_POSITIVE:
            filtered += 1
            continue
        result.append(
            replace(
                finding,
                ai_classification=verdict.classification,
                ai_confidence=verdict.confidence,
                ai_reasoning=verdict.reasoning,
            )
        )

    logger.info(
        "Triage complete: %d finding(s) triaged (%d cached, %d API calls), %d false positive(s) filtered",
        triaged,
        cache.hits,
        limiter.total_calls,
        filtered,
    )
    return result
