"""
Pytest Configuration and Fixtures

Shared fixtures for vlayer tests.
"""

import tempfile
from pathlib import Path
from typing import Callable, Generator

import pytest

from vlayer.core.config import VlayerConfig
from vlayer.core.errors import WarningLog
from vlayer.core.finding import Category, Confidence, Finding, Severity
from vlayer.core.scanner import ScanContext


@pytest.fixture
def temp_dir() -> Generator[Path, None, None]:
    """Create a temporary directory for test files."""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir).resolve()


@pytest.fixture
def config() -> VlayerConfig:
    """Create a default configuration."""
    return VlayerConfig()


@pytest.fixture
def context(temp_dir: Path, config: VlayerConfig) -> ScanContext:
    """Scan context rooted at temp_dir."""
    return ScanContext(root=temp_dir, config=config, warnings=WarningLog())


@pytest.fixture
def write_file(temp_dir: Path) -> Callable[[str, str], Path]:
    """Write a file relative to temp_dir, creating parent directories."""

    def _write(rel_path: str, content: str) -> Path:
        path = temp_dir / rel_path
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(content, encoding="utf-8")
        return path

    return _write


@pytest.fixture
def make_finding() -> Callable[..., Finding]:
    """Factory for findings with sensible defaults."""

    def _make(**overrides) -> Finding:
        values = dict(
            id="phi-ssn-hardcoded-0",
            category=Category.PHI_EXPOSURE,
            severity=Severity.HIGH,
            title="Potential SSN detected",
            description="A pattern matching Social Security Number format was found in the code.",
            file="src/patients.py",
            recommendation="Remove hardcoded SSN.",
            line=1,
            confidence=Confidence.HIGH,
            pattern_id="ssn-hardcoded",
        )
        values.update(overrides)
        return Finding(**values)

    return _make


class StaticClassifier:
    """Classifier stub answering the same confidence for every request."""

    def __init__(self, answer: Confidence = Confidence.HIGH) -> None:
        self.answer = answer
        self.requests = []

    def is_available(self) -> bool:
        return True

    def classify(self, batch):
        self.requests.extend(batch)
        return [self.answer for _ in batch]


@pytest.fixture
def static_classifier() -> type:
    """The StaticClassifier class, for tests that need a fixed answer."""
    return StaticClassifier


@pytest.fixture
def high_classifier() -> StaticClassifier:
    """Classifier that leaves declared confidences untouched."""
    return StaticClassifier(Confidence.HIGH)


@pytest.fixture
def sample_project(write_file) -> Path:
    """A small project with a handful of known issues."""
    write_file("src/settings.py", 'db_password = "Xk9mQ2vLp8wR"\n')
    write_file(
        "src/patients.js",
        "const ssn = '123-45-6789';\n"
        "const url = 'http://records.hospital-internal.net/api';\n"
        "const db = query('SELECT * FROM patients');\n",
    )
    write_file("config/retention.yaml", "records:\n  delete_after: 30 days\n")
    write_file("src/cleanup.py", "cursor.execute('TRUNCATE TABLE audit_log')\n")
    write_file("README.md", "# Sample\n")
    return write_file("node_modules/lib/index.js", "const ssn = '987-65-4321';\n").parents[2]
