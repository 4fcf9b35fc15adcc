"""
Tests for Finding Post-Processing
"""

from datetime import datetime, timezone

from vlayer.analysis.semantic import LocalContextClassifier
from vlayer.core.config import VlayerConfig
from vlayer.core.errors import WarningLog
from vlayer.core.finding import Confidence
from vlayer.core.pipeline import PostProcessor, apply_min_confidence
from vlayer.policy.baseline import create_baseline
from vlayer.policy.loader import AcknowledgmentRule

NOW = datetime(2025, 3, 1, tzinfo=timezone.utc)


class TestApplyMinConfidence:
    """Tests for minimum-confidence demotion."""

    def test_demotes_below_threshold(self, make_finding):
        """Test low and medium findings become baseline under a high threshold."""
        findings = [
            make_finding(id="low", confidence=Confidence.LOW),
            make_finding(id="medium", confidence=Confidence.MEDIUM),
            make_finding(id="high", confidence=Confidence.HIGH),
        ]

        results = apply_min_confidence(findings, Confidence.HIGH)

        assert [f.is_baseline for f in results] == [True, True, False]
        assert len(results) == 3

    def test_missing_confidence_counts_as_high(self, make_finding):
        """Test findings without a confidence are never demoted."""
        [result] = apply_min_confidence([make_finding(confidence=None)], Confidence.HIGH)

        assert not result.is_baseline

    def test_no_threshold(self, make_finding):
        """Test None keeps everything."""
        findings = [make_finding(confidence=Confidence.LOW)]

        assert apply_min_confidence(findings, None) == findings


class TestPostProcessor:
    """Tests for the full post-processing chain."""

    def _processor(self, root, **kwargs):
        config = kwargs.pop("config", VlayerConfig())
        return PostProcessor(root=root, config=config, warnings=WarningLog(), now=NOW, **kwargs)

    def test_chain_order(self, temp_dir, write_file, make_finding):
        """Test every stage applies in one pass."""
        write_file(
            "src/app.py",
            "# vlayer-ignore phi-* -- fixture\n"
            "ssn = '123-45-6789'\n"
            "# ssn = '987-65-4321'\n",
        )
        suppressed = make_finding(id="phi-ssn-hardcoded-1", file="src/app.py", line=2)
        in_comment = make_finding(id="phi-ssn-hardcoded-2", file="src/app.py", line=3)
        config = VlayerConfig(
            acknowledged_findings=[
                AcknowledgmentRule("src/**", "fixtures", "sec", "2025-01-01", id="phi-*")
            ]
        )
        processor = self._processor(
            temp_dir,
            config=config,
            classifier=LocalContextClassifier(temp_dir),
            min_confidence=Confidence.MEDIUM,
        )

        first, second = processor.run([suppressed, in_comment])

        assert first.acknowledged and first.suppressed
        assert second.acknowledged
        assert second.confidence == Confidence.LOW
        # Demoted by the minimum confidence, still present
        assert second.is_baseline

    def test_baseline_stage(self, temp_dir, make_finding):
        """Test baseline findings are marked but kept."""
        known = make_finding(id="a", file="gone.py")
        processor = self._processor(temp_dir, baseline=create_baseline([known]))

        [result] = processor.run([known])

        assert result.is_baseline

    def test_idempotent(self, temp_dir, write_file, make_finding):
        """Test running the chain on its own output changes nothing."""
        write_file("src/app.py", "ssn = '123-45-6789'\n# vlayer-ignore CRED-002 -- rotated\npw = 'x'\n")
        findings = [
            make_finding(id="phi-ssn-hardcoded-0", file="src/app.py", line=1, confidence=None),
            make_finding(id="CRED-002", file="src/app.py", line=3, pattern_id="CRED-002"),
            make_finding(id="HIPAA-PENTEST-001", file="project-level", line=1),
        ]
        config = VlayerConfig(
            acknowledged_findings=[
                AcknowledgmentRule("**", "accepted", "sec", "2025-01-01", expires_at="2025-02-01")
            ]
        )
        processor = self._processor(
            temp_dir,
            config=config,
            classifier=LocalContextClassifier(temp_dir),
            baseline=create_baseline(findings[:1]),
            min_confidence=Confidence.HIGH,
        )

        once = processor.run(findings)
        twice = processor.run(once)

        assert once == twice
        assert all(f.acknowledged and f.acknowledgment.expired for f in once)
        assert once[1].suppressed
