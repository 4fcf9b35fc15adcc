"""
Tests for Baselines
"""

import json
from datetime import datetime, timezone

import pytest

from vlayer.core.errors import BaselineError
from vlayer.policy.baseline import (
    Baseline,
    apply_baseline,
    create_baseline,
    finding_hash,
    load_baseline,
    save_baseline,
)


class TestFindingHash:
    """Tests for finding identity."""

    def test_hash_is_stable_and_short(self, make_finding):
        """Test the hash is 16 hex characters and deterministic."""
        finding = make_finding()

        assert finding_hash(finding) == finding_hash(make_finding())
        assert len(finding_hash(finding)) == 16

    def test_hash_depends_on_location(self, make_finding):
        """Test moving a finding changes its identity."""
        assert finding_hash(make_finding(line=1)) != finding_hash(make_finding(line=2))
        assert finding_hash(make_finding(file="a.py")) != finding_hash(make_finding(file="b.py"))

    def test_missing_line_hashes_as_zero(self, make_finding):
        """Test a finding without a line hashes like line 0."""
        assert finding_hash(make_finding(line=None)) == finding_hash(make_finding(line=0))


class TestApplyBaseline:
    """Tests for apply_baseline."""

    def test_known_findings_are_marked(self, make_finding):
        """Test findings present in the baseline become baseline findings."""
        known = make_finding(id="a", line=1)
        new = make_finding(id="b", line=2)
        baseline = create_baseline([known])

        results = apply_baseline([known, new], baseline)

        assert [f.is_baseline for f in results] == [True, False]

    def test_legacy_entries_match_by_id_and_file(self, make_finding):
        """Test entries without a hash fall back to id + file."""
        baseline = Baseline(entries=[{"id": "a", "file": "src/patients.py"}])

        results = apply_baseline(
            [make_finding(id="a", line=40), make_finding(id="a", file="other.py")], baseline
        )

        assert [f.is_baseline for f in results] == [True, False]

    def test_no_baseline(self, make_finding):
        """Test None leaves findings untouched."""
        findings = [make_finding()]

        assert apply_baseline(findings, None) == findings


class TestBaselineFiles:
    """Tests for saving and loading baselines."""

    def test_save_and_load(self, temp_dir, make_finding):
        """Test a saved baseline loads back and recognizes its findings."""
        path = temp_dir / ".vlayer-baseline.json"
        findings = [make_finding(id="a"), make_finding(id="b", line=5)]
        now = datetime(2025, 1, 1, tzinfo=timezone.utc)

        saved = save_baseline(path, findings, now)
        loaded = load_baseline(path)

        data = json.loads(path.read_text())
        assert data["version"] == "1.0"
        assert data["createdAt"] == "2025-01-01T00:00:00+00:00"
        assert data["findings"][0]["hash"] == finding_hash(findings[0])
        assert len(saved) == len(loaded) == 2
        assert all(loaded.contains(f) for f in findings)

    def test_missing_file(self, temp_dir):
        """Test a missing baseline raises BaselineError."""
        with pytest.raises(BaselineError, match="not found"):
            load_baseline(temp_dir / "nope.json")

    def test_invalid_json(self, temp_dir):
        """Test corrupt JSON raises BaselineError."""
        path = temp_dir / "baseline.json"
        path.write_text("{not json")

        with pytest.raises(BaselineError):
            load_baseline(path)

    def test_wrong_shape(self, temp_dir):
        """Test a JSON document without a findings list raises BaselineError."""
        path = temp_dir / "baseline.json"
        path.write_text(json.dumps({"version": "1.0", "findings": "all"}))

        with pytest.raises(BaselineError, match="Invalid baseline"):
            load_baseline(path)

    @pytest.mark.parametrize("entry", [
        {"hash": ["x"], "id": "a"},
        {"id": 7, "file": "src/app.py"},
        {"id": "a", "file": {"path": "src/app.py"}},
    ])
    def test_non_string_fields(self, temp_dir, entry):
        """Test entries whose hash, id or file is not a string raise BaselineError."""
        path = temp_dir / "baseline.json"
        path.write_text(json.dumps({"version": "1.0", "findings": [entry]}))

        with pytest.raises(BaselineError, match="must be a string"):
            load_baseline(path)
