"""
Tests for Semantic Confidence
"""

from vlayer.analysis.semantic import (
    ClassifyRequest,
    LocalContextClassifier,
    apply_semantic_confidence,
    is_test_file,
    string_context,
)
from vlayer.core.errors import WarningLog
from vlayer.core.finding import Confidence


class FailingClassifier:
    def is_available(self):
        return True

    def classify(self, batch):
        raise RuntimeError("model offline")


class ShortClassifier:
    def is_available(self):
        return True

    def classify(self, batch):
        return []


class TestLocalContextClassifier:
    """Tests for the offline heuristics."""

    def _classify(self, temp_dir, rel_path, line):
        classifier = LocalContextClassifier(temp_dir)
        [answer] = classifier.classify([ClassifyRequest(rel_path, line)])
        return answer

    def test_plain_code_is_high(self, temp_dir, write_file):
        """Test an ordinary code line keeps high confidence."""
        write_file("src/app.py", "ssn = '123-45-6789'\n")

        assert self._classify(temp_dir, "src/app.py", 1) == Confidence.HIGH

    def test_comment_is_low(self, temp_dir, write_file):
        """Test comment lines are low confidence."""
        write_file("src/app.py", "# ssn = '123-45-6789'\n")

        assert self._classify(temp_dir, "src/app.py", 1) == Confidence.LOW

    def test_test_file_is_low(self, temp_dir, write_file):
        """Test findings in test files are low confidence."""
        write_file("src/__tests__/app.test.js", "const ssn = '123-45-6789';\n")

        assert self._classify(temp_dir, "src/__tests__/app.test.js", 1) == Confidence.LOW

    def test_docstring_is_low(self, temp_dir, write_file):
        """Test lines inside a triple-quoted string are low confidence."""
        write_file("src/app.py", 'HELP = """\nExample: 123-45-6789\n"""\n')

        assert self._classify(temp_dir, "src/app.py", 2) == Confidence.LOW

    def test_template_literal_is_medium(self, temp_dir, write_file):
        """Test lines inside a template literal are medium confidence."""
        write_file("src/app.js", "const msg = `\nssn ${ssn}\n`;\n")

        assert self._classify(temp_dir, "src/app.js", 2) == Confidence.MEDIUM

    def test_non_code_file_is_medium(self, temp_dir, write_file):
        """Test findings in config files are medium confidence."""
        write_file("config/app.yaml", "password: hunter2hunter2\n")

        assert self._classify(temp_dir, "config/app.yaml", 1) == Confidence.MEDIUM

    def test_unreadable_is_medium(self, temp_dir):
        """Test a missing file yields medium."""
        assert self._classify(temp_dir, "missing.py", 1) == Confidence.MEDIUM

    def test_is_test_file(self):
        """Test test-file detection."""
        assert is_test_file("tests/test_app.py")
        assert is_test_file("src/app.spec.ts")
        assert is_test_file("pkg/handler_test.go")
        assert not is_test_file("src/app.py")

    def test_string_context(self):
        """Test multi-line spans are mapped per line."""
        spans = string_context(['x = """', "inside", '"""', "y = `", "tpl", "`"])

        assert spans[1] == "string"
        assert spans[4] == "template"
        assert spans[3] == "template"


class TestApplySemanticConfidence:
    """Tests for apply_semantic_confidence."""

    def test_lowers_but_never_raises(self, make_finding, static_classifier):
        """Test the classifier can only lower a declared confidence."""
        medium = make_finding(id="a", confidence=Confidence.MEDIUM)
        high = make_finding(id="b", confidence=Confidence.HIGH)

        raised = apply_semantic_confidence([medium], static_classifier(Confidence.HIGH))
        lowered = apply_semantic_confidence([high], static_classifier(Confidence.LOW))

        assert raised[0].confidence == Confidence.MEDIUM
        assert lowered[0].confidence == Confidence.LOW

    def test_missing_confidence_is_filled(self, make_finding, static_classifier):
        """Test findings without a confidence take the classifier's answer."""
        [result] = apply_semantic_confidence(
            [make_finding(confidence=None)], static_classifier(Confidence.MEDIUM)
        )

        assert result.confidence == Confidence.MEDIUM

    def test_opt_out_and_aggregates_are_skipped(self, make_finding, static_classifier):
        """Test adjust_confidence_by_context=False and aggregate findings are left alone."""
        classifier = static_classifier(Confidence.LOW)
        pinned = make_finding(id="a", adjust_confidence_by_context=False)
        aggregate = make_finding(id="b", file="ASSET-INVENTORY")

        results = apply_semantic_confidence([pinned, aggregate], classifier)

        assert results == [pinned, aggregate]
        assert classifier.requests == []

    def test_single_batch_in_order(self, make_finding, static_classifier):
        """Test one request per eligible finding, in finding order."""
        classifier = static_classifier(Confidence.HIGH)
        findings = [make_finding(id="a", line=3), make_finding(id="b", line=7)]

        apply_semantic_confidence(findings, classifier)

        assert [r.line for r in classifier.requests] == [3, 7]
        assert classifier.requests[0].pattern == "ssn-hardcoded"

    def test_failure_becomes_warning(self, make_finding):
        """Test a classifier error keeps findings and records a warning."""
        warnings = WarningLog()
        findings = [make_finding()]

        results = apply_semantic_confidence(findings, FailingClassifier(), warnings)

        assert results == findings
        assert warnings.items()[0].message == "Confidence classifier failed"

    def test_mismatched_batch_becomes_warning(self, make_finding):
        """Test a short answer list is rejected."""
        warnings = WarningLog()
        findings = [make_finding()]

        results = apply_semantic_confidence(findings, ShortClassifier(), warnings)

        assert results == findings
        assert len(warnings) == 1

    def test_no_classifier(self, make_finding):
        """Test None is a no-op."""
        findings = [make_finding()]

        assert apply_semantic_confidence(findings, None) == findings

    def test_idempotent(self, temp_dir, write_file, make_finding):
        """Test classifying twice is the same as once."""
        write_file("src/app.py", "# ssn = '123-45-6789'\nssn = '123-45-6789'\n")
        classifier = LocalContextClassifier(temp_dir)
        findings = [
            make_finding(id="a", file="src/app.py", line=1),
            make_finding(id="b", file="src/app.py", line=2, confidence=None),
        ]

        once = apply_semantic_confidence(findings, classifier)
        twice = apply_semantic_confidence(once, classifier)

        assert once == twice
        assert [f.confidence for f in once] == [Confidence.LOW, Confidence.HIGH]
