"""
Tests for PHI Exposure Scanner
"""

from vlayer.core.finding import Category, Confidence, Severity
from vlayer.scanners.phi import PHIScanner


def _scan(write_file, context, rel_path, content):
    path = write_file(rel_path, content)
    return PHIScanner().scan([path], context)


class TestPHIScanner:
    """Tests for PHIScanner."""

    def test_detect_ssn(self, write_file, context):
        """Test hardcoded SSN detection."""
        findings = _scan(write_file, context, "src/app.py", "x = 1\nssn = '123-45-6789'\n")

        assert len(findings) == 1
        finding = findings[0]
        assert finding.id == "phi-ssn-hardcoded-1"
        assert finding.pattern_id == "ssn-hardcoded"
        assert finding.severity == Severity.CRITICAL
        assert finding.category == Category.PHI_EXPOSURE
        assert finding.confidence == Confidence.HIGH
        assert finding.file == "src/app.py"
        assert finding.line == 2
        assert finding.column == 8
        assert finding.compliance_reference == "§164.502, §164.514"

    def test_comment_lines_are_skipped(self, write_file, context):
        """Test SSN-looking values in comments are ignored."""
        findings = _scan(write_file, context, "src/app.py", "# sample: 123-45-6789\n")

        assert findings == []

    def test_patient_name_logging(self, write_file, context):
        """Test patient names in console output."""
        findings = _scan(
            write_file, context, "src/app.js", 'console.log("patient name", patient.name);\n'
        )

        assert [f.pattern_id for f in findings] == ["patient-name-log"]
        assert findings[0].severity == Severity.HIGH

    def test_medical_record_number(self, write_file, context):
        """Test hardcoded MRNs."""
        findings = _scan(write_file, context, "src/app.ts", 'const mrn = "12345678";\n')

        assert [f.pattern_id for f in findings] == ["medical-record-number"]

    def test_phi_in_url(self, write_file, context):
        """Test PHI fields in URL paths."""
        findings = _scan(write_file, context, "src/routes.js", "router.get('/patient/42/ssn')\n")

        assert "phi-in-url" in [f.pattern_id for f in findings]

    def test_patient_email_is_medium_confidence(self, write_file, context):
        """Test the noisier patient email rule declares medium confidence."""
        findings = _scan(write_file, context, "src/mail.py", "send(patient_email)\n")

        [finding] = findings
        assert finding.pattern_id == "email-phi-context"
        assert finding.confidence == Confidence.MEDIUM

    def test_unsupported_extension(self, write_file, context):
        """Test non-code files are not scanned."""
        findings = _scan(write_file, context, "docs/notes.md", "ssn = 123-45-6789\n")

        assert findings == []

    def test_clean_file(self, write_file, context):
        """Test no findings for ordinary code."""
        findings = _scan(write_file, context, "src/app.py", "def add(a, b):\n    return a + b\n")

        assert findings == []
