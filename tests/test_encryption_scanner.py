"""
Tests for Encryption and Credential Scanners
"""

from vlayer.core.finding import Category, Confidence, Severity
from vlayer.scanners.credentials import CredentialsScanner
from vlayer.scanners.encryption import EncryptionScanner


class TestEncryptionScanner:
    """Tests for EncryptionScanner."""

    def test_weak_hash(self, write_file, context):
        """Test MD5 usage is flagged."""
        path = write_file("src/digest.py", "import hashlib\nh = hashlib.md5(data)\n")

        findings = EncryptionScanner().scan([path], context)

        assert [f.id for f in findings] == ["enc-weak-md5-1"]
        assert findings[0].severity == Severity.HIGH
        assert findings[0].category == Category.ENCRYPTION

    def test_plain_http(self, write_file, context):
        """Test unencrypted HTTP URLs are flagged."""
        path = write_file("src/client.js", "const url = 'http://api.partner-records.net/v1';\n")

        findings = EncryptionScanner().scan([path], context)

        assert [f.pattern_id for f in findings] == ["missing-http"]

    def test_safe_http_domains(self, write_file, context):
        """Test XML namespaces and localhost are not flagged."""
        path = write_file(
            "src/icon.js",
            "const ns = 'http://www.w3.org/2000/svg';\n"
            "const dev = 'http://localhost:3000';\n",
        )

        assert EncryptionScanner().scan([path], context) == []

    def test_tls_validation_disabled(self, write_file, context):
        """Test rejectUnauthorized: false is critical."""
        path = write_file("src/db.ts", "const opts = { rejectUnauthorized: false };\n")

        findings = EncryptionScanner().scan([path], context)

        assert [f.id for f in findings] == ["enc-missing-tls-unauthorized-0"]
        assert findings[0].severity == Severity.CRITICAL


class TestCredentialsScanner:
    """Tests for CredentialsScanner."""

    def test_hardcoded_credential(self, write_file, context):
        """Test a literal password assignment is one critical finding."""
        path = write_file("src/settings.py", 'db_password = "Xk9mQ2vLp8wR"\n')

        findings = CredentialsScanner().scan([path], context)

        assert len(findings) == 1
        assert findings[0].id == "CRED-002"
        assert findings[0].severity == Severity.CRITICAL
        assert findings[0].confidence == Confidence.HIGH

    def test_placeholder_credential(self, write_file, context):
        """Test placeholder values are not flagged."""
        path = write_file("src/settings.py", 'password = "changeme123"\n')

        assert CredentialsScanner().scan([path], context) == []

    def test_environment_credential(self, write_file, context):
        """Test credentials read from the environment are not flagged."""
        path = write_file("src/settings.py", 'password = os.environ["DB_PASSWORD"]\n')

        assert CredentialsScanner().scan([path], context) == []

    def test_weak_password_hash(self, write_file, context):
        """Test MD5 used on a password."""
        path = write_file(
            "src/auth.py",
            "def hash_password(password):\n"
            "    return hashlib.md5(password.encode()).hexdigest()\n",
        )

        findings = CredentialsScanner().scan([path], context)

        assert [(f.id, f.line) for f in findings] == [("CRED-001", 2)]

    def test_bcrypt_nearby_suppresses(self, write_file, context):
        """Test a strong algorithm in the window counts as mitigation."""
        path = write_file(
            "src/auth.py",
            "import bcrypt\n"
            "def legacy(password):\n"
            "    return hashlib.md5(password.encode()).hexdigest()\n",
        )

        assert CredentialsScanner().scan([path], context) == []

    def test_next_public_secret(self, write_file, context):
        """Test secrets exposed via NEXT_PUBLIC_ are flagged, publishable keys are not."""
        path = write_file(
            "web/.env",
            "NEXT_PUBLIC_STRIPE_SECRET_KEY=abc\n"
            "NEXT_PUBLIC_STRIPE_PUBLISHABLE_KEY=pk\n",
        )

        findings = CredentialsScanner().scan([path], context)

        assert [(f.id, f.line) for f in findings] == [("CRED-003", 1)]
