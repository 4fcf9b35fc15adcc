"""
Tests for the vlayer CLI
"""

import json

import pytest
from click.testing import CliRunner

from vlayer import __version__
from vlayer.cli import cli

RULES_YAML = """\
version: "1.0"
rules:
  - id: no-fax
    name: Fax numbers
    description: Fax numbers are PHI
    category: phi-exposure
    severity: medium
    pattern: fax\\s*[:=]
    recommendation: Remove fax numbers
    include: ["src/**"]
"""


@pytest.fixture
def runner():
    return CliRunner()


@pytest.fixture
def credential_project(temp_dir, write_file):
    write_file("src/settings.py", 'db_password = "Xk9mQ2vLp8wR"\n')
    return temp_dir


class TestScanCommand:
    """Tests for `vlayer scan`."""

    def test_critical_finding_exits_one(self, runner, credential_project):
        """Test active critical findings fail the run."""
        result = runner.invoke(cli, ["scan", str(credential_project), "-c", "encryption"])

        assert result.exit_code == 1
        assert "CRED-002" in result.output

    def test_clean_project_exits_zero(self, runner, temp_dir, write_file):
        """Test a project without critical findings passes."""
        write_file("src/app.py", "x = 1\n")

        result = runner.invoke(cli, ["scan", str(temp_dir), "-c", "encryption"])

        assert result.exit_code == 0

    def test_json_format(self, runner, credential_project):
        """Test the JSON report on stdout."""
        result = runner.invoke(
            cli, ["scan", str(credential_project), "-c", "encryption", "--format", "json"]
        )

        data = json.loads(result.output)
        assert data["tool"]["name"] == "vlayer"
        assert [f["id"] for f in data["findings"]] == ["CRED-002"]
        assert data["complianceScore"]["score"] == 90

    def test_markdown_format(self, runner, credential_project):
        """Test the Markdown report on stdout keeps the exit code."""
        result = runner.invoke(
            cli, ["scan", str(credential_project), "-c", "encryption", "--format", "markdown"]
        )

        assert result.exit_code == 1
        assert result.output.startswith("# HIPAA Compliance Report")
        assert "`CRED-002`" in result.output

    def test_markdown_output_file(self, runner, credential_project):
        """Test the Markdown report can be written to a file."""
        out = credential_project / "report.md"

        runner.invoke(
            cli,
            ["scan", str(credential_project), "-c", "encryption", "-f", "markdown", "-o", str(out)],
        )

        assert "## Findings" in out.read_text()

    def test_json_output_file(self, runner, credential_project):
        """Test the console report can also be saved as JSON."""
        out = credential_project / "report.json"

        runner.invoke(
            cli, ["scan", str(credential_project), "-c", "encryption", "-o", str(out)]
        )

        assert json.loads(out.read_text())["scannedFiles"] == 1

    def test_missing_baseline_fails(self, runner, credential_project):
        """Test configuration errors exit with status 2."""
        result = runner.invoke(
            cli, ["scan", str(credential_project), "--baseline", "missing.json"]
        )

        assert result.exit_code == 2

    def test_unknown_category_rejected(self, runner, credential_project):
        """Test click validates category names."""
        result = runner.invoke(cli, ["scan", str(credential_project), "-c", "billing"])

        assert result.exit_code == 2


class TestBaselineCommand:
    """Tests for `vlayer baseline`."""

    def test_baseline_then_scan(self, runner, credential_project):
        """Test a baselined finding no longer fails the scan."""
        result = runner.invoke(cli, ["baseline", str(credential_project), "-c", "encryption"])

        assert result.exit_code == 0
        assert "Baseline with 1 finding(s)" in result.output
        baseline_file = credential_project / ".vlayer-baseline.json"
        assert json.loads(baseline_file.read_text())["findings"][0]["id"] == "CRED-002"

        result = runner.invoke(
            cli,
            [
                "scan", str(credential_project),
                "-c", "encryption",
                "-e", ".vlayer-baseline.json",
                "--baseline", ".vlayer-baseline.json",
            ],
        )

        assert result.exit_code == 0


class TestInitCommand:
    """Tests for `vlayer init`."""

    def test_creates_config(self, runner, temp_dir):
        """Test init writes .vlayer.yaml once."""
        result = runner.invoke(cli, ["init", "--path", str(temp_dir)])

        assert result.exit_code == 0
        assert (temp_dir / ".vlayer.yaml").exists()
        assert "Created" in result.output

        result = runner.invoke(cli, ["init", "--path", str(temp_dir)])

        assert "already exists" in result.output


class TestRulesCommands:
    """Tests for `vlayer rules`."""

    def test_list_empty(self, runner, temp_dir):
        """Test the hint shown when no rules exist."""
        result = runner.invoke(cli, ["rules", "list", str(temp_dir)])

        assert result.exit_code == 0
        assert "No custom rules found." in result.output

    def test_list_rules(self, runner, temp_dir, write_file):
        """Test discovered rules are listed with their details."""
        write_file("vlayer-rules.yaml", RULES_YAML)

        result = runner.invoke(cli, ["rules", "list", str(temp_dir)])

        assert "Loaded 1 custom rule(s)" in result.output
        assert "no-fax" in result.output
        assert "Category: phi-exposure" in result.output
        assert "Include: src/**" in result.output

    def test_validate_valid(self, runner, write_file):
        """Test a valid file reports its rule count."""
        path = write_file("rules.yaml", RULES_YAML)

        result = runner.invoke(cli, ["rules", "validate", str(path)])

        assert result.exit_code == 0
        assert "Valid! Found 1 rule(s)." in result.output

    def test_validate_invalid(self, runner, write_file):
        """Test an invalid file exits with status 1."""
        path = write_file("rules.yaml", 'version: "1.0"\n')

        result = runner.invoke(cli, ["rules", "validate", str(path)])

        assert result.exit_code == 1
        assert "Validation failed" in result.output


class TestVersion:
    """Tests for --version."""

    def test_version(self, runner):
        """Test the version flag."""
        result = runner.invoke(cli, ["--version"])

        assert result.exit_code == 0
        assert __version__ in result.output
