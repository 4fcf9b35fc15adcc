"""
Tests for Configuration
"""

from pathlib import Path

import pytest
import yaml

from vlayer.core.config import (
    DEFAULT_SAFE_HTTP_DOMAINS,
    VlayerConfig,
    generate_default_config,
)
from vlayer.core.errors import ConfigurationError
from vlayer.core.finding import Category, Confidence


class TestVlayerConfig:
    """Tests for VlayerConfig."""

    def test_defaults_without_file(self, temp_dir):
        """Test a project without config gets the defaults."""
        config = VlayerConfig.load(temp_dir)

        assert config.categories is None
        assert config.exclude == []
        assert config.min_confidence is None
        assert not config.ai.enable_triage
        assert config.source is None

    def test_load_yaml(self, temp_dir, write_file):
        """Test values from .vlayer.yaml."""
        write_file(
            ".vlayer.yaml",
            "categories: [phi-exposure, encryption]\n"
            "exclude: ['**/*.min.js']\n"
            "ignorePaths: ['legacy/']\n"
            "safeHttpDomains: ['intranet.local']\n"
            "minConfidence: medium\n"
            "ai:\n"
            "  enableTriage: true\n"
            "  filterFalsePositives: true\n",
        )

        config = VlayerConfig.load(temp_dir)

        assert config.categories == [Category.PHI_EXPOSURE, Category.ENCRYPTION]
        assert config.exclude == ["**/*.min.js"]
        assert config.min_confidence == Confidence.MEDIUM
        assert config.ai.enable_triage
        assert config.ai.filter_false_positives
        assert config.safe_http_domains == DEFAULT_SAFE_HTTP_DOMAINS + ["intranet.local"]
        assert config.source == temp_dir / ".vlayer.yaml"

    def test_load_json(self, temp_dir, write_file):
        """Test .vlayerrc.json is read by the YAML parser."""
        write_file(".vlayerrc.json", '{"customRulesPath": "rules/hipaa.yaml"}')

        config = VlayerConfig.load(temp_dir)

        assert config.custom_rules_path == "rules/hipaa.yaml"

    def test_explicit_missing_file(self, temp_dir):
        """Test an explicit config path that does not exist is fatal."""
        with pytest.raises(ConfigurationError, match="Config file not found"):
            VlayerConfig.load(temp_dir, Path("missing.yaml"))

    def test_unparsable_file(self, temp_dir, write_file):
        """Test a broken config file is fatal."""
        write_file(".vlayer.yaml", "categories: [unclosed\n")

        with pytest.raises(ConfigurationError):
            VlayerConfig.load(temp_dir)

    def test_unknown_category(self, temp_dir, write_file):
        """Test unknown categories are rejected."""
        write_file(".vlayer.yaml", "categories: [billing]\n")

        with pytest.raises(ConfigurationError, match="Unknown category"):
            VlayerConfig.load(temp_dir)

    def test_bad_acknowledgments_are_reported(self, temp_dir, write_file):
        """Test invalid acknowledgments are dropped with messages, not raised."""
        write_file(
            ".vlayer.yaml",
            "acknowledgedFindings:\n"
            "  - pattern: 'src/**'\n"
            "    reason: fixtures\n"
            "    acknowledgedBy: sec\n"
            "    acknowledgedAt: 2025-01-15\n"
            "  - pattern: 'lib/**'\n",
        )

        config = VlayerConfig.load(temp_dir)

        assert len(config.acknowledged_findings) == 1
        assert config.acknowledgment_errors
        assert all(e.startswith("acknowledgedFindings[1]") for e in config.acknowledgment_errors)

    def test_ignore_paths(self):
        """Test substring and wildcard ignore paths."""
        config = VlayerConfig(ignore_paths=["legacy/", "gen/*.py"])

        assert config.is_path_ignored("src/legacy/old.py")
        assert config.is_path_ignored("gen/models.py")
        assert not config.is_path_ignored("src/app.py")

    def test_generated_config_is_valid(self, temp_dir):
        """Test the init template parses back into a config."""
        (temp_dir / ".vlayer.yaml").write_text(generate_default_config())

        assert isinstance(yaml.safe_load(generate_default_config()), dict)
        config = VlayerConfig.load(temp_dir)
        assert config.exclude == ["**/*.min.js"]
        assert config.acknowledged_findings == []
