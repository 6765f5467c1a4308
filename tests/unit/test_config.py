"""Tests for configuration module."""

import pytest
import yaml

from cost_observability.config.loader import _deep_merge, load_config
from cost_observability.config.schema import (
    Config,
    CostAnomalyDetectorConfig,
    LearningConfig,
    ResourceWasteDetectorConfig,
    SecurityRiskDetectorConfig,
)


class TestConfig:
    """Tests for Config schema."""

    def test_default_config(self):
        """Test that default config is valid."""
        config = Config()
        assert config.project_name == "aws-cost-observability"
        assert config.environment == "dev"
        assert config.aws.region == "us-east-1"
        assert config.demo_mode is False

    def test_config_from_dict(self, sample_config_dict):
        """Test creating config from dictionary."""
        config = Config(**sample_config_dict)
        assert config.project_name == "test-observability"
        assert config.detectors.cost_anomaly.thresholds.week_over_week_increase_percent == 30
        assert config.detectors.cost_anomaly.thresholds.monthly_budget_limit == 500
        assert config.detectors.resource_waste.enabled is False
        assert config.detectors.resource_waste.scan_period_days == 14
        assert config.detectors.security_risk.excluded_resources == ["sg-allowed"]
        assert config.projection.history_weeks == 6
        assert config.learning.timeout_seconds == 0.5

    def test_detector_defaults(self):
        """Test detector default thresholds."""
        cost = CostAnomalyDetectorConfig()
        assert cost.enabled is True
        assert cost.thresholds.week_over_week_increase_percent == 20
        assert cost.thresholds.monthly_budget_limit is None

        waste = ResourceWasteDetectorConfig()
        assert waste.scan_period_days == 7
        assert waste.thresholds.max_cpu_utilization_percent == 5
        assert waste.thresholds.max_snapshot_age_days == 90

        security = SecurityRiskDetectorConfig()
        assert security.severity == "critical"
        assert security.thresholds.max_open_ports_public == 0
        assert security.check_security_groups is True

    def test_learning_defaults(self):
        """Test learning store is off by default with a 2 second timeout."""
        config = LearningConfig()
        assert config.enabled is False
        assert config.table_name is None
        assert config.timeout_seconds == 2.0


class TestConfigValidation:
    """Tests for config validation."""

    def test_negative_threshold(self):
        """Test that a negative increase threshold raises error."""
        with pytest.raises(ValueError):
            CostAnomalyDetectorConfig(thresholds={"week_over_week_increase_percent": -5})

    def test_invalid_cpu_percent(self):
        """Test that CPU utilization above 100% raises error."""
        with pytest.raises(ValueError):
            ResourceWasteDetectorConfig(thresholds={"max_cpu_utilization_percent": 150})

    def test_invalid_timeout(self):
        """Test that a zero learning timeout raises error."""
        with pytest.raises(ValueError):
            LearningConfig(timeout_seconds=0)

    def test_invalid_history_weeks(self):
        """Test that zero history weeks raises error."""
        with pytest.raises(ValueError):
            Config(projection={"history_weeks": 0})


class TestLoadConfig:
    """Tests for YAML loading and overrides."""

    def test_deep_merge(self):
        """Test nested dictionaries merge with override precedence."""
        base = {"aws": {"region": "us-east-1", "budget_name": "a"}, "demo_mode": False}
        override = {"aws": {"region": "eu-west-1"}}

        merged = _deep_merge(base, override)

        assert merged == {"aws": {"region": "eu-west-1", "budget_name": "a"}, "demo_mode": False}
        assert base["aws"]["region"] == "us-east-1"

    def test_load_with_environment_override(self, tmp_path, monkeypatch, sample_config_dict):
        """Test config.{env}.yaml is merged over config.yaml."""
        for var in ("AWS_REGION", "MONTHLY_BUDGET", "LOG_LEVEL", "DEMO_MODE", "LEARNING_ENABLED"):
            monkeypatch.delenv(var, raising=False)

        (tmp_path / "config.yaml").write_text(yaml.safe_dump(sample_config_dict))
        (tmp_path / "config.prod.yaml").write_text(
            yaml.safe_dump({"detectors": {"resource_waste": {"enabled": True}}})
        )

        config = load_config(tmp_path, environment="prod")

        assert config.environment == "prod"
        assert config.aws.region == "eu-west-1"
        assert config.detectors.resource_waste.enabled is True
        assert config.detectors.resource_waste.scan_period_days == 14

    def test_env_var_overrides(self, tmp_path, monkeypatch):
        """Test environment variables win over YAML."""
        (tmp_path / "config.yaml").write_text(yaml.safe_dump({"aws": {"region": "us-east-1"}}))
        monkeypatch.setenv("AWS_REGION", "ap-southeast-2")
        monkeypatch.setenv("MONTHLY_BUDGET", "750")
        monkeypatch.setenv("LOG_LEVEL", "debug")
        monkeypatch.setenv("DEMO_MODE", "true")
        monkeypatch.setenv("LEARNING_TABLE_NAME", "learning-prod")

        config = load_config(tmp_path, environment="dev")

        assert config.aws.region == "ap-southeast-2"
        assert config.detectors.cost_anomaly.thresholds.monthly_budget_limit == 750.0
        assert config.logging.level == "DEBUG"
        assert config.demo_mode is True
        assert config.learning.table_name == "learning-prod"

    def test_missing_files_use_defaults(self, tmp_path, monkeypatch):
        """Test that an empty config directory gives default config."""
        for var in ("AWS_REGION", "MONTHLY_BUDGET", "LOG_LEVEL", "DEMO_MODE"):
            monkeypatch.delenv(var, raising=False)

        config = load_config(tmp_path, environment="staging")

        assert config.environment == "staging"
        assert config.project_name == "aws-cost-observability"
