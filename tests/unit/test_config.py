"""Tests for configuration loading."""

from stackflow.config import StackflowConfig, load_config
from stackflow.services import get_stack_api
from stackflow.services.boto3_api import Boto3StackApi


def test_load_config_from_env(tmp_path, monkeypatch):
    config_path = tmp_path / "config.yaml"
    config_path.write_text(
        """
aws:
  region: eu-west-1
  waiter_delay: 2
cleanup:
  max_attempts: 5
  initial_delay: 0.5
feature_flags:
  enhanced_diagnostics_regions: [eu-west-1]
workflows:
  retention_seconds: 60
log_level: DEBUG
"""
    )
    monkeypatch.setenv("STACKFLOW_CONFIG", str(config_path))

    config = load_config()
    assert config.aws.region == "eu-west-1"
    assert config.aws.waiter_delay == 2
    assert config.cleanup.max_attempts == 5
    assert config.feature_flags.enhanced_diagnostics_regions == ["eu-west-1"]
    assert config.workflows.retention_seconds == 60
    assert config.log_level == "DEBUG"


def test_missing_config_uses_defaults(tmp_path, monkeypatch):
    monkeypatch.delenv("STACKFLOW_REGION", raising=False)
    monkeypatch.delenv("AWS_REGION", raising=False)
    monkeypatch.delenv("AWS_PROFILE", raising=False)

    config = load_config(str(tmp_path / "absent.yaml"))
    assert config == StackflowConfig()
    assert config.workflows.retention_seconds == 3600
    assert config.cleanup.max_attempts == 3


def test_env_region_fills_unset_region_only(tmp_path, monkeypatch):
    monkeypatch.setenv("AWS_REGION", "ap-south-1")
    monkeypatch.setenv("AWS_PROFILE", "dev")
    assert load_config(str(tmp_path / "absent.yaml")).aws.region == "ap-south-1"
    assert load_config(str(tmp_path / "absent.yaml")).aws.profile == "dev"

    config_path = tmp_path / "config.yaml"
    config_path.write_text("aws:\n  region: us-west-2\n")
    assert load_config(str(config_path)).aws.region == "us-west-2"


def test_cleanup_retry_options_carry_operation_name():
    options = StackflowConfig().cleanup.retry_options("Cleanup")
    assert options.operation_name == "Cleanup"
    assert options.max_attempts == 3
    assert options.initial_delay == 1.0


def test_get_stack_api_uses_config(monkeypatch):
    monkeypatch.delenv("AWS_PROFILE", raising=False)
    config = StackflowConfig()
    config.aws.region = "eu-central-1"

    api = get_stack_api(config)
    assert isinstance(api, Boto3StackApi)
    assert api.region == "eu-central-1"
