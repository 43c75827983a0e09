from __future__ import annotations

import os
from typing import List, Optional

import yaml
from pydantic import BaseModel, Field

from .utils.retry import RetryOptions


class AwsConfig(BaseModel):
    """Connection settings for the stack API."""

    region: Optional[str] = None
    profile: Optional[str] = None
    waiter_delay: int = 5
    waiter_max_attempts: int = 720


class CleanupConfig(BaseModel):
    """Retry bounds for deleting change sets and review stacks."""

    max_attempts: int = 3
    initial_delay: float = 1.0
    max_delay: float = 30.0
    backoff_multiplier: float = 2.0
    jitter_fraction: float = 0.0
    total_timeout: Optional[float] = None

    def retry_options(self, operation_name: str) -> RetryOptions:
        return RetryOptions(operation_name=operation_name, **self.model_dump())


class FeatureFlagConfig(BaseModel):
    enhanced_diagnostics_regions: List[str] = Field(default_factory=list)


class WorkflowConfig(BaseModel):
    """Workflow table retention and deletion polling settings."""

    retention_seconds: Optional[float] = 3600.0
    deletion_poll_interval: float = 1.0
    deletion_timeout: float = 300.0
    deployment_event_limit: int = 50


class StackflowConfig(BaseModel):
    """Top-level configuration model."""

    aws: AwsConfig = Field(default_factory=AwsConfig)
    cleanup: CleanupConfig = Field(default_factory=CleanupConfig)
    feature_flags: FeatureFlagConfig = Field(default_factory=FeatureFlagConfig)
    workflows: WorkflowConfig = Field(default_factory=WorkflowConfig)
    log_level: str = "INFO"


def load_config(path: Optional[str] = None) -> StackflowConfig:
    """Load configuration from YAML file.

    Args:
        path: Optional path to config file. Falls back to STACKFLOW_CONFIG env
            variable or 'config.yaml' in the current directory.
    """

    config_path = path or os.getenv("STACKFLOW_CONFIG", "config.yaml")
    if os.path.exists(config_path):
        with open(config_path) as f:
            data = yaml.safe_load(f) or {}
        config = StackflowConfig(**data)
    else:
        config = StackflowConfig()

    env_region = os.getenv("STACKFLOW_REGION") or os.getenv("AWS_REGION")
    if env_region and config.aws.region is None:
        config.aws.region = env_region
    env_profile = os.getenv("AWS_PROFILE")
    if env_profile and config.aws.profile is None:
        config.aws.profile = env_profile
    return config
