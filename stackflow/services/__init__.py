"""Remote service clients."""

from __future__ import annotations

from typing import TYPE_CHECKING, Optional

from .stack_api import StackApi, WaiterResult, WaiterState

if TYPE_CHECKING:
    from ..config import StackflowConfig


def get_stack_api(config: Optional["StackflowConfig"] = None) -> StackApi:
    """Factory for the configured stack API client."""
    from ..config import load_config
    from .boto3_api import Boto3StackApi

    config = config or load_config()
    return Boto3StackApi(
        region=config.aws.region,
        profile=config.aws.profile,
        waiter_delay=config.aws.waiter_delay,
        waiter_max_attempts=config.aws.waiter_max_attempts,
    )


__all__ = ["StackApi", "WaiterResult", "WaiterState", "get_stack_api"]
