"""Async interface to the remote stack orchestration API."""

from __future__ import annotations

from enum import Enum
from typing import Any, Dict, Optional, Protocol

from pydantic import BaseModel


class WaiterState(str, Enum):
    SUCCESS = "SUCCESS"
    FAILURE = "FAILURE"
    TIMEOUT = "TIMEOUT"
    ABORTED = "ABORTED"


class WaiterResult(BaseModel):
    """Terminal outcome of a waiter; ``reason`` is the raw failure payload."""

    state: WaiterState
    reason: Any = None

    @property
    def succeeded(self) -> bool:
        return self.state == WaiterState.SUCCESS


class StackApi(Protocol):
    """Operations consumed by the workflows.

    Request and response payloads use the CloudFormation API shapes
    (``StackName``, ``Changes``, ``OperationEvents`` ...).
    """

    region: Optional[str]

    async def describe_stacks(self, stack_name: str) -> Dict[str, Any]: ...

    async def create_change_set(self, **params: Any) -> Dict[str, Any]: ...

    async def describe_change_set(
        self, stack_name: str, change_set_name: str, include_property_values: bool = True
    ) -> Dict[str, Any]: ...

    async def list_change_sets(
        self, stack_name: str, next_token: Optional[str] = None
    ) -> Dict[str, Any]: ...

    async def execute_change_set(
        self,
        stack_name: str,
        change_set_name: str,
        client_request_token: Optional[str] = None,
    ) -> Dict[str, Any]: ...

    async def delete_change_set(self, stack_name: str, change_set_name: str) -> None: ...

    async def delete_stack(self, stack_name: str) -> None: ...

    async def wait_until_change_set_created(
        self, stack_name: str, change_set_name: str
    ) -> WaiterResult: ...

    async def wait_until_stack_created(self, stack_name: str) -> WaiterResult: ...

    async def wait_until_stack_updated(self, stack_name: str) -> WaiterResult: ...

    async def wait_until_stack_imported(self, stack_name: str) -> WaiterResult: ...

    async def wait_until_stack_deleted(self, stack_name: str) -> WaiterResult: ...

    async def describe_events(
        self,
        stack_name: str,
        change_set_name: Optional[str] = None,
        failed_events_only: bool = False,
        next_token: Optional[str] = None,
    ) -> Dict[str, Any]: ...

    async def describe_stack_events(
        self, stack_name: str, next_token: Optional[str] = None
    ) -> Dict[str, Any]: ...

    async def upload_template(self, bucket: str, key: str, body: str) -> str:
        """Stage ``body`` in object storage and return its template URL."""
        ...
