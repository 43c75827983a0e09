"""boto3-backed implementation of ``StackApi``."""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Callable, Dict, Optional

import boto3
from botocore.config import Config
from botocore.exceptions import WaiterError

from .stack_api import StackApi, WaiterResult, WaiterState

logger = logging.getLogger(__name__)


def _drop_none(params: Dict[str, Any]) -> Dict[str, Any]:
    return {k: v for k, v in params.items() if v is not None}


class Boto3StackApi(StackApi):
    """Runs blocking boto3 calls on a worker thread.

    Waiters never raise on a bad terminal state; the failure is returned as a
    ``WaiterResult`` carrying the last API response.
    """

    def __init__(
        self,
        region: Optional[str] = None,
        profile: Optional[str] = None,
        waiter_delay: int = 5,
        waiter_max_attempts: int = 720,
        session: Optional[boto3.session.Session] = None,
    ) -> None:
        self._session = session or boto3.session.Session(
            region_name=region, profile_name=profile
        )
        self.region = region or self._session.region_name
        client_config = Config(retries={"max_attempts": 5, "mode": "standard"})
        self._cfn = self._session.client(
            "cloudformation", region_name=self.region, config=client_config
        )
        self._s3 = self._session.client("s3", region_name=self.region, config=client_config)
        self._waiter_config = {"Delay": waiter_delay, "MaxAttempts": waiter_max_attempts}

    # ------------------------------------------------------------------
    # Helper methods
    async def _call(self, method: Callable[..., Any], **params: Any) -> Any:
        return await asyncio.to_thread(method, **_drop_none(params))

    async def _wait(self, waiter_name: str, **params: Any) -> WaiterResult:
        waiter = self._cfn.get_waiter(waiter_name)
        try:
            await asyncio.to_thread(
                waiter.wait, WaiterConfig=self._waiter_config, **_drop_none(params)
            )
        except WaiterError as e:
            state = (
                WaiterState.TIMEOUT
                if "Max attempts exceeded" in str(e)
                else WaiterState.FAILURE
            )
            logger.debug(f"Waiter {waiter_name} finished with {state.value}: {e}")
            return WaiterResult(state=state, reason=e.last_response or str(e))
        return WaiterResult(state=WaiterState.SUCCESS)

    # ------------------------------------------------------------------
    # StackApi
    async def describe_stacks(self, stack_name: str) -> Dict[str, Any]:
        return await self._call(self._cfn.describe_stacks, StackName=stack_name)

    async def create_change_set(self, **params: Any) -> Dict[str, Any]:
        return await self._call(self._cfn.create_change_set, **params)

    async def describe_change_set(
        self, stack_name: str, change_set_name: str, include_property_values: bool = True
    ) -> Dict[str, Any]:
        result: Optional[Dict[str, Any]] = None
        changes: list = []
        next_token: Optional[str] = None
        while True:
            response = await self._call(
                self._cfn.describe_change_set,
                StackName=stack_name,
                ChangeSetName=change_set_name,
                IncludePropertyValues=include_property_values,
                NextToken=next_token,
            )
            if result is None:
                result = response
            changes.extend(response.get("Changes", []))
            next_token = response.get("NextToken")
            if not next_token:
                break

        result["Changes"] = changes
        result.pop("NextToken", None)
        return result

    async def list_change_sets(
        self, stack_name: str, next_token: Optional[str] = None
    ) -> Dict[str, Any]:
        return await self._call(
            self._cfn.list_change_sets, StackName=stack_name, NextToken=next_token
        )

    async def execute_change_set(
        self,
        stack_name: str,
        change_set_name: str,
        client_request_token: Optional[str] = None,
    ) -> Dict[str, Any]:
        return await self._call(
            self._cfn.execute_change_set,
            StackName=stack_name,
            ChangeSetName=change_set_name,
            ClientRequestToken=client_request_token,
        )

    async def delete_change_set(self, stack_name: str, change_set_name: str) -> None:
        await self._call(
            self._cfn.delete_change_set, StackName=stack_name, ChangeSetName=change_set_name
        )

    async def delete_stack(self, stack_name: str) -> None:
        await self._call(self._cfn.delete_stack, StackName=stack_name)

    async def wait_until_change_set_created(
        self, stack_name: str, change_set_name: str
    ) -> WaiterResult:
        return await self._wait(
            "change_set_create_complete", StackName=stack_name, ChangeSetName=change_set_name
        )

    async def wait_until_stack_created(self, stack_name: str) -> WaiterResult:
        return await self._wait("stack_create_complete", StackName=stack_name)

    async def wait_until_stack_updated(self, stack_name: str) -> WaiterResult:
        return await self._wait("stack_update_complete", StackName=stack_name)

    async def wait_until_stack_imported(self, stack_name: str) -> WaiterResult:
        return await self._wait("stack_import_complete", StackName=stack_name)

    async def wait_until_stack_deleted(self, stack_name: str) -> WaiterResult:
        return await self._wait("stack_delete_complete", StackName=stack_name)

    async def describe_events(
        self,
        stack_name: str,
        change_set_name: Optional[str] = None,
        failed_events_only: bool = False,
        next_token: Optional[str] = None,
    ) -> Dict[str, Any]:
        return await self._call(
            self._cfn.describe_events,
            StackName=stack_name,
            ChangeSetName=change_set_name,
            Filters={"FailedEvents": True} if failed_events_only else None,
            NextToken=next_token,
        )

    async def describe_stack_events(
        self, stack_name: str, next_token: Optional[str] = None
    ) -> Dict[str, Any]:
        return await self._call(
            self._cfn.describe_stack_events, StackName=stack_name, NextToken=next_token
        )

    async def upload_template(self, bucket: str, key: str, body: str) -> str:
        await self._call(
            self._s3.put_object, Bucket=bucket, Key=key, Body=body.encode("utf-8")
        )
        region = self.region or "us-east-1"
        logger.info(f"Uploaded template to s3://{bucket}/{key}")
        return f"https://{bucket}.s3.{region}.amazonaws.com/{key}"
