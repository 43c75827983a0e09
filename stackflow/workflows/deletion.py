"""Deleting a change set created by an earlier run."""

from __future__ import annotations

import asyncio
import logging
import time
from typing import Callable, Optional

from ..contracts import (
    DeletionRequest,
    DescribeStatusResult,
    StackActionPhase,
    StackActionResult,
    StackActionState,
    StatusResult,
    WorkflowState,
)
from ..errors import extract_error_message, normalize_waiter_reason
from ..operations import is_stack_in_review, map_changes
from ..persistence import WorkflowStore, get_store
from .engine import DetachedRuns, WorkflowComponents, require_workflow

logger = logging.getLogger(__name__)

_NOT_FOUND_MARKERS = ("ChangeSetNotFound", "does not exist")


class ChangeSetDeletionWorkflow:
    """Delete a change set, or the review stack holding it if it is the only one."""

    def __init__(
        self,
        components: WorkflowComponents,
        store: Optional[WorkflowStore] = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.components = components
        self.store = store or get_store(components.workflow_retention)
        self._clock = clock
        self._runs = DetachedRuns("deletion")

    async def start(self, request: DeletionRequest) -> StackActionResult:
        api = self.components.stack_api
        self.store.evict_finished()

        response = await api.describe_change_set(
            request.stack_name, request.change_set_name, include_property_values=True
        )
        delete_stack = await self._should_delete_stack(request.stack_name)
        if delete_stack:
            await api.delete_stack(request.stack_name)
        else:
            await api.delete_change_set(request.stack_name, request.change_set_name)

        self.store.create(
            WorkflowState(
                id=request.id,
                stack_name=request.stack_name,
                change_set_name=request.change_set_name,
                phase=StackActionPhase.DELETION_IN_PROGRESS,
                state=StackActionState.IN_PROGRESS,
                changes=map_changes(response.get("Changes")),
            )
        )

        run = self._await_stack_deletion(request) if delete_stack else self._await_change_set_deletion(request)
        self._runs.spawn(request.id, run)
        logger.info(
            f"Started deletion {request.id} of change set {request.change_set_name} "
            f"({'with' if delete_stack else 'without'} stack {request.stack_name})"
        )
        return StackActionResult(
            id=request.id,
            change_set_name=request.change_set_name,
            stack_name=request.stack_name,
        )

    def get_status(self, workflow_id: str) -> StatusResult:
        return require_workflow(self.store, workflow_id).to_status()

    def describe_status(self, workflow_id: str) -> DescribeStatusResult:
        return require_workflow(self.store, workflow_id).to_description()

    async def wait(self, workflow_id: str) -> None:
        await self._runs.wait(workflow_id)

    async def drain(self) -> None:
        await self._runs.drain()

    async def _should_delete_stack(self, stack_name: str) -> bool:
        try:
            if not await is_stack_in_review(self.components.stack_api, stack_name):
                return False
        except Exception as e:
            logger.debug(f"Could not check review status of {stack_name}: {extract_error_message(e)}")
            return False

        response = await self.components.stack_api.list_change_sets(stack_name)
        has_other_change_sets = len(response.get("Summaries", [])) > 1 or bool(
            response.get("NextToken")
        )
        return not has_other_change_sets

    async def _await_change_set_deletion(self, request: DeletionRequest) -> None:
        api = self.components.stack_api
        deadline = self._clock() + self.components.deletion_timeout
        try:
            while self._clock() < deadline:
                try:
                    await api.describe_change_set(
                        request.stack_name, request.change_set_name, include_property_values=False
                    )
                except Exception as e:
                    message = extract_error_message(e)
                    if any(marker in message for marker in _NOT_FOUND_MARKERS):
                        self._finish(request.id, StackActionPhase.DELETION_COMPLETE)
                    else:
                        logger.warning(
                            f"Change set {request.change_set_name} deletion check failed: {message}"
                        )
                        self._finish(request.id, StackActionPhase.DELETION_FAILED, message)
                    return
                await asyncio.sleep(self.components.deletion_poll_interval)

            self._finish(request.id, StackActionPhase.DELETION_FAILED, "Change set deletion timeout")
        except Exception as e:
            logger.exception(f"Deletion workflow {request.id} failed")
            self._finish(request.id, StackActionPhase.DELETION_FAILED, extract_error_message(e))

    async def _await_stack_deletion(self, request: DeletionRequest) -> None:
        try:
            result = await self.components.stack_api.wait_until_stack_deleted(request.stack_name)
            if result.succeeded:
                self._finish(request.id, StackActionPhase.DELETION_COMPLETE)
            else:
                reason = normalize_waiter_reason(result.reason)
                self._finish(
                    request.id,
                    StackActionPhase.DELETION_FAILED,
                    reason or "Unknown stack deletion failure",
                )
        except Exception as e:
            logger.exception(f"Deletion workflow {request.id} failed")
            self._finish(request.id, StackActionPhase.DELETION_FAILED, extract_error_message(e))

    def _finish(
        self, workflow_id: str, phase: StackActionPhase, failure_reason: Optional[str] = None
    ) -> None:
        if phase == StackActionPhase.DELETION_COMPLETE:
            self.store.merge(workflow_id, phase=phase, state=StackActionState.SUCCESSFUL)
        else:
            self.store.merge(
                workflow_id,
                phase=phase,
                state=StackActionState.FAILED,
                failure_reason=failure_reason,
            )
