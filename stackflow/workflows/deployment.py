"""Deployment runs: validate, execute the change set, wait for the stack."""

from __future__ import annotations

import logging
from typing import Optional

from ..constants import DRY_RUN_VALIDATION_NAME, VALIDATION_V2_NAME
from ..contracts import (
    StackActionPhase,
    StackActionState,
    ValidationDetail,
    ValidationSeverity,
)
from ..errors import extract_error_message
from ..operations import collect_deployment_events, wait_for_deployment
from .engine import RunContext, RunStrategy, StackActionWorkflow
from .validation import await_validation, collect_validation_details, validation_failed

logger = logging.getLogger(__name__)


class DeploymentRun(RunStrategy):
    """Execute a validated change set.

    Nothing is deleted afterwards: the change set is consumed by execution,
    and a failed validation leaves it in place for inspection.
    """

    name = "deployment"

    def __init__(self, event_limit: Optional[int] = None) -> None:
        self._event_limit = event_limit

    async def run(self, workflow: StackActionWorkflow, context: RunContext) -> None:
        if not await self._validate(workflow, context):
            return

        c = workflow.components
        request = context.request
        try:
            await c.stack_api.execute_change_set(
                request.stack_name, context.change_set_name, client_request_token=request.id
            )
        except Exception as e:
            logger.exception(f"Failed to execute change set {context.change_set_name}")
            workflow.update(
                request.id,
                phase=StackActionPhase.DEPLOYMENT_FAILED,
                state=StackActionState.FAILED,
                failure_reason=extract_error_message(e),
            )
            return

        try:
            workflow.update(
                request.id,
                phase=StackActionPhase.DEPLOYMENT_IN_PROGRESS,
                state=StackActionState.IN_PROGRESS,
            )
            result = await wait_for_deployment(
                c.stack_api, request.stack_name, context.change_set_type
            )
            updates = {"phase": result.phase, "state": result.state}
            if result.state == StackActionState.FAILED:
                updates["failure_reason"] = result.failure_reason
            workflow.update(request.id, **updates)
        finally:
            await self._record_deployment_events(workflow, context)

    async def _validate(self, workflow: StackActionWorkflow, context: RunContext) -> bool:
        workflow_id = context.request.id
        result = await await_validation(workflow, context)
        workflow.update(workflow_id, phase=result.phase, changes=result.changes)

        await collect_validation_details(workflow, context, VALIDATION_V2_NAME)

        if validation_failed(result):
            reason = result.failure_reason or "Unknown validation failure"
            workflow.append_validation_details(
                workflow_id,
                [
                    ValidationDetail(
                        validation_name=DRY_RUN_VALIDATION_NAME,
                        message=f"Validation failed with reason: {reason}",
                        severity=ValidationSeverity.ERROR,
                    )
                ],
            )
            workflow.update(
                workflow_id,
                state=StackActionState.FAILED,
                failure_reason=result.failure_reason,
            )
            return False

        workflow.append_validation_details(
            workflow_id,
            [
                ValidationDetail(
                    validation_name=DRY_RUN_VALIDATION_NAME,
                    message="Validation succeeded",
                    severity=ValidationSeverity.INFO,
                )
            ],
        )
        return True

    async def _record_deployment_events(
        self, workflow: StackActionWorkflow, context: RunContext
    ) -> None:
        c = workflow.components
        workflow_id = context.request.id
        current = workflow.store.get(workflow_id)
        if current is None:
            return
        limit = self._event_limit or c.deployment_event_limit
        try:
            events = await collect_deployment_events(
                c.stack_api, context.request.stack_name, since=current.start_time, limit=limit
            )
            workflow.update(workflow_id, deployment_events=events)
        except Exception as e:
            logger.warning(
                f"Failed to collect deployment events for workflow {workflow_id}: "
                f"{extract_error_message(e)}"
            )
