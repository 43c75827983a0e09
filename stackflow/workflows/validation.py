"""Validation runs: wait for the change set, report findings, clean up."""

from __future__ import annotations

import logging
from typing import List

from ..constants import VALIDATION_V2_NAME
from ..contracts import (
    ChangeSetType,
    StackActionPhase,
    StackActionState,
    ValidationDetail,
    WaitResult,
)
from ..errors import extract_error_message
from ..operations import (
    delete_change_set,
    delete_stack_and_change_set,
    fetch_all_failure_events,
    is_stack_in_review,
    parse_validation_events,
    publish_validation_diagnostics,
    wait_for_change_set,
)
from .engine import RunContext, RunStrategy, StackActionWorkflow

logger = logging.getLogger(__name__)


async def await_validation(workflow: StackActionWorkflow, context: RunContext) -> WaitResult:
    """Wait for the change set and mirror the outcome onto the registry entry."""
    c = workflow.components
    result = await wait_for_change_set(
        c.stack_api, context.request.stack_name, context.change_set_name
    )
    validation = c.validations.get(context.request.stack_name)
    if validation is not None:
        validation.set_phase(result.phase)
        if result.changes is not None:
            validation.set_changes(result.changes)
    return result


async def collect_validation_details(
    workflow: StackActionWorkflow, context: RunContext, validation_name: str
) -> List[ValidationDetail]:
    """Fetch failed validation events, record them and publish diagnostics.

    Failures here never fail the run; they are logged and an empty list is
    returned.
    """
    c = workflow.components
    request = context.request
    try:
        events = await fetch_all_failure_events(
            c.stack_api, request.stack_name, context.change_set_name
        )
        details = parse_validation_events(events, validation_name)
    except Exception as e:
        logger.error(
            f"Failed to fetch validation events for workflow {request.id}: {extract_error_message(e)}"
        )
        return []

    workflow.append_validation_details(request.id, details)
    validation = c.validations.get(request.stack_name)
    if validation is not None:
        validation.set_validation_details(details)

    try:
        await publish_validation_diagnostics(
            request.uri, details, c.syntax_trees, c.diagnostics
        )
    except Exception as e:
        logger.error(
            f"Failed to publish validation diagnostics for {request.uri}: {extract_error_message(e)}"
        )
    return details


class ValidationRun(RunStrategy):
    """Validate a change set without executing it, then delete it."""

    name = "validation"

    async def run(self, workflow: StackActionWorkflow, context: RunContext) -> None:
        c = workflow.components
        workflow_id = context.request.id
        result = await await_validation(workflow, context)

        updates = {"phase": result.phase, "state": result.state, "changes": result.changes}
        if result.state == StackActionState.FAILED:
            updates["failure_reason"] = result.failure_reason
        workflow.update(workflow_id, **updates)

        if c.feature_flags.is_enabled(c.region):
            await collect_validation_details(workflow, context, VALIDATION_V2_NAME)

    async def cleanup(self, workflow: StackActionWorkflow, context: RunContext) -> None:
        request = context.request
        if request.keep_change_set:
            logger.info(f"Keeping change set {context.change_set_name} for workflow {request.id}")
            return

        current = workflow.store.get(request.id)
        if current is None:
            return

        c = workflow.components
        if await self._left_in_review(workflow, context):
            await delete_stack_and_change_set(c.stack_api, current, c.cleanup_retry)
        else:
            await delete_change_set(c.stack_api, current, c.cleanup_retry)

    @staticmethod
    async def _left_in_review(workflow: StackActionWorkflow, context: RunContext) -> bool:
        # CREATE and IMPORT change sets on a new stack leave it in review.
        if context.change_set_type == ChangeSetType.UPDATE:
            return False
        try:
            return await is_stack_in_review(
                workflow.components.stack_api, context.request.stack_name
            )
        except Exception as e:
            logger.debug(
                f"Could not check review status of {context.request.stack_name}: "
                f"{extract_error_message(e)}"
            )
            return False


def validation_failed(result: WaitResult) -> bool:
    return result.phase == StackActionPhase.VALIDATION_FAILED
