"""Stateless operations composed by the stack action workflows."""

from __future__ import annotations

import logging
import uuid
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from lsprotocol.types import Diagnostic, DiagnosticSeverity, Range

from .constants import (
    CFN_VALIDATION_SOURCE,
    CHANGE_SET_NAME_PREFIX,
    RESOURCES_SECTION,
    REVIEW_IN_PROGRESS,
    VALIDATION_ERROR_EVENT,
    VALIDATION_FAILURE_MODE_FAIL,
)
from .contracts import (
    ChangeSetType,
    DeploymentEvent,
    ResourceChange,
    StackActionPhase,
    StackActionState,
    StackChange,
    ValidationDetail,
    ValidationSeverity,
    WaitResult,
    WorkflowRequest,
    WorkflowState,
    utcnow,
)
from .diagnostics import DiagnosticCoordinator
from .documents import Document, DocumentStore
from .errors import (
    DocumentNotFoundError,
    StackNotFoundError,
    extract_error_message,
    normalize_waiter_reason,
)
from .services.stack_api import StackApi, WaiterResult
from .syntaxtree import SyntaxTree, SyntaxTreeProvider, split_path
from .utils.retry import RetryOptions, retry_with_backoff

logger = logging.getLogger(__name__)

_DEPLOYMENT_WAITERS = {
    ChangeSetType.CREATE: "wait_until_stack_created",
    ChangeSetType.IMPORT: "wait_until_stack_imported",
    ChangeSetType.UPDATE: "wait_until_stack_updated",
}


# ----------------------------------------------------------------------
# Change set creation
def resolve_document(documents: DocumentStore, uri: str) -> Document:
    document = documents.get(uri)
    if document is None:
        raise DocumentNotFoundError(uri)
    return document


async def is_stack_in_review(api: StackApi, stack_name: str) -> bool:
    """Return ``True`` if the stack only exists because a change set created it."""
    response = await api.describe_stacks(stack_name)
    stack = next(
        (s for s in response.get("Stacks", []) if s.get("StackName") == stack_name),
        None,
    )
    if stack is None:
        raise StackNotFoundError(stack_name)
    return stack.get("StackStatus") == REVIEW_IN_PROGRESS


async def determine_change_set_type(
    api: StackApi, request: WorkflowRequest
) -> ChangeSetType:
    """Pick IMPORT, CREATE or UPDATE for ``request``.

    A failed stack lookup means the stack does not exist yet.
    """
    if request.resources_to_import:
        return ChangeSetType.IMPORT
    try:
        in_review = await is_stack_in_review(api, request.stack_name)
    except Exception as e:
        logger.debug(
            f"Stack {request.stack_name} not describable, using CREATE: {extract_error_message(e)}"
        )
        return ChangeSetType.CREATE
    return ChangeSetType.CREATE if in_review else ChangeSetType.UPDATE


def build_change_set_name(workflow_id: str) -> str:
    return f"{CHANGE_SET_NAME_PREFIX}-{workflow_id}-{uuid.uuid4()}"


async def create_change_set(
    api: StackApi,
    request: WorkflowRequest,
    document: Document,
    change_set_type: ChangeSetType,
) -> str:
    """Submit a change set for ``document`` and return its generated name."""
    change_set_name = build_change_set_name(request.id)

    params: Dict[str, Any] = {
        "StackName": request.stack_name,
        "ChangeSetName": change_set_name,
        "ChangeSetType": change_set_type.value,
        "Parameters": [p.to_api() for p in request.parameters] or None,
        "Capabilities": list(request.capabilities) or None,
        "ResourcesToImport": [r.to_api() for r in request.resources_to_import] or None,
        "DeploymentMode": request.deployment_mode.value if request.deployment_mode else None,
    }
    if request.upload is not None:
        params["TemplateURL"] = await api.upload_template(
            request.upload.bucket, request.upload.key, document.body
        )
    else:
        params["TemplateBody"] = document.body

    await api.create_change_set(**params)
    logger.info(
        f"Created {change_set_type.value} change set {change_set_name} for stack {request.stack_name}"
    )
    return change_set_name


# ----------------------------------------------------------------------
# Terminal-state waits
def map_changes(changes: Optional[List[Dict[str, Any]]]) -> Optional[List[StackChange]]:
    if changes is None:
        return None

    mapped = []
    for change in changes:
        raw = change.get("ResourceChange")
        resource_change = None
        if raw is not None:
            resource_change = ResourceChange(
                action=raw.get("Action"),
                logical_resource_id=raw.get("LogicalResourceId"),
                physical_resource_id=raw.get("PhysicalResourceId"),
                resource_type=raw.get("ResourceType"),
                replacement=raw.get("Replacement"),
                scope=raw.get("Scope"),
                before_context=raw.get("BeforeContext"),
                after_context=raw.get("AfterContext"),
                details=raw.get("Details"),
            )
        mapped.append(StackChange(type=change.get("Type"), resource_change=resource_change))
    return mapped


async def wait_for_change_set(
    api: StackApi, stack_name: str, change_set_name: str
) -> WaitResult:
    """Wait for change set creation; never raises."""
    try:
        result = await api.wait_until_change_set_created(stack_name, change_set_name)
        if result.succeeded:
            response = await api.describe_change_set(
                stack_name, change_set_name, include_property_values=True
            )
            return WaitResult(
                phase=StackActionPhase.VALIDATION_COMPLETE,
                state=StackActionState.SUCCESSFUL,
                changes=map_changes(response.get("Changes")),
                next_token=response.get("NextToken"),
            )

        reason = normalize_waiter_reason(result.reason)
        logger.warning(
            f"Validation failed for change set {change_set_name}: {reason or 'Unknown validation failure'}"
        )
        return WaitResult(
            phase=StackActionPhase.VALIDATION_FAILED,
            state=StackActionState.FAILED,
            failure_reason=reason,
        )
    except Exception as e:
        logger.exception(f"Validation of change set {change_set_name} failed with error")
        return WaitResult(
            phase=StackActionPhase.VALIDATION_FAILED,
            state=StackActionState.FAILED,
            failure_reason=extract_error_message(e),
        )


async def wait_for_deployment(
    api: StackApi, stack_name: str, change_set_type: ChangeSetType
) -> WaitResult:
    """Wait for the stack operation matching ``change_set_type``; never raises."""
    try:
        waiter = getattr(api, _DEPLOYMENT_WAITERS[change_set_type])
        result: WaiterResult = await waiter(stack_name)
        if result.succeeded:
            return WaitResult(
                phase=StackActionPhase.DEPLOYMENT_COMPLETE,
                state=StackActionState.SUCCESSFUL,
            )

        reason = normalize_waiter_reason(result.reason)
        logger.warning(
            f"Deployment of stack {stack_name} failed: {reason or 'Unknown deployment failure'}"
        )
        return WaitResult(
            phase=StackActionPhase.DEPLOYMENT_FAILED,
            state=StackActionState.FAILED,
            failure_reason=reason,
        )
    except Exception as e:
        logger.exception(f"Deployment of stack {stack_name} failed with error")
        return WaitResult(
            phase=StackActionPhase.DEPLOYMENT_FAILED,
            state=StackActionState.FAILED,
            failure_reason=extract_error_message(e),
        )


# ----------------------------------------------------------------------
# Validation events and diagnostics
async def fetch_all_failure_events(
    api: StackApi, stack_name: str, change_set_name: str
) -> List[Dict[str, Any]]:
    """Collect every failed operation event for a change set across all pages."""
    events: List[Dict[str, Any]] = []
    next_token: Optional[str] = None
    while True:
        response = await api.describe_events(
            stack_name,
            change_set_name=change_set_name,
            failed_events_only=True,
            next_token=next_token,
        )
        events.extend(response.get("OperationEvents", []))
        next_token = response.get("NextToken")
        if not next_token:
            return events


def parse_validation_events(
    events: List[Dict[str, Any]], validation_name: str
) -> List[ValidationDetail]:
    """Turn validation-error operation events into ``ValidationDetail`` rows."""
    details = []
    for event in events:
        if event.get("EventType") != VALIDATION_ERROR_EVENT:
            continue
        message = ": ".join(
            part
            for part in (event.get("ValidationName"), event.get("ValidationStatusReason"))
            if part
        )
        severity = (
            ValidationSeverity.ERROR
            if event.get("ValidationFailureMode") == VALIDATION_FAILURE_MODE_FAIL
            else ValidationSeverity.INFO
        )
        details.append(
            ValidationDetail(
                timestamp=event.get("Timestamp") or utcnow(),
                validation_name=validation_name,
                logical_id=event.get("LogicalResourceId"),
                message=message,
                severity=severity,
                resource_property_path=event.get("ValidationPath"),
            )
        )
    return details


def locate_validation_detail(tree: SyntaxTree, detail: ValidationDetail) -> Optional[Range]:
    """Find the span for a finding, falling back to the whole resource."""
    if detail.resource_property_path:
        span = tree.resolve_path(split_path(detail.resource_property_path))
        if span is not None:
            return span
    if detail.logical_id:
        return tree.resolve_path([RESOURCES_SECTION, detail.logical_id])
    return None


async def publish_validation_diagnostics(
    uri: str,
    details: List[ValidationDetail],
    syntax_trees: SyntaxTreeProvider,
    coordinator: DiagnosticCoordinator,
) -> List[Diagnostic]:
    """Publish located findings as dry-run diagnostics; unlocated ones are dropped."""
    tree = syntax_trees.get_tree(uri)
    if tree is None:
        logger.error(f"No syntax tree found for {uri}")
        return []

    diagnostics = []
    for detail in details:
        span = locate_validation_detail(tree, detail)
        if span is None:
            logger.debug(f"No source span for finding '{detail.message}', skipping")
            continue
        diagnostics.append(
            Diagnostic(
                range=span,
                message=detail.message,
                severity=(
                    DiagnosticSeverity.Error
                    if detail.severity == ValidationSeverity.ERROR
                    else DiagnosticSeverity.Warning
                ),
                source=CFN_VALIDATION_SOURCE,
                data=str(uuid.uuid4()),
            )
        )

    await coordinator.publish(CFN_VALIDATION_SOURCE, uri, diagnostics)
    return diagnostics


# ----------------------------------------------------------------------
# Cleanup
def _log_cleanup_error(error: BaseException, workflow: WorkflowState, operation: str) -> None:
    logger.warning(
        f"Failed to cleanup {operation} {workflow.id} {workflow.change_set_name}: "
        f"{extract_error_message(error)}"
    )


async def delete_change_set(
    api: StackApi, workflow: WorkflowState, retry: RetryOptions
) -> bool:
    """Delete the workflow's change set with retries; failures are only logged."""
    options = retry.model_copy(
        update={"operation_name": f"Delete change set {workflow.change_set_name}"}
    )
    try:
        await retry_with_backoff(
            lambda: api.delete_change_set(workflow.stack_name, workflow.change_set_name),
            options,
        )
    except Exception as e:
        _log_cleanup_error(e, workflow, "change set")
        return False
    logger.info(f"Deleted change set {workflow.change_set_name}")
    return True


async def delete_stack_and_change_set(
    api: StackApi, workflow: WorkflowState, retry: RetryOptions
) -> bool:
    """Delete the change set, then the review stack it left behind."""
    await delete_change_set(api, workflow, retry)

    options = retry.model_copy(update={"operation_name": f"Delete stack {workflow.stack_name}"})
    try:
        await retry_with_backoff(lambda: api.delete_stack(workflow.stack_name), options)
    except Exception as e:
        _log_cleanup_error(e, workflow, "workflow resources")
        return False
    logger.info(f"Deleted review stack {workflow.stack_name}")
    return True


# ----------------------------------------------------------------------
# Deployment events
def _as_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


async def collect_deployment_events(
    api: StackApi, stack_name: str, since: Optional[datetime] = None, limit: int = 50
) -> List[DeploymentEvent]:
    """Return recent stack events, newest first, that happened after ``since``."""
    response = await api.describe_stack_events(stack_name)
    events = []
    for raw in response.get("StackEvents", []):
        event = DeploymentEvent(
            logical_resource_id=raw.get("LogicalResourceId"),
            resource_type=raw.get("ResourceType"),
            timestamp=raw.get("Timestamp"),
            resource_status=raw.get("ResourceStatus"),
            resource_status_reason=raw.get("ResourceStatusReason"),
            detailed_status=raw.get("DetailedStatus"),
        )
        if since is not None and event.timestamp is not None:
            if _as_utc(event.timestamp) < _as_utc(since):
                continue
        events.append(event)
        if len(events) >= limit:
            break
    return events
