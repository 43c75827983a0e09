"""Workflow engine shared by validation and deployment runs."""

from __future__ import annotations

import abc
import asyncio
import logging
from typing import Any, Coroutine, Dict, List, Optional

from pydantic import BaseModel

from ..config import StackflowConfig
from ..contracts import (
    PHASE_ORDER,
    ChangeSetType,
    DescribeStatusResult,
    StackActionPhase,
    StackActionResult,
    StackActionState,
    StatusResult,
    ValidationDetail,
    WorkflowRequest,
    WorkflowState,
)
from ..diagnostics import DiagnosticCoordinator
from ..documents import DocumentStore
from ..errors import WorkflowNotFoundError, extract_error_message
from ..featureflags import FeatureFlagProvider, RegionFeatureFlag
from ..operations import create_change_set, determine_change_set_type, resolve_document
from ..persistence import WorkflowStore, get_store
from ..registry import Validation, ValidationRegistry
from ..services.stack_api import StackApi
from ..syntaxtree import SyntaxTreeProvider
from ..utils.retry import RetryOptions

logger = logging.getLogger(__name__)


class WorkflowComponents:
    """Collaborators shared by every workflow, constructed once at startup."""

    def __init__(
        self,
        stack_api: StackApi,
        documents: DocumentStore,
        syntax_trees: SyntaxTreeProvider,
        diagnostics: DiagnosticCoordinator,
        validations: Optional[ValidationRegistry] = None,
        feature_flags: Optional[FeatureFlagProvider] = None,
        cleanup_retry: Optional[RetryOptions] = None,
        region: Optional[str] = None,
        workflow_retention: Optional[float] = None,
        deployment_event_limit: int = 50,
        deletion_poll_interval: float = 1.0,
        deletion_timeout: float = 300.0,
    ) -> None:
        self.stack_api = stack_api
        self.documents = documents
        self.syntax_trees = syntax_trees
        self.diagnostics = diagnostics
        self.validations = validations or ValidationRegistry()
        self.feature_flags = feature_flags or RegionFeatureFlag()
        self.cleanup_retry = cleanup_retry or RetryOptions(operation_name="Cleanup")
        self.region = region or getattr(stack_api, "region", None)
        self.workflow_retention = workflow_retention
        self.deployment_event_limit = deployment_event_limit
        self.deletion_poll_interval = deletion_poll_interval
        self.deletion_timeout = deletion_timeout

    @classmethod
    def from_config(
        cls,
        config: StackflowConfig,
        stack_api: StackApi,
        documents: DocumentStore,
        syntax_trees: SyntaxTreeProvider,
        diagnostics: DiagnosticCoordinator,
    ) -> "WorkflowComponents":
        return cls(
            stack_api=stack_api,
            documents=documents,
            syntax_trees=syntax_trees,
            diagnostics=diagnostics,
            feature_flags=RegionFeatureFlag(config.feature_flags.enhanced_diagnostics_regions),
            cleanup_retry=config.cleanup.retry_options("Cleanup"),
            region=config.aws.region,
            workflow_retention=config.workflows.retention_seconds,
            deployment_event_limit=config.workflows.deployment_event_limit,
            deletion_poll_interval=config.workflows.deletion_poll_interval,
            deletion_timeout=config.workflows.deletion_timeout,
        )


class RunContext(BaseModel):
    """Everything a detached run needs besides the engine itself."""

    request: WorkflowRequest
    change_set_name: str
    change_set_type: ChangeSetType


class RunStrategy(metaclass=abc.ABCMeta):
    """Body of a detached run; the engine owns start, status and the error boundary."""

    name: str = "stack action"

    @abc.abstractmethod
    async def run(self, workflow: "StackActionWorkflow", context: RunContext) -> None:
        """Drive the run to a terminal phase."""
        raise NotImplementedError

    async def cleanup(self, workflow: "StackActionWorkflow", context: RunContext) -> None:
        """Release remote resources once the run has finished (no-op by default)."""


class DetachedRuns:
    """Tracks fire-and-forget tasks so none fail unobserved."""

    def __init__(self, label: str) -> None:
        self._label = label
        self._tasks: Dict[str, asyncio.Task] = {}

    def spawn(self, key: str, coro: Coroutine[Any, Any, None]) -> asyncio.Task:
        task = asyncio.create_task(coro, name=f"{self._label}-{key}")
        self._tasks[key] = task
        task.add_done_callback(lambda t: self._on_done(key, t))
        return task

    def _on_done(self, key: str, task: asyncio.Task) -> None:
        if self._tasks.get(key) is task:
            del self._tasks[key]
        if task.cancelled():
            logger.warning(f"{self._label} run {key} was cancelled")
            return
        error = task.exception()
        if error is not None:
            logger.error(
                f"{self._label} run {key} ended with unhandled error: {extract_error_message(error)}",
                exc_info=error,
            )

    async def wait(self, key: str) -> None:
        task = self._tasks.get(key)
        if task is not None:
            await asyncio.gather(task, return_exceptions=True)

    async def drain(self) -> None:
        if self._tasks:
            await asyncio.gather(*self._tasks.values(), return_exceptions=True)

    def __contains__(self, key: object) -> bool:
        return key in self._tasks


def require_workflow(store: WorkflowStore, workflow_id: str) -> WorkflowState:
    workflow = store.get(workflow_id)
    if workflow is None:
        raise WorkflowNotFoundError(workflow_id)
    return workflow


class StackActionWorkflow:
    """Starts change-set based runs and answers status queries for them.

    ``start`` creates the change set before returning; the rest of the run
    is detached and executed by the injected ``RunStrategy``.
    """

    def __init__(
        self,
        components: WorkflowComponents,
        strategy: RunStrategy,
        store: Optional[WorkflowStore] = None,
    ) -> None:
        self.components = components
        self.strategy = strategy
        self.store = store or get_store(components.workflow_retention)
        self._runs = DetachedRuns(strategy.name)

    async def start(self, request: WorkflowRequest) -> StackActionResult:
        """Create the change set, register the run and detach its execution.

        Raises:
            DocumentNotFoundError: The request's uri has no open document.
        """
        c = self.components
        document = resolve_document(c.documents, request.uri)
        self.store.evict_finished()

        change_set_type = await determine_change_set_type(c.stack_api, request)
        change_set_name = await create_change_set(
            c.stack_api, request, document, change_set_type
        )

        c.validations.add(
            Validation(
                uri=request.uri,
                stack_name=request.stack_name,
                change_set_name=change_set_name,
                parameters=request.parameters,
                capabilities=request.capabilities,
                upload=request.upload,
                phase=StackActionPhase.VALIDATION_IN_PROGRESS,
            )
        )
        self.store.create(
            WorkflowState(
                id=request.id,
                stack_name=request.stack_name,
                change_set_name=change_set_name,
                change_set_type=change_set_type,
                phase=StackActionPhase.VALIDATION_IN_PROGRESS,
                state=StackActionState.IN_PROGRESS,
                deployment_mode=request.deployment_mode,
            )
        )

        context = RunContext(
            request=request,
            change_set_name=change_set_name,
            change_set_type=change_set_type,
        )
        self._runs.spawn(request.id, self._execute(context))
        logger.info(
            f"Started {self.strategy.name} workflow {request.id} for stack {request.stack_name}"
        )
        return StackActionResult(
            id=request.id, change_set_name=change_set_name, stack_name=request.stack_name
        )

    def get_status(self, workflow_id: str) -> StatusResult:
        return require_workflow(self.store, workflow_id).to_status()

    def describe_status(self, workflow_id: str) -> DescribeStatusResult:
        return require_workflow(self.store, workflow_id).to_description()

    def update(self, workflow_id: str, **updates: Any) -> WorkflowState:
        return self.store.merge(workflow_id, **updates)

    def append_validation_details(
        self, workflow_id: str, details: List[ValidationDetail]
    ) -> WorkflowState:
        current = require_workflow(self.store, workflow_id)
        return self.update(
            workflow_id, validation_details=[*current.validation_details, *details]
        )

    async def wait(self, workflow_id: str) -> None:
        """Await the detached run for ``workflow_id`` if it is still running."""
        await self._runs.wait(workflow_id)

    async def drain(self) -> None:
        """Await every detached run."""
        await self._runs.drain()

    def is_running(self, workflow_id: str) -> bool:
        return workflow_id in self._runs

    async def _execute(self, context: RunContext) -> None:
        workflow_id = context.request.id
        try:
            await self.strategy.run(self, context)
        except Exception as e:
            logger.exception(f"{self.strategy.name} workflow {workflow_id} failed")
            self._record_failure(workflow_id, e)
        finally:
            self.components.validations.remove(context.request.stack_name)
            try:
                await self.strategy.cleanup(self, context)
            except Exception as e:
                logger.warning(
                    f"Cleanup for workflow {workflow_id} failed: {extract_error_message(e)}"
                )

    def _record_failure(self, workflow_id: str, error: BaseException) -> None:
        current = self.store.get(workflow_id)
        if current is None:
            return
        failed_phase = (
            StackActionPhase.DEPLOYMENT_FAILED
            if PHASE_ORDER[current.phase] >= PHASE_ORDER[StackActionPhase.DEPLOYMENT_IN_PROGRESS]
            else StackActionPhase.VALIDATION_FAILED
        )
        try:
            self.update(
                workflow_id,
                phase=failed_phase,
                state=StackActionState.FAILED,
                failure_reason=extract_error_message(error),
            )
        except Exception as e:
            logger.error(
                f"Unable to record failure for workflow {workflow_id}: {extract_error_message(e)}"
            )
