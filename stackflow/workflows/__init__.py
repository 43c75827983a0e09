"""Stack action workflows."""

from __future__ import annotations

from typing import Optional

from ..persistence import WorkflowStore
from .deletion import ChangeSetDeletionWorkflow
from .deployment import DeploymentRun
from .engine import (
    DetachedRuns,
    RunContext,
    RunStrategy,
    StackActionWorkflow,
    WorkflowComponents,
)
from .validation import ValidationRun


def create_validation_workflow(
    components: WorkflowComponents, store: Optional[WorkflowStore] = None
) -> StackActionWorkflow:
    return StackActionWorkflow(components, ValidationRun(), store)


def create_deployment_workflow(
    components: WorkflowComponents, store: Optional[WorkflowStore] = None
) -> StackActionWorkflow:
    return StackActionWorkflow(components, DeploymentRun(), store)


__all__ = [
    "ChangeSetDeletionWorkflow",
    "DeploymentRun",
    "DetachedRuns",
    "RunContext",
    "RunStrategy",
    "StackActionWorkflow",
    "ValidationRun",
    "WorkflowComponents",
    "create_deployment_workflow",
    "create_validation_workflow",
]
