"""stackflow - change set validation and deployment workflows."""

from .config import StackflowConfig, load_config
from .contracts import (
    ChangeSetType,
    DeletionRequest,
    DescribeStatusResult,
    Parameter,
    StackActionPhase,
    StackActionResult,
    StackActionState,
    StatusResult,
    ValidationDetail,
    WorkflowRequest,
)
from .diagnostics import DiagnosticCoordinator
from .errors import StackflowError, WorkflowNotFoundError
from .registry import ValidationRegistry
from .utils.retry import RetryOptions, retry_with_backoff
from .workflows import (
    ChangeSetDeletionWorkflow,
    StackActionWorkflow,
    WorkflowComponents,
    create_deployment_workflow,
    create_validation_workflow,
)

__version__ = "0.1.0"

__all__ = [
    "ChangeSetDeletionWorkflow",
    "ChangeSetType",
    "DeletionRequest",
    "DescribeStatusResult",
    "DiagnosticCoordinator",
    "Parameter",
    "RetryOptions",
    "StackActionPhase",
    "StackActionResult",
    "StackActionState",
    "StackActionWorkflow",
    "StackflowConfig",
    "StackflowError",
    "StatusResult",
    "ValidationDetail",
    "ValidationRegistry",
    "WorkflowComponents",
    "WorkflowNotFoundError",
    "WorkflowRequest",
    "create_deployment_workflow",
    "create_validation_workflow",
    "load_config",
    "retry_with_backoff",
]
