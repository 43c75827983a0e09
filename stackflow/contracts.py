"""Core request, state and result contracts for stack action workflows."""

from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field

from .errors import InvalidPhaseTransitionError


class StackActionPhase(str, Enum):
    VALIDATION_IN_PROGRESS = "VALIDATION_IN_PROGRESS"
    VALIDATION_COMPLETE = "VALIDATION_COMPLETE"
    VALIDATION_FAILED = "VALIDATION_FAILED"
    DEPLOYMENT_IN_PROGRESS = "DEPLOYMENT_IN_PROGRESS"
    DEPLOYMENT_COMPLETE = "DEPLOYMENT_COMPLETE"
    DEPLOYMENT_FAILED = "DEPLOYMENT_FAILED"
    DELETION_IN_PROGRESS = "DELETION_IN_PROGRESS"
    DELETION_COMPLETE = "DELETION_COMPLETE"
    DELETION_FAILED = "DELETION_FAILED"


# Phases only move forward within a run; equal ranks are sibling outcomes.
PHASE_ORDER: Dict[StackActionPhase, int] = {
    StackActionPhase.VALIDATION_IN_PROGRESS: 0,
    StackActionPhase.VALIDATION_COMPLETE: 1,
    StackActionPhase.VALIDATION_FAILED: 1,
    StackActionPhase.DEPLOYMENT_IN_PROGRESS: 2,
    StackActionPhase.DEPLOYMENT_COMPLETE: 3,
    StackActionPhase.DEPLOYMENT_FAILED: 3,
    StackActionPhase.DELETION_IN_PROGRESS: 0,
    StackActionPhase.DELETION_COMPLETE: 1,
    StackActionPhase.DELETION_FAILED: 1,
}


class StackActionState(str, Enum):
    IN_PROGRESS = "IN_PROGRESS"
    SUCCESSFUL = "SUCCESSFUL"
    FAILED = "FAILED"


class ChangeSetType(str, Enum):
    CREATE = "CREATE"
    UPDATE = "UPDATE"
    IMPORT = "IMPORT"


class DeploymentMode(str, Enum):
    REVERT_DRIFT = "REVERT_DRIFT"


class ValidationSeverity(str, Enum):
    ERROR = "ERROR"
    INFO = "INFO"


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Parameter(BaseModel):
    """A template parameter value supplied with a change set."""

    parameter_key: str
    parameter_value: Optional[str] = None
    use_previous_value: Optional[bool] = None

    def to_api(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {"ParameterKey": self.parameter_key}
        if self.parameter_value is not None:
            data["ParameterValue"] = self.parameter_value
        if self.use_previous_value is not None:
            data["UsePreviousValue"] = self.use_previous_value
        return data


class ResourceToImport(BaseModel):
    """An existing resource to bring under management with an IMPORT change set."""

    resource_type: str
    logical_resource_id: str
    resource_identifier: Dict[str, str] = Field(default_factory=dict)

    def to_api(self) -> Dict[str, Any]:
        return {
            "ResourceType": self.resource_type,
            "LogicalResourceId": self.logical_resource_id,
            "ResourceIdentifier": dict(self.resource_identifier),
        }


class TemplateUpload(BaseModel):
    """Bucket location used to stage templates too large to send inline."""

    bucket: str
    key: str


class WorkflowRequest(BaseModel):
    """Caller input for starting a validation or deployment run."""

    id: str
    uri: str
    stack_name: str
    parameters: List[Parameter] = Field(default_factory=list)
    capabilities: List[str] = Field(default_factory=list)
    resources_to_import: List[ResourceToImport] = Field(default_factory=list)
    keep_change_set: bool = False
    upload: Optional[TemplateUpload] = None
    deployment_mode: Optional[DeploymentMode] = None


class DeletionRequest(BaseModel):
    """Caller input for deleting a previously created change set."""

    id: str
    stack_name: str
    change_set_name: str


class StackActionResult(BaseModel):
    """Acknowledgement returned from ``start``."""

    id: str
    change_set_name: str
    stack_name: str


class ResourceChange(BaseModel):
    action: Optional[str] = None
    logical_resource_id: Optional[str] = None
    physical_resource_id: Optional[str] = None
    resource_type: Optional[str] = None
    replacement: Optional[str] = None
    scope: Optional[List[str]] = None
    before_context: Optional[str] = None
    after_context: Optional[str] = None
    details: Optional[List[Dict[str, Any]]] = None


class StackChange(BaseModel):
    """Normalized row of a change set's resource changes."""

    type: Optional[str] = None
    resource_change: Optional[ResourceChange] = None


class ValidationDetail(BaseModel):
    """One finding produced while validating a change set."""

    timestamp: datetime = Field(default_factory=utcnow)
    validation_name: str
    logical_id: Optional[str] = None
    message: str
    severity: ValidationSeverity = ValidationSeverity.INFO
    resource_property_path: Optional[str] = None


class DeploymentEvent(BaseModel):
    logical_resource_id: Optional[str] = None
    resource_type: Optional[str] = None
    timestamp: Optional[datetime] = None
    resource_status: Optional[str] = None
    resource_status_reason: Optional[str] = None
    detailed_status: Optional[str] = None


class WaitResult(BaseModel):
    """Outcome of waiting for a change set or stack to reach a terminal state."""

    phase: StackActionPhase
    state: StackActionState
    changes: Optional[List[StackChange]] = None
    failure_reason: Optional[str] = None
    next_token: Optional[str] = None


class StatusResult(BaseModel):
    id: str
    phase: StackActionPhase
    state: StackActionState
    changes: Optional[List[StackChange]] = None


class DescribeStatusResult(StatusResult):
    validation_details: Optional[List[ValidationDetail]] = None
    failure_reason: Optional[str] = None
    deployment_mode: Optional[DeploymentMode] = None
    deployment_events: Optional[List[DeploymentEvent]] = None


class WorkflowState(BaseModel):
    """Evolving record of one workflow run."""

    id: str
    stack_name: str
    change_set_name: str
    change_set_type: Optional[ChangeSetType] = None
    phase: StackActionPhase
    state: StackActionState = StackActionState.IN_PROGRESS
    start_time: datetime = Field(default_factory=utcnow)
    changes: Optional[List[StackChange]] = None
    validation_details: List[ValidationDetail] = Field(default_factory=list)
    failure_reason: Optional[str] = None
    deployment_events: Optional[List[DeploymentEvent]] = None
    deployment_mode: Optional[DeploymentMode] = None

    @property
    def is_finished(self) -> bool:
        return self.state != StackActionState.IN_PROGRESS

    def merge(self, **updates: Any) -> "WorkflowState":
        """Return a copy with ``updates`` applied on top of the current fields.

        Fields not named in ``updates`` keep their value. Raises
        ``InvalidPhaseTransitionError`` if ``phase`` would move backwards.
        """
        unknown = set(updates) - set(type(self).model_fields)
        if unknown:
            raise ValueError(f"Unknown workflow fields: {sorted(unknown)}")

        new_phase = updates.get("phase")
        if new_phase is not None:
            new_phase = StackActionPhase(new_phase)
            if PHASE_ORDER[new_phase] < PHASE_ORDER[self.phase]:
                raise InvalidPhaseTransitionError(
                    f"Workflow {self.id} cannot move from {self.phase.value} to {new_phase.value}"
                )
            updates["phase"] = new_phase

        return self.model_copy(update=updates)

    def to_status(self) -> StatusResult:
        return StatusResult(
            id=self.id, phase=self.phase, state=self.state, changes=self.changes
        )

    def to_description(self) -> DescribeStatusResult:
        return DescribeStatusResult(
            id=self.id,
            phase=self.phase,
            state=self.state,
            changes=self.changes,
            validation_details=list(self.validation_details),
            failure_reason=self.failure_reason,
            deployment_mode=self.deployment_mode,
            deployment_events=self.deployment_events,
        )
