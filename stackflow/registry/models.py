"""Validation record shared across subsystems by stack name."""

from __future__ import annotations

from typing import List, Optional

from pydantic import BaseModel, Field

from ..contracts import (
    Parameter,
    StackActionPhase,
    StackChange,
    TemplateUpload,
    ValidationDetail,
)


class Validation(BaseModel):
    """The validation currently running against a stack."""

    uri: str
    stack_name: str
    change_set_name: str
    parameters: List[Parameter] = Field(default_factory=list)
    capabilities: List[str] = Field(default_factory=list)
    upload: Optional[TemplateUpload] = None
    phase: StackActionPhase = StackActionPhase.VALIDATION_IN_PROGRESS
    changes: Optional[List[StackChange]] = None
    validation_details: List[ValidationDetail] = Field(default_factory=list)

    def set_phase(self, phase: StackActionPhase) -> None:
        self.phase = phase

    def set_changes(self, changes: List[StackChange]) -> None:
        self.changes = list(changes)

    def set_validation_details(self, details: List[ValidationDetail]) -> None:
        self.validation_details = list(details)
