"""Store abstraction for the id-keyed workflow table."""

from __future__ import annotations

from typing import Any, List, Optional, Protocol

from ..contracts import WorkflowState


class WorkflowStore(Protocol):
    """Protocol for workflow table backends."""

    def create(self, state: WorkflowState) -> None:
        """Insert the initial state of a workflow."""

    def get(self, workflow_id: str) -> Optional[WorkflowState]:
        """Return the workflow state by id."""

    def merge(self, workflow_id: str, **updates: Any) -> WorkflowState:
        """Apply a partial update and return the merged state."""

    def list_workflows(self) -> List[WorkflowState]:
        """Return all stored workflows."""

    def evict_finished(self) -> int:
        """Drop finished workflows past retention; return how many were removed."""
