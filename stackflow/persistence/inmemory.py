"""In-memory implementation of the workflow store."""

from __future__ import annotations

import logging
import time
from typing import Any, Callable, Dict, List, Optional

from ..contracts import WorkflowState
from ..errors import WorkflowNotFoundError
from .repository import WorkflowStore

logger = logging.getLogger(__name__)


class InMemoryWorkflowStore(WorkflowStore):
    """Store workflow state in local memory.

    Runs on a single event loop mutate entries between suspension points, so
    no locking is needed. Finished workflows are kept for ``retention``
    seconds after they finish; ``None`` keeps them forever.
    """

    def __init__(
        self,
        retention: Optional[float] = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._workflows: Dict[str, WorkflowState] = {}
        self._finished_at: Dict[str, float] = {}
        self._retention = retention
        self._clock = clock

    # ------------------------------------------------------------------
    def create(self, state: WorkflowState) -> None:
        if state.id in self._workflows:
            logger.warning(f"Replacing existing workflow state for {state.id}")
        self._workflows[state.id] = state
        self._finished_at.pop(state.id, None)

    def get(self, workflow_id: str) -> Optional[WorkflowState]:
        return self._workflows.get(workflow_id)

    def merge(self, workflow_id: str, **updates: Any) -> WorkflowState:
        wf = self._workflows.get(workflow_id)
        if wf is None:
            raise WorkflowNotFoundError(workflow_id)
        merged = wf.merge(**updates)
        self._workflows[workflow_id] = merged
        if merged.is_finished and workflow_id not in self._finished_at:
            self._finished_at[workflow_id] = self._clock()
        elif not merged.is_finished:
            self._finished_at.pop(workflow_id, None)
        return merged

    def list_workflows(self) -> List[WorkflowState]:
        return list(self._workflows.values())

    def evict_finished(self) -> int:
        if self._retention is None:
            return 0
        cutoff = self._clock() - self._retention
        expired = [wid for wid, at in self._finished_at.items() if at <= cutoff]
        for wid in expired:
            self._workflows.pop(wid, None)
            self._finished_at.pop(wid, None)
        if expired:
            logger.debug(f"Evicted {len(expired)} finished workflows")
        return len(expired)

    def __len__(self) -> int:
        return len(self._workflows)
