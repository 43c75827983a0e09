"""Workflow table storage for stackflow."""

from __future__ import annotations

from typing import Optional

from .inmemory import InMemoryWorkflowStore
from .repository import WorkflowStore


def get_store(retention: Optional[float] = None) -> WorkflowStore:
    """Create the workflow table for one workflow engine."""
    return InMemoryWorkflowStore(retention=retention)


__all__ = ["InMemoryWorkflowStore", "WorkflowStore", "get_store"]
