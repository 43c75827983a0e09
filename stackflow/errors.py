"""Exception types and error-message normalization."""

from __future__ import annotations

import json
from typing import Any, Optional


class StackflowError(Exception):
    """Base class for errors raised by stackflow."""


class WorkflowNotFoundError(StackflowError):
    """Raised when a status query names an unknown workflow id."""

    def __init__(self, workflow_id: str) -> None:
        super().__init__(f"Workflow not found: {workflow_id}")
        self.workflow_id = workflow_id


class DocumentNotFoundError(StackflowError):
    """Raised when a template document cannot be resolved for a uri."""

    def __init__(self, uri: str) -> None:
        super().__init__(f"Document not found: {uri}")
        self.uri = uri


class StackNotFoundError(StackflowError):
    """Raised when a stack lookup returns no matching stack."""

    def __init__(self, stack_name: str) -> None:
        super().__init__(f"Stack not found: {stack_name}")
        self.stack_name = stack_name


class InvalidPhaseTransitionError(StackflowError):
    """Raised when an update would move a workflow phase backwards."""


class RetryError(StackflowError):
    """Base class for retry runner failures."""


class RetryExhaustedError(RetryError):
    """All attempts of a retried operation failed."""


class RetryTimeoutError(RetryError):
    """The retry runner exceeded its total timeout."""


_GENERIC_ERROR_NAMES = {"Exception", "Error", "StackflowError"}


def extract_error_message(error: BaseException) -> str:
    """Return a human readable reason for ``error``.

    The exception type name is prepended unless the type is generic, so a
    botocore ``ClientError`` becomes ``"ClientError: An error occurred ..."``
    while a bare ``Exception("boom")`` stays ``"boom"``.
    """
    message = str(error) or repr(error)
    name = type(error).__name__
    if name in _GENERIC_ERROR_NAMES:
        return message
    return f"{name}: {message}"


def normalize_waiter_reason(reason: Any) -> Optional[str]:
    """Coerce a waiter outcome payload into an optional reason string.

    Waiters report failures as strings, exceptions or raw API responses
    (``StatusReason`` on change sets, ``StackStatusReason`` on stacks).
    """
    if reason is None:
        return None
    if isinstance(reason, str):
        return reason or None
    if isinstance(reason, BaseException):
        return extract_error_message(reason)
    if isinstance(reason, dict):
        for key in ("StatusReason", "StackStatusReason", "Message"):
            if reason.get(key):
                return str(reason[key])
        stacks = reason.get("Stacks")
        if stacks:
            stack = stacks[0]
            status_reason = stack.get("StackStatusReason")
            status = stack.get("StackStatus")
            if status_reason:
                return str(status_reason)
            if status:
                return f"Stack status {status}"
        error = reason.get("Error")
        if isinstance(error, dict) and error.get("Message"):
            return str(error["Message"])
        if reason.get("Status"):
            return f"Status {reason['Status']}"
        return json.dumps(reason, default=str)
    return str(reason)
