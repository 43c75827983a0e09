"""Utility helpers for stackflow."""

from .retry import RetryOptions, compute_backoff, retry_with_backoff

__all__ = ["RetryOptions", "compute_backoff", "retry_with_backoff"]
