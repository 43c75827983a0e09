"""Diagnostic coordination and delivery."""

from .coordinator import DiagnosticCoordinator
from .sinks import (
    BaseDiagnosticsSink,
    InMemoryDiagnosticsSink,
    LanguageServerDiagnosticsSink,
)

__all__ = [
    "BaseDiagnosticsSink",
    "DiagnosticCoordinator",
    "InMemoryDiagnosticsSink",
    "LanguageServerDiagnosticsSink",
]
