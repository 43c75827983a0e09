"""Destinations that deliver merged diagnostics to the editor."""

from __future__ import annotations

import abc
from collections import defaultdict
from typing import Any, Dict, List

from lsprotocol.types import Diagnostic, PublishDiagnosticsParams


class BaseDiagnosticsSink(metaclass=abc.ABCMeta):
    """Abstract sink receiving the full diagnostic list for a document."""

    @abc.abstractmethod
    async def publish(self, params: PublishDiagnosticsParams) -> None:
        """Deliver ``params`` to the client."""
        raise NotImplementedError


class InMemoryDiagnosticsSink(BaseDiagnosticsSink):
    """Records every publish; used by tests and the CLI."""

    def __init__(self) -> None:
        self.published: List[PublishDiagnosticsParams] = []
        self._latest: Dict[str, List[Diagnostic]] = defaultdict(list)

    async def publish(self, params: PublishDiagnosticsParams) -> None:
        self.published.append(params)
        self._latest[params.uri] = list(params.diagnostics)

    def latest(self, uri: str) -> List[Diagnostic]:
        """Return the most recently published diagnostics for ``uri``."""
        return list(self._latest.get(uri, []))


class LanguageServerDiagnosticsSink(BaseDiagnosticsSink):
    """Forwards diagnostics to a language server's publish notification."""

    def __init__(self, server: Any) -> None:
        self._server = server

    async def publish(self, params: PublishDiagnosticsParams) -> None:
        self._server.text_document_publish_diagnostics(params)
