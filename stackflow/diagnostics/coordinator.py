"""Merges diagnostics from independent sources into one list per document."""

from __future__ import annotations

import logging
from typing import Callable, Dict, List

from lsprotocol.types import Diagnostic, PublishDiagnosticsParams

from ..constants import CFN_VALIDATION_SOURCE
from ..errors import extract_error_message
from .sinks import BaseDiagnosticsSink

logger = logging.getLogger(__name__)

SourceToDiagnostics = Dict[str, List[Diagnostic]]


class DiagnosticCoordinator:
    """Keeps per-source diagnostics for each document and publishes the merge.

    Sources (cfn-lint, Guard, change-set dry runs, ...) publish independently.
    Publishing for one source replaces only that source's list, so findings
    from other sources stay visible.
    """

    def __init__(self, sink: BaseDiagnosticsSink) -> None:
        self._sink = sink
        self._collections: Dict[str, SourceToDiagnostics] = {}

    async def publish(
        self, source: str, uri: str, diagnostics: List[Diagnostic]
    ) -> None:
        """Replace ``source``'s diagnostics for ``uri`` and republish the merge.

        Raises:
            Exception: Whatever the sink raised; the failure is logged first.
        """
        try:
            collection = self._collections.setdefault(uri, {})
            collection[source] = list(diagnostics)
            merged = self._merge(collection)
            await self._sink.publish(PublishDiagnosticsParams(uri=uri, diagnostics=merged))
            logger.debug(
                f"Published {len(merged)} diagnostics for {uri} from {len(collection)} sources"
            )
        except Exception as e:
            logger.error(
                f"Failed to publish diagnostics for source {source}, URI {uri}: {extract_error_message(e)}"
            )
            raise

    async def clear(self, uri: str) -> None:
        """Drop every source's diagnostics for ``uri`` and publish an empty list."""
        try:
            collection = self._collections.pop(uri, {})
            await self._sink.publish(PublishDiagnosticsParams(uri=uri, diagnostics=[]))
            logger.debug(f"Cleared all diagnostics for {uri} from {len(collection)} sources")
        except Exception as e:
            logger.error(f"Failed to clear all diagnostics for URI {uri}: {extract_error_message(e)}")
            raise

    async def clear_one(
        self, uri: str, source: str, predicate: Callable[[Diagnostic], bool]
    ) -> int:
        """Remove ``source`` diagnostics matching ``predicate`` and republish.

        Returns the number of diagnostics removed.
        """
        collection = self._collections.get(uri)
        if not collection or source not in collection:
            return 0

        kept = [d for d in collection[source] if not predicate(d)]
        removed = len(collection[source]) - len(kept)
        collection[source] = kept
        try:
            await self._sink.publish(
                PublishDiagnosticsParams(uri=uri, diagnostics=self._merge(collection))
            )
        except Exception as e:
            logger.error(f"Failed to republish diagnostics for URI {uri}: {extract_error_message(e)}")
            raise
        return removed

    async def clear_diagnostic(
        self, uri: str, diagnostic_id: str, source: str = CFN_VALIDATION_SOURCE
    ) -> int:
        """Retract a single dry-run diagnostic by the id stored in its ``data``."""
        return await self.clear_one(uri, source, lambda d: d.data == diagnostic_id)

    def current_diagnostics(self, uri: str) -> List[Diagnostic]:
        collection = self._collections.get(uri)
        if not collection:
            return []
        return self._merge(collection)

    def sources(self, uri: str) -> List[str]:
        return list(self._collections.get(uri, {}))

    @staticmethod
    def _merge(collection: SourceToDiagnostics) -> List[Diagnostic]:
        merged = [d for diagnostics in collection.values() for d in diagnostics]
        # sorted() is stable, so equal positions keep source order
        return sorted(
            merged, key=lambda d: (d.range.start.line, d.range.start.character)
        )
