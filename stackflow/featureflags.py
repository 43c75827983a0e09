"""Feature flags gating optional workflow behavior."""

from __future__ import annotations

from typing import Iterable, Optional, Protocol


class FeatureFlagProvider(Protocol):
    def is_enabled(self, region: Optional[str]) -> bool:
        """Return ``True`` if the feature is on for ``region``."""


class RegionFeatureFlag(FeatureFlagProvider):
    """Enabled for an explicit list of regions; ``"*"`` enables everywhere."""

    def __init__(self, regions: Iterable[str] = ()) -> None:
        self._regions = {r.strip().lower() for r in regions if r.strip()}

    def is_enabled(self, region: Optional[str]) -> bool:
        if "*" in self._regions:
            return True
        return region is not None and region.lower() in self._regions
