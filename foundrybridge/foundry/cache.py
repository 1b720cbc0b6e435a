"""
In-memory holder for the current world snapshot.

The cache has one writer (FoundryClient) and any number of readers. The
writer only ever swaps the whole snapshot reference, so a reader that grabbed
``cache.snapshot`` keeps a complete, consistent world even while a refresh
replaces it. Queries read ``cache.snapshot`` and treat None as an
empty world.
"""

from __future__ import annotations

from foundrybridge.foundry.models import WorldSnapshot


class WorldCache:
    """Null-safe container for a single WorldSnapshot."""

    def __init__(self) -> None:
        self._snapshot: WorldSnapshot | None = None

    @property
    def snapshot(self) -> WorldSnapshot | None:
        """The current snapshot, or None before connect / after disconnect."""
        return self._snapshot

    @property
    def is_loaded(self) -> bool:
        return self._snapshot is not None

    def replace(self, snapshot: WorldSnapshot) -> None:
        """Swap in a new snapshot. The old one is dropped, never merged."""
        self._snapshot = snapshot

    def clear(self) -> None:
        self._snapshot = None
