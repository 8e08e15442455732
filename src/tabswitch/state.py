# =============================================================================
# Published Tab State
# =============================================================================
"""The resolved tab mapping shared with consumers.

Only the expansion orchestrator writes here. Each load takes a generation
number when it starts; a result is published only if no newer load has
published already, so a slow superseded load cannot overwrite a fresher
mapping. Consumers read immutable snapshots.
"""

from __future__ import annotations

import copy
import itertools
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any, Mapping

from loguru import logger


@dataclass(frozen=True)
class TabsSnapshot:
    generation: int = 0
    tabs: Mapping[str, Any] = field(default_factory=lambda: MappingProxyType({}))
    fallback: str | None = None
    icon_position: str = "left"
    fingerprint: str | None = None

    def settings_for(self, directory: str) -> Mapping[str, Any]:
        return self.tabs.get(directory, {})


class TabsState:
    """Holder of the current ``TabsSnapshot``."""

    def __init__(self):
        self._generations = itertools.count(1)
        self._current = TabsSnapshot()

    @property
    def current(self) -> TabsSnapshot:
        return self._current

    def next_generation(self) -> int:
        return next(self._generations)

    def publish(
        self,
        generation: int,
        tabs: Mapping[str, Any],
        fallback: str | None = None,
        icon_position: str = "left",
        fingerprint: str | None = None,
    ) -> bool:
        """
        Replace the current snapshot wholesale.

        Settings are deep-copied, so later changes to the caller's
        configuration never show through the snapshot.

        Returns:
            False if a newer generation is already published (result dropped).
        """
        if generation <= self._current.generation:
            logger.info(
                "Dropping stale expansion result",
                operation="publish",
                status="stale",
                generation=generation,
                current_generation=self._current.generation
            )
            return False

        self._current = TabsSnapshot(
            generation=generation,
            tabs=MappingProxyType(copy.deepcopy(dict(tabs))),
            fallback=fallback,
            icon_position=icon_position,
            fingerprint=fingerprint,
        )
        return True
