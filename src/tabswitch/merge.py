# =============================================================================
# Merge / Flatten
# =============================================================================

from collections.abc import Iterable, Mapping
from typing import Any


def flatten(results: Iterable[Mapping[str, Any]]) -> dict[str, Any]:
    """
    Fold expansion results into one mapping, left to right.

    ``results`` must be in declaration order of the originating patterns;
    on a duplicate path the later mapping wins.
    """
    tabs: dict[str, Any] = {}
    for result in results:
        tabs.update(result)
    return tabs
