# =============================================================================
# Pattern Expansion
# =============================================================================
"""Turn one configured tab key into concrete directory paths.

A key is parsed once into either a ``LiteralPattern`` (passed through without
touching the filesystem) or a ``GlobPattern`` (matched against directories
only). Both resolve to a mapping of absolute path -> the key's settings.
"""

from __future__ import annotations

import asyncio
import fnmatch
import glob
import os
import time
from dataclasses import dataclass
from typing import Any, Union

from loguru import logger

# Directory names a glob expansion never enters or reports
EXCLUDED_DIRS = frozenset({
    ".git",
    ".svn",
    ".hg",
    "node_modules",       # npm / yarn / pnpm
    "bower_components",   # bower
})


def _strip_separator(path: str) -> str:
    stripped = path.rstrip(os.sep)
    return stripped or os.sep


@dataclass(frozen=True)
class LiteralPattern:
    """A plain directory path; ``~`` is expanded, existence is not checked."""

    raw: str

    @property
    def path(self) -> str:
        return _strip_separator(os.path.expanduser(self.raw))

    def resolve(self, settings: Any) -> dict[str, Any]:
        return {self.path: settings}


@dataclass(frozen=True)
class GlobPattern:
    """A path containing ``*``, ``?`` or ``[...]`` wildcards.

    Matching walks the pattern one path component at a time, so excluded
    directories are never entered, including under ``**``. As with
    ``glob``, wildcards only match dot-directories when the component
    itself starts with a dot, and ``**`` does not descend into them.
    """

    raw: str

    @property
    def expanded(self) -> str:
        """The pattern with ``~`` expanded and a trailing separator forced."""
        pattern = os.path.expanduser(self.raw)
        if not pattern.endswith(os.sep):
            pattern += os.sep
        return pattern

    @staticmethod
    def _list_dirs(base: str) -> list[str]:
        try:
            with os.scandir(base or os.curdir) as entries:
                names = []
                for entry in entries:
                    if entry.name in EXCLUDED_DIRS:
                        continue
                    try:
                        if entry.is_dir():
                            names.append(entry.name)
                    except OSError:
                        continue
                return names
        except OSError:
            # Unreadable directory: skip the subtree
            return []

    @staticmethod
    def _walk(base: str):
        yield base
        for root, dirnames, _ in os.walk(base or os.curdir):
            dirnames[:] = [
                name for name in dirnames
                if name not in EXCLUDED_DIRS and not name.startswith(".")
            ]
            for name in dirnames:
                yield os.path.join(root, name)

    def _match(self, base: str, parts: list[str]):
        if not parts:
            yield base
            return

        part, rest = parts[0], parts[1:]
        if part == "**":
            for directory in self._walk(base):
                yield from self._match(directory, rest)
        elif glob.has_magic(part):
            allow_hidden = part.startswith(".")
            for name in self._list_dirs(base):
                if name.startswith(".") and not allow_hidden:
                    continue
                if fnmatch.fnmatch(name, part):
                    yield from self._match(os.path.join(base, name), rest)
        else:
            path = os.path.join(base, part)
            if os.path.isdir(path):
                yield from self._match(path, rest)

    def resolve(self, settings: Any) -> dict[str, Any]:
        """
        Match directories on disk.

        Unreadable subtrees are skipped, so a permission problem only
        narrows the result. No match yields an empty mapping.
        """
        pattern = self.expanded
        start_time = time.perf_counter()

        parts = pattern.split(os.sep)
        base = os.sep if parts[0] == "" else ""
        matches = sorted({
            _strip_separator(match)
            for match in self._match(base, [part for part in parts if part])
        })
        resolved = {match: settings for match in matches}

        logger.debug(
            "Glob pattern expanded",
            operation="expand_pattern",
            status="success",
            pattern=self.raw,
            metrics={
                "directories": len(resolved),
                "duration_ms": int((time.perf_counter() - start_time) * 1000),
            }
        )
        return resolved


TabPattern = Union[LiteralPattern, GlobPattern]


def parse_pattern(raw: str) -> TabPattern:
    if glob.has_magic(raw):
        return GlobPattern(raw)
    return LiteralPattern(raw)


async def expand(pattern: str, settings: Any) -> dict[str, Any]:
    """
    Resolve a configured key to a mapping of directory -> settings.

    Glob scans run in the default executor so concurrent expansions do not
    block the event loop.

    Args:
        pattern: Literal path or glob pattern (may start with ``~``).
        settings: Opaque per-tab settings, carried through unchanged.

    Returns:
        Mapping of absolute directory path (no trailing separator) to settings.
    """
    parsed = parse_pattern(pattern)
    if isinstance(parsed, LiteralPattern):
        return parsed.resolve(settings)

    loop = asyncio.get_running_loop()
    return await loop.run_in_executor(None, parsed.resolve, settings)
