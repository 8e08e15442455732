# =============================================================================
# Expansion Cache Store
# =============================================================================
"""On-disk cache of resolved tab mappings, one JSON file per fingerprint.

Entries are never invalidated: a changed configuration has a different
fingerprint and therefore a different file. Any failure to find or read an
entry is reported to the caller as a plain miss.
"""

from __future__ import annotations

import asyncio
import errno
import json
import os
import tempfile
from pathlib import Path
from typing import Any

import platformdirs
from loguru import logger

from .errors import CacheCorruptError, Error, ErrorReport, ErrorType
from .logging_config import APP_NAME

CACHE_DIR_ENV = "TAB_SWITCHES_CACHE_DIR"
ENTRY_SUFFIX = ".json"


def default_cache_root() -> Path:
    """
    Scratch directory for cache entries.

    macOS: ~/Library/Caches/tab-switches/expansions
    Linux: ~/.cache/tab-switches/expansions
    """
    override = os.environ.get(CACHE_DIR_ENV)
    if override:
        return Path(override).expanduser()
    return Path(platformdirs.user_cache_dir(appname=APP_NAME)) / "expansions"


def atomic_write_file(path: Path, content: str) -> None:
    """
    Write file atomically using temp file → fsync → rename pattern.

    Raises:
        OSError: If write fails (including disk full - errno.ENOSPC)
    """
    temp_fd, temp_path = tempfile.mkstemp(
        dir=path.parent,
        prefix=f".{path.name}.",
        suffix=".tmp"
    )

    try:
        with os.fdopen(temp_fd, "w", encoding="utf-8") as f:
            f.write(content)
            f.flush()
            os.fsync(f.fileno())

        os.replace(temp_path, path)

    except OSError as e:
        try:
            os.unlink(temp_path)
        except OSError:
            pass

        if e.errno == errno.ENOSPC:
            raise OSError(f"Disk full - cannot write to {path}") from e
        raise


def decode_entry(content: str) -> dict[str, Any]:
    """
    Rebuild a resolved mapping from cache file content.

    Accepts the current object form ``{"path": settings}`` and the older
    pair-list form ``[["path", settings], ...]``.

    Raises:
        CacheCorruptError: If the content is not one of those shapes.
    """
    try:
        data = json.loads(content)
    except json.JSONDecodeError as e:
        raise CacheCorruptError(f"Invalid JSON in cache entry: {e}") from e

    if isinstance(data, dict):
        return data

    if isinstance(data, list):
        tabs = {}
        for pair in data:
            if not (isinstance(pair, list) and len(pair) == 2 and isinstance(pair[0], str)):
                raise CacheCorruptError(f"Malformed cache pair: {pair!r}")
            path, settings = pair
            tabs[path] = settings
        return tabs

    raise CacheCorruptError(f"Unexpected cache entry type: {type(data).__name__}")


class CacheStore:
    """Fingerprint-keyed storage for resolved tab mappings.

    Methods that degrade to "uncached" record the reason as a
    ``CACHE_ERROR`` warning on the caller's ``ErrorReport``.
    """

    def __init__(self, root: Path | str | None = None):
        self.root = Path(root) if root is not None else default_cache_root()

    def entry_path(self, key: str) -> Path:
        return self.root / f"{key}{ENTRY_SUFFIX}"

    def ensure_root(self, report: ErrorReport | None = None) -> bool:
        """
        Create the scratch directory if it does not exist yet.

        Returns:
            True if the directory is usable, False if creation failed
            (the failure is reported and callers continue uncached).
        """
        try:
            self.root.mkdir(parents=True, exist_ok=True)
            return True
        except OSError as e:
            (report or ErrorReport()).add_warning(Error(
                error_type=ErrorType.CACHE_ERROR,
                message="Cannot create cache directory - continuing uncached",
                context={"cache_dir": str(self.root), "error": str(e)},
                original_exception=e
            ), operation="ensure_root")
            return False

    def load(self, key: str) -> dict[str, Any]:
        """
        Read and decode the entry for ``key``.

        Raises:
            OSError: If the file cannot be read.
            CacheCorruptError: If the content is malformed.
        """
        content = self.entry_path(key).read_text(encoding="utf-8")
        return decode_entry(content)

    def lookup(self, key: str, report: ErrorReport | None = None) -> dict[str, Any] | None:
        """Return the cached mapping for ``key``, or None on any miss."""
        path = self.entry_path(key)
        try:
            path.stat()
        except OSError as e:
            logger.debug(
                "Cache miss",
                operation="cache_lookup",
                status="miss",
                fingerprint=key,
                reason=type(e).__name__
            )
            return None

        try:
            tabs = self.load(key)
        except (OSError, CacheCorruptError) as e:
            (report or ErrorReport()).add_warning(Error(
                error_type=ErrorType.CACHE_ERROR,
                message="Unreadable cache entry - treating as miss",
                context={"fingerprint": key, "file": str(path), "error": str(e)},
                original_exception=e
            ), operation="cache_lookup")
            return None

        logger.debug(
            "Cache hit",
            operation="cache_lookup",
            status="hit",
            fingerprint=key,
            metrics={"paths": len(tabs)}
        )
        return tabs

    def store(self, key: str, tabs: dict[str, Any]) -> None:
        """
        Write ``tabs`` under ``key``, replacing any existing entry.

        Raises:
            OSError: If the write fails.
            TypeError: If a settings value cannot be serialized to JSON.
        """
        content = json.dumps(tabs, ensure_ascii=False)
        atomic_write_file(self.entry_path(key), content)
        logger.debug(
            "Cache entry written",
            operation="cache_store",
            status="success",
            fingerprint=key,
            metrics={"paths": len(tabs)}
        )

    async def async_ensure_root(self, report: ErrorReport | None = None) -> bool:
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(None, self.ensure_root, report)

    async def async_lookup(self, key: str, report: ErrorReport | None = None) -> dict[str, Any] | None:
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(None, self.lookup, key, report)

    async def async_store(
        self,
        key: str,
        tabs: dict[str, Any],
        report: ErrorReport | None = None,
    ) -> bool:
        """Store in the default executor; failures are reported, not raised."""
        loop = asyncio.get_running_loop()
        try:
            await loop.run_in_executor(None, self.store, key, dict(tabs))
            return True
        except (OSError, TypeError, ValueError) as e:
            (report or ErrorReport()).add_warning(Error(
                error_type=ErrorType.CACHE_ERROR,
                message="Failed to write cache entry",
                context={"fingerprint": key, "file": str(self.entry_path(key)), "error": str(e)},
                original_exception=e
            ), operation="cache_store")
            return False
