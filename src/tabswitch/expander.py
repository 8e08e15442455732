# =============================================================================
# Expansion Orchestrator
# =============================================================================
"""Resolve a tab configuration into published per-directory settings.

Flow for one configuration load:
1. Fingerprint the ``tabs`` table
2. Try the on-disk cache (any failure is a miss)
3. On a miss, expand every pattern concurrently and flatten the results
   in declaration order
4. Publish the new mapping, then write it back to the cache
"""

from __future__ import annotations

import asyncio
import time
from collections.abc import Mapping
from typing import Any
from uuid import uuid4

from loguru import logger

from .cache import CacheStore
from .errors import Error, ErrorReport, ErrorType, Result
from .fingerprint import fingerprint
from .logging_config import trace_id_var
from .merge import flatten
from .patterns import expand
from .state import TabsSnapshot, TabsState

CONFIG_LOAD = "CONFIG_LOAD"
CONFIG_RELOAD = "CONFIG_RELOAD"

# Section of the host configuration holding this engine's settings
CONFIG_SECTION = "tab_switches"


class TabExpander:
    """Owns the published ``TabsState`` and is its only writer."""

    def __init__(
        self,
        cache: CacheStore | None = None,
        state: TabsState | None = None,
        use_cache: bool = True,
    ):
        self.cache = cache if cache is not None else CacheStore()
        self.state = state if state is not None else TabsState()
        self.use_cache = use_cache
        self._pending: set[asyncio.Task] = set()

    @property
    def snapshot(self) -> TabsSnapshot:
        return self.state.current

    async def _expand_all(self, tabs_config: Mapping[str, Any]) -> dict[str, Any]:
        # gather() returns results in argument order, not completion order
        results = await asyncio.gather(
            *(expand(pattern, settings) for pattern, settings in tabs_config.items())
        )
        return flatten(results)

    async def async_expand(
        self,
        config: Mapping[str, Any],
        report: ErrorReport | None = None,
    ) -> Result[TabsSnapshot]:
        """
        Run one configuration load to completion.

        Args:
            config: Mapping with a ``tabs`` table (pattern -> settings) and
                optional ``fallback`` / ``icon_position`` values.
            report: Collects cache warnings; a fresh one is used if omitted.

        Returns:
            Result with the snapshot current after this load, or a
            validation error if ``tabs`` is not a table.
        """
        report = report if report is not None else ErrorReport()
        generation = self.state.next_generation()
        op_trace_id = str(uuid4())
        token = trace_id_var.set(op_trace_id)
        start_time = time.perf_counter()

        try:
            tabs_config = config.get("tabs") or {}
            if not isinstance(tabs_config, Mapping):
                return Result.err(Error(
                    error_type=ErrorType.VALIDATION_ERROR,
                    message="'tabs' must be a table of pattern -> settings",
                    context={"tabs_type": type(tabs_config).__name__}
                ))

            key = fingerprint(tabs_config)
            logger.debug(
                "Expanding tab configuration",
                operation="expand_config",
                status="started",
                trace_id=op_trace_id,
                fingerprint=key,
                generation=generation,
                metrics={"patterns": len(tabs_config)}
            )

            tabs = None
            cache_status = "disabled"
            if self.use_cache and await self.cache.async_ensure_root(report):
                tabs = await self.cache.async_lookup(key, report)
                cache_status = "hit" if tabs is not None else "miss"

            if tabs is None:
                tabs = await self._expand_all(tabs_config)

            self.state.publish(
                generation,
                tabs,
                fallback=config.get("fallback"),
                icon_position=config.get("icon_position", "left"),
                fingerprint=key,
            )

            if cache_status == "miss":
                await self.cache.async_store(key, tabs, report)

            duration_ms = int((time.perf_counter() - start_time) * 1000)
            logger.info(
                f"{len(tabs)} paths found",
                operation="expand_config",
                status="success",
                trace_id=op_trace_id,
                fingerprint=key,
                generation=generation,
                metrics={
                    "paths": len(tabs),
                    "duration_ms": duration_ms,
                    "cache": cache_status,
                    "warnings": len(report.warnings),
                }
            )
            return Result.ok(self.state.current)

        finally:
            report.log_summary(op_trace_id)
            trace_id_var.reset(token)

    async def async_expand_safely(self, config: Mapping[str, Any]) -> TabsSnapshot | None:
        """Outermost boundary: errors are logged, never raised to the host."""
        report = ErrorReport()
        try:
            result = await self.async_expand(config, report)
        except Exception:
            logger.exception(
                "Tab expansion failed",
                operation="expand_config",
                status="failed"
            )
            return None

        report.collect_result(result)
        if report.has_errors():
            return None
        return result.value

    def schedule(self, config: Mapping[str, Any]) -> asyncio.Task | None:
        """
        Start a safe expansion without waiting for it.

        On a running loop the task is kept referenced until done and
        returned; without one, the expansion runs to completion first.
        """
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            asyncio.run(self.async_expand_safely(config))
            return None

        task = loop.create_task(self.async_expand_safely(config))
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)
        return task

    async def async_wait_pending(self) -> None:
        """Wait for every expansion scheduled by ``handle_config_event``."""
        while self._pending:
            await asyncio.gather(*list(self._pending))


def handle_config_event(expander: TabExpander, action: Mapping[str, Any]) -> asyncio.Task | None:
    """
    React to a configuration load/reload action.

    The expansion is scheduled on the running event loop and the task is
    returned; without a running loop it runs to completion before returning.
    Other action types, or configs without a ``tab_switches`` section, are
    ignored. The action itself is never modified.
    """
    if not isinstance(action, Mapping) or action.get("type") not in (CONFIG_LOAD, CONFIG_RELOAD):
        return None

    config = action.get("config") or {}
    section = config.get(CONFIG_SECTION) if isinstance(config, Mapping) else None
    if not section:
        if not isinstance(config, Mapping):
            logger.warning(
                "Ignoring config event - config is not a table",
                operation="handle_config_event",
                status="invalid",
                action_type=action.get("type"),
                config_type=type(config).__name__
            )
        return None

    if not isinstance(section, Mapping):
        logger.warning(
            f"Ignoring config event - '{CONFIG_SECTION}' is not a table",
            operation="handle_config_event",
            status="invalid",
            action_type=action.get("type"),
            section_type=type(section).__name__
        )
        return None

    return expander.schedule(section)
