"""Resolve glob-keyed tab configuration into per-directory settings, with caching."""

from .cache import CacheStore
from .errors import CacheCorruptError, Error, ErrorType, Result
from .expander import CONFIG_LOAD, CONFIG_RELOAD, TabExpander, handle_config_event
from .fingerprint import fingerprint
from .merge import flatten
from .patterns import GlobPattern, LiteralPattern, expand, parse_pattern
from .state import TabsSnapshot, TabsState

__version__ = "0.1.0"

__all__ = [
    "CONFIG_LOAD",
    "CONFIG_RELOAD",
    "CacheCorruptError",
    "CacheStore",
    "Error",
    "ErrorType",
    "GlobPattern",
    "LiteralPattern",
    "Result",
    "TabExpander",
    "TabsSnapshot",
    "TabsState",
    "expand",
    "fingerprint",
    "flatten",
    "handle_config_event",
    "parse_pattern",
]
