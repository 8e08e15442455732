"""
Expand a tab configuration and print the resolved mapping.

Usage:
    python -m tabswitch                  # Use ~/.config/tab-switches/config.toml
    python -m tabswitch path/to.toml     # Use a specific config file
    python -m tabswitch --no-cache       # Always scan the filesystem
    python -m tabswitch --debug          # Log DEBUG records to stderr
    python -m tabswitch --no-log-file    # Skip the rotating JSONL log file
"""

import asyncio
import json
import sys

from .config_loader import default_config_path, load_config_from_path
from .errors import ErrorReport
from .expander import TabExpander
from .logging_config import setup_logger


def main(argv: list[str] | None = None) -> int:
    args = sys.argv[1:] if argv is None else argv
    no_cache = "--no-cache" in args
    debug = "--debug" in args
    log_to_file = "--no-log-file" not in args
    positional = [arg for arg in args if not arg.startswith("--")]
    config_path = positional[0] if positional else default_config_path()

    setup_logger(level="DEBUG" if debug else "INFO", log_to_file=log_to_file)
    report = ErrorReport()

    result = load_config_from_path(config_path)
    if not report.collect_result(result):
        return 1

    expander = TabExpander(use_cache=not no_cache)
    snapshot = asyncio.run(expander.async_expand_safely(result.value))
    if snapshot is None:
        return 1

    print(json.dumps(dict(snapshot.tabs), indent=2, ensure_ascii=False))
    return 0


if __name__ == "__main__":
    sys.exit(main())
