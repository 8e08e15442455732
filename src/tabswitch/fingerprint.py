# =============================================================================
# Configuration Fingerprint
# =============================================================================
"""Content-addressed cache keys for tab configurations.

The key depends only on the *value* of the configuration: mapping keys are
sorted at every depth before serialization, so two configurations built with
different insertion orders share a cache entry. The checksum is CRC-32, which
is plenty for a local single-user cache and not meant to resist collisions
on purpose.
"""

import json
import re
import zlib
from collections.abc import Mapping

_WHITESPACE = re.compile(r"\s+")
_DIGITS = "0123456789abcdefghijklmnopqrstuvwxyz"


def canonicalize(value):
    """Return a JSON-ready copy of ``value`` with every mapping key-sorted."""
    if isinstance(value, Mapping):
        return {str(key): canonicalize(value[key]) for key in sorted(value, key=str)}
    if isinstance(value, (list, tuple)):
        return [canonicalize(item) for item in value]
    if value is None or isinstance(value, (str, int, float, bool)):
        return value
    return str(value)


def canonical_text(value) -> str:
    """Serialize ``value`` canonically with all whitespace removed."""
    text = json.dumps(
        canonicalize(value),
        sort_keys=True,
        separators=(",", ":"),
        ensure_ascii=False,
    )
    # Whitespace inside keys and values goes too: "~/My Projects/*" and
    # "~/MyProjects/*" share a key and therefore a cache entry.
    return _WHITESPACE.sub("", text)


def to_base36(number: int) -> str:
    if number == 0:
        return "0"
    digits = []
    while number:
        number, remainder = divmod(number, 36)
        digits.append(_DIGITS[remainder])
    return "".join(reversed(digits))


def fingerprint(config) -> str:
    """
    Reduce a configuration value to a short, filesystem-safe cache key.

    Each character of the canonical text is replaced by its decimal code
    point, and the resulting digit string is checksummed with CRC-32 and
    rendered in base 36 (at most 7 characters of ``[0-9a-z]``).

    Args:
        config: Any nesting of mappings, sequences and scalars.

    Returns:
        Cache key string.
    """
    codes = "".join(str(ord(char)) for char in canonical_text(config))
    return to_base36(zlib.crc32(codes.encode("ascii")))
