# =============================================================================
# Tab Utilities
# =============================================================================
# Consumer side of the published mapping: given a terminal session's working
# directory, look up its settings and compute what a tab switch shows.

import os
from collections.abc import Mapping
from typing import Any

from .state import TabsSnapshot


def normalize_tab_path(path: str) -> str:
    """Normalize a directory path for lookup in the resolved mapping.

    Expands ~ and strips trailing slashes, keeping "/" intact. Symlinks are
    not resolved since glob results are not resolved either.
    """
    return os.path.expanduser(path).rstrip("/") or "/"


def expand_icon_path(icon: str) -> str:
    return os.path.expanduser(icon)


def get_tab_label(directory: str, label: str | None, title: str) -> str:
    """Get the text shown for a tab.

    Label modes:
    - "none": empty label
    - "dir": the session's working directory
    - "title" (and anything else, including unset): the session title
    """
    if label == "none":
        return ""
    if label == "dir":
        return directory
    return title


def build_tab_props(session: Mapping[str, Any], snapshot: TabsSnapshot) -> dict:
    """Build display properties for one terminal session.

    Global configuration overrides session values, and the settings
    published for the session's directory override both.

    Args:
        session: Dict with "dir", "title", "uid" and optionally "is_active".
        snapshot: Current published tab state.

    Returns:
        Dict with icon, label, colour, icon_position, uid and is_active.
    """
    directory = normalize_tab_path(session.get("dir", ""))
    props = {
        **session,
        "fallback": snapshot.fallback,
        "icon_position": snapshot.icon_position,
        **snapshot.settings_for(directory),
    }

    icon = props.get("icon")
    return {
        "icon": expand_icon_path(icon) if icon else props.get("fallback"),
        "label": get_tab_label(directory, props.get("label"), props.get("title", "")),
        "colour": props.get("colour"),
        "icon_position": props.get("icon_position"),
        "uid": props.get("uid"),
        "is_active": bool(props.get("is_active", False)),
    }
