import asyncio
import shutil
from pathlib import Path

import pytest

from tabswitch import expander as expander_module
from tabswitch import patterns
from tabswitch.cache import CacheStore
from tabswitch.errors import ErrorReport, ErrorType
from tabswitch.expander import CONFIG_LOAD, CONFIG_RELOAD, TabExpander, handle_config_event
from tabswitch.fingerprint import fingerprint


def _make_dirs(root: Path, *names: str) -> None:
    for name in names:
        (root / name).mkdir(parents=True, exist_ok=True)


@pytest.fixture
def cache(tmp_path: Path) -> CacheStore:
    return CacheStore(tmp_path / "scratch")


def test_first_load_scans_second_load_hits_cache(home, cache):
    _make_dirs(home, "proj/app", "proj/lib")
    config = {"tabs": {"~/proj/*": {"label": "dir"}}}
    expected = {
        f"{home}/proj/app": {"label": "dir"},
        f"{home}/proj/lib": {"label": "dir"},
    }

    first = TabExpander(cache=cache)
    result = asyncio.run(first.async_expand(config))
    assert result.is_ok()
    assert dict(result.value.tabs) == expected
    assert cache.entry_path(fingerprint(config["tabs"])).exists()

    # Disk changes are invisible while the configuration is unchanged
    shutil.rmtree(home / "proj" / "lib")
    _make_dirs(home, "proj/new")

    second = TabExpander(cache=cache)
    result = asyncio.run(second.async_expand({"tabs": {"~/proj/*": {"label": "dir"}}}))
    assert dict(result.value.tabs) == expected


def test_cache_hit_never_invokes_pattern_expander(cache, monkeypatch):
    config = {"tabs": {"/srv/*": {"label": "title"}}}
    cache.ensure_root()
    cache.store(fingerprint(config["tabs"]), {"/srv/www": {"label": "title"}})

    def fail(*args, **kwargs):
        raise AssertionError("pattern expander invoked on a cache hit")

    monkeypatch.setattr(expander_module, "expand", fail)
    monkeypatch.setattr(patterns.GlobPattern, "resolve", fail)

    result = asyncio.run(TabExpander(cache=cache).async_expand(config))
    assert dict(result.value.tabs) == {"/srv/www": {"label": "title"}}


def test_reordered_config_hits_same_entry(tmp_path, cache):
    _make_dirs(tmp_path, "ws/one")
    pattern = f"{tmp_path}/ws/*"
    first = {"tabs": {pattern: {"label": "dir", "colour": "#000"}, "/lit": {"icon": "a.png"}}}
    second = {"tabs": {"/lit": {"icon": "a.png"}, pattern: {"colour": "#000", "label": "dir"}}}

    asyncio.run(TabExpander(cache=cache).async_expand(first))
    _make_dirs(tmp_path, "ws/two")
    result = asyncio.run(TabExpander(cache=cache).async_expand(second))

    assert set(result.value.tabs) == {f"{tmp_path}/ws/one", "/lit"}
    assert len(list(cache.root.glob("*.json"))) == 1


def test_corrupt_cache_entry_forces_rescan_and_rewrite(tmp_path, cache):
    _make_dirs(tmp_path, "ws/one")
    config = {"tabs": {f"{tmp_path}/ws/*": {"label": "dir"}}}
    cache.ensure_root()
    entry = cache.entry_path(fingerprint(config["tabs"]))
    entry.write_text("[[broken")

    result = asyncio.run(TabExpander(cache=cache).async_expand(config))
    assert dict(result.value.tabs) == {f"{tmp_path}/ws/one": {"label": "dir"}}
    assert cache.load(entry.stem) == {f"{tmp_path}/ws/one": {"label": "dir"}}


def test_declaration_order_decides_overrides(tmp_path, cache):
    _make_dirs(tmp_path, "ws/one", "ws/two")
    glob_settings = {"label": "dir"}
    override = {"label": "none"}
    config = {"tabs": {f"{tmp_path}/ws/*": glob_settings, f"{tmp_path}/ws/two": override}}

    result = asyncio.run(TabExpander(cache=cache, use_cache=False).async_expand(config))
    assert dict(result.value.tabs) == {
        f"{tmp_path}/ws/one": glob_settings,
        f"{tmp_path}/ws/two": override,
    }

    reversed_config = {"tabs": dict(reversed(list(config["tabs"].items())))}
    result = asyncio.run(TabExpander(cache=cache, use_cache=False).async_expand(reversed_config))
    assert result.value.tabs[f"{tmp_path}/ws/two"] == glob_settings


def test_merge_follows_declaration_not_completion_order(cache, monkeypatch):
    async def slow_first(pattern, settings):
        if pattern == "/first":
            await asyncio.sleep(0.05)
        return {"/same": settings}

    monkeypatch.setattr(expander_module, "expand", slow_first)
    config = {"tabs": {"/first": {"n": 1}, "/second": {"n": 2}}}

    result = asyncio.run(TabExpander(cache=cache, use_cache=False).async_expand(config))
    assert dict(result.value.tabs) == {"/same": {"n": 2}}


def test_uncached_mode_writes_nothing(cache):
    result = asyncio.run(TabExpander(cache=cache, use_cache=False).async_expand({"tabs": {"/a": {}}}))
    assert dict(result.value.tabs) == {"/a": {}}
    assert not cache.root.exists()


def test_unusable_cache_directory_still_publishes(tmp_path):
    blocker = tmp_path / "blocker"
    blocker.write_text("")
    expander = TabExpander(cache=CacheStore(blocker / "scratch"))

    result = asyncio.run(expander.async_expand({"tabs": {"/a": {"label": "dir"}}}))
    assert dict(expander.snapshot.tabs) == {"/a": {"label": "dir"}}
    assert result.is_ok()


def test_global_values_are_published(cache):
    config = {"fallback": "/icons/default.png", "icon_position": "right", "tabs": {}}
    snapshot = asyncio.run(TabExpander(cache=cache).async_expand(config)).value
    assert snapshot.fallback == "/icons/default.png"
    assert snapshot.icon_position == "right"
    assert dict(snapshot.tabs) == {}


def test_invalid_tabs_is_a_validation_error(cache):
    expander = TabExpander(cache=cache)
    result = asyncio.run(expander.async_expand({"tabs": ["not", "a", "table"]}))
    assert result.is_err()
    assert result.error.error_type is ErrorType.VALIDATION_ERROR
    assert expander.snapshot.generation == 0


def test_superseded_load_is_dropped(cache, monkeypatch):
    async def fake_expand(pattern, settings):
        if pattern == "/slow":
            await asyncio.sleep(0.05)
        return {pattern: settings}

    monkeypatch.setattr(expander_module, "expand", fake_expand)
    expander = TabExpander(cache=cache, use_cache=False)

    async def scenario():
        await asyncio.gather(
            expander.async_expand({"tabs": {"/slow": {}}}),
            expander.async_expand({"tabs": {"/fast": {}}}),
        )

    asyncio.run(scenario())
    assert dict(expander.snapshot.tabs) == {"/fast": {}}
    assert expander.snapshot.generation == 2


def test_expansion_errors_are_contained(cache, monkeypatch):
    async def boom(pattern, settings):
        raise RuntimeError("scan exploded")

    monkeypatch.setattr(expander_module, "expand", boom)
    expander = TabExpander(cache=cache, use_cache=False)
    assert asyncio.run(expander.async_expand_safely({"tabs": {"/x/*": {}}})) is None
    assert expander.snapshot.generation == 0


@pytest.mark.parametrize("action_type", [CONFIG_LOAD, CONFIG_RELOAD])
def test_config_event_schedules_expansion(cache, action_type):
    expander = TabExpander(cache=cache)
    action = {"type": action_type, "config": {"tab_switches": {"tabs": {"/a": {"label": "dir"}}}}}

    async def dispatch():
        task = handle_config_event(expander, action)
        assert task is not None
        await expander.async_wait_pending()

    asyncio.run(dispatch())
    assert dict(expander.snapshot.tabs) == {"/a": {"label": "dir"}}
    assert action["config"] == {"tab_switches": {"tabs": {"/a": {"label": "dir"}}}}


def test_config_event_without_running_loop_completes(cache):
    expander = TabExpander(cache=cache)
    action = {"type": CONFIG_LOAD, "config": {"tab_switches": {"tabs": {"/b": {}}}}}
    assert handle_config_event(expander, action) is None
    assert dict(expander.snapshot.tabs) == {"/b": {}}


@pytest.mark.parametrize("action", [
    {"type": "SESSION_SET_ACTIVE", "uid": "x"},
    {"type": CONFIG_LOAD, "config": {}},
    {"type": CONFIG_RELOAD, "config": {"other_plugin": {}}},
])
def test_unrelated_events_are_ignored(cache, action):
    expander = TabExpander(cache=cache)
    assert handle_config_event(expander, action) is None
    assert expander.snapshot.generation == 0


def test_published_mapping_ignores_later_config_changes(tmp_path, cache):
    _make_dirs(tmp_path, "ws/one", "ws/two")
    settings = {"label": "dir"}
    config = {"tabs": {f"{tmp_path}/ws/*": settings}}

    expander = TabExpander(cache=cache)
    asyncio.run(expander.async_expand(config))
    settings["label"] = "none"

    assert dict(expander.snapshot.tabs) == {
        f"{tmp_path}/ws/one": {"label": "dir"},
        f"{tmp_path}/ws/two": {"label": "dir"},
    }


@pytest.mark.parametrize("action", [
    {"type": CONFIG_LOAD, "config": ["x"]},
    {"type": CONFIG_RELOAD, "config": "tabs"},
    {"type": CONFIG_LOAD, "config": {"tab_switches": ["~/proj/*"]}},
    {"type": CONFIG_LOAD, "config": {"tab_switches": "~/proj/*"}},
    ["CONFIG_LOAD"],
])
def test_malformed_config_events_are_ignored(cache, action):
    expander = TabExpander(cache=cache)
    assert handle_config_event(expander, action) is None
    assert expander.snapshot.generation == 0


def test_corrupt_entry_is_reported_as_cache_warning(tmp_path, cache):
    config = {"tabs": {"/lit": {}}}
    cache.ensure_root()
    cache.entry_path(fingerprint(config["tabs"])).write_text('[[1, {}]]')

    report = ErrorReport()
    result = asyncio.run(TabExpander(cache=cache).async_expand(config, report))

    assert result.is_ok()
    assert not report.has_errors()
    assert [w.error_type for w in report.warnings] == [ErrorType.CACHE_ERROR]


def test_unusable_cache_directory_is_reported(tmp_path):
    blocker = tmp_path / "blocker"
    blocker.write_text("")
    report = ErrorReport()

    asyncio.run(TabExpander(cache=CacheStore(blocker / "scratch")).async_expand({"tabs": {}}, report))
    assert [w.error_type for w in report.warnings] == [ErrorType.CACHE_ERROR]
    assert isinstance(report.warnings[0].original_exception, OSError)
