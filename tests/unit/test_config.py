from __future__ import annotations

import json

import pytest

from eventhook.core.config import SETTING_ENABLE, SETTING_INDEX, SETTING_SIZE, EventHookConfig, parse_bool

pytestmark = pytest.mark.unit


def test_defaults(monkeypatch):
    for env in ("EVENTHOOK_INDEX", "EVENTHOOK_SIZE", "EVENTHOOK_ENABLE", "EVENTHOOK_SCRIPTS_DIR"):
        monkeypatch.delenv(env, raising=False)
    cfg = EventHookConfig.load()
    assert cfg.hook_index == ".eventhook"
    assert cfg.max_hooks == 100
    assert cfg.enabled is True


def test_precedence_file_env_overrides(tmp_path, monkeypatch):
    path = tmp_path / "eventhook.json"
    path.write_text(json.dumps({"hook_index": "from-file", "max_hooks": 7, "script_workers": 2}), encoding="utf-8")
    monkeypatch.setenv("EVENTHOOK_SIZE", "9")
    monkeypatch.setenv("EVENTHOOK_ENABLE", "false")
    cfg = EventHookConfig.load(path, overrides={"hook_index": "explicit"})
    assert cfg.hook_index == "explicit"
    assert cfg.max_hooks == 9
    assert cfg.enabled is False
    assert cfg.script_workers == 2


@pytest.mark.parametrize("field,value", [("max_hooks", 0), ("script_workers", -1), ("hook_index", "")])
def test_validation(field, value):
    with pytest.raises(ValueError):
        EventHookConfig(**{field: value})


def test_from_cluster_settings():
    cfg = EventHookConfig.from_settings({SETTING_INDEX: "hooks", SETTING_SIZE: "5", SETTING_ENABLE: "off"})
    assert (cfg.hook_index, cfg.max_hooks, cfg.enabled) == ("hooks", 5, False)


@pytest.mark.parametrize(
    "value,expected",
    [("true", True), ("ON", True), ("0", False), ("no", False), ("maybe", True), (None, True), (False, False)],
)
def test_parse_bool(value, expected):
    assert parse_bool(value, True) is expected
