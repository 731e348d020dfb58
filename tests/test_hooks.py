import json
from pathlib import Path

import pytest

from mnemos.hooks import (
    HookEntry,
    claude_settings_path,
    install_hook,
    is_hook_installed,
    uninstall_hook,
)
from mnemos.installer import InstallerError


def read_json(path: Path) -> dict:
    return json.loads(path.read_text())


def test_install_hook_creates_file(tmp_path):
    path = tmp_path / "settings.json"
    entry = HookEntry(matcher="startup", command="/usr/local/bin/mnemos prewarm", timeout=10)

    assert install_hook(path, entry) is True

    cfg = read_json(path)
    groups = cfg["hooks"]["SessionStart"]
    assert len(groups) == 1
    group = groups[0]
    assert group["matcher"] == "startup"
    cmd = group["hooks"][0]
    assert cmd["command"] == entry.command
    assert cmd["type"] == "command"
    assert cmd["timeout"] == 10


def test_install_hook_is_idempotent(tmp_path):
    path = tmp_path / "settings.json"
    entry = HookEntry(matcher="startup", command="/usr/local/bin/mnemos prewarm")
    install_hook(path, entry)
    assert install_hook(path, entry) is False


def test_install_hook_preserves_other_keys(tmp_path):
    path = tmp_path / "settings.json"
    path.write_text(
        """{
        "theme": "dark",
        "env": {"FOO": "bar"},
        "hooks": {
            "UserPromptSubmit": [
                {"hooks": [{"type": "command", "command": "lint"}]}
            ]
        }
    }"""
    )
    install_hook(path, HookEntry(matcher="startup", command="mnemos prewarm"))

    cfg = read_json(path)
    assert cfg["theme"] == "dark"
    assert cfg["env"]["FOO"] == "bar"
    assert len(cfg["hooks"]["UserPromptSubmit"]) == 1
    assert len(cfg["hooks"]["SessionStart"]) == 1


def test_install_hook_appends_when_different_command(tmp_path):
    path = tmp_path / "settings.json"
    path.write_text(
        """{
        "hooks": {
            "SessionStart": [
                {"matcher": "startup", "hooks": [{"type": "command", "command": "other-tool"}]}
            ]
        }
    }"""
    )
    changed = install_hook(path, HookEntry(matcher="startup", command="mnemos prewarm"))
    assert changed is True
    groups = read_json(path)["hooks"]["SessionStart"]
    assert len(groups) == 2


def test_install_hook_same_command_different_timeout_is_noop(tmp_path):
    path = tmp_path / "settings.json"
    install_hook(path, HookEntry(matcher="startup", command="mnemos prewarm", timeout=10))
    changed = install_hook(path, HookEntry(matcher="startup", command="mnemos prewarm", timeout=30))
    assert changed is False
    cmd = read_json(path)["hooks"]["SessionStart"][0]["hooks"][0]
    assert cmd["timeout"] == 10


def test_uninstall_hook_removes_entry(tmp_path):
    path = tmp_path / "settings.json"
    entry = HookEntry(matcher="startup", command="mnemos prewarm")
    install_hook(path, entry)
    assert is_hook_installed(path, entry) is True

    assert uninstall_hook(path, entry) is True
    assert is_hook_installed(path, entry) is False

    cfg = read_json(path)
    assert "SessionStart" not in cfg.get("hooks", {})
    assert "hooks" not in cfg


def test_uninstall_hook_preserves_other_groups(tmp_path):
    path = tmp_path / "settings.json"
    ours = HookEntry(matcher="startup", command="mnemos prewarm")
    other = HookEntry(matcher="startup", command="other-tool")
    install_hook(path, other)
    install_hook(path, ours)
    uninstall_hook(path, ours)
    assert is_hook_installed(path, ours) is False
    assert is_hook_installed(path, other) is True


def test_uninstall_hook_missing_file(tmp_path):
    changed = uninstall_hook(
        tmp_path / "no-such.json", HookEntry(matcher="startup", command="mnemos prewarm")
    )
    assert changed is False
    assert not (tmp_path / "no-such.json").exists()


def test_claude_settings_path_honours_env(tmp_path, monkeypatch):
    home = tmp_path / "home"
    override = tmp_path / "override"
    home.mkdir()
    override.mkdir()
    monkeypatch.setenv("HOME", str(home))
    monkeypatch.setenv("USERPROFILE", str(home))

    monkeypatch.setenv("CLAUDE_CONFIG_DIR", str(override))
    assert claude_settings_path() == override / "settings.json"

    monkeypatch.setenv("CLAUDE_CONFIG_DIR", "")
    assert claude_settings_path() == home / ".claude" / "settings.json"


def test_install_hook_without_matcher(tmp_path):
    path = tmp_path / "settings.json"
    install_hook(path, HookEntry(command="mnemos prewarm"))
    group = read_json(path)["hooks"]["SessionStart"][0]
    assert "matcher" not in group
    assert "timeout" not in group["hooks"][0]


def test_install_hook_under_custom_event(tmp_path):
    path = tmp_path / "settings.json"
    entry = HookEntry(command="mnemos touch", matcher="Edit", event="PostToolUse")
    install_hook(path, entry)
    cfg = read_json(path)
    assert list(cfg["hooks"]) == ["PostToolUse"]
    assert is_hook_installed(path, entry) is True
    assert is_hook_installed(path, HookEntry(command="mnemos touch", matcher="Edit")) is False


def test_empty_event_defaults_to_session_start():
    assert HookEntry(command="x", event="").event == "SessionStart"


def test_install_hook_rejects_malformed_settings(tmp_path):
    path = tmp_path / "settings.json"
    path.write_text("{ not json")
    with pytest.raises(InstallerError):
        install_hook(path, HookEntry(command="mnemos prewarm"))
    assert is_hook_installed(path, HookEntry(command="mnemos prewarm")) is False


def test_install_hook_on_empty_file(tmp_path):
    path = tmp_path / "settings.json"
    path.write_text("")
    assert install_hook(path, HookEntry(command="mnemos prewarm")) is True
    assert read_json(path)["hooks"]["SessionStart"][0]["hooks"][0]["command"] == "mnemos prewarm"