"""Registration of command hooks in the Claude Code user settings file.

Hooks live in ``settings.json`` under ``hooks.<Event>`` as a list of
matcher groups::

    {"matcher": "...", "hooks": [{"type": "command", "command": "..."}]}

Installing is idempotent on (event, matcher, command); every other key in
the file is preserved untouched.
"""

from __future__ import annotations

import json
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any

from mnemos.installer import InstallerError, _ensure_dir, _write_atomic

DEFAULT_EVENT = "SessionStart"


@dataclass
class HookEntry:
    """One command hook: the event slot, an optional matcher, and a command.

    ``timeout`` is in seconds; zero leaves the field out of the file.
    """

    command: str
    matcher: str = ""
    event: str = DEFAULT_EVENT
    timeout: int = 0

    def __post_init__(self) -> None:
        self.event = self.event or DEFAULT_EVENT

    def to_group(self) -> dict[str, Any]:
        """Return the matcher-group shape this entry takes in settings.json."""
        cmd: dict[str, Any] = {"type": "command", "command": self.command}
        if self.timeout > 0:
            cmd["timeout"] = self.timeout
        group: dict[str, Any] = {"hooks": [cmd]}
        if self.matcher:
            group["matcher"] = self.matcher
        return group


def claude_settings_path() -> Path | None:
    """Return the user-scope settings.json path, honouring CLAUDE_CONFIG_DIR."""
    try:
        home = Path.home()
    except RuntimeError:
        return None
    override = os.environ.get("CLAUDE_CONFIG_DIR")
    base = Path(override) if override else home / ".claude"
    return base / "settings.json"


def _read_settings(path: Path) -> dict[str, Any]:
    try:
        data = path.read_bytes()
    except FileNotFoundError:
        return {}
    except OSError as exc:
        raise InstallerError(f"read {path}: {exc}") from exc
    if not data:
        return {}
    try:
        cfg = json.loads(data)
    except ValueError as exc:
        raise InstallerError(f"parse {path}: {exc}") from exc
    if cfg is None:
        return {}
    if not isinstance(cfg, dict):
        raise InstallerError(f"parse {path}: top level is not an object")
    return cfg


def _encode(cfg: dict[str, Any]) -> bytes:
    try:
        text = json.dumps(cfg, indent=2, sort_keys=True, ensure_ascii=False) + "\n"
    except (TypeError, ValueError) as exc:
        raise InstallerError(f"marshal settings: {exc}") from exc
    return text.encode("utf-8")


def _as_dict(value: Any) -> dict[str, Any]:
    return value if isinstance(value, dict) else {}


def _as_list(value: Any) -> list[Any]:
    return value if isinstance(value, list) else []


def _as_str(value: Any) -> str:
    return value if isinstance(value, str) else ""


def _group_index(groups: list[Any], entry: HookEntry) -> int | None:
    """Index of the first group matching entry's matcher and command."""
    for index, group in enumerate(groups):
        if not isinstance(group, dict):
            continue
        if _as_str(group.get("matcher")) != entry.matcher:
            continue
        for hook in _as_list(group.get("hooks")):
            if isinstance(hook, dict) and _as_str(hook.get("command")) == entry.command:
                return index
    return None


def install_hook(path: str | Path, entry: HookEntry) -> bool:
    """Add ``entry`` under its event slot; return True if the file was written."""
    path = Path(path)
    _ensure_dir(path.parent)
    cfg = _read_settings(path)
    hooks = _as_dict(cfg.get("hooks"))
    groups = _as_list(hooks.get(entry.event))
    if _group_index(groups, entry) is not None:
        return False
    groups.append(entry.to_group())
    hooks[entry.event] = groups
    cfg["hooks"] = hooks
    _write_atomic(path, _encode(cfg))
    return True


def uninstall_hook(path: str | Path, entry: HookEntry) -> bool:
    """Remove the group matching ``entry``; return True if the file was rewritten."""
    path = Path(path)
    cfg = _read_settings(path)
    hooks = _as_dict(cfg.get("hooks"))
    groups = _as_list(hooks.get(entry.event))
    index = _group_index(groups, entry)
    if index is None:
        return False
    del groups[index]
    if groups:
        hooks[entry.event] = groups
    else:
        hooks.pop(entry.event, None)
    if hooks:
        cfg["hooks"] = hooks
    else:
        cfg.pop("hooks", None)
    _write_atomic(path, _encode(cfg))
    return True


def is_hook_installed(path: str | Path, entry: HookEntry) -> bool:
    """Report whether settings.json holds a group matching ``entry``."""
    try:
        cfg = _read_settings(Path(path))
    except InstallerError:
        return False
    hooks = _as_dict(cfg.get("hooks"))
    return _group_index(_as_list(hooks.get(entry.event)), entry) is not None