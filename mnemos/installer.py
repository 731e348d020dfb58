"""Idempotent registration of the server in MCP client config files.

Each :class:`Target` names a JSON or TOML config file and the place in it
(``group``/``key``) where the server entry lives. Unrelated keys in the
file are preserved untouched.
"""

from __future__ import annotations

import json
import os
import sys
import tomllib
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any

import tomli_w

DEFAULT_GROUP = "mcpServers"
DEFAULT_KEY = "mnemos"


class InstallerError(RuntimeError):
    """Raised when a client config file cannot be read, parsed or written."""


class ConfigFormat(str, Enum):
    """On-disk encoding of a target's config file."""

    JSON = "json"
    TOML = "toml"


@dataclass
class Target:
    """An MCP client config location and where our entry goes inside it."""

    name: str
    path: Path
    group: str = DEFAULT_GROUP
    key: str = DEFAULT_KEY
    format: ConfigFormat = ConfigFormat.JSON

    def __post_init__(self) -> None:
        self.path = Path(self.path)
        self.group = self.group or DEFAULT_GROUP
        self.key = self.key or DEFAULT_KEY
        fmt = self.format or ConfigFormat.JSON
        try:
            self.format = ConfigFormat(fmt)
        except ValueError:
            raise InstallerError(f"unknown format: {fmt}") from None


@dataclass
class ServerEntry:
    """The value written under ``group[key]``."""

    command: str
    args: list[str] = field(default_factory=list)
    env: dict[str, str] = field(default_factory=dict)

    def to_config(self) -> dict[str, Any]:
        out: dict[str, Any] = {"command": self.command}
        if self.args:
            out["args"] = list(self.args)
        if self.env:
            out["env"] = dict(self.env)
        return out


def _claude_config_dir(home: Path) -> Path:
    override = os.environ.get("CLAUDE_CONFIG_DIR")
    return Path(override) if override else home


def _claude_desktop_path(home: Path) -> Path | None:
    if sys.platform == "darwin":
        return home / "Library" / "Application Support" / "Claude" / "claude_desktop_config.json"
    if sys.platform.startswith("win"):
        app_data = os.environ.get("APPDATA")
        if app_data:
            return Path(app_data) / "Claude" / "claude_desktop_config.json"
    return None


def detect_targets() -> list[Target]:
    """Return client config targets whose file or parent directory exists."""
    try:
        home = Path.home()
    except RuntimeError:
        return []
    candidates = [
        Target("Claude Code (user)", _claude_config_dir(home) / ".claude.json"),
        Target("Cursor", home / ".cursor" / "mcp.json"),
        Target("Windsurf", home / ".codeium" / "windsurf" / "mcp_config.json"),
        Target(
            "OpenAI Codex CLI",
            home / ".codex" / "config.toml",
            group="mcp_servers",
            format=ConfigFormat.TOML,
        ),
    ]
    desktop = _claude_desktop_path(home)
    if desktop is not None:
        candidates.append(Target("Claude Desktop", desktop))
    return [c for c in candidates if c.path.exists() or c.path.parent.exists()]


def _decode_config(fmt: ConfigFormat, data: bytes) -> dict[str, Any]:
    try:
        if fmt is ConfigFormat.JSON:
            cfg = json.loads(data)
        else:
            cfg = tomllib.loads(data.decode("utf-8"))
    except (ValueError, UnicodeDecodeError) as exc:
        raise InstallerError(f"parse {fmt.value}: {exc}") from exc
    if cfg is None:
        return {}
    if not isinstance(cfg, dict):
        raise InstallerError(f"parse {fmt.value}: top level is not an object")
    return cfg


def _encode_config(fmt: ConfigFormat, cfg: dict[str, Any]) -> bytes:
    try:
        if fmt is ConfigFormat.JSON:
            text = json.dumps(cfg, indent=2, sort_keys=True, ensure_ascii=False) + "\n"
        else:
            text = tomli_w.dumps(cfg)
    except (TypeError, ValueError) as exc:
        raise InstallerError(f"marshal {fmt.value}: {exc}") from exc
    return text.encode("utf-8")


def _read_config(target: Target) -> dict[str, Any]:
    try:
        data = target.path.read_bytes()
    except FileNotFoundError:
        return {}
    except OSError as exc:
        raise InstallerError(f"read {target.path}: {exc}") from exc
    if not data:
        return {}
    return _decode_config(target.format, data)


def _ensure_dir(directory: Path) -> None:
    try:
        directory.mkdir(parents=True, exist_ok=True)
    except OSError as exc:
        raise InstallerError(f"create {directory}: {exc}") from exc


def _write_atomic(path: Path, data: bytes) -> None:
    tmp = path.with_name(path.name + ".tmp")
    try:
        tmp.write_bytes(data)
    except OSError as exc:
        raise InstallerError(f"write temp: {exc}") from exc
    try:
        os.replace(tmp, path)
    except OSError as exc:
        tmp.unlink(missing_ok=True)
        raise InstallerError(f"rename: {exc}") from exc


def install(target: Target, entry: ServerEntry) -> bool:
    """Add or update our entry; return True if the file was written."""
    _ensure_dir(target.path.parent)
    cfg = _read_config(target)
    servers = cfg.get(target.group)
    if not isinstance(servers, dict):
        servers = {}
    desired = entry.to_config()
    if servers.get(target.key) == desired:
        return False
    servers[target.key] = desired
    cfg[target.group] = servers
    _write_atomic(target.path, _encode_config(target.format, cfg))
    return True


def uninstall(target: Target) -> bool:
    """Remove our entry; return True if the file was changed."""
    try:
        data = target.path.read_bytes()
    except FileNotFoundError:
        return False
    except OSError as exc:
        raise InstallerError(f"read {target.path}: {exc}") from exc
    cfg = _decode_config(target.format, data)
    servers = cfg.get(target.group)
    if not isinstance(servers, dict) or target.key not in servers:
        return False
    del servers[target.key]
    _write_atomic(target.path, _encode_config(target.format, cfg))
    return True


def is_installed(target: Target) -> bool:
    """Report whether the target's config already holds our entry."""
    try:
        cfg = _decode_config(target.format, target.path.read_bytes())
    except (OSError, InstallerError):
        return False
    servers = cfg.get(target.group)
    return isinstance(servers, dict) and target.key in servers