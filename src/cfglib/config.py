from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional

import yaml

from .errors import SettingsError
from .kinds import ConfigFormat

log = logging.getLogger(__name__)

ENV_VAR = "CFGCTL_CONFIG"


@dataclass
class Settings:
    version: int = 1
    json_indent: int = 2
    extensions: Dict[str, ConfigFormat] = field(default_factory=dict)
    source_path: Optional[Path] = None


def _expand_env(value: Any) -> Any:
    if isinstance(value, str):
        # Expand ${VAR} style
        return os.path.expandvars(value)
    if isinstance(value, dict):
        return {k: _expand_env(v) for k, v in value.items()}
    if isinstance(value, list):
        return [_expand_env(v) for v in value]
    return value


def _candidate_paths() -> List[Path]:
    xdg_home = Path(os.environ.get("XDG_CONFIG_HOME", "~/.config")).expanduser()
    candidates = [xdg_home / "cfgctl" / "config.yaml"]

    xdg_dirs = os.environ.get("XDG_CONFIG_DIRS", "/etc/xdg")
    for d in xdg_dirs.split(":"):
        if d:
            candidates.append(Path(d) / "cfgctl" / "config.yaml")
    return candidates


def resolve_settings_path() -> Optional[Path]:
    """Locate the settings file; None means run with defaults."""
    # Highest priority: explicit override
    override = os.environ.get(ENV_VAR)
    if override:
        p = Path(override).expanduser()
        if p.is_file():
            return p
        raise SettingsError(path=str(p), reason=f"{ENV_VAR} points to a missing file")

    for c in _candidate_paths():
        if c.is_file():
            return c
    return None


def _as_extensions(path: Path, raw: Any) -> Dict[str, ConfigFormat]:
    if not isinstance(raw, dict):
        raise SettingsError(path=str(path), reason="'extensions' must be a mapping of extension to format")
    out: Dict[str, ConfigFormat] = {}
    for ext, fmt in raw.items():
        ext = str(ext).strip().lower()
        if not ext.startswith("."):
            ext = "." + ext
        try:
            out[ext] = ConfigFormat(str(fmt).strip().lower())
        except ValueError:
            raise SettingsError(path=str(path), reason=f"unknown format {fmt!r} for extension {ext!r}") from None
    return out


def load_settings(path: Optional[Path] = None) -> Settings:
    cfg_path = path or resolve_settings_path()
    if cfg_path is None:
        log.info("No settings file found, using defaults")
        return Settings()

    try:
        data = yaml.safe_load(cfg_path.read_text()) or {}
    except OSError as e:
        raise SettingsError(path=str(cfg_path), reason=e.strerror or str(e)) from e
    except yaml.YAMLError as e:
        raise SettingsError(path=str(cfg_path), reason=f"not valid YAML ({e.__class__.__name__})") from e

    if not isinstance(data, dict):
        raise SettingsError(path=str(cfg_path), reason="top level must be a mapping")

    data = _expand_env(data)
    try:
        version = int(data.get("version", 1))
        json_indent = int(data.get("json_indent", 2))
    except (TypeError, ValueError) as e:
        raise SettingsError(path=str(cfg_path), reason=str(e)) from e
    if json_indent < 0:
        raise SettingsError(path=str(cfg_path), reason="'json_indent' must be zero or positive")

    settings = Settings(
        version=version,
        json_indent=json_indent,
        extensions=_as_extensions(cfg_path, data.get("extensions") or {}),
        source_path=cfg_path,
    )
    log.info("Loaded settings from %s", cfg_path)
    return settings
