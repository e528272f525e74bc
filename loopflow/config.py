from __future__ import annotations

import json
import os
import warnings
from dataclasses import dataclass
from pathlib import Path
from typing import Any

DEFAULT_CONFIG_PATH = Path("~/.config/loopflow/config.json").expanduser()

CONFIG_ENV_OVERRIDES = {
    "auto_import": "LOOPFLOW_AUTO_IMPORT",
    "search_limit": "LOOPFLOW_SEARCH_LIMIT",
    "summary_max_chars": "LOOPFLOW_SUMMARY_MAX_CHARS",
    "recent_sessions": "LOOPFLOW_RECENT_SESSIONS",
    "log_level": "LOOPFLOW_LOG_LEVEL",
}


def get_config_path(path: Path | None = None) -> Path:
    candidate = path or Path(os.getenv("LOOPFLOW_CONFIG", DEFAULT_CONFIG_PATH))
    return candidate.expanduser()


def read_config_file(path: Path | None = None) -> dict[str, Any]:
    config_path = get_config_path(path)
    if not config_path.exists():
        return {}
    raw = config_path.read_text()
    if not raw.strip():
        return {}
    try:
        data = json.loads(raw)
    except json.JSONDecodeError as exc:
        raise ValueError("invalid config json") from exc
    if not isinstance(data, dict):
        raise ValueError("config must be an object")
    return data


def write_config_file(data: dict[str, Any], path: Path | None = None) -> Path:
    config_path = get_config_path(path)
    config_path.parent.mkdir(parents=True, exist_ok=True)
    config_path.write_text(json.dumps(data, ensure_ascii=False, indent=2) + "\n")
    return config_path


def get_env_overrides() -> dict[str, str]:
    overrides: dict[str, str] = {}
    for key, env_var in CONFIG_ENV_OVERRIDES.items():
        value = os.getenv(env_var)
        if value is not None:
            overrides[key] = value
    return overrides


@dataclass
class LoopFlowConfig:
    auto_import: bool = True
    search_limit: int = 20
    summary_max_chars: int = 100
    recent_sessions: int = 5
    log_level: str = "WARNING"


INT_KEYS = {"search_limit", "summary_max_chars", "recent_sessions"}


def _parse_bool(value: str | None, default: bool) -> bool:
    if value is None:
        return default
    if value.lower() in {"1", "true", "yes", "on"}:
        return True
    if value.lower() in {"0", "false", "off", "no"}:
        return False
    return default


def _parse_int(value: object, default: int, *, key: str) -> int:
    if value is None:
        return default
    try:
        parsed = int(value)  # type: ignore[arg-type]
    except (TypeError, ValueError):
        warnings.warn(f"Invalid int for {key}: {value!r}", RuntimeWarning, stacklevel=2)
        return default
    if parsed <= 0:
        warnings.warn(f"{key} must be positive, got {parsed}", RuntimeWarning, stacklevel=2)
        return default
    return parsed


def _coerce_bool(value: object, default: bool, *, key: str) -> bool:
    if value is None:
        return default
    if isinstance(value, bool):
        return value
    if isinstance(value, int):
        return value != 0
    if isinstance(value, str):
        return _parse_bool(value, default)
    warnings.warn(f"Invalid bool for {key}: {value!r}", RuntimeWarning, stacklevel=2)
    return default


def load_config(path: Path | None = None) -> LoopFlowConfig:
    cfg = LoopFlowConfig()
    config_path = get_config_path(path)
    if config_path.exists():
        try:
            data = json.loads(config_path.read_text() or "{}")
        except json.JSONDecodeError:
            data = {}
        if isinstance(data, dict):
            cfg = _apply_dict(cfg, data)
    cfg = _apply_env(cfg)
    return cfg


def _apply_dict(cfg: LoopFlowConfig, data: dict[str, Any]) -> LoopFlowConfig:
    for key, value in data.items():
        if not hasattr(cfg, key):
            continue
        if key in INT_KEYS:
            setattr(cfg, key, _parse_int(value, getattr(cfg, key), key=key))
            continue
        if key == "auto_import":
            cfg.auto_import = _coerce_bool(value, cfg.auto_import, key=key)
            continue
        if key == "log_level":
            cfg.log_level = str(value or cfg.log_level).upper()
            continue
        setattr(cfg, key, value)
    return cfg


def _apply_env(cfg: LoopFlowConfig) -> LoopFlowConfig:
    overrides = get_env_overrides()
    if "auto_import" in overrides:
        cfg.auto_import = _parse_bool(overrides["auto_import"], cfg.auto_import)
    for key in sorted(INT_KEYS & overrides.keys()):
        setattr(cfg, key, _parse_int(overrides[key], getattr(cfg, key), key=key))
    if overrides.get("log_level"):
        cfg.log_level = overrides["log_level"].upper()
    return cfg
