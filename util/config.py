"""Settings defaults, the JSON config file, and environment overrides."""

from __future__ import annotations

import json
import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Mapping, Optional, Tuple


logger = logging.getLogger(__name__)

APP_DIR_NAME = "gcli"
CONFIG_FILE_NAME = "config.json"
SESSIONS_DIR_NAME = "sessions"
DEFAULT_SESSION_NAME = "[unsaved]"
FLASH_THINKING_BUDGET_LIMIT = 16384


@dataclass
class Settings:
    """Generation and connection settings for one client run."""
    model: str = "gemini-2.5-pro"
    temperature: float = 0.75
    seed: int = 42
    system_prompt: Optional[str] = None
    proxy: str = ""
    api_key: str = ""
    origin: str = "default"
    max_output_tokens: int = 65536
    thinking_budget: int = -1
    google_grounding: bool = True
    url_context: bool = True
    top_k: int = -1
    top_p: float = -1.0
    free_mode: bool = True
    locate: int = 0


# Config keys and the Python type each must decode to
_CONFIG_KEYS: Dict[str, type] = {
    "model": str,
    "temperature": float,
    "seed": int,
    "system_prompt": str,
    "proxy": str,
    "api_key": str,
    "origin": str,
    "max_output_tokens": int,
    "thinking_budget": int,
    "google_grounding": bool,
    "url_context": bool,
    "top_k": int,
    "top_p": float,
}


def get_base_app_path() -> Path:
    """Return (and create) the per-user data directory.

    `%APPDATA%/gcli` on Windows, `~/.config/gcli` elsewhere.
    """
    if os.name == "nt":
        base = os.environ.get("APPDATA")
        if not base:
            raise OSError("APPDATA is not set; cannot locate the configuration directory")
        path = Path(base) / APP_DIR_NAME
    else:
        home = os.environ.get("HOME") or str(Path.home())
        path = Path(home) / ".config" / APP_DIR_NAME
    path.mkdir(parents=True, exist_ok=True)
    return path


def get_config_path() -> Path:
    return get_base_app_path() / CONFIG_FILE_NAME


def get_sessions_path() -> Path:
    path = get_base_app_path() / SESSIONS_DIR_NAME
    path.mkdir(parents=True, exist_ok=True)
    return path


def _coerce(value: Any, kind: type) -> Tuple[bool, Any]:
    # bool is an int subclass; keep JSON true/false out of numeric keys
    if kind is bool:
        return isinstance(value, bool), value
    if kind in (int, float):
        if isinstance(value, bool) or not isinstance(value, (int, float)):
            return False, None
        return True, kind(value)
    return isinstance(value, str), value


def load_settings(settings: Settings, path: Optional[str | Path] = None) -> bool:
    """Overlay values from a JSON config file onto `settings`.

    A missing file is not an error. Unreadable or non-object files are reported
    and leave `settings` untouched; keys with the wrong type are ignored.

    Returns:
        True if the file was read and applied
    """
    config_path = Path(path) if path else get_config_path()
    if not config_path.exists():
        return False

    try:
        data = json.loads(config_path.read_text(encoding="utf-8"))
    except (OSError, ValueError) as e:
        logger.warning("Could not parse configuration file '%s': %s", config_path, e)
        return False
    if not isinstance(data, dict):
        logger.warning("Configuration file '%s' is not a JSON object", config_path)
        return False

    for key, kind in _CONFIG_KEYS.items():
        if key not in data:
            continue
        ok, value = _coerce(data[key], kind)
        if ok:
            setattr(settings, key, value)
        else:
            logger.debug("Ignoring config key %s with unexpected value %r", key, data[key])
    return True


def settings_to_config(settings: Settings) -> Dict[str, Any]:
    """Serializable view of the persisted settings; unset optional keys are omitted."""
    obj: Dict[str, Any] = {
        "model": settings.model,
        "temperature": settings.temperature,
        "seed": settings.seed,
    }
    if settings.system_prompt:
        obj["system_prompt"] = settings.system_prompt
    if settings.proxy:
        obj["proxy"] = settings.proxy
    if settings.api_key:
        obj["api_key"] = settings.api_key
    if settings.origin:
        obj["origin"] = settings.origin
    obj["max_output_tokens"] = settings.max_output_tokens
    obj["thinking_budget"] = settings.thinking_budget
    obj["google_grounding"] = settings.google_grounding
    obj["url_context"] = settings.url_context
    if settings.top_k > 0:
        obj["top_k"] = settings.top_k
    if settings.top_p > 0:
        obj["top_p"] = settings.top_p
    return obj


def save_settings(settings: Settings, path: Optional[str | Path] = None) -> Path:
    config_path = Path(path) if path else get_config_path()
    config_path.parent.mkdir(parents=True, exist_ok=True)
    with config_path.open("w", encoding="utf-8") as f:
        json.dump(settings_to_config(settings), f, ensure_ascii=False, indent=2)
    return config_path


def apply_environment(settings: Settings, environ: Optional[Mapping[str, str]] = None) -> Tuple[bool, bool]:
    """Take the API key and origin from GEMINI_API_KEY / GEMINI_API_KEY_ORIGIN.

    Returns:
        (key_from_env, origin_from_env)
    """
    env = os.environ if environ is None else environ
    origin = env.get("GEMINI_API_KEY_ORIGIN")
    if origin:
        settings.origin = origin
    key = env.get("GEMINI_API_KEY")
    if key:
        settings.api_key = key
    return bool(key), bool(origin)


def cap_thinking_budget(settings: Settings) -> None:
    if "flash" in settings.model and settings.thinking_budget > FLASH_THINKING_BUDGET_LIMIT:
        settings.thinking_budget = FLASH_THINKING_BUDGET_LIMIT
