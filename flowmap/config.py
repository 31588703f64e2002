"""
Configuration management for Flowmap.

Settings come from config.json next to the app, overridden by environment
variables (app.py loads .env into the environment with python-dotenv first).

Keys:
  backend           FLOWMAP_BACKEND        'http' (default) or 'supabase'
  api_base_url      FLOWMAP_API_URL        base of the /api/v1 routes
  request_timeout   FLOWMAP_TIMEOUT        seconds, default 10
  name_debounce_ms  FLOWMAP_NAME_DEBOUNCE  default 500
  supabase_url      SUPABASE_URL
  supabase_key      SUPABASE_KEY
  workspace_id      FLOWMAP_WORKSPACE_ID   workspace opened on startup
"""

import json
import logging
import os
from pathlib import Path
from typing import Optional

from flowmap.paths import get_config_path
from flowmap.storage.http_backend import DEFAULT_BASE_URL, DEFAULT_TIMEOUT

logger = logging.getLogger(__name__)

DEFAULTS = {
    "backend": "http",
    "api_base_url": DEFAULT_BASE_URL,
    "request_timeout": DEFAULT_TIMEOUT,
    "name_debounce_ms": 500,
    "supabase_url": None,
    "supabase_key": None,
    "workspace_id": None,
}

ENV_KEYS = {
    "backend": "FLOWMAP_BACKEND",
    "api_base_url": "FLOWMAP_API_URL",
    "request_timeout": "FLOWMAP_TIMEOUT",
    "name_debounce_ms": "FLOWMAP_NAME_DEBOUNCE",
    "supabase_url": "SUPABASE_URL",
    "supabase_key": "SUPABASE_KEY",
    "workspace_id": "FLOWMAP_WORKSPACE_ID",
}

_NUMERIC = {"request_timeout": float, "name_debounce_ms": int}


def load_config(config_path: Optional[Path] = None) -> dict:
    """Load configuration from config.json."""
    config_path = config_path or get_config_path()
    if config_path.exists():
        try:
            with open(config_path, 'r', encoding='utf-8') as f:
                return json.load(f)
        except (json.JSONDecodeError, IOError) as e:
            logger.warning(f"Ignoring unreadable config {config_path}: {e}")
            return {}
    return {}


def load_settings(config_path: Optional[Path] = None, environ: Optional[dict] = None) -> dict:
    """
    Effective settings: defaults < config.json < environment.

    Numeric values that do not parse fall back to the default.
    """
    environ = os.environ if environ is None else environ
    settings = dict(DEFAULTS)

    for key, value in load_config(config_path).items():
        if key in DEFAULTS and value is not None:
            settings[key] = value

    for key, env_name in ENV_KEYS.items():
        value = environ.get(env_name)
        if value:
            settings[key] = value

    for key, cast in _NUMERIC.items():
        try:
            settings[key] = cast(settings[key])
        except (TypeError, ValueError):
            logger.warning(f"Invalid {key} {settings[key]!r}, using default {DEFAULTS[key]}")
            settings[key] = DEFAULTS[key]

    return settings


def name_debounce_seconds(settings: dict) -> float:
    return settings.get("name_debounce_ms", DEFAULTS["name_debounce_ms"]) / 1000
