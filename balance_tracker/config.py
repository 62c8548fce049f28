"""Configuration utilities for the Balance Tracker.

Settings come from built-in defaults, then an optional JSON file, then
environment variables (highest precedence).
"""

from __future__ import annotations

import json
import os
from dataclasses import dataclass, fields, replace
from pathlib import Path
from typing import Dict, Optional

PACKAGE_ROOT = Path(__file__).resolve().parent
PROJECT_ROOT = PACKAGE_ROOT.parent

DEFAULT_DATABASE_URL = f"sqlite:///{PROJECT_ROOT / 'balance_tracker.db'}"

# Environment variable -> AppConfig field.
ENV_OVERRIDES: Dict[str, str] = {
    "DATABASE_URL": "database_url",
    "SECRET_KEY": "secret_key",
    "SESSION_HOURS": "session_hours",
    "LOG_LEVEL": "log_level",
    "FLASK_DEBUG": "debug",
}


def _coerce(name: str, value):
    if name == "session_hours":
        return int(value)
    if name == "debug":
        if isinstance(value, bool):
            return value
        return str(value).strip().lower() in {"1", "true", "yes", "on"}
    if name == "log_level":
        return str(value).upper()
    return str(value)


@dataclass(frozen=True)
class AppConfig:
    database_url: str = DEFAULT_DATABASE_URL
    secret_key: str = "dev-secret-key-change-me"
    session_hours: int = 24
    log_level: str = "INFO"
    debug: bool = False

    @staticmethod
    def load(config_path: Optional[str | Path] = None, environ: Optional[Dict[str, str]] = None) -> "AppConfig":
        """Load config from JSON if provided, then apply environment overrides.

        JSON format:
        {
          "database_url": "postgresql+psycopg2://user:pw@host/db",
          "secret_key": "...",
          "session_hours": 24,
          "log_level": "INFO"
        }
        """

        cfg = AppConfig()
        known = {f.name for f in fields(AppConfig)}

        if config_path:
            p = Path(config_path)
            if p.exists():
                with p.open("r", encoding="utf-8") as f:
                    raw = json.load(f)
                if isinstance(raw, dict):
                    values = {k: _coerce(k, v) for k, v in raw.items() if k in known and v is not None}
                    cfg = replace(cfg, **values)

        env = os.environ if environ is None else environ
        env_values = {
            field_name: _coerce(field_name, env[var])
            for var, field_name in ENV_OVERRIDES.items()
            if env.get(var)
        }
        if env_values:
            cfg = replace(cfg, **env_values)
        return cfg
