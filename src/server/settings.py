from __future__ import annotations
import os
from pathlib import Path
from typing import Dict, Optional

from dotenv import load_dotenv

from kikichoice.config import ConfigError, DatabaseConfig


def init_settings(path: Optional[Path] = None) -> None:
    if path is not None and path.exists():
        load_dotenv(path)


def default_settings() -> Dict:
    return {
        "env": "development",
        "database_url": None,
        "log_level": "INFO",
        "host": "0.0.0.0",
        "port": 8000,
    }


def get_settings() -> Dict:
    base = default_settings()
    base["env"] = os.getenv("ENV", base["env"])
    base["log_level"] = os.getenv("LOG_LEVEL", base["log_level"]).upper()
    base["host"] = os.getenv("HOST", base["host"])
    base["port"] = int(os.getenv("PORT", base["port"]))
    try:
        base["database_url"] = DatabaseConfig.from_env().dsn()
    except ConfigError:
        base["database_url"] = None
    return base
