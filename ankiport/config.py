# Copyright: Ankitects Pty Ltd and contributors
# License: GNU AGPL, version 3 or later; http://www.gnu.org/licenses/agpl.html

"""Runtime settings from the process environment and an optional .env file."""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from dotenv import dotenv_values

ENV_PREFIX = "ANKIPORT_"


@dataclass
class Settings:
    data_dir: Path
    db_path: Path
    uploads_dir: Path
    log_level: str = "INFO"


def load_settings(env_file: Optional[str | Path] = ".env") -> Settings:
    """Process environment overrides values from env_file."""
    env_path = Path(env_file) if env_file else None
    raw_env = dotenv_values(env_path) if env_path and env_path.exists() else {}
    env = {str(k).lstrip("\ufeff"): (v or "") for k, v in raw_env.items()}

    def get_env(name: str, default: str = "") -> str:
        key = ENV_PREFIX + name
        v = os.getenv(key)
        if v is not None and v != "":
            return v.strip()
        return str(env.get(key) or default).strip()

    data_dir = Path(get_env("DATA_DIR", "data"))
    return Settings(
        data_dir=data_dir,
        db_path=Path(get_env("DB_PATH", str(data_dir / "ankiport.db"))),
        uploads_dir=Path(get_env("UPLOADS_DIR", str(data_dir / "uploads"))),
        log_level=get_env("LOG_LEVEL", "INFO").upper(),
    )
