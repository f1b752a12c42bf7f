"""
Runtime configuration.

'Settings' is read once at startup from 'CHAT_*' environment variables and then
passed explicitly to the app factory, so tests can build an app from a plain
'Settings(...)' without touching the environment.

    CHAT_BACKEND=sqlite CHAT_DB_PATH=chat.db CHAT_PORT=3000 python -m realtime_chat
"""

import os
import sys
from pathlib import Path
from typing import Literal

from loguru import logger
from pydantic import BaseModel, Field

ENV_PREFIX = "CHAT_"

DEFAULT_SESSION_TTL_DAYS = 30
DEFAULT_HISTORY_LIMIT = 200


class Settings(BaseModel):
    """Server configuration. Every field can be overridden with 'CHAT_<FIELD>'."""

    backend: Literal["memory", "sqlite"] = "memory"
    db_path: Path = Path("chat.db")
    host: str = "127.0.0.1"
    port: int = 3000
    session_ttl_days: float = Field(default=DEFAULT_SESSION_TTL_DAYS, gt=0)
    history_limit: int = Field(default=DEFAULT_HISTORY_LIMIT, gt=0)
    typing_timeout_seconds: float | None = None
    session_sweep_seconds: float | None = None
    log_level: str = "INFO"
    static_dir: Path | None = None

    @classmethod
    def from_env(cls, environ: dict[str, str] | None = None) -> "Settings":
        environ = dict(os.environ) if environ is None else environ
        values = {
            name: environ[ENV_PREFIX + name.upper()]
            for name in cls.model_fields
            if environ.get(ENV_PREFIX + name.upper()) not in (None, "")
        }
        return cls.model_validate(values)


def configure_logging(level: str = "INFO") -> None:
    """Replace loguru's default sink with a single stderr sink at 'level'."""
    logger.remove()
    logger.add(sys.stderr, level=level.upper(), format="{time:YYYY-MM-DD HH:mm:ss} | {level: <8} | {name} - {message}")
