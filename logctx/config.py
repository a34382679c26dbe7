"""Environment driven configuration for the logging setup."""
from __future__ import annotations

import os
from dataclasses import dataclass
from functools import lru_cache
from pathlib import Path
from typing import Any, Optional

from dotenv import load_dotenv

_FALSE = {"0", "false", "False", "no", "off"}
_TRUE = {"1", "true", "True", "yes", "on"}


def _load_env(dotenv_path: Optional[Path] = None) -> None:
    """Load the .env file once for the process."""

    if getattr(_load_env, "_loaded", False):  # type: ignore[attr-defined]
        return

    load_dotenv(dotenv_path)
    setattr(_load_env, "_loaded", True)  # type: ignore[attr-defined]


def _get_bool(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    raw = raw.strip()
    if raw in _TRUE:
        return True
    if raw in _FALSE:
        return False
    return default


@dataclass(frozen=True)
class Settings:
    """Container for logging configuration."""

    app_name: str = "logctx"
    level: str = "INFO"
    log_dir: Optional[Path] = None
    json: bool = False
    console: bool = True
    queue: bool = True
    request_id_header: str = "x-request-id"

    @classmethod
    def from_env(cls) -> "Settings":
        """Instantiate settings using environment overrides when present."""

        _load_env()
        defaults = cls()
        raw_dir = os.getenv("LOGCTX_LOG_DIR", "")
        return cls(
            app_name=os.getenv("LOGCTX_APP_NAME", defaults.app_name),
            level=os.getenv("LOGCTX_LEVEL", defaults.level).upper(),
            log_dir=Path(raw_dir) if raw_dir.strip() else None,
            json=_get_bool("LOGCTX_JSON", defaults.json),
            console=_get_bool("LOGCTX_CONSOLE", defaults.console),
            queue=_get_bool("LOGCTX_QUEUE", defaults.queue),
            request_id_header=os.getenv(
                "LOGCTX_REQUEST_ID_HEADER", defaults.request_id_header
            ).lower(),
        )

    def logging_kwargs(self) -> dict[str, Any]:
        """Keyword arguments accepted by :func:`logctx.log.init_logging`."""

        return {
            "app_name": self.app_name,
            "level": self.level,
            "log_dir": self.log_dir,
            "json": self.json,
            "console": self.console,
            "queue": self.queue,
        }


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Return a cached ``Settings`` instance."""

    return Settings.from_env()


__all__ = ["Settings", "get_settings"]
