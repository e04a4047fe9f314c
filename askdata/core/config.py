"""Process-level configuration loaded from the environment."""
from __future__ import annotations

import os
from dataclasses import dataclass
from functools import lru_cache
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv

PROJECT_ROOT = Path(__file__).resolve().parents[2]


def _load_env(dotenv_path: Optional[Path] = None) -> None:
    """Load the .env file once for the process."""

    if getattr(_load_env, "_loaded", False):  # type: ignore[attr-defined]
        return

    load_dotenv(dotenv_path or PROJECT_ROOT / ".env")
    setattr(_load_env, "_loaded", True)  # type: ignore[attr-defined]


def _parse_origins(raw: str) -> tuple[str, ...]:
    origins = tuple(item.strip() for item in raw.split(",") if item.strip())
    return origins or ("*",)


@dataclass(frozen=True)
class LoggingSettings:
    """Logging level and destination."""

    level: str = "INFO"
    log_dir: Optional[Path] = Path("logs")

    @classmethod
    def from_env(cls) -> "LoggingSettings":
        defaults = cls()
        raw_dir = os.getenv("LOG_DIR")
        if raw_dir is None:
            log_dir = defaults.log_dir
        else:
            log_dir = Path(raw_dir) if raw_dir.strip() else None
        return cls(level=os.getenv("LOG_LEVEL", defaults.level), log_dir=log_dir)


@dataclass(frozen=True)
class Settings:
    """Container for application configuration."""

    metadata_path: Path
    logging: LoggingSettings
    cors_origins: tuple[str, ...] = ("*",)
    sqlalchemy_echo: bool = False

    @classmethod
    def from_env(cls, dotenv_path: Optional[Path] = None) -> "Settings":
        """Build ``Settings`` using environment variables (optionally from ``.env``)."""

        _load_env(dotenv_path)

        metadata_path = Path(
            os.getenv(
                "ASKDATA_METADATA_PATH",
                str(PROJECT_ROOT / "config" / "database-metadata.json"),
            )
        )
        sqlalchemy_echo = os.getenv("SQLALCHEMY_ECHO", "false").lower() == "true"

        return cls(
            metadata_path=metadata_path,
            logging=LoggingSettings.from_env(),
            cors_origins=_parse_origins(os.getenv("CORS_ORIGINS", "*")),
            sqlalchemy_echo=sqlalchemy_echo,
        )


@lru_cache()
def get_settings(dotenv_path: Optional[Path] = None) -> Settings:
    """Return a cached settings instance."""

    return Settings.from_env(dotenv_path=dotenv_path)
