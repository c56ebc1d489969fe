"""Centralized application configuration using Pydantic Settings (v2).

This module exposes a single, cached `settings` instance that reads from:
- Real environment variables (highest precedence)
- `.env` files at the repository root: .env, .env.local, .env.dev/.env.test/.env.prod

Every knob of the job lifecycle lives here: where jobs are persisted, how the
worker is triggered, how long a job may stay in `processing`, and how often
clients poll for status.
"""

from __future__ import annotations

import logging
import os
from functools import lru_cache
from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

EnvName = Literal["dev", "test", "prod"]
LogLevelName = Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]


class Settings(BaseSettings):
    """Typed application configuration loaded from env and `.env` files.

    Attributes
    ----------
    environment : EnvName
        Runtime environment flag; maps from `CLASSLENS_ENV`.
    log_level : LogLevelName
        Global log level string; maps from `LOG_LEVEL`.
    database_url : str
        SQLAlchemy URL of the job store and classroom tables; maps from `DATABASE_URL`.
    gemini_api_key / openai_api_key : Optional[str]
        Provider credentials. The worker treats a missing key for the model
        it needs as a fatal configuration error.
    inline_dispatch : bool
        When true the API schedules the worker right after responding; when
        false only a standalone worker consumes the queue.
    max_processing_seconds : float
        Watchdog budget after which a `processing` job is force-failed.
    embedded_worker : bool
        Run the worker loop (and with it the watchdog) as a thread inside the
        API. When false, a separate `classlens worker` process must run or
        stuck `processing` jobs are never force-failed.
    """

    environment: EnvName = Field(default="dev", alias="CLASSLENS_ENV")
    log_level: LogLevelName = Field(default="INFO", alias="LOG_LEVEL")

    database_url: str = Field(default="sqlite:///./classlens.db", alias="DATABASE_URL")

    gemini_api_key: str | None = Field(default=None, alias="GEMINI_API_KEY")
    openai_api_key: str | None = Field(default=None, alias="OPENAI_API_KEY")
    analysis_model: str = Field(default="flash", alias="CLASSLENS_ANALYSIS_MODEL")

    inline_dispatch: bool = Field(default=True, alias="CLASSLENS_INLINE_DISPATCH")
    embedded_worker: bool = Field(default=False, alias="CLASSLENS_EMBEDDED_WORKER")
    worker_poll_interval: float = Field(default=2.0, gt=0, alias="CLASSLENS_WORKER_POLL_INTERVAL")
    max_processing_seconds: float = Field(
        default=600.0, gt=0, alias="CLASSLENS_MAX_PROCESSING_SECONDS"
    )
    simulated_delay_seconds: float = Field(
        default=0.0, ge=0, alias="CLASSLENS_SIMULATED_DELAY_SECONDS"
    )

    poll_interval_seconds: float = Field(default=2.0, gt=0, alias="CLASSLENS_POLL_INTERVAL")
    api_base_url: str = Field(default="http://localhost:8000", alias="CLASSLENS_API_URL")

    model_config = SettingsConfigDict(
        env_file=(".env", ".env.local", ".env.dev", ".env.test", ".env.prod"),
        env_file_encoding="utf-8",
        extra="ignore",
    )

    @property
    def is_dev(self) -> bool:
        """Return True if running in the development environment."""
        return self.environment == "dev"

    @property
    def is_test(self) -> bool:
        """Return True if running in the test environment."""
        return self.environment == "test"

    @property
    def is_prod(self) -> bool:
        """Return True if running in the production environment."""
        return self.environment == "prod"

    def log_level_numeric(self) -> int:
        """Return the numeric logging level corresponding to `self.log_level`."""
        return getattr(logging, self.log_level, logging.INFO)


@lru_cache(maxsize=1)
def load_settings() -> Settings:
    """Create and cache a `Settings` instance.

    We keep this behind an LRU cache so tests can force a rebuild via
    `load_settings.cache_clear()` after mutating `os.environ`.
    """
    os.environ.setdefault("CLASSLENS_ENV", "dev")
    return Settings()


# Export a ready-to-use singleton (import-time read of env / .env files).
settings: Settings = load_settings()


def get_logger(name: str = "classlens") -> logging.Logger:
    """Return a process-global logger configured to `settings.log_level`."""
    logger = logging.getLogger(name)
    if not logger.handlers:
        handler = logging.StreamHandler()
        handler.setFormatter(
            logging.Formatter("%(asctime)s | %(levelname)s | %(name)s | %(message)s")
        )
        logger.addHandler(handler)
    logger.setLevel(settings.log_level_numeric())
    logger.propagate = False
    return logger
