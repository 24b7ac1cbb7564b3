"""Runtime configuration — env-driven router settings.

Centralized config using pydantic-settings for environment variable
support. Reads from a .env file and SIGNALPOST_* environment variables.
"""

from __future__ import annotations

from pathlib import Path

from pydantic_settings import BaseSettings, SettingsConfigDict


class RouterSettings(BaseSettings):
    """Router configuration with environment variable overrides.

    All settings can be overridden via SIGNALPOST_* environment variables
    or a .env file in the working directory.

    Examples
    --------
    Override via environment::

        export SIGNALPOST_LOG_LEVEL=DEBUG
        export SIGNALPOST_FUNCTION_NAME=orders-ingest
        export SIGNALPOST_QUEUE_DIR=/data/queues

    Or via .env file::

        SIGNALPOST_ENVIRONMENT=production
        SIGNALPOST_DELIVERY_WORKERS=8
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_prefix="SIGNALPOST_",
        env_file_encoding="utf-8",
    )

    # Runtime environment
    environment: str = "development"
    log_level: str = "INFO"
    debug: bool = False

    # Source identity stamped on every envelope
    function_name: str = "signalpost-function"
    function_version: str = "$LATEST"
    envelope_version: str = "1.0"

    # Pools
    invocation_workers: int = 4
    delivery_workers: int = 4

    # Sinks
    queue_max_depth: int = 1024
    queue_dir: Path = Path(".signalpost/queues")
    event_bus_history: int = 1024

    # Failure envelopes carry the formatted traceback when enabled
    include_stack_trace: bool = True

    @property
    def is_production(self) -> bool:
        """Whether running in production mode."""
        return self.environment == "production"


# Module-level singleton — import as `from signalpost.config import config`
config = RouterSettings()
