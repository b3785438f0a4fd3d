"""AssetUnify configuration management.

Loads configuration from environment variables with sensible defaults.
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field

from dotenv import load_dotenv

# Load .env file if present
load_dotenv()

DEFAULT_MERGE_KEY_CANDIDATES: tuple[str, ...] = (
    "hostname",
    "asset name",
    "name",
    "device",
    "system",
)


@dataclass
class DBConfig:
    """Database connection configuration."""

    url: str
    pool_size: int = 10
    pool_max_overflow: int = 20
    pool_timeout: int = 30
    echo: bool = False  # SQL logging


@dataclass
class UnificationConfig:
    """Clustering thresholds for the unified asset rebuild."""

    distance_threshold: int = 2
    merge_key_candidates: tuple[str, ...] = DEFAULT_MERGE_KEY_CANDIDATES


@dataclass
class AppConfig:
    """Root application configuration.

    Loads from environment variables with fail-fast on missing required values.
    """

    db: DBConfig
    log_level: str = "INFO"
    json_logs: bool = False

    unification: UnificationConfig = field(default_factory=UnificationConfig)

    @classmethod
    def from_env(cls) -> AppConfig:
        """Load configuration from environment variables.

        Required environment variables:
        - DATABASE_URL: SQLAlchemy async connection string

        Optional (with defaults):
        - LOG_LEVEL: Logging verbosity (default: "INFO")
        - JSON_LOGS: Render logs as JSON (default: "false")
        - MERGE_DISTANCE_THRESHOLD: Max edit distance for clustering (default: 2)
        - MERGE_KEY_CANDIDATES: Comma separated identifying column names

        Raises:
            KeyError: If required environment variables are missing
        """
        database_url = os.environ.get("DATABASE_URL")
        if not database_url:
            raise KeyError(
                "DATABASE_URL environment variable is required. "
                "Example: sqlite+aiosqlite:///./assetunify.db"
            )

        candidates_raw = os.getenv("MERGE_KEY_CANDIDATES")
        if candidates_raw:
            candidates = tuple(
                part.strip().lower() for part in candidates_raw.split(",") if part.strip()
            )
        else:
            candidates = DEFAULT_MERGE_KEY_CANDIDATES

        return cls(
            log_level=os.getenv("LOG_LEVEL", "INFO"),
            json_logs=os.getenv("JSON_LOGS", "false").lower() == "true",
            db=DBConfig(
                url=database_url,
                pool_size=int(os.getenv("DB_POOL_SIZE", "10")),
                pool_max_overflow=int(os.getenv("DB_POOL_MAX_OVERFLOW", "20")),
                pool_timeout=int(os.getenv("DB_POOL_TIMEOUT", "30")),
                echo=os.getenv("DB_ECHO", "false").lower() == "true",
            ),
            unification=UnificationConfig(
                distance_threshold=int(os.getenv("MERGE_DISTANCE_THRESHOLD", "2")),
                merge_key_candidates=candidates or DEFAULT_MERGE_KEY_CANDIDATES,
            ),
        )


# Singleton instance (lazy-loaded)
_config: AppConfig | None = None


def get_config() -> AppConfig:
    """Get or create singleton AppConfig instance from environment.

    Returns:
        AppConfig: Application configuration

    Raises:
        KeyError: If required environment variables are missing
    """
    global _config
    if _config is None:
        _config = AppConfig.from_env()
    return _config


def reset_config() -> None:
    """Drop the cached configuration so the next call re-reads the environment."""
    global _config
    _config = None
