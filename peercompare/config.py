"""Application configuration loaded from environment variables."""

import os
from pathlib import Path
from typing import Optional

from pydantic_settings import BaseSettings

# Check if .env file exists and is readable
_env_file = None
try:
    env_path = Path(".env")
    if env_path.exists() and os.access(env_path, os.R_OK):
        _env_file = ".env"
except (OSError, PermissionError):
    # If we can't access .env, continue without it
    pass


class Settings(BaseSettings):
    """All configuration for the peer comparison engine.

    Values are loaded from environment variables or a .env file.
    """

    # Application
    app_name: str = "peercompare"
    debug: bool = False

    # Logging
    log_level: str = "INFO"
    json_logs: bool = False

    # Persistence: JSON file backing the key-value store.  Empty means
    # the store lives in memory for the lifetime of the process.
    store_path: Optional[str] = None

    # Scoring defaults used when no saved configuration exists
    default_normalization_method: str = "percentile"
    default_include_missing_data: bool = False
    default_min_data_completeness: float = 0.5  # 50% of items must have data
    default_max_metrics_per_category: int = 10

    # Scoring needs at least this many items with data to be meaningful
    min_items_for_scoring: int = 2

    model_config = {
        "env_file": _env_file,
        "env_file_encoding": "utf-8",
        "env_file_ignore_empty": True,
    }
