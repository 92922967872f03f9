"""Session configuration via pydantic-settings.

Every option can be set through an environment variable with the
``GRIDCALC_`` prefix or a ``.env`` file:

    GRIDCALC_ROWS: Number of grid rows (default: 50)
    GRIDCALC_COLUMNS: Number of grid columns, 1-26 (default: 3)
    GRIDCALC_API_BASE_URL: Save endpoint base URL (default: http://localhost:8082)
    GRIDCALC_REQUEST_TIMEOUT: HTTP timeout in seconds (default: 10)
    GRIDCALC_SAVE_DEBOUNCE_MS: Quiet window before a remote save (default: 1000)
    GRIDCALC_BACKOFF_INITIAL_MS: First retry / poll delay (default: 5000)
    GRIDCALC_MAX_RETRIES: Retries for a failed request (default: 3)
    GRIDCALC_STORAGE_PATH: Local snapshot file (default: spreadsheetData.json)
    GRIDCALC_LOG_LEVEL: Logging level (default: INFO)
"""

from __future__ import annotations

import logging

from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from gridcalc._utils import MAX_COLUMNS


class Settings(BaseSettings):
    """Settings for a spreadsheet session."""

    model_config = SettingsConfigDict(
        env_prefix="GRIDCALC_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # =========================================================================
    # Grid
    # =========================================================================

    rows: int = 50
    """Number of rows, fixed for the session."""

    columns: int = 3
    """Number of columns (one letter each), fixed for the session."""

    # =========================================================================
    # Remote save
    # =========================================================================

    api_base_url: str = "http://localhost:8082"
    """Base URL serving ``POST /save`` and ``GET /get-status``."""

    request_timeout: float = 10.0
    """Per-request timeout in seconds."""

    save_debounce_ms: int = 1000
    """Quiet window collapsing repeated save triggers."""

    backoff_initial_ms: int = 5000
    """Initial delay for status polling and request retries; doubles each time."""

    max_retries: int = 3
    """Retries for a failed save or status request before giving up."""

    # =========================================================================
    # Local snapshot
    # =========================================================================

    storage_path: str = "spreadsheetData.json"
    """JSON file holding the last committed grid snapshot."""

    # =========================================================================
    # Logging
    # =========================================================================

    log_level: str = "INFO"
    """Logging level: DEBUG, INFO, WARNING, ERROR, or CRITICAL."""

    @field_validator("rows")
    @classmethod
    def validate_rows(cls, v: int) -> int:
        if v < 1:
            raise ValueError(f"rows must be at least 1, got {v}")
        return v

    @field_validator("columns")
    @classmethod
    def validate_columns(cls, v: int) -> int:
        if not 1 <= v <= MAX_COLUMNS:
            raise ValueError(f"columns must be between 1 and {MAX_COLUMNS}, got {v}")
        return v

    @field_validator("save_debounce_ms", "backoff_initial_ms", "max_retries")
    @classmethod
    def validate_non_negative(cls, v: int) -> int:
        if v < 0:
            raise ValueError(f"must not be negative, got {v}")
        return v

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        valid_levels = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}
        upper_v = v.upper()
        if upper_v not in valid_levels:
            raise ValueError(
                f"Invalid log level: {v}. Must be one of: {', '.join(sorted(valid_levels))}"
            )
        return upper_v

    @property
    def save_debounce_seconds(self) -> float:
        return self.save_debounce_ms / 1000

    @property
    def backoff_initial_seconds(self) -> float:
        return self.backoff_initial_ms / 1000


def configure_logging(settings: Settings) -> None:
    """Apply ``settings.log_level`` to the ``gridcalc`` logger hierarchy."""
    logging.basicConfig(
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    logging.getLogger("gridcalc").setLevel(settings.log_level)
