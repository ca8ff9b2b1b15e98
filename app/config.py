"""
app/config.py

Application-level configuration helpers.
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from functools import lru_cache

from db.config import load_env_files


@lru_cache(maxsize=1)
def _load_env_once() -> None:
    """
    Ensure project `.env` files are loaded once before reading app settings.
    """

    load_env_files()


def _get_int_env(name: str, default: int) -> int:
    """
    Read an integer from environment variables with safe fallback.
    """

    _load_env_once()
    raw_value = os.getenv(name)
    if raw_value is None:
        return default
    try:
        return int(raw_value)
    except ValueError:
        return default


def _get_float_env(name: str, default: float) -> float:
    """
    Read a float from environment variables with safe fallback.
    """

    _load_env_once()
    raw_value = os.getenv(name)
    if raw_value is None:
        return default
    try:
        return float(raw_value)
    except ValueError:
        return default


def _get_str_env(name: str, default: str) -> str:
    """
    Read a string from environment variables with fallback.
    """

    _load_env_once()
    value = os.getenv(name)
    if value is None:
        return default
    stripped = value.strip()
    return stripped if stripped else default


@dataclass(frozen=True)
class AnalyticsSettings:
    """
    Dashboard statistics settings.

    The ``system_*`` labels are static placeholders shown on the dashboard's
    system card; they are not measured.
    """

    top_subjects: int = 6
    recent_activity_limit: int = 6
    active_user_hours: int = 24
    new_user_days: int = 7
    system_web_server: str = "120ms response"
    system_database: str = "45 queries/sec"
    system_storage: str = "85% used"


@dataclass(frozen=True)
class ReportSettings:
    """
    Report job execution settings.
    """

    max_concurrent_jobs: int = 4
    detail_row_limit: int = 100
    error_max_length: int = 2000
    stale_after_minutes: int = 60
    sweep_interval_minutes: int = 5
    shutdown_timeout_seconds: float = 30.0


@lru_cache(maxsize=1)
def get_analytics_settings() -> AnalyticsSettings:
    """
    Return cached dashboard statistics settings from environment variables.
    """

    return AnalyticsSettings(
        top_subjects=max(1, _get_int_env("ANALYTICS_TOP_SUBJECTS", 6)),
        recent_activity_limit=max(1, _get_int_env("ANALYTICS_RECENT_ACTIVITY_LIMIT", 6)),
        active_user_hours=max(1, _get_int_env("ANALYTICS_ACTIVE_USER_HOURS", 24)),
        new_user_days=max(1, _get_int_env("ANALYTICS_NEW_USER_DAYS", 7)),
        system_web_server=_get_str_env("SYSTEM_WEB_SERVER_LABEL", "120ms response"),
        system_database=_get_str_env("SYSTEM_DATABASE_LABEL", "45 queries/sec"),
        system_storage=_get_str_env("SYSTEM_STORAGE_LABEL", "85% used"),
    )


@lru_cache(maxsize=1)
def get_report_settings() -> ReportSettings:
    """
    Return cached report execution settings from environment variables.
    """

    return ReportSettings(
        max_concurrent_jobs=max(1, _get_int_env("REPORT_MAX_CONCURRENT_JOBS", 4)),
        detail_row_limit=max(1, _get_int_env("REPORT_DETAIL_ROW_LIMIT", 100)),
        error_max_length=max(64, _get_int_env("REPORT_ERROR_MAX_LENGTH", 2000)),
        stale_after_minutes=max(1, _get_int_env("REPORT_STALE_AFTER_MINUTES", 60)),
        sweep_interval_minutes=max(1, _get_int_env("REPORT_SWEEP_INTERVAL_MINUTES", 5)),
        shutdown_timeout_seconds=max(1.0, _get_float_env("REPORT_SHUTDOWN_TIMEOUT_SECONDS", 30.0)),
    )
