from __future__ import annotations

import os
from dataclasses import dataclass


def _env(key: str, default: str | None = None) -> str | None:
    # Empty strings count as unset.
    value = os.getenv(key)
    if value is not None and value.strip() != "":
        return value
    return default


def _parse_int(value: str | None, default: int) -> int:
    if value is None:
        return default
    try:
        return int(value.strip())
    except ValueError:
        return default


@dataclass(frozen=True)
class Settings:
    database_url: str
    frontend_origin: str
    log_level: str
    default_timezone: str
    default_rollover: str
    months_back: int
    months_ahead: int
    shared_months_back: int
    shared_months_ahead: int
    reminder_days: int


def load_settings() -> Settings:
    default_rollover = (_env("CENTSEI_DEFAULT_ROLLOVER", "carryover") or "carryover").strip().lower()
    if default_rollover not in {"carryover", "reset"}:
        default_rollover = "carryover"

    reminder_days = _parse_int(_env("CENTSEI_REMINDER_DAYS"), 90)
    if reminder_days <= 0:
        reminder_days = 90

    return Settings(
        database_url=_env("DATABASE_URL", "sqlite:///./centsei.db") or "sqlite:///./centsei.db",
        frontend_origin=_env("FRONTEND_ORIGIN", "http://localhost:3000") or "http://localhost:3000",
        log_level=(_env("CENTSEI_LOG_LEVEL", "INFO") or "INFO").upper(),
        default_timezone=_env("CENTSEI_DEFAULT_TIMEZONE", "UTC") or "UTC",
        default_rollover=default_rollover,
        months_back=max(0, _parse_int(_env("CENTSEI_MONTHS_BACK"), 6)),
        months_ahead=max(0, _parse_int(_env("CENTSEI_MONTHS_AHEAD"), 12)),
        shared_months_back=max(0, _parse_int(_env("CENTSEI_SHARED_MONTHS_BACK"), 12)),
        shared_months_ahead=max(0, _parse_int(_env("CENTSEI_SHARED_MONTHS_AHEAD"), 24)),
        reminder_days=reminder_days,
    )
