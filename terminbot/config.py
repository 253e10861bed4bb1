from __future__ import annotations

import os
from dataclasses import dataclass
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from dotenv import load_dotenv

from terminbot.calendar_provider import CALENDAR_URL, CLIENT_URL, DEFAULT_MAX_WINDOWS, DEFAULT_MIN_EVENTS

# {"page":[0],"filters":{"type":["1"],"cat":["6"],"izpitniCenter":["18"],"lokacija":["221"],
#  "calendar_date":["2025-10-28"],"offset":["0"],"sentinel_type":["ok"],"sentinel_status":["ok"],
#  "is_ajax":["1"]},"offsetPage":null}
DEFAULT_FILTER_PARAM = (
    "eyJwYWdlIjpbMF0sImZpbHRlcnMiOnsidHlwZSI6WyIxIl0sImNhdCI6WyI2Il0sIml6cGl0bmlDZW50ZXIiOlsiMTgiXSwibG9rYWNpamEi"
    "OlsiMjIxIl0sImNhbGVuZGFyX2RhdGUiOlsiMjAyNS0xMC0yOCJdLCJvZmZzZXQiOlsiMCJdLCJzZW50aW5lbF90eXBlIjpbIm9rIl0sInNl"
    "bnRpbmVsX3N0YXR1cyI6WyJvayJdLCJpc19hamF4IjpbIjEiXX0sIm9mZnNldFBhZ2UiOm51bGx9"
)


def _parse_chat_id(name: str, raw: str) -> str:
    # Telegram allows numeric IDs; groups/supergroups can be negative.
    try:
        int(raw)
    except ValueError as e:
        raise RuntimeError(f"Invalid {name} value: {raw!r}. Expected integer chat id.") from e

    if raw == "0":
        raise RuntimeError(f"Invalid {name} value: '0' is not a valid chat id")
    return raw


def _parse_telegram_chat_ids(raw: str) -> tuple[str, ...]:
    # TELEGRAM_CHAT_ID supports a single value or a comma-separated list.
    # Examples:
    #   TELEGRAM_CHAT_ID=123456789
    #   TELEGRAM_CHAT_ID=123456789,-1001234567890
    parts = [p.strip() for p in raw.split(",")]
    parts = [p for p in parts if p]

    seen: set[str] = set()
    result: list[str] = []
    for p in parts:
        _parse_chat_id("TELEGRAM_CHAT_ID", p)
        if p in seen:
            continue
        seen.add(p)
        result.append(p)

    if not result:
        raise RuntimeError("TELEGRAM_CHAT_ID is empty. Provide at least one chat id.")

    return tuple(result)


@dataclass(frozen=True)
class Settings:
    telegram_bot_token: str
    telegram_chat_ids: tuple[str, ...]
    # Operator chat for start/stop/failure notices. Regular recipients never get those.
    telegram_admin_chat_id: str | None = None

    filter_param: str = DEFAULT_FILTER_PARAM
    calendar_url: str = CALENDAR_URL
    client_url: str = CLIENT_URL

    check_interval_seconds: int = 900
    invalidate_interval_seconds: int = 86400

    # Polling policy
    max_windows: int = DEFAULT_MAX_WINDOWS
    min_events: int = DEFAULT_MIN_EVENTS

    http_timeout_seconds: float = 20.0
    telegram_retry_attempts: int = 2

    timezone: str = "Europe/Ljubljana"

    # Where we store last seen slots
    db_path: str = "terminbot.sqlite3"


def _require(name: str) -> str:
    value = os.getenv(name)
    if not value:
        raise RuntimeError(f"Missing required environment variable: {name}")
    return value


def _positive_int(name: str, default: str) -> int:
    raw = os.getenv(name, default)
    try:
        value = int(raw)
    except ValueError as e:
        raise RuntimeError(f"{name} must be an integer, got {raw!r}") from e
    if value < 1:
        raise RuntimeError(f"{name} must be >= 1")
    return value


def load_settings(dotenv_path: str | None = None) -> Settings:
    # Prefer .env in repo root; dotenv_path allows overriding in tests.
    load_dotenv(dotenv_path=dotenv_path, override=False)

    admin_raw = os.getenv("TELEGRAM_ADMIN_CHAT_ID", "").strip()
    admin_chat_id = _parse_chat_id("TELEGRAM_ADMIN_CHAT_ID", admin_raw) if admin_raw else None

    try:
        http_timeout_seconds = float(os.getenv("HTTP_TIMEOUT_SECONDS", "20"))
    except ValueError as e:
        raise RuntimeError("HTTP_TIMEOUT_SECONDS must be a number") from e
    if http_timeout_seconds <= 0:
        raise RuntimeError("HTTP_TIMEOUT_SECONDS must be > 0")

    timezone = os.getenv("TIMEZONE", "Europe/Ljubljana")
    try:
        ZoneInfo(timezone)
    except (ZoneInfoNotFoundError, ValueError) as e:
        raise RuntimeError(f"Unknown TIMEZONE: {timezone!r}") from e

    return Settings(
        telegram_bot_token=_require("TELEGRAM_BOT_TOKEN"),
        telegram_chat_ids=_parse_telegram_chat_ids(_require("TELEGRAM_CHAT_ID")),
        telegram_admin_chat_id=admin_chat_id,
        filter_param=os.getenv("FILTER_PARAM", DEFAULT_FILTER_PARAM),
        calendar_url=os.getenv("CALENDAR_URL", CALENDAR_URL),
        client_url=os.getenv("CLIENT_URL", CLIENT_URL),
        check_interval_seconds=_positive_int("CHECK_INTERVAL_SECONDS", "900"),
        invalidate_interval_seconds=_positive_int("INVALIDATE_INTERVAL_SECONDS", "86400"),
        max_windows=_positive_int("MAX_WINDOWS", str(DEFAULT_MAX_WINDOWS)),
        min_events=_positive_int("MIN_EVENTS", str(DEFAULT_MIN_EVENTS)),
        http_timeout_seconds=http_timeout_seconds,
        telegram_retry_attempts=_positive_int("TELEGRAM_RETRY_ATTEMPTS", "2"),
        timezone=timezone,
        db_path=os.getenv("DB_PATH", "terminbot.sqlite3"),
    )
