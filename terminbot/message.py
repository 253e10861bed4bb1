from __future__ import annotations

from typing import Any, Sequence

from terminbot.domain import Event
from terminbot.params import encode, filters_of

HEADER = "Novi termini za glavno vožnjo so na voljo"

# Filters that only make sense for the ajax endpoint, not for a link a human opens.
_DYNAMIC_FILTERS = frozenset({"calendar_date", "offset", "is_ajax", "sentinel_type", "sentinel_status"})


def format_event_date(date_iso: str, current_year: int) -> str:
    year, month, day = date_iso.split("-")
    if int(year) == current_year:
        return f"{day}. {month}."
    return f"{day}. {month}. {year}"


def build_client_url(descriptor: dict[str, Any], client_base_url: str) -> str:
    static = {k: v for k, v in filters_of(descriptor).items() if k not in _DYNAMIC_FILTERS}
    return f"{client_base_url}?lang=si#{encode({'filters': static})}"


def compose_message(
    events: Sequence[Event],
    descriptor: dict[str, Any],
    *,
    client_base_url: str,
    current_year: int,
) -> str:
    if not events:
        raise ValueError("compose_message() needs at least one event")

    lines = "\n".join(f"- {format_event_date(e.date, current_year)} ob {e.time}" for e in events)
    url = build_client_url(descriptor, client_base_url)
    return f"{HEADER}\n\n{lines}\n\nPoglej si več: {url}"


TELEGRAM_MESSAGE_LIMIT = 4096


def split_message(text: str, limit: int = TELEGRAM_MESSAGE_LIMIT) -> list[str]:
    """Cut a message into Telegram-sized parts, on line boundaries where possible."""
    if len(text) <= limit:
        return [text]

    parts: list[str] = []
    buf: list[str] = []
    size = 0
    for line in text.split("\n"):
        # A single line longer than the limit gets hard-cut.
        while len(line) > limit:
            if buf:
                parts.append("\n".join(buf))
                buf, size = [], 0
            parts.append(line[:limit])
            line = line[limit:]

        extra = len(line) + (1 if buf else 0)
        if buf and size + extra > limit:
            parts.append("\n".join(buf))
            buf, size = [], 0
            extra = len(line)
        buf.append(line)
        size += extra

    if buf:
        parts.append("\n".join(buf))
    return parts
