from __future__ import annotations

import datetime as dt
import logging
from typing import Any
from urllib.parse import urlencode

import httpx

from terminbot.calendar_parser import extract_date_time, normalize_date
from terminbot.domain import Event, InvalidDateFormat
from terminbot.params import filters_of

logger = logging.getLogger(__name__)

# Endpoint the site itself calls via ajax; returns only the results table.
CALENDAR_URL = "https://e-uprava.gov.si/si/javne-evidence/prosti-termini-zemljevid/content/singleton.html"
# Human-facing page, used for links in notifications.
CLIENT_URL = "https://e-uprava.gov.si/si/javne-evidence/prosti-termini-zemljevid.html"

DEFAULT_MAX_WINDOWS = 20
DEFAULT_MIN_EVENTS = 10


def build_url(base_url: str, filters: dict[str, Any]) -> str:
    # List values repeat the key: type=1&cat=6&cat=7
    pairs: list[tuple[str, str]] = []
    for key, value in filters.items():
        if isinstance(value, (list, tuple)):
            pairs.extend((key, str(v)) for v in value)
        elif value is not None:
            pairs.append((key, str(value)))
    return f"{base_url}?{urlencode(pairs)}"


def monday_of(day: dt.date) -> dt.date:
    return day - dt.timedelta(days=day.weekday())


def fetch_document(client: httpx.Client, url: str) -> str | None:
    """GET a single calendar page.

    Returns None instead of raising: one broken week must not abort the rest.
    """
    try:
        r = client.get(url)
    except httpx.HTTPError as e:
        logger.warning("Request failed for %s (%s: %s)", url, type(e).__name__, e)
        return None

    if not r.is_success:
        logger.warning("HTTP error %s for %s", r.status_code, url)
        return None
    return r.text


def _events_from_document(html: str) -> list[Event]:
    events: list[Event] = []
    for date_label, time_label in extract_date_time(html):
        if not date_label or not time_label:
            continue
        try:
            date_iso = normalize_date(date_label)
        except InvalidDateFormat as e:
            logger.warning("Skipping event: %s", e)
            continue
        events.append(Event(date=date_iso, time=time_label))
    return events


def poll_events(
    descriptor: dict[str, Any],
    *,
    client: httpx.Client,
    today: dt.date,
    base_url: str = CALENDAR_URL,
    max_windows: int = DEFAULT_MAX_WINDOWS,
    min_events: int = DEFAULT_MIN_EVENTS,
) -> list[Event]:
    """Walk the calendar week by week, starting from this week's Monday.

    Stops as soon as at least `min_events` are collected, otherwise after
    `max_windows` weeks. A failed week still counts against `max_windows`.
    """
    filters = filters_of(descriptor)
    start_monday = monday_of(today)
    all_events: list[Event] = []

    for week in range(max_windows):
        calendar_date = (start_monday + dt.timedelta(weeks=week)).isoformat()
        url = build_url(base_url, {**filters, "calendar_date": [calendar_date]})

        html = fetch_document(client, url)
        if html is None:
            logger.warning("Week %d (%s) skipped", week + 1, calendar_date)
            continue

        events = _events_from_document(html)
        all_events.extend(events)
        logger.info("Found %d events for week starting %s", len(events), calendar_date)

        if len(all_events) >= min_events:
            logger.info("Reached %d events, stopping search", len(all_events))
            break

    return all_events
