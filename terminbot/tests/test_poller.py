from __future__ import annotations

import datetime as dt
from urllib.parse import parse_qs, urlsplit

import httpx

from terminbot.calendar_provider import build_url, fetch_document, monday_of, poll_events
from terminbot.domain import Event

BASE_URL = "https://example.test/singleton.html"
# Wednesday
TODAY = dt.date(2025, 10, 29)

DESCRIPTOR = {
    "page": [0],
    "filters": {"type": ["1"], "cat": ["6"], "calendar_date": ["2025-10-28"], "offset": ["0"]},
    "offsetPage": None,
}


def _page(day_label: str, *times: str) -> str:
    rows = []
    for i, t in enumerate(times):
        date_cell = f'<td><div class="calendarBox" aria-label="{day_label}"></div></td>' if i == 0 else ""
        rows.append(f'<tr class="js_dogodekBox js_dicDetailsBtnRow">{date_cell}<td data-th="Ura">{t}</td></tr>')
    return f"<table>{''.join(rows)}</table>"


class _Calendar:
    """Fake upstream: serves a page per calendar_date and records the requests."""

    def __init__(self, pages: dict[str, httpx.Response]):
        self.pages = pages
        self.requested: list[str] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        calendar_date = parse_qs(urlsplit(str(request.url)).query)["calendar_date"][0]
        self.requested.append(calendar_date)
        return self.pages.get(calendar_date, httpx.Response(200, text="<table></table>"))


def _client(calendar: _Calendar) -> httpx.Client:
    return httpx.Client(transport=httpx.MockTransport(calendar))


def test_build_url_repeats_list_values() -> None:
    url = build_url(BASE_URL, {"cat": ["6", "7"], "type": "1"})
    assert url == f"{BASE_URL}?cat=6&cat=7&type=1"


def test_monday_of() -> None:
    assert monday_of(dt.date(2025, 10, 29)) == dt.date(2025, 10, 27)
    assert monday_of(dt.date(2025, 10, 27)) == dt.date(2025, 10, 27)
    assert monday_of(dt.date(2025, 11, 2)) == dt.date(2025, 10, 27)


def test_stops_after_window_that_reaches_min_events() -> None:
    calendar = _Calendar({"2025-10-27": httpx.Response(200, text=_page("30. 10. 2025", "08:00", "09:00"))})

    with _client(calendar) as client:
        events = poll_events(DESCRIPTOR, client=client, today=TODAY, base_url=BASE_URL, max_windows=5, min_events=2)

    assert events == [Event("2025-10-30", "08:00"), Event("2025-10-30", "09:00")]
    assert calendar.requested == ["2025-10-27"]


def test_walks_weeks_until_budget_is_exhausted() -> None:
    calendar = _Calendar({"2025-11-03": httpx.Response(200, text=_page("5. 11. 2025", "10:00"))})

    with _client(calendar) as client:
        events = poll_events(DESCRIPTOR, client=client, today=TODAY, base_url=BASE_URL, max_windows=3, min_events=10)

    assert events == [Event("2025-11-05", "10:00")]
    assert calendar.requested == ["2025-10-27", "2025-11-03", "2025-11-10"]


def test_failed_window_is_skipped_but_consumes_budget() -> None:
    calendar = _Calendar(
        {
            "2025-10-27": httpx.Response(503),
            "2025-11-03": httpx.Response(200, text=_page("4. 11. 2025", "08:00")),
        }
    )

    with _client(calendar) as client:
        events = poll_events(DESCRIPTOR, client=client, today=TODAY, base_url=BASE_URL, max_windows=2, min_events=1)

    assert events == [Event("2025-11-04", "08:00")]
    assert calendar.requested == ["2025-10-27", "2025-11-03"]


def test_events_with_bad_dates_are_dropped_not_the_window() -> None:
    html = _page("sometime soon", "08:00") + _page("6. 11. 2025", "12:00")
    calendar = _Calendar({"2025-10-27": httpx.Response(200, text=html)})

    with _client(calendar) as client:
        events = poll_events(DESCRIPTOR, client=client, today=TODAY, base_url=BASE_URL, max_windows=1)

    assert events == [Event("2025-11-06", "12:00")]


def test_other_filters_are_sent_unchanged() -> None:
    seen_urls: list[str] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen_urls.append(str(request.url))
        return httpx.Response(200, text="")

    with httpx.Client(transport=httpx.MockTransport(handler)) as client:
        poll_events(DESCRIPTOR, client=client, today=TODAY, base_url=BASE_URL, max_windows=1)

    query = parse_qs(urlsplit(seen_urls[0]).query)
    assert query == {"type": ["1"], "cat": ["6"], "calendar_date": ["2025-10-27"], "offset": ["0"]}


def test_fetch_document_returns_none_on_transport_error() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectTimeout("timed out", request=request)

    with httpx.Client(transport=httpx.MockTransport(handler)) as client:
        assert fetch_document(client, BASE_URL) is None
