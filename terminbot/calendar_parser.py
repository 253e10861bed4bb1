from __future__ import annotations

import re

from bs4 import BeautifulSoup

from terminbot.domain import InvalidDateFormat

_ROW_SELECTOR = ".js_dogodekBox.js_dicDetailsBtnRow"
_DATE_SELECTOR = ".calendarBox"
_TIME_SELECTOR = 'td[data-th="Ura"]'

_DATE_RE = re.compile(r"^(\d{1,2})\. (\d{1,2})\. (\d{4})$")


def extract_date_time(html: str) -> list[tuple[str | None, str]]:
    """Pull (date label, time label) pairs out of one calendar page.

    Only the first row of a day carries the date box (the cell spans the
    following rows), so undated rows inherit the last date seen above them.
    Rows whose date can't be resolved are dropped.
    """
    soup = BeautifulSoup(html, "html.parser")
    result: list[tuple[str | None, str]] = []
    last_date: str | None = None

    for row in soup.select(_ROW_SELECTOR):
        calendar_box = row.select_one(_DATE_SELECTOR)
        date = (calendar_box.get("aria-label") or "").strip() if calendar_box is not None else ""
        if date:
            last_date = date

        time_cell = row.select_one(_TIME_SELECTOR)
        time = time_cell.get_text(strip=True) if time_cell is not None else ""
        if not time:
            continue

        if last_date is None:
            continue
        result.append((last_date, time))

    return result


def normalize_date(label: str) -> str:
    """'5. 3. 2025' -> '2025-03-05'."""
    m = _DATE_RE.match(label.strip())
    if not m:
        raise InvalidDateFormat(f"Invalid date format: {label!r}")
    day, month, year = m.groups()
    return f"{year}-{month.zfill(2)}-{day.zfill(2)}"
