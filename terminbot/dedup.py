from __future__ import annotations

import datetime as dt
from typing import Iterable

from terminbot.domain import KEY_SEPARATOR, Event


def split_key(key: str) -> tuple[str, str] | None:
    if not key:
        return None
    date, sep, time = key.partition(KEY_SEPARATOR)
    if not date:
        return None
    return date, (time if sep else "")


def earliest_seen_date(seen_keys: Iterable[str]) -> str | None:
    dates = [parts[0] for parts in map(split_key, seen_keys) if parts is not None]
    return min(dates) if dates else None


def select_novel_events(new_events: Iterable[Event], seen_keys: set[str]) -> list[Event]:
    """Events worth a notification.

    An event must be unseen AND earlier than everything we already knew about.
    Later slots get recorded on the next snapshot but are not pushed: only
    sooner-than-known slots are urgent. With nothing seen yet, every event
    counts as new.
    """
    novel = [e for e in new_events if e.key not in seen_keys]

    earliest = earliest_seen_date(seen_keys)
    if earliest is None:
        return novel
    # ISO dates compare correctly as strings.
    return [e for e in novel if e.date < earliest]


def prune_past_keys(keys: Iterable[str], today: dt.date) -> list[str]:
    """Keep only keys dated strictly after today; broken keys are dropped."""
    kept: list[str] = []
    for key in keys:
        parts = split_key(key)
        if parts is None:
            continue
        try:
            day = dt.date.fromisoformat(parts[0])
        except ValueError:
            continue
        if day > today:
            kept.append(key)
    return kept
