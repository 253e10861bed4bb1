from __future__ import annotations

import datetime as dt
import logging
import threading
import time
from contextlib import contextmanager
from typing import Callable, Iterable, Iterator
from zoneinfo import ZoneInfo

import httpx

from terminbot.calendar_provider import poll_events
from terminbot.config import Settings
from terminbot.dedup import prune_past_keys, select_novel_events
from terminbot.domain import DeliveryError, Event
from terminbot.message import compose_message, split_message
from terminbot.params import decode
from terminbot.seen_store import SeenStore
from terminbot.telegram_notifier import TelegramNotifier

logger = logging.getLogger(__name__)

# SeenStore.replace() overwrites, it doesn't merge: two cycles must never write at the same time.
# The guard is per-process only. Separate processes (e.g. `--once` and `--invalidate`
# from an external cron) are not serialized by it and must not be scheduled to overlap.
_store_lock = threading.Lock()


@contextmanager
def _exclusive(name: str) -> Iterator[bool]:
    if not _store_lock.acquire(blocking=False):
        logger.warning("%s skipped: another cycle is still running", name)
        yield False
        return
    try:
        yield True
    finally:
        _store_lock.release()


def today_in(timezone: str) -> dt.date:
    return dt.datetime.now(ZoneInfo(timezone)).date()


def _broadcast_telegram(notifier: TelegramNotifier, chat_ids: Iterable[str], text: str) -> None:
    failed: list[str] = []
    parts = split_message(text)

    for chat_id in chat_ids:
        try:
            # Bot API rejects texts over 4096 chars.
            for part in parts:
                notifier.send_message(chat_id=chat_id, text=part)
        except Exception as e:
            # Best-effort: don't stop sending to other chat_ids.
            logger.warning("Failed to send telegram message to chat_id=%s (%s: %s)", chat_id, type(e).__name__, e)
            failed.append(chat_id)

    if failed:
        raise DeliveryError(failed)


def _send_status_message(settings: Settings, notifier: TelegramNotifier, text: str) -> None:
    # Статусы идут только в админский чат, подписчикам только новые термины.
    if settings.telegram_admin_chat_id is None:
        return
    _broadcast_telegram(notifier, [settings.telegram_admin_chat_id], text)


def _collect_events(settings: Settings, http_client: httpx.Client, today: dt.date) -> list[Event]:
    descriptor = decode(settings.filter_param)
    return poll_events(
        descriptor,
        client=http_client,
        today=today,
        base_url=settings.calendar_url,
        max_windows=settings.max_windows,
        min_events=settings.min_events,
    )


def run_check_once(
    settings: Settings,
    *,
    store: SeenStore,
    http_client: httpx.Client,
    notifier: TelegramNotifier,
    today: dt.date | None = None,
) -> list[Event]:
    """One check cycle. Returns the events that were pushed to subscribers."""
    today = today or today_in(settings.timezone)

    with _exclusive("Check") as acquired:
        if not acquired:
            return []

        try:
            previous = store.load()
            current = _collect_events(settings, http_client, today)
            novel = select_novel_events(current, previous)

            logger.info("Events: current=%d previous=%d novel=%d", len(current), len(previous), len(novel))

            # Snapshot is saved before notifying: a failed send must not cause a re-send storm next cycle.
            store.replace(e.key for e in current)

            if not novel:
                logger.info("No new terms found")
                return []

            text = compose_message(
                novel,
                decode(settings.filter_param),
                client_base_url=settings.client_url,
                current_year=today.year,
            )
            _broadcast_telegram(notifier, settings.telegram_chat_ids, text)
            logger.info("Telegram notification sent (%d events)", len(novel))
            return novel

        except Exception as e:
            logger.error("Check failed (%s: %s)", type(e).__name__, e)
            try:
                _send_status_message(
                    settings,
                    notifier,
                    text=f"Preverjanje terminov ni uspelo.\nRazlog: {type(e).__name__}: {e}",
                )
            except Exception:
                logger.warning("Failed to send telegram status message", exc_info=True)
            raise


def run_invalidation_once(settings: Settings, *, store: SeenStore, today: dt.date | None = None) -> int:
    """Drop seen keys that are today or in the past. Returns how many are kept."""
    today = today or today_in(settings.timezone)

    with _exclusive("Invalidation") as acquired:
        if not acquired:
            return 0

        previous = store.load()
        kept = prune_past_keys(previous, today)
        store.replace(kept)
        logger.info("Invalidation: kept %d of %d seen keys", len(kept), len(previous))
        return len(kept)


def send_test_message(
    settings: Settings,
    *,
    http_client: httpx.Client,
    notifier: TelegramNotifier,
    today: dt.date | None = None,
) -> str | None:
    """Compose a message from whatever is on the calendar right now and send it.

    Doesn't read or write the seen-set.
    """
    today = today or today_in(settings.timezone)
    events = _collect_events(settings, http_client, today)
    if not events:
        logger.info("Calendar is empty, nothing to send")
        return None

    text = compose_message(
        events,
        decode(settings.filter_param),
        client_base_url=settings.client_url,
        current_year=today.year,
    )
    logger.info("Test message:\n%s", text)
    _broadcast_telegram(notifier, settings.telegram_chat_ids, text)
    return text


def _run_safely(name: str, fn: Callable[[], object]) -> None:
    try:
        fn()
    except Exception as e:
        # Не дублируем полный traceback: причина уже залогирована выше.
        logger.error("%s failed in run_forever (%s: %s)", name, type(e).__name__, e)


def _next_after(scheduled: float, interval: float, now: float) -> float:
    # Fixed-rate schedule; ticks missed while a cycle overran are skipped, not queued.
    scheduled += interval
    while scheduled <= now:
        scheduled += interval
    return scheduled


def run_forever(
    settings: Settings,
    *,
    store: SeenStore,
    http_client: httpx.Client,
    notifier: TelegramNotifier,
    clock: Callable[[], float] = time.monotonic,
    sleep: Callable[[float], None] = time.sleep,
) -> None:
    logger.info(
        "Worker started. Check interval=%ss, invalidation interval=%ss",
        settings.check_interval_seconds,
        settings.invalidate_interval_seconds,
    )

    next_check = clock()
    next_invalidation = next_check + settings.invalidate_interval_seconds

    while True:
        now = clock()

        if now >= next_check:
            _run_safely(
                "Check",
                lambda: run_check_once(settings, store=store, http_client=http_client, notifier=notifier),
            )
            next_check = _next_after(next_check, settings.check_interval_seconds, clock())

        if now >= next_invalidation:
            _run_safely("Invalidation", lambda: run_invalidation_once(settings, store=store))
            next_invalidation = _next_after(next_invalidation, settings.invalidate_interval_seconds, clock())

        sleep(max(0.0, min(next_check, next_invalidation) - clock()))
