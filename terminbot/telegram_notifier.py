from __future__ import annotations

import logging

import httpx
from tenacity import RetryCallState, retry, retry_if_exception_type, stop_after_attempt, wait_exponential

logger = logging.getLogger(__name__)


def _log_before_sleep(retry_state: RetryCallState) -> None:
    exc = retry_state.outcome.exception() if retry_state.outcome is not None else None
    logger.info(
        "Telegram send attempt %s failed (%s), retrying",
        retry_state.attempt_number,
        type(exc).__name__ if exc is not None else "unknown",
    )


class TelegramNotifier:
    """Bot API client. The httpx.Client is owned by the caller."""

    def __init__(self, *, bot_token: str, client: httpx.Client, retry_attempts: int = 2) -> None:
        self._url = f"https://api.telegram.org/bot{bot_token}/sendMessage"
        self._client = client
        self._retry_attempts = retry_attempts

    def _send(self, chat_id: str, text: str) -> None:
        payload = {
            "chat_id": chat_id,
            "text": text,
            "disable_web_page_preview": True,
        }
        r = self._client.post(self._url, json=payload)
        r.raise_for_status()
        data = r.json()
        if not data.get("ok", False):
            raise RuntimeError(f"Telegram API error: {data}")

    def send_message(self, *, chat_id: str, text: str) -> None:
        # Only network-level failures are retried; a 4xx won't fix itself.
        decorated = retry(
            stop=stop_after_attempt(self._retry_attempts),
            wait=wait_exponential(multiplier=1, min=1, max=4),
            retry=retry_if_exception_type(httpx.TransportError),
            before_sleep=_log_before_sleep,
            reraise=True,
        )(self._send)

        decorated(chat_id, text)
