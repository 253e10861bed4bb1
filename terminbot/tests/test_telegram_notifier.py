from __future__ import annotations

import json

import httpx
import pytest

from terminbot.telegram_notifier import TelegramNotifier


def test_send_message_posts_to_bot_api() -> None:
    requests: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        requests.append(request)
        return httpx.Response(200, json={"ok": True, "result": {}})

    with httpx.Client(transport=httpx.MockTransport(handler)) as client:
        TelegramNotifier(bot_token="TOKEN", client=client).send_message(chat_id="42", text="hi")

    assert len(requests) == 1
    assert str(requests[0].url) == "https://api.telegram.org/botTOKEN/sendMessage"
    assert json.loads(requests[0].content) == {"chat_id": "42", "text": "hi", "disable_web_page_preview": True}


def test_api_error_is_raised_without_retry() -> None:
    calls = 0

    def handler(request: httpx.Request) -> httpx.Response:
        nonlocal calls
        calls += 1
        return httpx.Response(200, json={"ok": False, "description": "chat not found"})

    with httpx.Client(transport=httpx.MockTransport(handler)) as client:
        with pytest.raises(RuntimeError, match="Telegram API error"):
            TelegramNotifier(bot_token="TOKEN", client=client, retry_attempts=3).send_message(chat_id="42", text="hi")

    assert calls == 1


def test_transport_error_is_retried(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr("time.sleep", lambda _: None)
    calls = 0

    def handler(request: httpx.Request) -> httpx.Response:
        nonlocal calls
        calls += 1
        if calls == 1:
            raise httpx.ConnectError("reset", request=request)
        return httpx.Response(200, json={"ok": True})

    with httpx.Client(transport=httpx.MockTransport(handler)) as client:
        TelegramNotifier(bot_token="TOKEN", client=client, retry_attempts=2).send_message(chat_id="42", text="hi")

    assert calls == 2
