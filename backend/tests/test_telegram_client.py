from __future__ import annotations

import asyncio
import json

import httpx
import pytest

from savebot.bot import telegram_client
from savebot.bot.dispatcher import InlineButton
from savebot.bot.telegram_client import (
    TelegramClient,
    TelegramRequestError,
    TelegramResponseError,
)


def _run(coro):
    return asyncio.run(coro)


def _client(handler, **kwargs) -> TelegramClient:
    return TelegramClient(token="123:abc", transport=httpx.MockTransport(handler), **kwargs)


@pytest.fixture(autouse=True)
def no_sleep(monkeypatch):
    async def fake_sleep(seconds):
        return None

    monkeypatch.setattr(telegram_client.asyncio, "sleep", fake_sleep)


def test_send_message_with_keyboard() -> None:
    seen = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["url"] = str(request.url)
        seen["body"] = json.loads(request.content)
        return httpx.Response(200, json={"ok": True, "result": {"message_id": 9}})

    client = _client(handler)
    result = _run(
        client.send_message(
            42,
            "hello",
            [[InlineButton("📊 Trip", "goal:Trip"), InlineButton("🗑", "del:Trip")]],
        )
    )

    assert result == {"message_id": 9}
    assert seen["url"] == "https://api.telegram.org/bot123:abc/sendMessage"
    assert seen["body"] == {
        "chat_id": 42,
        "text": "hello",
        "reply_markup": {
            "inline_keyboard": [
                [
                    {"text": "📊 Trip", "callback_data": "goal:Trip"},
                    {"text": "🗑", "callback_data": "del:Trip"},
                ]
            ]
        },
    }


def test_send_message_without_buttons_omits_markup() -> None:
    bodies = []

    def handler(request: httpx.Request) -> httpx.Response:
        bodies.append(json.loads(request.content))
        return httpx.Response(200, json={"ok": True, "result": {}})

    _run(_client(handler).send_message(1, "hi"))

    assert "reply_markup" not in bodies[0]


def test_retries_on_rate_limit_then_succeeds() -> None:
    calls = {"count": 0}

    def handler(request: httpx.Request) -> httpx.Response:
        calls["count"] += 1
        if calls["count"] == 1:
            return httpx.Response(
                429,
                json={"ok": False, "error_code": 429, "description": "Too Many Requests", "parameters": {"retry_after": 1}},
            )
        return httpx.Response(200, json={"ok": True, "result": True})

    assert _run(_client(handler).answer_callback_query("cbq-1")) is True
    assert calls["count"] == 2


def test_api_error_raises_request_error() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(400, json={"ok": False, "error_code": 400, "description": "Bad Request: chat not found"})

    with pytest.raises(TelegramRequestError) as excinfo:
        _run(_client(handler).send_message(1, "hi"))

    assert excinfo.value.status_code == 400
    assert "chat not found" in str(excinfo.value)


def test_transport_error_after_retries() -> None:
    calls = {"count": 0}

    def handler(request: httpx.Request) -> httpx.Response:
        calls["count"] += 1
        raise httpx.ConnectError("boom", request=request)

    with pytest.raises(TelegramRequestError) as excinfo:
        _run(_client(handler, max_retries=1).send_message(1, "hi"))

    assert excinfo.value.status_code == 503
    assert calls["count"] == 2


def test_invalid_json_raises_response_error() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, content=b"<html>")

    with pytest.raises(TelegramResponseError):
        _run(_client(handler).send_message(1, "hi"))


def test_get_updates_passes_offset() -> None:
    bodies = []

    def handler(request: httpx.Request) -> httpx.Response:
        bodies.append(json.loads(request.content))
        return httpx.Response(200, json={"ok": True, "result": [{"update_id": 5}]})

    updates = _run(_client(handler).get_updates(offset=5, timeout=1))

    assert updates == [{"update_id": 5}]
    assert bodies[0]["offset"] == 5
    assert bodies[0]["timeout"] == 1


def test_missing_token_fails_fast() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        raise AssertionError("no request expected")

    client = TelegramClient(token="", transport=httpx.MockTransport(handler))

    with pytest.raises(TelegramRequestError) as excinfo:
        _run(client.send_message(1, "hi"))

    assert excinfo.value.status_code == 401
