"""Tests for the channel provider adapters, using httpx.MockTransport."""
import json

import httpx
import pytest

from uptimer.notifications.providers import ChannelType, get_channel_type, send


def _client(handler):
    return httpx.AsyncClient(transport=httpx.MockTransport(handler))


class Recorder:
    """Collects requests and answers with a fixed response."""

    def __init__(self, status_code=200, payload=None):
        self.requests: list[httpx.Request] = []
        self.status_code = status_code
        self.payload = payload if payload is not None else {}

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        return httpx.Response(self.status_code, json=self.payload)

    @property
    def body(self) -> dict:
        return json.loads(self.requests[-1].content)


@pytest.mark.asyncio
async def test_telegram_send():
    recorder = Recorder(payload={"ok": True})
    async with _client(recorder) as client:
        ok, error = await send(
            ChannelType.TELEGRAM, client, {"botToken": "123abc", "chatId": "-100"}, "Subject", "Body"
        )

    assert ok and error is None
    request = recorder.requests[0]
    assert str(request.url) == "https://api.telegram.org/bot123abc/sendMessage"
    assert recorder.body == {"chat_id": "-100", "text": "Subject\n\nBody"}


@pytest.mark.asyncio
async def test_telegram_api_rejection():
    recorder = Recorder(payload={"ok": False, "description": "chat not found"})
    async with _client(recorder) as client:
        ok, error = await send(
            ChannelType.TELEGRAM, client, {"botToken": "t", "chatId": "c"}, "S", "B"
        )

    assert not ok
    assert "chat not found" in error


@pytest.mark.asyncio
async def test_resend_send_splits_recipients():
    recorder = Recorder(payload={"id": "email-1"})
    config = {"apiKey": "re_key", "from": "alerts@example.com", "to": "a@example.com, b@example.com"}
    async with _client(recorder) as client:
        ok, _ = await send(ChannelType.RESEND, client, config, "Subject", "Body")

    assert ok
    request = recorder.requests[0]
    assert str(request.url) == "https://api.resend.com/emails"
    assert request.headers["Authorization"] == "Bearer re_key"
    assert recorder.body == {
        "from": "alerts@example.com",
        "to": ["a@example.com", "b@example.com"],
        "subject": "Subject",
        "text": "Body",
    }


@pytest.mark.asyncio
async def test_feishu_send_and_error_code():
    good = Recorder(payload={"code": 0, "msg": "success"})
    async with _client(good) as client:
        ok, _ = await send(ChannelType.FEISHU, client, {"webhookUrl": "https://open.feishu.cn/hook/x"}, "S", "B")
    assert ok
    assert good.body == {"msg_type": "text", "content": {"text": "S\nB"}}

    bad = Recorder(payload={"code": 19021, "msg": "sign match fail"})
    async with _client(bad) as client:
        ok, error = await send(ChannelType.FEISHU, client, {"webhookUrl": "https://open.feishu.cn/hook/x"}, "S", "B")
    assert not ok
    assert "19021" in error


@pytest.mark.asyncio
async def test_wecom_send_and_errcode():
    good = Recorder(payload={"errcode": 0, "errmsg": "ok"})
    async with _client(good) as client:
        ok, _ = await send(ChannelType.WECOM, client, {"webhookUrl": "https://qyapi.weixin.qq.com/x"}, "S", "B")
    assert ok
    assert good.body == {"msgtype": "markdown", "markdown": {"content": "**S**\nB"}}

    bad = Recorder(payload={"errcode": 93000, "errmsg": "invalid webhook url"})
    async with _client(bad) as client:
        ok, error = await send(ChannelType.WECOM, client, {"webhookUrl": "https://qyapi.weixin.qq.com/x"}, "S", "B")
    assert not ok
    assert "93000" in error


@pytest.mark.asyncio
async def test_webhook_send_with_custom_headers():
    recorder = Recorder()
    config = {"url": "https://hooks.example.com/in", "headers": {"X-Token": "secret"}}
    async with _client(recorder) as client:
        ok, _ = await send(ChannelType.WEBHOOK, client, config, "S", "B")

    assert ok
    assert recorder.requests[0].headers["X-Token"] == "secret"
    assert recorder.body == {"subject": "S", "body": "B"}


@pytest.mark.asyncio
async def test_http_error_status_is_failure():
    recorder = Recorder(status_code=500, payload={"error": "boom"})
    async with _client(recorder) as client:
        ok, error = await send(ChannelType.WEBHOOK, client, {"url": "https://hooks.example.com/in"}, "S", "B")

    assert not ok
    assert error.startswith("Webhook returned HTTP 500")


@pytest.mark.asyncio
async def test_invalid_config_is_failure_without_request():
    recorder = Recorder()
    async with _client(recorder) as client:
        ok, error = await send(ChannelType.TELEGRAM, client, {"botToken": "t"}, "S", "B")

    assert not ok
    assert error.startswith("Invalid telegram config")
    assert "chatId" in error
    assert recorder.requests == []


@pytest.mark.asyncio
async def test_transport_errors_are_failures():
    def timeout(request):
        raise httpx.ReadTimeout("slow", request=request)

    def refused(request):
        raise httpx.ConnectError("connection refused", request=request)

    async with _client(timeout) as client:
        ok, error = await send(ChannelType.WEBHOOK, client, {"url": "https://hooks.example.com/in"}, "S", "B")
    assert not ok
    assert error == "webhook request timed out"

    async with _client(refused) as client:
        ok, error = await send(ChannelType.WEBHOOK, client, {"url": "https://hooks.example.com/in"}, "S", "B")
    assert not ok
    assert error.startswith("webhook request error")


def test_unsupported_channel_type():
    assert get_channel_type("webhook") is ChannelType.WEBHOOK
    assert get_channel_type("pagerduty") is None
