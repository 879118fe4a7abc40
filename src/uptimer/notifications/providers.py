"""
Channel providers — one adapter per notification transport.

Every provider takes an open httpx client, the channel's stored config and the
rendered subject/body, and either returns normally or raises
ChannelSendFailure. `send()` is the single entry point used by the dispatcher
and turns the outcome into an (ok, error) pair.
"""
from enum import Enum
from typing import Awaitable, Callable, Optional

import httpx
from pydantic import BaseModel, ConfigDict, Field, ValidationError

from uptimer.exceptions import ChannelSendFailure

TELEGRAM_API_URL = "https://api.telegram.org"
RESEND_API_URL = "https://api.resend.com/emails"


class ChannelType(str, Enum):
    TELEGRAM = "telegram"
    RESEND = "resend"
    FEISHU = "feishu"
    WECOM = "wecom"
    WEBHOOK = "webhook"


# --- Config shapes (stored camelCase, as the admin UI writes them) ---

class _ChannelConfig(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")


class TelegramConfig(_ChannelConfig):
    bot_token: str = Field(alias="botToken", min_length=1)
    chat_id: str = Field(alias="chatId", min_length=1)


class ResendConfig(_ChannelConfig):
    api_key: str = Field(alias="apiKey", min_length=1)
    from_address: str = Field(alias="from", min_length=1)
    to: str = Field(min_length=1)

    def recipients(self) -> list[str]:
        return [addr.strip() for addr in self.to.split(",") if addr.strip()]


class FeishuConfig(_ChannelConfig):
    webhook_url: str = Field(alias="webhookUrl", min_length=1)


class WecomConfig(_ChannelConfig):
    webhook_url: str = Field(alias="webhookUrl", min_length=1)


class WebhookConfig(_ChannelConfig):
    url: str = Field(min_length=1)
    headers: dict[str, str] = Field(default_factory=dict)


def _check_response(response: httpx.Response, channel: str) -> None:
    if not response.is_success:
        raise ChannelSendFailure(
            f"{channel} returned HTTP {response.status_code}: {response.text[:200]}"
        )


def _json_body(response: httpx.Response) -> dict:
    try:
        data = response.json()
    except ValueError:
        return {}
    return data if isinstance(data, dict) else {}


# --- Providers ---

async def send_telegram(
    client: httpx.AsyncClient, config: TelegramConfig, subject: str, body: str
) -> None:
    text = f"{subject}\n\n{body}" if subject else body
    response = await client.post(
        f"{TELEGRAM_API_URL}/bot{config.bot_token}/sendMessage",
        json={"chat_id": config.chat_id, "text": text},
    )
    _check_response(response, "Telegram")
    data = _json_body(response)
    if data.get("ok") is False:
        raise ChannelSendFailure(f"Telegram error: {data.get('description', 'unknown')}")


async def send_resend(
    client: httpx.AsyncClient, config: ResendConfig, subject: str, body: str
) -> None:
    recipients = config.recipients()
    if not recipients:
        raise ChannelSendFailure("Resend channel has no recipients")
    response = await client.post(
        RESEND_API_URL,
        headers={"Authorization": f"Bearer {config.api_key}"},
        json={
            "from": config.from_address,
            "to": recipients,
            "subject": subject,
            "text": body,
        },
    )
    _check_response(response, "Resend")


async def send_feishu(
    client: httpx.AsyncClient, config: FeishuConfig, subject: str, body: str
) -> None:
    text = f"{subject}\n{body}" if subject else body
    response = await client.post(
        config.webhook_url,
        json={"msg_type": "text", "content": {"text": text}},
    )
    _check_response(response, "Feishu")
    # Feishu answers 200 with a non-zero code on rejected messages
    data = _json_body(response)
    code = data.get("code", data.get("StatusCode", 0))
    if code:
        raise ChannelSendFailure(f"Feishu error {code}: {data.get('msg', '')}")


async def send_wecom(
    client: httpx.AsyncClient, config: WecomConfig, subject: str, body: str
) -> None:
    content = f"**{subject}**\n{body}" if subject else body
    response = await client.post(
        config.webhook_url,
        json={"msgtype": "markdown", "markdown": {"content": content}},
    )
    _check_response(response, "WeCom")
    data = _json_body(response)
    if data.get("errcode"):
        raise ChannelSendFailure(f"WeCom error {data['errcode']}: {data.get('errmsg', '')}")


async def send_webhook(
    client: httpx.AsyncClient, config: WebhookConfig, subject: str, body: str
) -> None:
    headers = {"Content-Type": "application/json", **config.headers}
    response = await client.post(
        config.url,
        headers=headers,
        json={"subject": subject, "body": body},
    )
    _check_response(response, "Webhook")


ProviderFn = Callable[[httpx.AsyncClient, BaseModel, str, str], Awaitable[None]]

PROVIDERS: dict[ChannelType, tuple[type[_ChannelConfig], ProviderFn]] = {
    ChannelType.TELEGRAM: (TelegramConfig, send_telegram),
    ChannelType.RESEND: (ResendConfig, send_resend),
    ChannelType.FEISHU: (FeishuConfig, send_feishu),
    ChannelType.WECOM: (WecomConfig, send_wecom),
    ChannelType.WEBHOOK: (WebhookConfig, send_webhook),
}


def get_channel_type(value: str) -> Optional[ChannelType]:
    """Map a stored channel type string to a ChannelType, None if unsupported."""
    try:
        return ChannelType(value)
    except ValueError:
        return None


async def send(
    channel_type: ChannelType,
    client: httpx.AsyncClient,
    config: dict,
    subject: str,
    body: str,
) -> tuple[bool, Optional[str]]:
    config_model, provider = PROVIDERS[channel_type]
    try:
        parsed = config_model.model_validate(config or {})
    except ValidationError as e:
        fields = ", ".join(str(err["loc"][0]) for err in e.errors() if err["loc"])
        return False, f"Invalid {channel_type.value} config: {fields or 'malformed'}"

    try:
        await provider(client, parsed, subject, body)
    except ChannelSendFailure as e:
        return False, str(e)[:500]
    except httpx.TimeoutException:
        return False, f"{channel_type.value} request timed out"
    except httpx.RequestError as e:
        return False, f"{channel_type.value} request error: {str(e)[:200]}"
    return True, None
