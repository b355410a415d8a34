import time
from collections.abc import Callable
from typing import Protocol

import httpx

from orderdesk.config import settings
from orderdesk.errors import DeliveryFailure
from orderdesk.integrations.errors import (
    IntegrationError,
    IntegrationTimeoutError,
    IntegrationUnavailableError,
    error_for_status,
)

_SERVICE = "telegram"
# Telegram rejects longer message bodies
MAX_MESSAGE_LENGTH = 4096


class MessageSender(Protocol):
    def send(self, recipient_id: str, text: str) -> None: ...


class NoopMessageSender:
    def send(self, recipient_id: str, text: str) -> None:
        return None


class TelegramMessageSender:
    """Delivers plain-text messages through the Bot API ``sendMessage`` call.

    Timeouts, transport errors, 429 and 5xx responses are retried with
    exponential backoff. Anything still failing surfaces as
    ``DeliveryFailure`` for that one recipient.
    """

    def __init__(
        self,
        bot_token: str,
        base_url: str,
        timeout_s: float,
        max_retries: int,
        backoff_s: float,
        transport: httpx.BaseTransport | None = None,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self.bot_token = bot_token
        self.base_url = base_url.rstrip("/")
        self.timeout_s = timeout_s
        self.max_retries = max_retries
        self.backoff_s = backoff_s
        self.transport = transport
        self.sleep = sleep

    def _post(self, payload: dict) -> None:
        timeout = httpx.Timeout(
            connect=self.timeout_s,
            read=self.timeout_s,
            write=self.timeout_s,
            pool=self.timeout_s,
        )
        with httpx.Client(timeout=timeout, transport=self.transport) as client:
            response = client.post(f"{self.base_url}/bot{self.bot_token}/sendMessage", json=payload)

        if response.status_code >= 400:
            raise error_for_status(_SERVICE, response.status_code, response.text)

        try:
            body = response.json()
        except ValueError:
            body = None
        if not isinstance(body, dict) or not body.get("ok"):
            description = body.get("description") if isinstance(body, dict) else None
            raise error_for_status(_SERVICE, response.status_code, description or "ok=false")

    def send(self, recipient_id: str, text: str) -> None:
        if not self.bot_token:
            raise DeliveryFailure(recipient_id, "Telegram bot token is not configured")

        payload = {
            "chat_id": recipient_id,
            "text": text[:MAX_MESSAGE_LENGTH],
            "disable_web_page_preview": True,
        }
        for attempt in range(self.max_retries + 1):
            try:
                self._post(payload)
                return
            except httpx.TimeoutException:
                integration_error: IntegrationError = IntegrationTimeoutError(_SERVICE)
            except httpx.TransportError as err:
                integration_error = IntegrationUnavailableError(_SERVICE, str(err))
            except IntegrationError as err:
                integration_error = err

            if not integration_error.retryable or attempt >= self.max_retries:
                raise DeliveryFailure(
                    recipient_id, str(integration_error), retryable=integration_error.retryable
                ) from integration_error

            self.sleep(self.backoff_s * (2**attempt))


def build_message_sender() -> MessageSender:
    if not settings.telegram_bot_token:
        return NoopMessageSender()
    return TelegramMessageSender(
        settings.telegram_bot_token,
        settings.telegram_api_base_url,
        timeout_s=settings.telegram_timeout_s,
        max_retries=settings.telegram_max_retries,
        backoff_s=settings.telegram_backoff_s,
    )
