from orderdesk.integrations.amount_extractor import (
    AmountExtractor,
    HttpAmountExtractor,
    NoopAmountExtractor,
)
from orderdesk.integrations.errors import (
    IntegrationBadGatewayError,
    IntegrationError,
    IntegrationTimeoutError,
    IntegrationUnavailableError,
)
from orderdesk.integrations.telegram_client import (
    MessageSender,
    NoopMessageSender,
    TelegramMessageSender,
)

__all__ = [
    "AmountExtractor",
    "HttpAmountExtractor",
    "NoopAmountExtractor",
    "MessageSender",
    "NoopMessageSender",
    "TelegramMessageSender",
    "IntegrationError",
    "IntegrationTimeoutError",
    "IntegrationUnavailableError",
    "IntegrationBadGatewayError",
]
