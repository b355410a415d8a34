from dataclasses import dataclass

RETRYABLE_STATUS_CODES = frozenset({408, 429})


@dataclass
class IntegrationError(Exception):
    service: str
    code: str
    message: str
    retryable: bool = False

    def __str__(self) -> str:
        return f"{self.service}:{self.code}:{self.message}"


class IntegrationTimeoutError(IntegrationError):
    def __init__(self, service: str, message: str = "Upstream timeout") -> None:
        super().__init__(service=service, code="TIMEOUT", message=message, retryable=True)


class IntegrationUnavailableError(IntegrationError):
    def __init__(self, service: str, message: str = "Upstream unavailable") -> None:
        super().__init__(service=service, code="UNAVAILABLE", message=message, retryable=True)


class IntegrationBadGatewayError(IntegrationError):
    def __init__(self, service: str, message: str = "Unexpected upstream response") -> None:
        super().__init__(service=service, code="BAD_GATEWAY", message=message, retryable=False)


def error_for_status(service: str, status_code: int, body: str = "") -> IntegrationError:
    detail = f"{service} returned {status_code}"
    if body:
        detail = f"{detail}: {body[:200]}"
    if status_code >= 500 or status_code in RETRYABLE_STATUS_CODES:
        return IntegrationUnavailableError(service, detail)
    return IntegrationBadGatewayError(service, detail)
