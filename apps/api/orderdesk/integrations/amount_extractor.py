import time
from collections.abc import Callable
from typing import Protocol

import httpx
from pydantic import BaseModel, Field

from orderdesk.config import settings
from orderdesk.integrations.errors import (
    IntegrationBadGatewayError,
    IntegrationError,
    IntegrationTimeoutError,
    IntegrationUnavailableError,
    error_for_status,
)
from orderdesk.services.reconciliation import AmountCandidate, candidates_from_text, make_candidate

_SERVICE = "ocr"


class OcrCandidate(BaseModel):
    amount: int = Field(gt=0)
    provenance: str = "bare"
    confidence: int | None = Field(default=None, ge=0)


class OcrResult(BaseModel):
    text: str = ""
    candidates: list[OcrCandidate] = Field(default_factory=list)


class AmountExtractor(Protocol):
    def extract(self, proof_reference: str) -> list[AmountCandidate]: ...


class NoopAmountExtractor:
    def extract(self, proof_reference: str) -> list[AmountCandidate]:
        return []


class HttpAmountExtractor:
    """Asks the OCR service to read a payment proof.

    The service returns recognised text and optionally its own amount
    guesses. Both are turned into ranked ``AmountCandidate`` values; image
    handling stays on the service side.
    """

    def __init__(
        self,
        base_url: str,
        timeout_s: float,
        max_retries: int,
        backoff_s: float,
        transport: httpx.BaseTransport | None = None,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.timeout_s = timeout_s
        self.max_retries = max_retries
        self.backoff_s = backoff_s
        self.transport = transport
        self.sleep = sleep

    def _fetch(self, proof_reference: str) -> OcrResult:
        timeout = httpx.Timeout(
            connect=self.timeout_s,
            read=self.timeout_s,
            write=self.timeout_s,
            pool=self.timeout_s,
        )
        with httpx.Client(timeout=timeout, transport=self.transport) as client:
            response = client.post(
                f"{self.base_url}/v1/extract", json={"proof_reference": proof_reference}
            )

        if response.status_code >= 400:
            raise error_for_status(_SERVICE, response.status_code)
        try:
            return OcrResult.model_validate(response.json())
        except ValueError as err:
            raise IntegrationBadGatewayError(
                _SERVICE, "OCR service returned malformed payload"
            ) from err

    def extract(self, proof_reference: str) -> list[AmountCandidate]:
        if not self.base_url:
            raise IntegrationUnavailableError(_SERVICE, "OCR service base URL is not configured")

        for attempt in range(self.max_retries + 1):
            try:
                result = self._fetch(proof_reference)
                break
            except httpx.TimeoutException:
                integration_error: IntegrationError = IntegrationTimeoutError(_SERVICE)
            except httpx.TransportError as err:
                integration_error = IntegrationUnavailableError(_SERVICE, str(err))
            except IntegrationError as err:
                integration_error = err

            if not integration_error.retryable or attempt >= self.max_retries:
                raise integration_error

            self.sleep(self.backoff_s * (2**attempt))

        candidates = [
            make_candidate(item.amount, item.provenance, confidence=item.confidence)
            for item in result.candidates
        ]
        return candidates + candidates_from_text(result.text)


def build_amount_extractor() -> AmountExtractor:
    if not settings.ocr_service_base_url:
        return NoopAmountExtractor()
    return HttpAmountExtractor(
        settings.ocr_service_base_url,
        timeout_s=settings.ocr_timeout_s,
        max_retries=settings.ocr_max_retries,
        backoff_s=settings.ocr_backoff_s,
    )
