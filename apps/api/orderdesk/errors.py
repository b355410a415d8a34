from dataclasses import dataclass


class OrderDeskError(Exception):
    status_code = 400
    code = "ORDERDESK_ERROR"

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message

    def to_detail(self) -> dict:
        return {"code": self.code, "message": self.message}


class ValidationError(OrderDeskError):
    """Malformed monetary or date input, rejected before any mutation."""

    status_code = 422
    code = "VALIDATION_ERROR"


class NotFoundError(OrderDeskError):
    status_code = 404
    code = "NOT_FOUND"


class PendingConfirmationNotFound(NotFoundError):
    code = "PENDING_CONFIRMATION_NOT_FOUND"


class StateError(OrderDeskError):
    """Illegal lifecycle transition. The order is left untouched."""

    status_code = 409
    code = "INVALID_STATE_TRANSITION"

    def __init__(self, message: str, *, current: str | None = None, target: str | None = None):
        super().__init__(message)
        self.current = current
        self.target = target


class LockContention(OrderDeskError):
    """Another caller holds the guard; retry later."""

    status_code = 423
    code = "LOCK_CONTENTION"

    def __init__(self, lock_key: str) -> None:
        super().__init__(f"{lock_key} is being processed by another request")
        self.lock_key = lock_key


class IdempotencyConflict(OrderDeskError):
    status_code = 409
    code = "IDEMPOTENCY_CONFLICT"


class DuplicateReminderEntry(OrderDeskError):
    status_code = 409
    code = "DUPLICATE_REMINDER_ENTRY"


class ReconciliationAmbiguous(OrderDeskError):
    status_code = 409
    code = "RECONCILIATION_AMBIGUOUS"

    def __init__(
        self, *, expected_amount: int, candidate_amount: int, provenance: str, reason: str
    ) -> None:
        super().__init__(reason)
        self.expected_amount = expected_amount
        self.candidate_amount = candidate_amount
        self.provenance = provenance
        self.reason = reason


@dataclass
class DeliveryFailure(Exception):
    recipient_id: str
    reason: str
    retryable: bool = False

    def __str__(self) -> str:
        return f"{self.recipient_id}: {self.reason}"


@dataclass
class TotalDeliveryFailure(Exception):
    reason: str
    attempted: int = 0
    failed: int = 0

    def __str__(self) -> str:
        return self.reason
