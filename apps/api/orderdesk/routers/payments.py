from fastapi import APIRouter, Depends, Header
from sqlalchemy.orm import Session

from orderdesk.auth.dependencies import AuthContext, require_backoffice, require_order_writer
from orderdesk.db.session import get_db
from orderdesk.dependencies import get_payment_service
from orderdesk.schemas.payment import (
    PaymentConfirmationRequest,
    PaymentOutcomeResponse,
    PaymentRecordListResponse,
    PaymentRecordResponse,
    PaymentRejectRequest,
    PaymentSubmitRequest,
    PendingConfirmationDetails,
)
from orderdesk.services.idempotency_service import (
    build_scope,
    check_idempotency,
    save_idempotency_result,
    validate_idempotency_key,
)
from orderdesk.services.payment_service import PaymentOutcome, PaymentService

router = APIRouter(prefix="/api/v1/orders", tags=["payments"])


def _outcome_response(outcome: PaymentOutcome) -> PaymentOutcomeResponse:
    order = outcome.order
    pending = None
    if outcome.pending is not None:
        pending = PendingConfirmationDetails(
            expected_amount=outcome.pending.expected_amount,
            candidate_amount=outcome.pending.candidate_amount,
            provenance=outcome.pending.provenance,
            reason=outcome.pending.reason,
            expires_at=outcome.pending.expires_at,
        )
    return PaymentOutcomeResponse(
        status=outcome.status,
        order_id=order.id,
        payment_status=order.payment_status,
        paid_amount=order.paid_amount,
        remaining_balance=order.remaining_balance,
        payment=PaymentRecordResponse.model_validate(outcome.payment) if outcome.payment else None,
        pending=pending,
    )


@router.post(
    "/{order_id:path}/payments/confirmation",
    response_model=PaymentOutcomeResponse,
    summary="Resolve a pending payment confirmation",
)
def resolve_confirmation_endpoint(
    order_id: str,
    payload: PaymentConfirmationRequest,
    service: PaymentService = Depends(get_payment_service),
    auth: AuthContext = Depends(require_order_writer),
) -> PaymentOutcomeResponse:
    outcome = service.resolve_pending_confirmation(auth.actor_id, order_id, payload.accept)
    return _outcome_response(outcome)


@router.post(
    "/{order_id:path}/payments/reject",
    response_model=PaymentRecordResponse,
    summary="Record a rejected payment attempt",
    status_code=201,
)
def reject_payment_endpoint(
    order_id: str,
    payload: PaymentRejectRequest,
    service: PaymentService = Depends(get_payment_service),
    auth: AuthContext = Depends(require_backoffice),
) -> PaymentRecordResponse:
    record = service.reject_payment(
        order_id,
        amount=payload.amount,
        reason=payload.reason,
        actor_id=auth.actor_id,
        proof_reference=payload.proof_reference,
    )
    return PaymentRecordResponse.model_validate(record)


@router.post(
    "/{order_id:path}/payments",
    response_model=PaymentOutcomeResponse,
    summary="Submit a payment",
)
def record_payment_endpoint(
    order_id: str,
    payload: PaymentSubmitRequest,
    db: Session = Depends(get_db),
    service: PaymentService = Depends(get_payment_service),
    idempotency_key: str | None = Header(default=None, alias="Idempotency-Key"),
    auth: AuthContext = Depends(require_order_writer),
) -> PaymentOutcomeResponse:
    idempotency_key = validate_idempotency_key(idempotency_key)
    request_payload = payload.model_dump(mode="json")
    scope = build_scope("POST:/api/v1/orders/payments", order_id=order_id)

    if idempotency_key:
        idem = check_idempotency(
            db=db,
            actor_id=auth.actor_id,
            scope=scope,
            idempotency_key=idempotency_key,
            request_payload=request_payload,
        )
        if idem.replay and idem.response_payload:
            return PaymentOutcomeResponse.model_validate(idem.response_payload)

    outcome = service.record_payment(
        order_id,
        actor_id=auth.actor_id,
        claimed_amount=payload.claimed_amount,
        proof_reference=payload.proof_reference,
        method=payload.method,
    )
    response_payload = _outcome_response(outcome).model_dump(mode="json")

    if idempotency_key:
        save_idempotency_result(
            db=db,
            actor_id=auth.actor_id,
            scope=scope,
            idempotency_key=idempotency_key,
            request_payload=request_payload,
            response_payload=response_payload,
        )

    return PaymentOutcomeResponse.model_validate(response_payload)


@router.get(
    "/{order_id:path}/payments",
    response_model=PaymentRecordListResponse,
    summary="List payment records",
)
def list_payments_endpoint(
    order_id: str,
    service: PaymentService = Depends(get_payment_service),
    _auth: AuthContext = Depends(require_backoffice),
) -> PaymentRecordListResponse:
    records = service.list_payments(order_id)
    return PaymentRecordListResponse(
        items=[PaymentRecordResponse.model_validate(record) for record in records]
    )
