import hashlib
import json
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Any

from sqlalchemy import delete, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from orderdesk.clock import now_utc
from orderdesk.config import settings
from orderdesk.errors import IdempotencyConflict, ValidationError
from orderdesk.models.idempotency_record import IdempotencyRecord
from orderdesk.observability import metrics_store

IDEMPOTENCY_KEY_MAX_LENGTH = 255


@dataclass
class IdempotencyResult:
    replay: bool
    response_payload: dict[str, Any] | None = None


def validate_idempotency_key(idempotency_key: str | None) -> str | None:
    if idempotency_key is None:
        return None

    normalized_key = idempotency_key.strip()
    if not normalized_key:
        metrics_store.increment("idempotency_invalid_key_total")
        raise ValidationError("Idempotency-Key must not be empty")
    if len(normalized_key) > IDEMPOTENCY_KEY_MAX_LENGTH:
        metrics_store.increment("idempotency_invalid_key_total")
        raise ValidationError(f"Idempotency-Key exceeds max length {IDEMPOTENCY_KEY_MAX_LENGTH}")
    return normalized_key


def build_scope(route: str, *, order_id: str | None = None) -> str:
    if order_id:
        return f"{route}:order={order_id}"
    return route


def _hash_payload(payload: Any) -> str:
    canonical = json.dumps(payload, sort_keys=True, separators=(",", ":"), default=str)
    return hashlib.sha256(canonical.encode()).hexdigest()


def _purge_expired_records(db: Session, now: datetime) -> int:
    result = db.execute(delete(IdempotencyRecord).where(IdempotencyRecord.expires_at <= now))
    return int(result.rowcount or 0)


def _find_record(
    db: Session, actor_id: str, scope: str, idempotency_key: str
) -> IdempotencyRecord | None:
    return db.scalar(
        select(IdempotencyRecord).where(
            IdempotencyRecord.actor_id == actor_id,
            IdempotencyRecord.scope == scope,
            IdempotencyRecord.idempotency_key == idempotency_key,
        )
    )


def _raise_payload_conflict() -> None:
    metrics_store.increment("idempotency_conflict_total")
    raise IdempotencyConflict("Idempotency-Key reused with a different payload")


def check_idempotency(
    *,
    db: Session,
    actor_id: str,
    scope: str,
    idempotency_key: str,
    request_payload: Any,
) -> IdempotencyResult:
    """Look up an earlier response for this key.

    Duplicate webhook deliveries carry the same key and body and get the
    stored response back. The same key with a different body is a conflict.
    """
    now = now_utc()
    expired_count = _purge_expired_records(db, now)
    if expired_count:
        db.commit()
        metrics_store.increment("idempotency_purged_total", expired_count)

    record = _find_record(db, actor_id, scope, idempotency_key)
    if not record:
        return IdempotencyResult(replay=False)

    if record.request_hash != _hash_payload(request_payload):
        _raise_payload_conflict()

    metrics_store.increment("idempotency_replay_total")
    return IdempotencyResult(replay=True, response_payload=record.response_payload)


def save_idempotency_result(
    *,
    db: Session,
    actor_id: str,
    scope: str,
    idempotency_key: str,
    request_payload: Any,
    response_payload: dict[str, Any],
) -> None:
    payload_hash = _hash_payload(request_payload)
    expires_at = now_utc() + timedelta(seconds=settings.idempotency_ttl_s)

    record = _find_record(db, actor_id, scope, idempotency_key)
    if record is None:
        db.add(
            IdempotencyRecord(
                actor_id=actor_id,
                scope=scope,
                idempotency_key=idempotency_key,
                request_hash=payload_hash,
                response_payload=response_payload,
                expires_at=expires_at,
            )
        )
    else:
        if record.request_hash != payload_hash:
            _raise_payload_conflict()
        record.response_payload = response_payload
        record.expires_at = expires_at

    try:
        db.commit()
    except IntegrityError:
        # A concurrent duplicate stored its response first
        db.rollback()
        existing = _find_record(db, actor_id, scope, idempotency_key)
        if existing is None:
            raise
        if existing.request_hash != payload_hash:
            _raise_payload_conflict()
        existing.response_payload = response_payload
        existing.expires_at = expires_at
        db.commit()
    metrics_store.increment("idempotency_store_total")
