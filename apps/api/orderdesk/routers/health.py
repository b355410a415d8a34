from collections.abc import Callable

from fastapi import APIRouter, Response, status
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from orderdesk.config import settings
from orderdesk.db.session import SessionLocal
from orderdesk.observability import log_event
from orderdesk.schemas.health import (
    DependencyStatus,
    HealthResponse,
    ReadinessDependency,
    ReadinessResponse,
)

router = APIRouter(tags=["health"])


@router.get("/health", summary="Liveness check", response_model=HealthResponse)
def health() -> HealthResponse:
    return HealthResponse(status="ok", mode=settings.app_mode)


@router.get(
    "/ready",
    summary="Readiness check",
    response_model=ReadinessResponse,
    responses={status.HTTP_503_SERVICE_UNAVAILABLE: {"model": ReadinessResponse}},
)
def readiness(response: Response) -> ReadinessResponse:
    dependencies = [
        ReadinessDependency(
            name="database",
            status=_safe_status("database", lambda: database_status(SessionLocal)),
        ),
        ReadinessDependency(name="telegram", status=telegram_status()),
        ReadinessDependency(name="ocr", status=ocr_status()),
    ]

    # Optional integrations report "disabled" without degrading readiness
    degraded = any(dep.status == "error" for dep in dependencies)
    if degraded:
        response.status_code = status.HTTP_503_SERVICE_UNAVAILABLE
    return ReadinessResponse(status="degraded" if degraded else "ok", dependencies=dependencies)


def database_status(session_factory: Callable[[], Session]) -> DependencyStatus:
    try:
        with session_factory() as db:
            db.execute(text("SELECT 1"))
    except SQLAlchemyError:
        return "error"
    return "ok"


def telegram_status() -> DependencyStatus:
    return "ok" if settings.telegram_bot_token.strip() else "disabled"


def ocr_status() -> DependencyStatus:
    return "ok" if settings.ocr_service_base_url.strip() else "disabled"


def _safe_status(name: str, checker: Callable[[], DependencyStatus]) -> DependencyStatus:
    try:
        return checker()
    except Exception as exc:
        log_event("readiness_check_failed", dependency=name, error=type(exc).__name__)
        return "error"
