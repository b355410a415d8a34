from fastapi import APIRouter, Depends

from orderdesk.auth.dependencies import AuthContext, require_backoffice
from orderdesk.config import settings
from orderdesk.observability import metrics_store
from orderdesk.schemas.metrics import MetricsResponse

router = APIRouter(prefix="/metrics", tags=["metrics"])


@router.get("", summary="In-process counters and timings", response_model=MetricsResponse)
def metrics_endpoint(_auth: AuthContext = Depends(require_backoffice)) -> MetricsResponse:
    snapshot = metrics_store.snapshot()
    return MetricsResponse(
        service=settings.app_name,
        counters=snapshot.counters,
        timings=snapshot.timings,
    )
