import time
from contextlib import asynccontextmanager
from uuid import uuid4

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.openapi.utils import get_openapi
from fastapi.responses import JSONResponse, Response

from orderdesk.config import allowed_origins, ensure_secure_runtime_settings, settings
from orderdesk.db.migration_check import prepare_schema
from orderdesk.db.session import engine
from orderdesk.dependencies import build_recipient_directory
from orderdesk.errors import OrderDeskError
from orderdesk.observability import configure_logging, log_event, metrics_store, set_request_id
from orderdesk.routers.health import router as health_router
from orderdesk.routers.metrics import router as metrics_router
from orderdesk.routers.orders import router as orders_router
from orderdesk.routers.payments import router as payments_router
from orderdesk.routers.reminders import router as reminders_router


@asynccontextmanager
async def lifespan(app_: FastAPI):
    import orderdesk.models  # noqa: F401 (register all SQLAlchemy models)

    configure_logging()
    ensure_secure_runtime_settings()
    prepare_schema(engine)
    app_.state.recipient_directory = build_recipient_directory()
    log_event("service_started", mode=settings.app_mode)
    yield


app = FastAPI(
    title=settings.app_name,
    version="0.1.0",
    description="Order lifecycle, payment reconciliation and H-4/H-3/H-1 reminders",
    lifespan=lifespan,
)


def custom_openapi():
    """Publish the bearer scheme so Swagger UI offers an Authorize button."""
    if app.openapi_schema:
        return app.openapi_schema

    openapi_schema = get_openapi(
        title=app.title,
        version=app.version,
        description=app.description,
        routes=app.routes,
    )
    components = openapi_schema.setdefault("components", {})
    components.setdefault("securitySchemes", {})["BearerAuth"] = {
        "type": "http",
        "scheme": "bearer",
        "bearerFormat": "JWT",
    }
    openapi_schema["security"] = [{"BearerAuth": []}]

    app.openapi_schema = openapi_schema
    return app.openapi_schema


app.openapi = custom_openapi

app.add_middleware(
    CORSMiddleware,
    allow_origins=allowed_origins(),
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(OrderDeskError)
async def orderdesk_error_handler(request: Request, exc: OrderDeskError) -> JSONResponse:
    metrics_store.increment(f"errors_total.{exc.code}")
    log_event(
        "request_rejected",
        order_id=request.path_params.get("order_id"),
        code=exc.code,
        reason=exc.message,
    )
    return JSONResponse(status_code=exc.status_code, content={"detail": exc.to_detail()})


@app.middleware("http")
async def request_context_middleware(request: Request, call_next) -> Response:
    request_id = request.headers.get("X-Request-ID") or str(uuid4())
    set_request_id(request_id)

    start = time.perf_counter()
    response = await call_next(request)
    elapsed = time.perf_counter() - start

    response.headers["X-Request-ID"] = request_id
    metrics_store.increment("http_requests_total")
    metrics_store.observe("http_request_duration_seconds", elapsed)
    log_event(
        "http_request",
        order_id=request.path_params.get("order_id"),
        method=request.method,
        status=response.status_code,
    )
    return response


app.include_router(health_router)
# Payment routes share the /orders/{id:path} prefix and must match first
app.include_router(payments_router)
app.include_router(orders_router)
app.include_router(reminders_router)
app.include_router(metrics_router)
