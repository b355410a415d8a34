from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

DEFAULT_JWT_SECRET = "orderdesk-jwt-secret"
ALLOWED_APP_MODES = {"demo", "pilot", "production"}
MIN_SECRET_LENGTH = 32


class Settings(BaseSettings):
    app_name: str = "Orderdesk Fulfillment Service"
    app_mode: str = Field(default="demo", validation_alias="ORDERDESK_APP_MODE")
    auto_create_schema: bool = Field(default=True, validation_alias="ORDERDESK_AUTO_CREATE_SCHEMA")

    database_url: str = Field(
        default="sqlite+pysqlite:///./test.db",
        validation_alias="ORDERDESK_DATABASE_URL",
    )
    cors_allowed_origins: str = "http://localhost:3000,http://localhost:5173"

    jwt_secret: str = DEFAULT_JWT_SECRET
    allowed_roles: str = "ADMIN,STAFF,BOT"
    enable_test_auth_bypass: bool = False
    testing: bool = Field(default=False, validation_alias="ORDERDESK_TESTING")

    business_timezone: str = "Asia/Jakarta"
    order_id_prefix: str = "ORD"
    waiting_threshold_days: int = 7

    order_lock_ttl_s: int = 60
    reminder_run_lock_ttl_s: int = 600
    pending_confirmation_ttl_s: int = 60 * 60
    recipient_cache_ttl_s: int = 10 * 60
    reminder_order_limit: int = 1000
    idempotency_ttl_s: int = 24 * 60 * 60

    reconcile_relative_tolerance: float = 0.10
    reconcile_absolute_tolerance: int = 10_000

    telegram_bot_token: str = ""
    telegram_api_base_url: str = "https://api.telegram.org"
    telegram_timeout_s: float = 5.0
    telegram_max_retries: int = 2
    telegram_backoff_s: float = 0.5
    admin_chat_ids: str = ""

    ocr_service_base_url: str = ""
    ocr_timeout_s: float = 10.0
    ocr_max_retries: int = 1
    ocr_backoff_s: float = 0.5

    vendor_name: str = "Orderdesk Kitchen"
    bank_name: str = ""
    bank_account_number: str = ""
    bank_account_holder: str = ""

    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8")

    @field_validator("app_mode")
    @classmethod
    def validate_app_mode(cls, value: str) -> str:
        mode = value.lower().strip()
        if mode not in ALLOWED_APP_MODES:
            allowed = ", ".join(sorted(ALLOWED_APP_MODES))
            raise ValueError(f"ORDERDESK_APP_MODE must be one of: {allowed}")
        return mode

    @field_validator("reconcile_relative_tolerance")
    @classmethod
    def validate_relative_tolerance(cls, value: float) -> float:
        if value < 0:
            raise ValueError("reconcile_relative_tolerance must be >= 0")
        return value

    @field_validator("order_lock_ttl_s", "reminder_run_lock_ttl_s", "pending_confirmation_ttl_s")
    @classmethod
    def validate_positive_ttl(cls, value: int) -> int:
        if value < 1:
            raise ValueError("TTL settings must be >= 1 second")
        return value


settings = Settings()


def is_production_mode() -> bool:
    return settings.app_mode == "production"


def allowed_origins() -> list[str]:
    return [origin.strip() for origin in settings.cors_allowed_origins.split(",") if origin.strip()]


def allowed_roles_list() -> list[str]:
    return [value.strip() for value in settings.allowed_roles.split(",") if value.strip()]


def static_admin_chat_ids() -> list[str]:
    return [value.strip() for value in settings.admin_chat_ids.split(",") if value.strip()]


def ensure_secure_runtime_settings() -> None:
    """Fail fast when production-like runtime uses insecure defaults."""
    if not settings.testing and settings.jwt_secret == DEFAULT_JWT_SECRET:
        raise RuntimeError(
            "JWT_SECRET must be set to a non-default value when ORDERDESK_TESTING is false"
        )
    if not settings.testing and len(settings.jwt_secret) < MIN_SECRET_LENGTH:
        raise RuntimeError(
            "JWT_SECRET must be at least "
            f"{MIN_SECRET_LENGTH} characters when ORDERDESK_TESTING is false"
        )
    if not settings.testing and settings.enable_test_auth_bypass:
        raise RuntimeError("ENABLE_TEST_AUTH_BYPASS must be false when ORDERDESK_TESTING is false")
    if not settings.testing and is_production_mode() and _is_sqlite_url(settings.database_url):
        raise RuntimeError("ORDERDESK_DATABASE_URL must use postgres in APP_MODE=production")


def _is_sqlite_url(database_url: str) -> bool:
    value = database_url.strip().lower()
    return value.startswith("sqlite")
