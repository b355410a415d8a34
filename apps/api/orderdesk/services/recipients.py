import time
from collections.abc import Callable
from threading import Lock
from typing import Protocol

from orderdesk.observability import log_event, metrics_store


class RecipientDirectory(Protocol):
    def list_active_admins(self) -> list[str]: ...


class StaticRecipientDirectory:
    def __init__(self, chat_ids: list[str]) -> None:
        self.chat_ids = list(chat_ids)

    def list_active_admins(self) -> list[str]:
        return list(self.chat_ids)


class CachedRecipientDirectory:
    """TTL cache in front of the admin roster.

    One instance is owned by whoever builds it (the FastAPI app state in
    production, the test itself otherwise).
    """

    def __init__(
        self,
        loader: Callable[[], list[str]],
        ttl_s: float,
        monotonic: Callable[[], float] = time.monotonic,
    ) -> None:
        self.loader = loader
        self.ttl_s = ttl_s
        self.monotonic = monotonic
        self._lock = Lock()
        self._expires_at = 0.0
        self._recipients: list[str] | None = None

    def list_active_admins(self) -> list[str]:
        now = self.monotonic()
        with self._lock:
            if self._recipients is not None and now < self._expires_at:
                metrics_store.increment("recipient_cache_hit_total")
                return list(self._recipients)

        recipients = list(dict.fromkeys(self.loader()))
        with self._lock:
            self._recipients = recipients
            self._expires_at = self.monotonic() + self.ttl_s
        metrics_store.increment("recipient_cache_refresh_total")
        log_event("recipient_directory_refreshed", recipients=len(recipients))
        return list(recipients)

    def invalidate(self) -> None:
        with self._lock:
            self._recipients = None
            self._expires_at = 0.0
