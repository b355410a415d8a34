from orderdesk.models.admin_recipient import AdminRecipient
from orderdesk.observability import metrics_store
from orderdesk.repositories import SqlAdminRoster
from orderdesk.services.recipients import CachedRecipientDirectory, StaticRecipientDirectory


class _Ticker:
    def __init__(self) -> None:
        self.value = 1000.0

    def __call__(self) -> float:
        return self.value


def test_cached_directory_reloads_only_after_ttl():
    ticker = _Ticker()
    loads: list[int] = []

    def loader() -> list[str]:
        loads.append(1)
        return ["admin-1", "admin-2", "admin-1"]

    directory = CachedRecipientDirectory(loader, ttl_s=600, monotonic=ticker)

    assert directory.list_active_admins() == ["admin-1", "admin-2"]
    ticker.value += 599
    assert directory.list_active_admins() == ["admin-1", "admin-2"]
    assert len(loads) == 1

    ticker.value += 2
    directory.list_active_admins()
    assert len(loads) == 2

    counters = metrics_store.snapshot().counters
    assert counters["recipient_cache_hit_total"] == 1
    assert counters["recipient_cache_refresh_total"] == 2


def test_invalidate_forces_reload():
    roster = [["admin-1"]]
    directory = CachedRecipientDirectory(lambda: roster[-1], ttl_s=600, monotonic=_Ticker())
    directory.list_active_admins()
    roster.append(["admin-1", "admin-3"])

    directory.invalidate()

    assert directory.list_active_admins() == ["admin-1", "admin-3"]


def test_returned_list_is_a_copy():
    directory = StaticRecipientDirectory(["admin-1"])

    directory.list_active_admins().append("intruder")

    assert directory.list_active_admins() == ["admin-1"]


def test_roster_lists_only_active_telegram_admins(db_session):
    db_session.add_all(
        [
            AdminRecipient(chat_id="111", display_name="Owner"),
            AdminRecipient(chat_id="222", is_active=False),
            AdminRecipient(chat_id="333", role="staff"),
            AdminRecipient(chat_id="444", platform="whatsapp"),
        ]
    )
    db_session.commit()

    assert SqlAdminRoster(db_session).list_active_admins() == ["111"]
