"""
Unit tests for the Notification Synchronizer.
"""
import asyncio

import httpx
import pytest

from shared.error_models import NotFound, ServerUnavailable, ValidationError
from shared.models import NotificationRecord
from services.notification_service.synchronizer import NotificationSynchronizer
from services.request_executor.api_client import ApiClient


def page(*items, unread=None):
    body = {"notifications": list(items)}
    if unread is not None:
        body["unreadCount"] = unread
    return httpx.Response(200, json=body)


@pytest.fixture
def serve_unread(fake_server):
    def _serve(count: int = 0):
        fake_server.on("GET", "/notifications/unread-count", httpx.Response(200, json={"unreadCount": count}))
    return _serve


@pytest.fixture
def vendor_sync(vendor_api, vendor_store):
    return NotificationSynchronizer(vendor_api, vendor_store, page_size=20)


@pytest.fixture
def customer_sync(customer_api, customer_store):
    return NotificationSynchronizer(customer_api, customer_store, page_size=20)


@pytest.mark.unit
class TestRefresh:

    async def test_refresh_replaces_cache_newest_first(self, vendor_sync, fake_server, serve_unread, record_factory):
        old = record_factory("old")
        new = record_factory("new")
        fake_server.on("GET", "/notifications", page(old, new))
        serve_unread(2)

        records = await vendor_sync.refresh()

        assert [r.id for r in records] == ["new", "old"]
        assert vendor_sync.unread_count == 2
        assert vendor_sync.server_unread_count == 2
        request = fake_server.calls("GET", "/notifications")[0]
        assert request.url.params["page"] == "1"
        assert request.url.params["limit"] == "20"

    async def test_customer_never_sees_vendor_records(self, customer_sync, fake_server, serve_unread, record_factory):
        fake_server.on("GET", "/notifications", page(
            record_factory("v1", "booking_created", {"userType": "vendor", "bookingId": "B1"}),
            record_factory("c1", "booking_confirmed", {"userType": "gamer", "bookingId": "B1"}),
            record_factory("all"),
        ))
        serve_unread(3)

        await customer_sync.refresh()

        assert {r.id for r in customer_sync.notifications} == {"c1", "all"}
        # Derived from the filtered cache, not the server's superset count
        assert customer_sync.unread_count == 2

    async def test_vendor_suppression_scenario(self, vendor_sync, fake_server, serve_unread, record_factory):
        fake_server.on("GET", "/notifications", page(
            record_factory("A", "booking_created", {"bookingId": "B1", "bookingAction": "review_required", "userType": "vendor"}),
            record_factory("B", "booking_confirmed", {"bookingId": "B1", "userType": "vendor"}),
            record_factory("C", "system_announcement"),
        ))
        serve_unread(3)

        await vendor_sync.refresh()
        first = [r.id for r in vendor_sync.notifications]
        await vendor_sync.refresh()

        assert sorted(first) == ["B", "C"]
        assert [r.id for r in vendor_sync.notifications] == first

    async def test_failed_refresh_keeps_cache(self, vendor_sync, fake_server, serve_unread, record_factory):
        fake_server.on("GET", "/notifications", [
            page(record_factory("n1")),
            httpx.Response(404, json={"error": "gone"}),
        ])
        serve_unread(1)
        await vendor_sync.refresh()

        with pytest.raises(NotFound):
            await vendor_sync.refresh()

        assert [r.id for r in vendor_sync.notifications] == ["n1"]

    async def test_interleaved_refreshes_yield_one_generation(
        self, vendor_sync, fake_server, serve_unread, record_factory
    ):
        generations = [
            [record_factory("g1-a"), record_factory("g1-b")],
            [record_factory("g2-a"), record_factory("g2-b"), record_factory("g2-c")],
        ]
        first_started = asyncio.Event()
        release = asyncio.Event()
        fetches = []

        async def notifications(request):
            fetches.append(request)
            if len(fetches) == 1:
                first_started.set()
                await release.wait()
            return page(*generations[min(len(fetches), 2) - 1])

        fake_server.on("GET", "/notifications", notifications)
        serve_unread(0)
        snapshots = []
        vendor_sync.subscribe(lambda records: snapshots.append({r.id for r in records}))

        first = asyncio.create_task(vendor_sync.refresh())
        await first_started.wait()
        second = asyncio.create_task(vendor_sync.refresh())
        third = asyncio.create_task(vendor_sync.refresh())
        await asyncio.sleep(0)
        release.set()
        await asyncio.gather(first, second, third)

        # Joined callers queue exactly one follow-up fetch
        assert len(fetches) == 2
        g1 = {"g1-a", "g1-b"}
        g2 = {"g2-a", "g2-b", "g2-c"}
        assert all(snapshot in (g1, g2) for snapshot in snapshots)
        assert {r.id for r in vendor_sync.notifications} == g2

    async def test_reset_discards_in_flight_results(self, vendor_sync, fake_server, serve_unread, record_factory):
        started = asyncio.Event()
        release = asyncio.Event()

        async def notifications(request):
            started.set()
            await release.wait()
            return page(record_factory("stale"))

        fake_server.on("GET", "/notifications", notifications)
        serve_unread(1)

        task = asyncio.create_task(vendor_sync.refresh())
        await started.wait()
        vendor_sync.reset()
        release.set()
        await task

        assert vendor_sync.notifications == ()
        assert vendor_sync.server_unread_count is None

    async def test_refresh_after_reset_fetches_new_session(
        self, vendor_sync, fake_server, serve_unread, record_factory
    ):
        started = asyncio.Event()
        release = asyncio.Event()
        fetches = []

        async def notifications(request):
            fetches.append(request)
            if len(fetches) == 1:
                started.set()
                await release.wait()
                return page(record_factory("stale"))
            return page(record_factory("fresh"))

        fake_server.on("GET", "/notifications", notifications)
        serve_unread(1)

        old = asyncio.create_task(vendor_sync.refresh())
        await started.wait()
        vendor_sync.reset()
        new = asyncio.create_task(vendor_sync.refresh())
        await asyncio.sleep(0)
        release.set()
        await old
        records = await new

        assert len(fetches) == 2
        assert {r.id for r in records} == {"fresh"}
        assert {r.id for r in vendor_sync.notifications} == {"fresh"}

    async def test_push_during_refresh_survives_unless_fetched(
        self, vendor_sync, fake_server, serve_unread, record_factory, record
    ):
        started = asyncio.Event()
        release = asyncio.Event()

        async def notifications(request):
            started.set()
            await release.wait()
            return page(record_factory("dup", title="From server"), record_factory("n1"))

        fake_server.on("GET", "/notifications", notifications)
        serve_unread(2)

        task = asyncio.create_task(vendor_sync.refresh())
        await started.wait()
        await vendor_sync.handle_push(record("pushed"))
        await vendor_sync.handle_push(record("dup", title="From push"))
        release.set()
        await task

        ids = [r.id for r in vendor_sync.notifications]
        assert sorted(ids) == ["dup", "n1", "pushed"]
        assert vendor_sync.get("dup").title == "From server"


@pytest.mark.unit
class TestPush:

    async def test_push_unshifts_and_counts(self, vendor_sync, record):
        added = await vendor_sync.handle_push(record("p1"))

        assert added is True
        assert vendor_sync.notifications[0].id == "p1"
        assert vendor_sync.unread_count == 1

    async def test_duplicate_push_dropped(self, vendor_sync, record):
        await vendor_sync.handle_push(record("p1"))
        added = await vendor_sync.handle_push(record("p1"))

        assert added is False
        assert len(vendor_sync.notifications) == 1
        assert vendor_sync.unread_count == 1

    async def test_invisible_push_dropped(self, customer_sync, record):
        added = await customer_sync.handle_push(record("p1", "booking_created", {"userType": "vendor"}))

        assert added is False
        assert customer_sync.notifications == ()

    async def test_push_without_session_dropped(self, make_executor, store, record):
        sync = NotificationSynchronizer(ApiClient(make_executor(store)), store)

        assert await sync.handle_push(record("p1")) is False


@pytest.mark.unit
class TestMutations:

    @pytest.fixture
    async def loaded_sync(self, vendor_sync, fake_server, serve_unread, record_factory):
        fake_server.on("GET", "/notifications", page(
            record_factory("n1", category="booking"),
            record_factory("n2", is_read=True, category="payment"),
            record_factory("n3", category="booking"),
        ))
        serve_unread(2)
        await vendor_sync.refresh()
        return vendor_sync

    async def test_mark_as_read_remote_then_local(self, loaded_sync, fake_server):
        fake_server.on("PUT", "/notifications/read", httpx.Response(200, json={"success": True}))

        await loaded_sync.mark_as_read(["n1"])

        request = fake_server.calls("PUT", "/notifications/read")[0]
        assert fake_server.body_of(request) == {"ids": ["n1"]}
        assert loaded_sync.get("n1").is_read is True
        assert loaded_sync.unread_count == 1

    async def test_mark_as_read_failure_leaves_cache(self, loaded_sync, fake_server):
        fake_server.on("PUT", "/notifications/read", httpx.Response(500))

        with pytest.raises(ServerUnavailable):
            await loaded_sync.mark_as_read(["n1"])

        assert loaded_sync.get("n1").is_read is False
        assert loaded_sync.unread_count == 2

    async def test_mark_as_read_empty_makes_no_call(self, loaded_sync, fake_server):
        before = len(fake_server.requests)
        await loaded_sync.mark_as_read([])
        assert len(fake_server.requests) == before

    async def test_mark_all_as_read_zeroes_counter(self, loaded_sync, fake_server):
        fake_server.on("PUT", "/notifications/read-all", httpx.Response(200, json={"success": True}))

        await loaded_sync.mark_all_as_read()

        assert loaded_sync.unread_count == 0
        assert loaded_sync.server_unread_count == 0
        assert all(r.is_read for r in loaded_sync.notifications)

    async def test_delete_unread_decrements(self, loaded_sync, fake_server):
        fake_server.on("DELETE", "/notifications/n3", httpx.Response(200, json={"success": True}))

        await loaded_sync.delete("n3")

        assert loaded_sync.get("n3") is None
        assert loaded_sync.unread_count == 1
        assert loaded_sync.server_unread_count == 1

    async def test_delete_read_keeps_count(self, loaded_sync, fake_server):
        fake_server.on("DELETE", "/notifications/n2", httpx.Response(200, json={"success": True}))

        await loaded_sync.delete("n2")

        assert loaded_sync.unread_count == 2

    async def test_select_views(self, loaded_sync):
        assert len(loaded_sync.select("all")) == 3
        assert {r.id for r in loaded_sync.select("unread")} == {"n1", "n3"}
        assert {r.id for r in loaded_sync.select("payment")} == {"n2"}
        with pytest.raises(ValidationError):
            loaded_sync.select("weather")

    async def test_records_are_not_mutated_in_place(self, loaded_sync, fake_server):
        fake_server.on("PUT", "/notifications/read-all", httpx.Response(200, json={}))
        before = loaded_sync.notifications

        await loaded_sync.mark_all_as_read()

        assert isinstance(before[0], NotificationRecord)
        assert any(not r.is_read for r in before)
