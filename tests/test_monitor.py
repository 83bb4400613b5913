"""Tests for the monitor facade."""

import asyncio

import httpx
import pytest
from fakes import FakeOrderApi, make_event, make_order, make_watch

from order_monitor.config import AppConfig, PollingConfig
from order_monitor.monitor import OpenOrdersMonitor
from order_monitor.monitoring.notices import WebhookNoticeSink

FAST_POLLING = PollingConfig(open_orders_interval=0.01, watched_orders_interval=0.01, maintenance_interval=0.01)


def _monitor(api: FakeOrderApi, **config: object) -> OpenOrdersMonitor:
    return OpenOrdersMonitor(AppConfig(**config), api=api)


class TestRefresh:
    @pytest.mark.asyncio
    async def test_refresh_open_orders_records_timestamp(self) -> None:
        api = FakeOrderApi(open_orders=[make_order(1)])
        monitor = _monitor(api)
        await monitor.refresh_open_orders()
        assert [o.id for o in monitor.store.open_orders] == ["1"]
        assert monitor.store.open_orders_refreshed_at is not None

    @pytest.mark.asyncio
    async def test_failed_refresh_keeps_previous_snapshot(self) -> None:
        api = FakeOrderApi(open_orders=[make_order(1)])
        monitor = _monitor(api)
        await monitor.refresh_open_orders()
        api.fail.add("list_open_orders")
        with pytest.raises(Exception, match="list_open_orders failed"):
            await monitor.refresh_open_orders()
        assert [o.id for o in monitor.store.open_orders] == ["1"]

    @pytest.mark.asyncio
    async def test_watch_refresh_prunes_selection(self) -> None:
        api = FakeOrderApi(watched=[make_watch("a"), make_watch("b")])
        monitor = _monitor(api)
        await monitor.refresh_watched_orders()
        monitor.select_all(True)

        api.watched = [make_watch("a", resolved=True)]
        await monitor.refresh_watched_orders()

        assert len(monitor.selection) == 0

    @pytest.mark.asyncio
    async def test_watch_refresh_reads_scope_at_call_time(self) -> None:
        api = FakeOrderApi()
        monitor = _monitor(api)
        monitor.scope.set("E5")
        await monitor.refresh_watched_orders()
        await monitor.refresh_watched_orders(None)
        assert api.called("list_watched_orders") == [("E5",), (None,)]

    @pytest.mark.asyncio
    async def test_refresh_maintenance(self) -> None:
        api = FakeOrderApi(maintenance_enabled=True, events=[make_event("E1", is_active=True), make_event("E0")])
        monitor = _monitor(api)
        await monitor.refresh_maintenance()
        assert monitor.maintenance.enabled is True
        assert monitor.store.active_event is not None
        assert [e.id for e in monitor.store.historical_events] == ["E0"]


class TestEventScope:
    @pytest.mark.asyncio
    async def test_select_event_clears_selection_and_refreshes(self) -> None:
        api = FakeOrderApi(watched=[make_watch("a")])
        monitor = _monitor(api)
        await monitor.refresh_watched_orders()
        monitor.toggle_watch("a")

        changed = await monitor.select_event("E2")

        assert changed is True
        assert len(monitor.selection) == 0
        assert api.called("list_watched_orders")[-1] == ("E2",)

    @pytest.mark.asyncio
    async def test_same_event_is_noop(self) -> None:
        api = FakeOrderApi(watched=[make_watch("a")])
        monitor = _monitor(api)
        await monitor.refresh_watched_orders()
        monitor.toggle_watch("a")
        assert await monitor.select_event(None) is False
        assert monitor.selection.ids == {"a"}

    @pytest.mark.asyncio
    async def test_refresh_failure_on_scope_change_is_logged(self) -> None:
        api = FakeOrderApi()
        api.fail.add("list_watched_orders")
        monitor = _monitor(api)
        assert await monitor.select_event("E2") is True
        assert monitor.scope.event_id == "E2"


class TestLifecycle:
    @pytest.mark.asyncio
    async def test_polling_fills_store(self) -> None:
        api = FakeOrderApi(open_orders=[make_order(1)], watched=[make_watch("a")], maintenance_enabled=True)
        monitor = _monitor(api, polling=FAST_POLLING)
        monitor.start()
        await asyncio.sleep(0.03)
        await monitor.stop()

        assert len(monitor.store.open_orders) == 1
        assert len(monitor.store.watch_records) == 1
        assert monitor.maintenance.enabled is True

    @pytest.mark.asyncio
    async def test_ticks_pick_up_scope_change(self) -> None:
        api = FakeOrderApi()
        monitor = _monitor(api, polling=FAST_POLLING)
        monitor.start()
        await asyncio.sleep(0.02)
        monitor.scope.set("E7")
        await asyncio.sleep(0.03)
        await monitor.stop()

        assert api.called("list_watched_orders")[0] == (None,)
        assert api.called("list_watched_orders")[-1] == ("E7",)

    @pytest.mark.asyncio
    async def test_no_mutation_after_stop(self) -> None:
        api = FakeOrderApi(open_orders=[make_order(1)])
        api.delay = 0.05
        monitor = _monitor(api)

        pending = asyncio.create_task(monitor.refresh_open_orders())
        await asyncio.sleep(0.01)
        await monitor.stop()
        await pending

        assert monitor.store.open_orders == ()
        assert monitor.store.open_orders_refreshed_at is None

    @pytest.mark.asyncio
    async def test_start_after_stop_is_refused(self) -> None:
        monitor = _monitor(FakeOrderApi())
        await monitor.stop()
        assert monitor.closed is True
        with pytest.raises(RuntimeError):
            monitor.start()


class TestView:
    @pytest.mark.asyncio
    async def test_view_groups_filters_and_sorts(self) -> None:
        api = FakeOrderApi(
            open_orders=[
                make_order("p", child_order_ids=["c1", "c2"], side="Multi"),
                make_order("c1", parent_order_id="p", pair="ZZZ"),
                make_order("c2", parent_order_id="p", pair="AAA"),
                make_order("s1", pair="MMM", status="PAUSED"),
                make_order("s2", pair="BBB", status="ACTIVE"),
            ]
        )
        monitor = _monitor(api, excluded_statuses=["PAUSED"])
        await monitor.refresh_open_orders()
        monitor.sort_by("pair")

        view = monitor.view()

        assert [c.id for c in view.grouped[0].children] == ["c2", "c1"]
        assert [o.id for o in view.standalone] == ["s2"]
        assert view.empty_message is None
        data = view.to_dict()
        assert data["sort"] == {"column_id": "pair", "direction": "asc"}
        assert data["grouped"][0]["parent"]["order_type"] == "Multi"
        assert data["standalone"][0]["status_label"] == "Active"
        assert "raw" not in data["standalone"][0]

    @pytest.mark.asyncio
    async def test_parents_awaiting_children_are_listed(self) -> None:
        api = FakeOrderApi(open_orders=[make_order("p", child_order_ids=["c"], side="Multi"), make_order("s")])
        monitor = _monitor(api)
        await monitor.refresh_open_orders()

        view = monitor.view()

        assert view.grouped == ()
        assert [o.id for o in view.standalone] == ["s"]
        assert view.to_dict()["pending_parent_ids"] == ["p"]
        assert monitor.summary()["awaiting_children"] == 1
        assert monitor.displayed_order_ids() == ["p", "s"]

    @pytest.mark.asyncio
    async def test_empty_messages(self) -> None:
        api = FakeOrderApi(open_orders=[make_order(1, status="PAUSED")])
        monitor = _monitor(api)
        assert monitor.view().empty_message == "No open orders"

        await monitor.refresh_open_orders()
        monitor.toggle_excluded_status("PAUSED")
        assert monitor.view().empty_message == "No open orders match the selected filters"

        monitor.toggle_excluded_status("PAUSED")
        assert monitor.view().empty_message is None

    @pytest.mark.asyncio
    async def test_selection_counts(self) -> None:
        api = FakeOrderApi(watched=[make_watch("a", current_status="PAUSED"), make_watch("b", resolved=True)])
        monitor = _monitor(api)
        await monitor.refresh_watched_orders()

        monitor.select_all(True)
        view = monitor.view()

        assert view.selected_count == 1
        assert view.selectable_count == 1
        assert view.all_selected is True
        assert view.can_resolve_selected is True
        assert view.can_resume_selected is True
        assert view.to_dict()["selection"]["watch_ids"] == ["a"]

    def test_summary(self) -> None:
        summary = _monitor(FakeOrderApi()).summary()
        assert summary["open_orders"] == 0
        assert summary["maintenance_enabled"] is False


class TestWebhookNotices:
    @pytest.mark.asyncio
    async def test_slow_webhook_does_not_hold_up_actions(self) -> None:
        delivered: list[bytes] = []

        async def handler(request: httpx.Request) -> httpx.Response:
            await asyncio.sleep(0.5)
            delivered.append(request.content)
            return httpx.Response(200)

        api = FakeOrderApi(open_orders=[make_order(1, status="ACTIVE")])
        monitor = _monitor(api)
        await monitor.refresh_open_orders()
        client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
        monitor.notices.register(WebhookNoticeSink("https://hooks.example.com/ops", client=client))

        loop = asyncio.get_running_loop()
        started = loop.time()
        notice = await monitor.run_order_action("1", "pause")
        assert loop.time() - started < 0.3
        assert notice.message == "Pause request submitted."
        assert delivered == []

        await monitor.stop()
        assert len(delivered) == 1
        await client.aclose()
