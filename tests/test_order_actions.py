"""Tests for per-row pause/resume/cancel dispatch."""

import pytest
from fakes import FakeOrderApi, make_order

from order_monitor.config import AppConfig
from order_monitor.monitor import OpenOrdersMonitor
from order_monitor.monitoring.notices import Severity


async def _monitor(*orders) -> tuple[OpenOrdersMonitor, FakeOrderApi]:
    api = FakeOrderApi(open_orders=list(orders))
    monitor = OpenOrdersMonitor(AppConfig(), api=api)
    await monitor.refresh_open_orders()
    return monitor, api


@pytest.mark.parametrize(
    ("side", "action", "endpoint"),
    [
        ("Multi", "pause", "pause_multi_order"),
        ("Batch", "pause", "pause_batch_order"),
        ("Chained", "pause", "pause_order"),
        ("buy", "pause", "pause_order"),
        ("Multi", "resume", "resume_multi_order"),
        ("Batch", "resume", "resume_batch_order"),
        ("Chained", "resume", "resume_order"),
        ("sell", "resume", "resume_order"),
        ("Multi", "cancel", "cancel_multi_order"),
        ("Chained", "cancel", "cancel_chained_order"),
        ("Batch", "cancel", "cancel_batch_order"),
        ("buy", "cancel", "cancel_single_order"),
    ],
)
@pytest.mark.asyncio
async def test_dispatch_by_order_type(side: str, action: str, endpoint: str) -> None:
    monitor, api = await _monitor(make_order("9", side=side, status="ACTIVE"))

    notice = await monitor.run_order_action("9", action)

    assert api.called(endpoint) == [("9",)]
    assert notice.severity is Severity.SUCCESS
    # Open orders are reloaded after the mutation
    assert len(api.called("list_open_orders")) == 2


@pytest.mark.asyncio
async def test_default_messages() -> None:
    monitor, _ = await _monitor(make_order("9", status="ACTIVE"))
    assert (await monitor.run_order_action("9", "pause")).message == "Pause request submitted."
    assert (await monitor.run_order_action("9", "resume")).message == "Resume request submitted."


@pytest.mark.parametrize("status", ["COMPLETE", "CANCELED"])
@pytest.mark.asyncio
async def test_cancel_refused_for_finished_orders(status: str) -> None:
    monitor, api = await _monitor(make_order("9", side="buy", status=status))

    notice = await monitor.run_order_action("9", "cancel")

    assert notice.severity is Severity.WARNING
    assert api.called("cancel_single_order") == []


@pytest.mark.asyncio
async def test_api_error_becomes_error_notice() -> None:
    monitor, api = await _monitor(make_order("9", side="Multi"))
    api.fail.add("pause_multi_order")

    notice = await monitor.run_order_action("9", "pause")

    assert notice.severity is Severity.ERROR
    assert "pause_multi_order failed" in notice.message


@pytest.mark.asyncio
async def test_unknown_order_raises_key_error() -> None:
    monitor, _ = await _monitor()
    with pytest.raises(KeyError):
        await monitor.run_order_action("missing", "pause")


@pytest.mark.asyncio
async def test_unknown_action_raises_value_error() -> None:
    monitor, _ = await _monitor(make_order("9"))
    with pytest.raises(ValueError, match="Unknown order action"):
        await monitor.run_order_action("9", "explode")


@pytest.mark.asyncio
async def test_group_actions_use_multi_endpoints() -> None:
    monitor, api = await _monitor(
        make_order("p", child_order_ids=["c"], side="buy"),
        make_order("c", parent_order_id="p"),
    )
    await monitor.run_group_action("p", "pause")
    await monitor.run_group_action("p", "cancel")
    await monitor.run_group_action("orphan", "resume")

    assert api.called("pause_multi_order") == [("p",)]
    assert api.called("cancel_multi_order") == [("p",)]
    assert api.called("resume_multi_order") == [("orphan",)]


@pytest.mark.asyncio
async def test_group_batch_parent_uses_batch_endpoint() -> None:
    monitor, api = await _monitor(make_order("p", child_order_ids=["c"], side="Batch"))
    await monitor.run_group_action("p", "resume")
    assert api.called("resume_batch_order") == [("p",)]
