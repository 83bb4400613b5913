"""FastAPI HTTP API the rendering layer talks to."""

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from typing import Any

from pydantic import BaseModel

from order_monitor import __version__
from order_monitor.bulk import BulkOutcome
from order_monitor.maintenance import ToggleTransition
from order_monitor.monitor import OpenOrdersMonitor
from order_monitor.order_actions import ACTIONS


class EventSelection(BaseModel):
    event_id: str | None = None


class SelectAll(BaseModel):
    checked: bool = True


class MaintenanceToggle(BaseModel):
    enabled: bool | None = None


def create_app(monitor: OpenOrdersMonitor, *, manage_lifecycle: bool = True) -> Any:
    """Create and return the FastAPI application.

    Args:
        monitor: The monitor whose state and actions are exposed.
        manage_lifecycle: Start polling on startup and stop it on shutdown.

    Returns:
        A FastAPI application instance.

    Every endpoint is a coroutine so monitor state is only touched from the
    event loop the poll tasks run on, never from the threadpool.
    """
    from fastapi import FastAPI, HTTPException  # noqa: PLC0415
    from fastapi.responses import JSONResponse  # noqa: PLC0415

    @asynccontextmanager
    async def lifespan(_app: FastAPI) -> AsyncIterator[None]:
        if manage_lifecycle:
            monitor.start()
        try:
            yield
        finally:
            if manage_lifecycle:
                await monitor.stop()

    app = FastAPI(title="Order Monitor", version=__version__, lifespan=lifespan)

    def _check_action(action: str) -> None:
        if action not in ACTIONS:
            raise HTTPException(status_code=400, detail=f"Unknown action: {action}")

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    @app.get("/api/health")
    async def api_health() -> JSONResponse:
        return JSONResponse({"status": "ok", "version": __version__, "polling": monitor.poller.running})

    @app.get("/api/view")
    async def api_view() -> JSONResponse:
        return JSONResponse(monitor.view().to_dict())

    @app.get("/api/notices")
    async def api_notices(limit: int = 20) -> JSONResponse:
        return JSONResponse([n.to_dict() for n in monitor.history.recent(limit)])

    # ------------------------------------------------------------------
    # Sort, filter and scope
    # ------------------------------------------------------------------

    @app.post("/api/sort/{column_id}")
    async def api_sort(column_id: str) -> JSONResponse:
        state = monitor.sort_by(column_id)
        return JSONResponse({"column_id": state.column_id, "direction": state.direction})

    @app.post("/api/filters/statuses/{status}")
    async def api_toggle_status(status: str) -> JSONResponse:
        return JSONResponse({"excluded_statuses": monitor.toggle_excluded_status(status)})

    @app.post("/api/events/select")
    async def api_select_event(body: EventSelection) -> JSONResponse:
        changed = await monitor.select_event(body.event_id)
        return JSONResponse({"event_id": monitor.scope.event_id, "changed": changed})

    # ------------------------------------------------------------------
    # Selection
    # ------------------------------------------------------------------

    @app.post("/api/selection/{watch_id}/toggle")
    async def api_toggle_watch(watch_id: str) -> JSONResponse:
        selected = monitor.toggle_watch(watch_id)
        return JSONResponse({"watch_id": watch_id, "selected": selected, "selection": monitor.selection.as_list()})

    @app.post("/api/selection/all")
    async def api_select_all(body: SelectAll) -> JSONResponse:
        monitor.select_all(body.checked)
        return JSONResponse({"selection": monitor.selection.as_list()})

    @app.post("/api/selection/clear")
    async def api_clear_selection() -> JSONResponse:
        monitor.clear_selection()
        return JSONResponse({"selection": []})

    # ------------------------------------------------------------------
    # Actions
    # ------------------------------------------------------------------

    @app.post("/api/bulk/resolve")
    async def api_bulk_resolve() -> JSONResponse:
        return JSONResponse(_outcome_payload(await monitor.resolve_selected()))

    @app.post("/api/bulk/resume")
    async def api_bulk_resume() -> JSONResponse:
        return JSONResponse(_outcome_payload(await monitor.resume_selected()))

    @app.post("/api/watch/{watch_id}/resolve")
    async def api_resolve_watch(watch_id: str) -> JSONResponse:
        return JSONResponse(_outcome_payload(await monitor.resolve_watch(watch_id)))

    @app.post("/api/maintenance/toggle")
    async def api_toggle_maintenance(body: MaintenanceToggle | None = None) -> JSONResponse:
        transition = await monitor.toggle_maintenance(body.enabled if body is not None else None)
        if transition is None:
            raise HTTPException(status_code=409, detail="A maintenance mode change is already in progress")
        return JSONResponse(_transition_payload(transition))

    @app.post("/api/maintenance/exchanges/{name}")
    async def api_toggle_exchange(name: str) -> JSONResponse:
        return JSONResponse({"target_exchanges": monitor.maintenance.toggle_exchange(name)})

    @app.post("/api/orders/{order_id}/{action}")
    async def api_order_action(order_id: str, action: str) -> JSONResponse:
        _check_action(action)
        try:
            notice = await monitor.run_order_action(order_id, action)
        except KeyError:
            raise HTTPException(status_code=404, detail=f"Order {order_id} not found") from None
        return JSONResponse(notice.to_dict())

    @app.post("/api/groups/{parent_id}/{action}")
    async def api_group_action(parent_id: str, action: str) -> JSONResponse:
        _check_action(action)
        notice = await monitor.run_group_action(parent_id, action)
        return JSONResponse(notice.to_dict())

    return app


def _outcome_payload(outcome: BulkOutcome) -> dict[str, Any]:
    return {
        "status": outcome.status.value,
        "ok": outcome.ok,
        "order_ids": list(outcome.order_ids),
        "event_id": outcome.event_id,
        "notice": outcome.notice.to_dict(),
    }


def _transition_payload(transition: ToggleTransition) -> dict[str, Any]:
    return {
        "state": transition.state.value,
        "requested": transition.requested,
        "enabled": transition.displayed,
        "order_ids": list(transition.order_ids),
        "exchanges": list(transition.exchanges),
        "notice": transition.notice.to_dict() if transition.notice is not None else None,
    }
