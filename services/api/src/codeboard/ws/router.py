"""WebSocket endpoint for dashboards that switch roles without reloading."""

import asyncio
import json

import structlog
from fastapi import APIRouter, Depends, WebSocket, WebSocketDisconnect

from codeboard.dependencies import get_dispatcher, get_socket_viewer_id
from codeboard.metrics.dispatcher import AggregationDispatcher
from codeboard.metrics.schemas import Role

logger = structlog.get_logger()

router = APIRouter()


@router.websocket("/ws/dashboard")
async def dashboard_socket(
    websocket: WebSocket,
    viewer_id: str | None = Depends(get_socket_viewer_id),
    dispatcher: AggregationDispatcher = Depends(get_dispatcher),
) -> None:
    """Role-switching dashboard session.

    Protocol:
        Client -> Server:
            {"action": "select_role", "role": "advisor"}
            {"action": "ping"}

        Server -> Client:
            {"type": "loading", "role": "advisor"}
            {"type": "result", "state": {...}}
            {"type": "error", "state": {...}}      (store unavailable, retryable)
            {"type": "error", "message": "..."}    (bad request)
            {"type": "pong"}

    Selecting a new role cancels the previous load; a result is only ever
    sent for the most recently selected role.
    """
    if viewer_id is None:
        await websocket.close(code=4001, reason="Missing viewer_id")
        return

    await websocket.accept()
    deliveries: set[asyncio.Task[None]] = set()
    logger.info("dashboard_socket_connected", viewer_id=viewer_id)

    try:
        while True:
            raw = await websocket.receive_text()
            try:
                msg = json.loads(raw)
            except json.JSONDecodeError:
                await websocket.send_json({"type": "error", "message": "Invalid JSON"})
                continue
            if not isinstance(msg, dict):
                await websocket.send_json({"type": "error", "message": "Expected a JSON object"})
                continue

            action = msg.get("action")

            if action == "select_role":
                try:
                    role = Role(msg.get("role"))
                except ValueError:
                    await websocket.send_json({"type": "error", "message": f"Unknown role: {msg.get('role')}"})
                    continue
                await websocket.send_json({"type": "loading", "role": role.value})
                load = dispatcher.submit(role, viewer_id)
                delivery = asyncio.create_task(_deliver(websocket, load))
                deliveries.add(delivery)
                delivery.add_done_callback(deliveries.discard)

            elif action == "ping":
                await websocket.send_json({"type": "pong"})

            else:
                await websocket.send_json({"type": "error", "message": f"Unknown action: {action}"})

    except WebSocketDisconnect:
        logger.info("dashboard_socket_disconnected", viewer_id=viewer_id)
    finally:
        dispatcher.cancel()
        for delivery in deliveries:
            delivery.cancel()


async def _deliver(websocket: WebSocket, load: asyncio.Task) -> None:
    """Send the outcome of ``load`` unless it was cancelled or superseded."""
    await asyncio.wait({load})
    if load.cancelled():
        return
    exc = load.exception()
    if exc is not None:
        logger.error("dashboard_load_failed", error=str(exc), exc_info=exc)
        await websocket.send_json({"type": "error", "message": "Internal server error"})
        return
    state = load.result()
    if state is None:
        return
    frame = "result" if state.status == "ready" else "error"
    await websocket.send_json({"type": frame, "state": state.model_dump(mode="json")})
