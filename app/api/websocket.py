# app/api/websocket.py
import json
from typing import Optional

import structlog
from fastapi import APIRouter, WebSocket, WebSocketDisconnect, Query
from starlette.websockets import WebSocketState

from app.realtime.feed import notification_feed
from app.security.jwt_utils import resolve_session
from app.services.alert_surface import WebSocketAlertSurface
from app.services.notification_bridge import BridgeState, NotificationBridge, PermissionState

logger = structlog.get_logger()
router = APIRouter(tags=["websocket"])


@router.websocket("/ws/notifications")
async def websocket_notifications(
    websocket: WebSocket,
    token: Optional[str] = Query(None),
    permission: Optional[PermissionState] = Query(None),
):
    """
    Toasts en tiempo real de las notificaciones del usuario.
    El frontend se conecta con:
      ws://localhost:8000/ws/notifications?token=JWT&permission=default
    """
    await websocket.accept()

    alerts = WebSocketAlertSurface(websocket)
    bridge = NotificationBridge(
        notification_feed,
        alerts,
        permission=(lambda: permission) if permission else None,
    )
    await bridge.activate(lambda: resolve_session(token))

    if bridge.state is BridgeState.INACTIVE:
        # sin sesión no hay nada que mostrar
        await websocket.close()
        return

    await websocket.send_json({"kind": "status", "state": bridge.state.value})

    try:
        while True:
            data = await websocket.receive_text()
            try:
                alerts.handle_client_message(json.loads(data))
            except (json.JSONDecodeError, AttributeError, TypeError):
                logger.debug("ws.ignored_message", data=data[:100])
    except WebSocketDisconnect:
        pass
    finally:
        await bridge.deactivate()
        alerts.clear()
        if websocket.client_state == WebSocketState.CONNECTED:
            await websocket.close()
