# app/services/alert_surface.py
import asyncio
import os
import uuid
from typing import Any, Callable, Dict, List, Optional

import structlog
from fastapi import WebSocket

from app.models.toast import Toast, ToastAction

logger = structlog.get_logger()

TOAST_DURATION_MS = int(os.getenv("TOAST_DURATION_MS", "4000"))


class AlertSurface:
    """
    Superficie donde se muestran los toasts (alertas transitorias).
    show(titulo, description=..., action=...) -> Toast
    """

    async def show(self, title: Optional[str], description: Optional[str] = None,
                   action: Optional[ToastAction] = None) -> Toast:
        raise NotImplementedError


class WebSocketAlertSurface(AlertSurface):
    """
    Manda cada toast al navegador por el WebSocket del usuario.
    El navegador lo cierra solo después de `duration` ms y, si el usuario
    toca la acción, nos avisa con:
      {"type": "toast_action", "toastId": "..."}
    """

    def __init__(self, websocket: WebSocket, duration_ms: int = TOAST_DURATION_MS):
        self.websocket = websocket
        self.duration_ms = duration_ms
        self.actions: Dict[str, Callable[[], Any]] = {}
        self._expiries: Dict[str, asyncio.TimerHandle] = {}

    async def show(self, title, description=None, action=None) -> Toast:
        toast = Toast(
            id=str(uuid.uuid4()),
            title=title,
            description=description,
            action=action,
            duration_ms=self.duration_ms,
        )
        message = {
            "kind": "toast",
            "id": toast.id,
            "title": toast.title,
            "description": toast.description,
            "duration": toast.duration_ms,
            "action": {"label": action.label} if action else None,
        }
        if action and action.on_click:
            self.actions[toast.id] = action.on_click
            # cerrado el toast en el navegador, la acción ya no se puede tocar
            self._expiries[toast.id] = asyncio.get_running_loop().call_later(
                self.duration_ms / 1000, self._expire, toast.id,
            )
        await self.websocket.send_json(message)
        return toast

    def handle_client_message(self, message: dict) -> bool:
        """
        Ejecuta la acción de un toast si el mensaje es un click.
        Devuelve True si había acción para ese toast.
        """
        if message.get("type") != "toast_action":
            return False
        toast_id = message.get("toastId")
        if not isinstance(toast_id, str):
            return False
        on_click = self.actions.pop(toast_id, None)
        expiry = self._expiries.pop(toast_id, None)
        if expiry is not None:
            expiry.cancel()
        if on_click is None:
            logger.debug("toast.action_unknown", toast_id=message.get("toastId"))
            return False
        on_click()
        return True

    def _expire(self, toast_id: str):
        self.actions.pop(toast_id, None)
        self._expiries.pop(toast_id, None)

    def clear(self):
        for expiry in self._expiries.values():
            expiry.cancel()
        self._expiries.clear()
        self.actions.clear()

