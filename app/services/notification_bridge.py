# app/services/notification_bridge.py
"""
Puente entre el feed en tiempo real y los toasts del usuario.

Al activarse resuelve la sesión, abre UNA suscripción a las inserciones
de `notifications` filtrada por user_id y muestra cada fila como toast.
Al desactivarse libera la suscripción.

  INACTIVE --(sesión resuelta)--> SUBSCRIBED --(deactivate)--> INACTIVE
"""
import asyncio
from enum import Enum
from typing import Awaitable, Callable, Optional

import structlog

from app.models.feed_event import FeedEvent
from app.models.session import Session
from app.models.toast import ToastAction
from app.realtime.feed import FeedFilter, NotificationFeed, Subscription
from app.services.alert_surface import AlertSurface

logger = structlog.get_logger()

NOTIFICATIONS_TABLE = "notifications"
VIEW_LABEL = "Ver"


class BridgeState(str, Enum):
    INACTIVE = "INACTIVE"
    SUBSCRIBED = "SUBSCRIBED"


class PermissionState(str, Enum):
    DEFAULT = "default"    # el usuario todavía no decidió
    GRANTED = "granted"
    DENIED = "denied"


class CancellationToken:
    def __init__(self):
        self.cancelled = False

    def cancel(self):
        self.cancelled = True


class NotificationBridge:
    def __init__(
        self,
        feed: NotificationFeed,
        alerts: AlertSurface,
        permission: Optional[Callable[[], Optional[PermissionState]]] = None,
    ):
        self.feed = feed
        self.alerts = alerts
        self.permission = permission
        self.state = BridgeState.INACTIVE
        self.subscription: Optional[Subscription] = None
        self._token: Optional[CancellationToken] = None
        self._forwarder: Optional[asyncio.Task] = None

    async def activate(self, resolve_session: Callable[[], Awaitable[Optional[Session]]]):
        """
        Resuelve la sesión y se suscribe a las notificaciones del usuario.
        Sin sesión (o si falla la resolución) no hace nada.
        Si el feed rechaza la suscripción, el error sube tal cual.
        """
        self._check_permission()

        # una activación nueva reemplaza a la anterior (p.ej. cambio de usuario)
        await self.deactivate()
        token = CancellationToken()
        self._token = token

        try:
            session = await resolve_session()
        except Exception as e:
            logger.debug("bridge.session_unresolved", error=str(e))
            session = None

        if session is None:
            logger.debug("bridge.no_session")
            return
        if token.cancelled:
            # desmontado mientras resolvíamos la sesión
            logger.debug("bridge.stale_activation", user_id=session.user_id)
            return

        subscription = await self.feed.subscribe(
            NOTIFICATIONS_TABLE,
            event="INSERT",
            filter=FeedFilter("user_id", session.user_id),
        )
        if token.cancelled:
            subscription.close()
            return

        self.subscription = subscription
        self._forwarder = asyncio.create_task(self._forward(subscription))
        self.state = BridgeState.SUBSCRIBED
        logger.info("bridge.subscribed", user_id=session.user_id)

    async def deactivate(self):
        if self._token is not None:
            self._token.cancel()
            self._token = None
        if self.subscription is not None:
            self.subscription.close()
            self.subscription = None
        if self._forwarder is not None:
            forwarder, self._forwarder = self._forwarder, None
            if forwarder.done():
                if not forwarder.cancelled() and forwarder.exception() is not None:
                    logger.error("bridge.forwarder_failed", error=str(forwarder.exception()))
            elif forwarder is not asyncio.current_task():
                forwarder.cancel()
                try:
                    await forwarder
                except asyncio.CancelledError:
                    pass
        if self.state is BridgeState.SUBSCRIBED:
            logger.info("bridge.released")
        self.state = BridgeState.INACTIVE

    async def _forward(self, subscription: Subscription):
        async for event in subscription:
            try:
                await self._show(event)
            except Exception:
                # un toast que falla no corta los siguientes
                logger.exception("bridge.toast_failed", notification_id=event.new.get("id"))

    async def _show(self, event: FeedEvent):
        row = event.new
        await self.alerts.show(
            row.get("title"),
            description=row.get("body"),
            action=ToastAction(label=VIEW_LABEL, on_click=lambda: _view_notification(row)),
        )

    def _check_permission(self):
        if self.permission is None:
            return
        if self.permission() == PermissionState.DEFAULT:
            # se pide desde la pantalla de configuración, no acá
            logger.debug("bridge.permission_undetermined")


def _view_notification(row: dict):
    # TODO: navegar a la página de la notificación cuando exista el destino
    logger.info("notification.view_clicked", notification_id=row.get("id"))
