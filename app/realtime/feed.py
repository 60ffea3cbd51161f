# app/realtime/feed.py
"""
Feed de cambios en tiempo real (in-process).

Cada inserción en una tabla se publica aquí y se entrega a las
suscripciones de esa tabla cuyo filtro coincide con la fila:
  table -> set(Subscription)

Es fire-and-forget: si nadie escucha, el evento se pierde
(la fila ya quedó persistida en Table Storage).
"""
import asyncio
from datetime import datetime, timezone
from typing import Any, Dict, Optional, Set

import structlog

from app.models.feed_event import FeedEvent

logger = structlog.get_logger()

_CLOSED = object()


class FeedFilter:
    """Predicado de igualdad sobre una columna: user_id=eq.<valor>."""

    def __init__(self, column: str, value: Any):
        self.column = column
        self.value = value

    def matches(self, record: Dict[str, Any]) -> bool:
        return record.get(self.column) == self.value

    def __str__(self) -> str:
        return f"{self.column}=eq.{self.value}"


class Subscription:
    """
    Handle de una suscripción viva. Se consume con `async for` y se
    libera con close(); cerrada, no entrega nada más.
    """

    def __init__(self, feed: "NotificationFeed", table: str, event: str,
                 filter: Optional[FeedFilter] = None):
        self.feed = feed
        self.table = table
        self.event = event
        self.filter = filter
        self.closed = False
        self._queue: asyncio.Queue = asyncio.Queue()

    def wants(self, table: str, event: str, record: Dict[str, Any]) -> bool:
        if self.closed or table != self.table or event != self.event:
            return False
        return self.filter is None or self.filter.matches(record)

    def deliver(self, event: FeedEvent):
        self._queue.put_nowait(event)

    def close(self):
        if self.closed:
            return
        self.closed = True
        self.feed.unsubscribe(self)
        # descartar lo pendiente y despertar al consumidor
        while not self._queue.empty():
            self._queue.get_nowait()
        self._queue.put_nowait(_CLOSED)

    def __aiter__(self):
        return self

    async def __anext__(self) -> FeedEvent:
        if self.closed and self._queue.empty():
            raise StopAsyncIteration
        item = await self._queue.get()
        if item is _CLOSED:
            raise StopAsyncIteration
        return item


class NotificationFeed:
    def __init__(self):
        self.subscriptions: Dict[str, Set[Subscription]] = {}

    async def subscribe(self, table: str, event: str = "INSERT",
                        filter: Optional[FeedFilter] = None) -> Subscription:
        subscription = Subscription(self, table, event, filter)
        if table not in self.subscriptions:
            self.subscriptions[table] = set()
        self.subscriptions[table].add(subscription)
        logger.info("feed.subscribed", table=table, change_type=event, filter=str(filter))
        return subscription

    def unsubscribe(self, subscription: Subscription):
        table = subscription.table
        if table in self.subscriptions:
            self.subscriptions[table].discard(subscription)
            if not self.subscriptions[table]:
                del self.subscriptions[table]
        logger.info("feed.unsubscribed", table=table, filter=str(subscription.filter))

    async def publish(self, table: str, record: Dict[str, Any], event: str = "INSERT") -> int:
        """
        Entrega el cambio a TODAS las suscripciones que coinciden.
        Devuelve a cuántas llegó.
        """
        change = FeedEvent(
            table=table,
            type=event,
            new=dict(record),
            commit_timestamp=datetime.now(timezone.utc).isoformat(),
        )
        delivered = 0
        for subscription in list(self.subscriptions.get(table, ())):
            if subscription.wants(table, event, record):
                subscription.deliver(change)
                delivered += 1
        logger.debug("feed.published", table=table, change_type=event, delivered=delivered)
        return delivered

    def subscriber_count(self, table: Optional[str] = None) -> int:
        if table is not None:
            return len(self.subscriptions.get(table, ()))
        return sum(len(subs) for subs in self.subscriptions.values())


# instancia global
notification_feed = NotificationFeed()
