# app/infra/servicebus_consumer.py
import os
import json
import asyncio
from datetime import datetime, timezone

import structlog
from azure.servicebus.aio import ServiceBusClient
from azure.servicebus import TransportType

from app.services.notification_handler import process_notification

logger = structlog.get_logger()

SB_CONN_STR = os.getenv("AZURE_SERVICE_BUS_CONNECTION_STRING")
SB_QUEUE = os.getenv("AZURE_SERVICE_BUS_QUEUE_NAME", "notifications-queue")
RECONNECT_DELAY = 5  # segundos

_status = {
    "startedAt": None,
    "lastMessageAt": None,
    "lastError": None,
}


def consumer_status() -> dict:
    return {
        **_status,
        "queue": SB_QUEUE,
        "hasConnectionString": bool(SB_CONN_STR),
    }


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


async def handle_message(msg) -> None:
    body_bytes = b"".join(part for part in msg.body)
    payload = json.loads(body_bytes.decode("utf-8"))
    await process_notification(payload)
    _status["lastMessageAt"] = _now()


async def consume_notifications():
    """
    Consumer asíncrono de Azure Service Bus:
      - AMQP sobre WebSocket (443) para funcionar en App Service.
      - Lee mensajes de la cola y llama process_notification(payload).
      - Confirma (complete) sólo si procesó OK; si no, la cola lo reentrega.
    """
    if not SB_CONN_STR:
        logger.warning("consumer.disabled", reason="AZURE_SERVICE_BUS_CONNECTION_STRING not set")
        return

    if not SB_QUEUE:
        logger.warning("consumer.disabled", reason="AZURE_SERVICE_BUS_QUEUE_NAME not set")
        return

    _status["startedAt"] = _now()

    while True:
        try:
            logger.info("consumer.connecting", queue=SB_QUEUE)
            async with ServiceBusClient.from_connection_string(
                SB_CONN_STR,
                transport_type=TransportType.AmqpOverWebsocket,
            ) as sb_client:
                receiver = sb_client.get_queue_receiver(
                    queue_name=SB_QUEUE,
                    max_wait_time=20,
                )
                async with receiver:
                    logger.info("consumer.listening", queue=SB_QUEUE)
                    while True:
                        messages = await receiver.receive_messages(
                            max_message_count=10,
                            max_wait_time=10,
                        )
                        if not messages:
                            await asyncio.sleep(0.5)
                            continue

                        for msg in messages:
                            try:
                                await handle_message(msg)
                                await receiver.complete_message(msg)
                            except Exception as e:
                                _status["lastError"] = str(e)
                                logger.error("consumer.message_failed", error=str(e))

        except asyncio.CancelledError:
            raise
        except Exception as e:
            _status["lastError"] = str(e)
            logger.error("consumer.connection_lost", error=str(e), retry_in=RECONNECT_DELAY)
            await asyncio.sleep(RECONNECT_DELAY)
