# app/services/notification_handler.py
from datetime import datetime, timezone
from typing import Optional
import uuid

import structlog

from app.infra.table_client import insert_notification
from app.models.notification import Notification
from app.realtime.feed import notification_feed
from app.services.notification_bridge import NOTIFICATIONS_TABLE

logger = structlog.get_logger()

# textos por tipo (las mismas categorías que el usuario activa en Configuración)
DEFAULT_TEXTS = {
    "INVOICE_DUE": ("Cobrança a vencer", "Você tem uma cobrança próxima do vencimento."),
    "NEW_INVOICE": ("Nova nota fiscal", "Uma nova nota fiscal foi registrada."),
    "MONTHLY_SUMMARY": ("Resumo mensal", "Seu resumo do mês está disponível."),
}
GENERIC_TEXT = ("Notificação", "Você tem uma nova notificação.")


async def process_notification(msg: dict) -> Optional[Notification]:
    """
    Procesa un mensaje de notificación (cola o API).
    Estructura esperada:
      {
        "type": "INVOICE_DUE",
        "userId": "123",
        "title": "...",   # opcional
        "body": "..."     # opcional
      }
    Persiste la fila y publica la inserción en el feed.
    """
    user_id = msg.get("userId")
    noti_type = msg.get("type") or "GENERIC"

    if not user_id:
        # si no hay user no hay a quién notificar
        logger.warning("notification.dropped_without_user", type=noti_type)
        return None

    default_title, default_body = DEFAULT_TEXTS.get(noti_type, GENERIC_TEXT)
    notification = Notification(
        id=str(uuid.uuid4()),
        user_id=str(user_id),
        title=msg.get("title") or default_title,
        body=msg.get("body") or default_body,
        created_at=datetime.now(timezone.utc).isoformat(),
    )

    # 1. Persistir en Table Storage
    insert_notification(notification)

    # 2. Publicar la inserción (los bridges conectados la muestran como toast)
    delivered = await notification_feed.publish(
        NOTIFICATIONS_TABLE,
        notification.model_dump(),
    )
    logger.info(
        "notification.created",
        notification_id=notification.id,
        user_id=notification.user_id,
        type=noti_type,
        delivered=delivered,
    )
    return notification
