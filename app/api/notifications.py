# app/api/notifications.py
import os

from azure.core.exceptions import ResourceNotFoundError
from fastapi import APIRouter, Request, HTTPException, status

from app.security.jwt_utils import get_current_user
from app.infra.table_client import get_user_notifications, mark_as_read
from app.infra.servicebus_consumer import consumer_status
from app.models.notification import Notification
from app.models.queue_message import QueueMessage
from app.services.notification_handler import process_notification

router = APIRouter(prefix="/notifications", tags=["notifications"])

PAGE_SIZE = int(os.getenv("NOTIFICATIONS_PAGE_SIZE", "10"))
SERVICE_ROLE = "service"


def _require_owner(request: Request, user_id: str) -> dict:
    current = get_current_user(request.headers.get("Authorization", ""))
    if current["sub"] != user_id:
        raise HTTPException(status_code=403, detail="Forbidden")
    return current


@router.get("/user/{user_id}")
async def list_user_notifications(user_id: str, request: Request):
    """
    Últimas notificaciones del usuario, de la más nueva a la más vieja.
    Solo puede ver las suyas (comparando sub del JWT).
    """
    _require_owner(request, user_id)
    return get_user_notifications(user_id, top=PAGE_SIZE)


@router.get("/unread-count/{user_id}")
async def unread_count(user_id: str, request: Request):
    """Cuenta las notificaciones sin read_at."""
    _require_owner(request, user_id)
    notis = get_user_notifications(user_id, top=None)
    return {"count": sum(1 for n in notis if not n.read_at)}


@router.post("/mark-read/{notification_id}")
async def mark_notification_as_read(notification_id: str, request: Request):
    """
    Marca una notificación como leída.
    Usa el user_id (sub) del JWT y el id de la notificación.
    """
    current = get_current_user(request.headers.get("Authorization", ""))

    try:
        read_at = mark_as_read(current["sub"], notification_id)
    except ResourceNotFoundError:
        raise HTTPException(status_code=404, detail="Notification not found")
    except Exception as e:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=f"Could not mark as read: {e}",
        )

    return {"ok": True, "read_at": read_at}


@router.post("", status_code=status.HTTP_201_CREATED, response_model=Notification)
async def create_notification(body: QueueMessage, request: Request):
    """
    Crea una notificación (persistencia + feed en tiempo real).
    Si no se manda userId, usa el del token. Para otro usuario hace falta
    un token con role "service" (jobs del backend).
    """
    current = get_current_user(request.headers.get("Authorization", ""))
    target_user = body.userId or current["sub"]
    if target_user != current["sub"] and current.get("role") != SERVICE_ROLE:
        raise HTTPException(status_code=403, detail="Forbidden")

    msg = body.model_dump()
    msg["userId"] = target_user
    return await process_notification(msg)


@router.get("/debug/consumer-status")
async def debug_consumer_status():
    """Estado del consumer de Service Bus."""
    return consumer_status()
