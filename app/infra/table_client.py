# app/infra/table_client.py
import os
from datetime import datetime, timezone
from typing import List, Optional

from azure.data.tables import TableServiceClient, UpdateMode

from app.models.notification import Notification

TABLE_NAME = os.getenv("TABLE_NAME", "notifications")
CONN_STR = os.getenv("AZURE_STORAGE_CONNECTION_STRING")


def get_table_client():
    if not CONN_STR:
        raise RuntimeError("AZURE_STORAGE_CONNECTION_STRING is not configured")

    service = TableServiceClient.from_connection_string(conn_str=CONN_STR)
    return service.get_table_client(table_name=TABLE_NAME)


def to_entity(notification: Notification) -> dict:
    # PartitionKey = user_id, RowKey = id
    entity = {
        "PartitionKey": notification.user_id,
        "RowKey": notification.id,
        "user_id": notification.user_id,
        "title": notification.title,
        "body": notification.body,
        "created_at": notification.created_at,
    }
    if notification.read_at:
        entity["read_at"] = notification.read_at
    return {k: v for k, v in entity.items() if v is not None}


def from_entity(entity: dict) -> Notification:
    return Notification(
        id=entity["RowKey"],
        user_id=entity.get("user_id") or entity["PartitionKey"],
        title=entity.get("title"),
        body=entity.get("body"),
        created_at=entity.get("created_at", ""),
        read_at=entity.get("read_at") or None,
    )


def insert_notification(notification: Notification):
    table_client = get_table_client()
    table_client.create_entity(entity=to_entity(notification))


def get_user_notifications(user_id: str, top: Optional[int] = 10) -> List[Notification]:
    """
    Notificaciones de un usuario (PartitionKey = user_id),
    de la más nueva a la más vieja.
    """
    table_client = get_table_client()

    entities = table_client.query_entities(
        query_filter="PartitionKey eq @user_id",
        parameters={"user_id": user_id},
    )

    notis = sorted(
        (from_entity(e) for e in entities),
        key=lambda n: n.created_at,
        reverse=True,
    )
    if top is None:
        return notis
    return notis[:top]


def mark_as_read(user_id: str, notification_id: str) -> str:
    """
    Pone read_at = ahora. Hay que volver a mandar PartitionKey y RowKey.
    """
    table_client = get_table_client()

    entity = table_client.get_entity(partition_key=user_id, row_key=notification_id)
    read_at = datetime.now(timezone.utc).isoformat()
    entity["read_at"] = read_at

    table_client.update_entity(entity=entity, mode=UpdateMode.MERGE)
    return read_at
