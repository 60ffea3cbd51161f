# app/models/queue_message.py
from typing import Any, Optional
from pydantic import BaseModel


class QueueMessage(BaseModel):
    type: str = "GENERIC"
    userId: Optional[str] = None
    title: Optional[str] = None
    body: Optional[str] = None
    data: Optional[Any] = None
