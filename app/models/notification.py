# app/models/notification.py
from typing import Optional
from pydantic import BaseModel


class Notification(BaseModel):
    id: str
    user_id: str
    title: Optional[str] = None
    body: Optional[str] = None
    created_at: str
    read_at: Optional[str] = None  # None = no leída
