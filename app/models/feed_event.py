# app/models/feed_event.py
from typing import Any, Dict
from pydantic import BaseModel


class FeedEvent(BaseModel):
    """
    Un cambio de fila entregado por el feed en tiempo real.
    `new` es la fila tal como quedó insertada.
    """
    table: str
    type: str = "INSERT"
    new: Dict[str, Any]
    commit_timestamp: str
