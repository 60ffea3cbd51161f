# app/models/session.py
from typing import Optional
from pydantic import BaseModel


class Session(BaseModel):
    user_id: str           # sub del JWT
    email: Optional[str] = None
