# app/models/toast.py
from typing import Any, Callable, Optional
from pydantic import BaseModel, ConfigDict, Field


class ToastAction(BaseModel):
    model_config = ConfigDict(arbitrary_types_allowed=True)

    label: str
    on_click: Optional[Callable[[], Any]] = Field(default=None, exclude=True)


class Toast(BaseModel):
    id: str
    title: Optional[str] = None
    description: Optional[str] = None
    action: Optional[ToastAction] = None
    duration_ms: int = 4000
