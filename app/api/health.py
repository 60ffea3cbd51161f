# app/api/health.py
from fastapi import APIRouter

from app.realtime.feed import notification_feed

router = APIRouter(tags=["health"])


@router.get("/health")
async def health():
    return {"status": "ok", "subscriptions": notification_feed.subscriber_count()}
