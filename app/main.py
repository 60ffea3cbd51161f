# app/main.py
from dotenv import load_dotenv

# 1) cargar variables de entorno del .env
load_dotenv()

import asyncio
from contextlib import asynccontextmanager

import structlog
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from app.api.health import router as health_router
from app.api.notifications import router as notifications_router
from app.api.websocket import router as ws_router
from app.infra.servicebus_consumer import consume_notifications

logger = structlog.get_logger()


@asynccontextmanager
async def lifespan(app: FastAPI):
    # lanzar el consumer de Service Bus en background
    consumer_task = asyncio.create_task(consume_notifications())
    logger.info("app.started")

    yield

    consumer_task.cancel()
    try:
        await consumer_task
    except asyncio.CancelledError:
        pass
    logger.info("app.shutdown")


app = FastAPI(title="MEI Notification Service", lifespan=lifespan)

# 2) CORS (limitar orígenes en prod)
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# 3) Rutas REST
app.include_router(health_router)
app.include_router(notifications_router)
# 4) Ruta WebSocket
app.include_router(ws_router)
