import asyncio
from contextlib import asynccontextmanager
import aiohttp
from fastapi import FastAPI
from loguru import logger

from backend.database import close_mongo_client
from backend.vapi_client import VAPI_TIMEOUT_SECONDS


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info("Application starting...")

    # Shared by every outbound Vapi request
    app.state.http_session = aiohttp.ClientSession(
        timeout=aiohttp.ClientTimeout(total=VAPI_TIMEOUT_SECONDS)
    )
    logger.info("HTTP session created")

    logger.info("Application ready")

    yield

    logger.info("Shutdown signal received...")
    await app.state.http_session.close()
    logger.info("HTTP session closed")
    await asyncio.sleep(1)
    await close_mongo_client()
    logger.info("Graceful shutdown complete")
