import os
import sys
import asyncio
import uvicorn
from dotenv import load_dotenv
from loguru import logger

# Load environment variables from .env file
load_dotenv()

from logging_config import setup_logging
from backend.config import validate_backend_startup
from backend.database import close_mongo_client
from backend.main import app


async def validate_startup():
    # The Mongo client is bound to this event loop, uvicorn starts its own
    try:
        await validate_backend_startup()
    finally:
        await close_mongo_client()


if __name__ == "__main__":
    setup_logging()

    logger.info("=" * 60)
    logger.info("Dental Benefits Verification API")
    logger.info("=" * 60)

    # Validate environment and service connectivity
    try:
        asyncio.run(validate_startup())
    except RuntimeError as e:
        logger.error(f"❌ Startup validation failed: {e}")
        logger.error("Cannot start application - fix configuration and try again")
        sys.exit(1)

    logger.info("Starting verification API server...")
    uvicorn.run(app, host="0.0.0.0", port=int(os.getenv("PORT", 8000)))
