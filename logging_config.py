import os
import sys
import logging
from loguru import logger

# Chatty at INFO; only their warnings are kept
NOISY_LIBRARIES = ['pymongo', 'motor', 'aiohttp', 'aiohttp.access', 'httpx', 'httpcore', 'urllib3']

HUMAN_FORMAT = (
    "<green>{time:HH:mm:ss}</green> | <level>{level: <8}</level> | "
    "<cyan>{name}</cyan>:<cyan>{function}</cyan> - <level>{message}</level>"
)


def debug_enabled() -> bool:
    return os.getenv("DEBUG", "false").lower() in ["true", "1", "yes"]


def setup_logging(debug: bool = None):
    """
    One stderr sink for loguru: JSON lines in production, coloured text elsewhere.

    Stores, auth and the exception handlers use stdlib logging, which is
    configured at the same level on the same stream.
    """
    if debug is None:
        debug = debug_enabled()

    env = os.getenv("ENV", "local")
    level = "DEBUG" if debug else "INFO"

    logger.remove()
    if env == "production":
        logger.add(sys.stderr, level=level, format="{message}", serialize=True)
    else:
        logger.add(sys.stderr, level=level, format=HUMAN_FORMAT)

    logging.basicConfig(
        level=logging.DEBUG if debug else logging.INFO,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        stream=sys.stderr,
        force=True
    )
    for lib in NOISY_LIBRARIES:
        logging.getLogger(lib).setLevel(logging.WARNING)

    logger.info(f"Logging configured (env={env}, level={level})")
