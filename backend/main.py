import os
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from loguru import logger
from slowapi import Limiter, _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded

from backend.lifespan import lifespan
from backend.exceptions import register_exception_handlers
from backend.dependencies import get_user_id_from_request
from backend.api import health, verifications, vapi_webhook, practice
from backend.config import validate_env_vars, REQUIRED_BACKEND_ENV_VARS

all_present, missing = validate_env_vars(REQUIRED_BACKEND_ENV_VARS)
if not all_present:
    raise RuntimeError(f"Missing required environment variables: {', '.join(missing)}")

SECRET_KEY = os.getenv("JWT_SECRET_KEY")
if len(SECRET_KEY) < 32:
    raise RuntimeError("JWT_SECRET_KEY must be at least 32 characters")

ALLOWED_ORIGINS_STR = os.getenv("ALLOWED_ORIGINS")

app = FastAPI(
    title="Dental Benefits Verification",
    version="1.0.0",
    lifespan=lifespan
)

limiter = Limiter(key_func=get_user_id_from_request)
app.state.limiter = limiter
app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)

allowed_origins = [origin.strip() for origin in ALLOWED_ORIGINS_STR.split(",")]
logger.info(f"CORS allowed origins: {allowed_origins}")

app.add_middleware(
    CORSMiddleware,
    allow_origins=allowed_origins,
    allow_credentials=True,
    allow_methods=["GET", "POST", "PATCH", "DELETE"],
    allow_headers=["Authorization", "Content-Type"],
    max_age=600
)

register_exception_handlers(app)

app.include_router(health.router, tags=["Health"])
app.include_router(verifications.router, prefix="/verifications", tags=["Verifications"])
app.include_router(practice.router, prefix="/practice", tags=["Practice"])
app.include_router(vapi_webhook.router, tags=["Vapi Webhook"])
