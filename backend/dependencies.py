"""Dependency injection providers for FastAPI"""
import os
import hmac
import logging
from typing import Tuple
from fastapi import Depends, HTTPException, Request, status
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from jose import JWTError, jwt

from backend.models import (
    AsyncPracticeRecord,
    AsyncVerificationRecord,
    get_async_practice_db,
    get_async_verification_db
)
from backend.vapi_client import VapiClient

logger = logging.getLogger(__name__)

security = HTTPBearer()
SECRET_KEY = os.getenv("JWT_SECRET_KEY", "")
ALGORITHM = "HS256"


# Database dependencies
def get_verification_db() -> AsyncVerificationRecord:
    return get_async_verification_db()

def get_practice_db() -> AsyncPracticeRecord:
    return get_async_practice_db()


# External services
def get_vapi_client(request: Request) -> VapiClient:
    return VapiClient(request.app.state.http_session)


# Utilities
def get_client_info(request: Request) -> Tuple[str, str]:
    """Extract IP and User-Agent from request"""
    forwarded_for = request.headers.get("x-forwarded-for")
    if forwarded_for:
        ip_address = forwarded_for.split(",")[0].strip()
    else:
        ip_address = request.client.host if request.client else "unknown"

    user_agent = request.headers.get("user-agent", "unknown")
    return ip_address, user_agent


# Authentication
async def get_current_user(
    credentials: HTTPAuthorizationCredentials = Depends(security)
) -> dict:
    """Validate JWT. The token must name the user and their practice."""
    try:
        token = credentials.credentials
        payload = jwt.decode(token, SECRET_KEY, algorithms=[ALGORITHM])
    except JWTError as e:
        logger.warning(f"JWT validation failed: {str(e)}")
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid or expired token",
            headers={"WWW-Authenticate": "Bearer"},
        )

    if not payload.get("sub") or not payload.get("email") or not payload.get("practice_id"):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid authentication token",
            headers={"WWW-Authenticate": "Bearer"},
        )

    return payload


async def get_current_practice_id(current_user: dict = Depends(get_current_user)) -> str:
    return str(current_user["practice_id"])


async def require_admin(current_user: dict = Depends(get_current_user)) -> dict:
    if current_user.get("role") != "admin":
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Admin access required")
    return current_user


async def verify_webhook_secret(request: Request) -> None:
    """Shared-secret check for the voice platform webhook, when configured."""
    expected = os.getenv("VAPI_WEBHOOK_SECRET")
    if not expected:
        return
    provided = request.headers.get("x-vapi-secret", "")
    if not hmac.compare_digest(provided.encode(), expected.encode()):
        ip_address = get_client_info(request)[0]
        logger.warning(f"Rejected webhook with bad secret from {ip_address}")
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid webhook secret")


# Rate limiting
def get_user_id_from_request(request: Request) -> str:
    """Extract user ID from JWT for rate limiting, fallback to IP"""
    auth_header = request.headers.get("Authorization", "")
    if auth_header.startswith("Bearer "):
        token = auth_header.split(" ", 1)[1]
        try:
            payload = jwt.decode(token, SECRET_KEY, algorithms=[ALGORITHM])
            return f"user:{payload.get('sub')}"
        except JWTError:
            pass

    ip_address = get_client_info(request)[0]
    return f"ip:{ip_address}"
