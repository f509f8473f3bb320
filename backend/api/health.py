from fastapi import APIRouter

from backend.database import check_connection

router = APIRouter()


@router.get("/")
async def root():
    return {
        "service": "Dental Benefits Verification - Backend API",
        "version": "1.0",
        "status": "operational",
        "endpoints": {
            "health": "/health",
            "verifications": "/verifications/*",
            "call": "/verifications/call",
            "practice": "/practice",
            "webhook": "/vapi/webhook"
        },
        "documentation": "/docs"
    }


@router.get("/health")
async def health():
    is_connected, db_status = await check_connection()

    return {
        "status": "healthy" if is_connected else "degraded",
        "service": "dental-verify-api",
        "database": db_status
    }
