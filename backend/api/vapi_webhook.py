import json
from fastapi import APIRouter, Depends, HTTPException, Request
from loguru import logger

from backend.call_outcome import process_call_outcome
from backend.dependencies import get_practice_db, get_verification_db, verify_webhook_secret
from backend.models import AsyncPracticeRecord, AsyncVerificationRecord
from benefits.extractor import event_type, is_terminal_event

router = APIRouter()


async def payload_from_request(request: Request) -> dict:
    try:
        data = json.loads(await request.body())
    except ValueError:
        raise HTTPException(status_code=400, detail="Invalid JSON payload")
    if not isinstance(data, dict):
        raise HTTPException(status_code=400, detail="Payload must be a JSON object")
    return data


@router.post("/vapi/webhook", dependencies=[Depends(verify_webhook_secret)])
async def handle_vapi_webhook(
    request: Request,
    verification_db: AsyncVerificationRecord = Depends(get_verification_db),
    practice_db: AsyncPracticeRecord = Depends(get_practice_db)
):
    payload = await payload_from_request(request)
    message_type = event_type(payload)
    # Raw payload carries PHI, only the type is logged
    logger.info(f"Vapi webhook received: type={message_type or '<none>'}")

    if not is_terminal_event(payload):
        return {"success": True, "message": f"Received {message_type}"}

    result = await process_call_outcome(payload, verification_db, practice_db)
    return result.to_response()


@router.get("/vapi/webhook")
async def vapi_webhook_status():
    return {"status": "Vapi webhook endpoint active"}
