"""
Verification store.

One document per outbound verification call. The terminal transition
(in_progress -> completed|failed) is a single conditional write so that
redelivered or concurrent call-outcome events apply at most once.
"""
import logging
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional

from bson import ObjectId
from bson.errors import InvalidId
from motor.motor_asyncio import AsyncIOMotorClient
from pymongo import ReturnDocument

from backend.database import get_mongo_client, MONGO_DB_NAME
from benefits.normalizer import dump_benefits, load_benefits, normalize_benefits
from benefits.status import VerificationStatus

logger = logging.getLogger(__name__)

IDENTITY_FIELDS = ("patientName", "patientDOB", "memberId", "insuranceCarrier")

TELEMETRY_FIELDS = (
    "callId",
    "callDuration",
    "recordingUrl",
    "transcript",
    "referenceNumber",
    "repName",
    "endedReason",
)

# Never changed by an operator edit
PROTECTED_FIELDS = ("_id", "id", "practiceId", "createdAt", "createdById")


class TerminalUpdateResult(str, Enum):
    APPLIED = "applied"
    ALREADY_TERMINAL = "already_terminal"
    NOT_FOUND = "not_found"


class InvalidVerificationUpdate(ValueError):
    """An edit that would break the status lifecycle."""


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


def _object_id(verification_id: Any) -> Optional[ObjectId]:
    if isinstance(verification_id, ObjectId):
        return verification_id
    try:
        return ObjectId(verification_id)
    except (InvalidId, TypeError):
        return None


def _serialized_benefits(value: Any) -> Optional[str]:
    if value is None:
        return None
    document = load_benefits(value)
    if document is None:
        return None
    return dump_benefits(normalize_benefits(document))


class AsyncVerificationRecord:
    def __init__(self, db_client: AsyncIOMotorClient):
        self.client = db_client
        self.db = db_client[MONGO_DB_NAME]
        self.verifications = self.db.verifications

    async def _ensure_indexes(self):
        try:
            await self.verifications.create_index([("practiceId", 1), ("createdAt", -1)])
            await self.verifications.create_index("callId", sparse=True)
        except Exception as e:
            logger.warning(f"Index creation warning: {e}")

    async def create(self, fields: dict) -> str:
        await self._ensure_indexes()
        now = _now()

        document = {k: v for k, v in fields.items() if k not in ("_id", "id")}
        status = VerificationStatus(document.get("status") or VerificationStatus.IN_PROGRESS.value)
        document["status"] = status.value

        if status is VerificationStatus.IN_PROGRESS:
            document["benefits"] = None
        else:
            document["benefits"] = _serialized_benefits(document.get("benefits"))
            document.setdefault("completedAt", now)

        document.update({"createdAt": now, "updatedAt": now})

        result = await self.verifications.insert_one(document)
        logger.info(f"Created verification {result.inserted_id} ({status.value})")
        return str(result.inserted_id)

    async def get_by_id(self, verification_id: str, practice_id: Optional[str] = None) -> Optional[dict]:
        oid = _object_id(verification_id)
        if oid is None:
            return None
        query = {"_id": oid}
        if practice_id:
            query["practiceId"] = practice_id
        return await self.verifications.find_one(query)

    async def find_by_call_id(self, call_id: str) -> Optional[dict]:
        if not call_id:
            return None
        return await self.verifications.find_one({"callId": call_id})

    async def list_by_practice(self, practice_id: str) -> List[dict]:
        cursor = self.verifications.find({"practiceId": practice_id}).sort("createdAt", -1)
        return await cursor.to_list(length=None)

    async def set_call_id(self, verification_id: str, call_id: str) -> bool:
        oid = _object_id(verification_id)
        if oid is None:
            return False
        result = await self.verifications.update_one(
            {"_id": oid},
            {"$set": {"callId": call_id, "updatedAt": _now()}}
        )
        return result.matched_count > 0

    async def update_terminal(
        self,
        verification_id: str,
        status: VerificationStatus,
        benefits: Optional[Dict[str, Any]],
        telemetry: Optional[Dict[str, Any]] = None,
        identity: Optional[Dict[str, Any]] = None,
    ) -> TerminalUpdateResult:
        """
        Apply the one terminal transition, only while the record is in_progress.

        Status, benefits, telemetry and missing identity fields are written
        together in a single conditional update, or not at all.
        """
        status = VerificationStatus(status)
        if not status.is_terminal:
            raise ValueError("Terminal update requires a terminal status")

        oid = _object_id(verification_id)
        if oid is None:
            return TerminalUpdateResult.NOT_FOUND

        # Serialize before touching the store so a bad document writes nothing
        serialized = dump_benefits(normalize_benefits(benefits)) if benefits is not None else None

        current = await self.verifications.find_one({"_id": oid})
        if current is None:
            return TerminalUpdateResult.NOT_FOUND
        if current.get("status") != VerificationStatus.IN_PROGRESS.value:
            return TerminalUpdateResult.ALREADY_TERMINAL

        now = _now()
        changes = {
            "status": status.value,
            "benefits": serialized,
            "completedAt": now,
            "updatedAt": now,
        }
        for key, value in (telemetry or {}).items():
            if key in TELEMETRY_FIELDS and value is not None:
                changes[key] = value
        for key, value in (identity or {}).items():
            if key in IDENTITY_FIELDS and value and not current.get(key):
                changes[key] = value

        updated = await self.verifications.find_one_and_update(
            {"_id": oid, "status": VerificationStatus.IN_PROGRESS.value},
            {"$set": changes},
            return_document=ReturnDocument.AFTER
        )
        if updated is None:
            # Lost the race to another delivery of the same event
            exists = await self.verifications.count_documents({"_id": oid})
            return TerminalUpdateResult.ALREADY_TERMINAL if exists else TerminalUpdateResult.NOT_FOUND

        logger.info(f"Verification {verification_id} transitioned to {status.value}")
        return TerminalUpdateResult.APPLIED

    async def mark_failed(self, verification_id: str, telemetry: Optional[Dict[str, Any]] = None) -> TerminalUpdateResult:
        return await self.update_terminal(verification_id, VerificationStatus.FAILED, None, telemetry)

    async def update(
        self,
        verification_id: str,
        fields: dict,
        practice_id: Optional[str] = None
    ) -> Optional[dict]:
        """
        Operator correction. Returns the updated document, or None if not found.

        A status change must be in_progress -> completed|failed, or a terminal
        value re-asserted unchanged. Supplied benefits are normalized.
        """
        current = await self.get_by_id(verification_id, practice_id)
        if current is None:
            return None

        changes = {k: v for k, v in fields.items() if k not in PROTECTED_FIELDS}

        current_status = VerificationStatus(current.get("status", VerificationStatus.IN_PROGRESS.value))
        new_status = current_status
        if "status" in changes:
            try:
                new_status = VerificationStatus(changes["status"])
            except ValueError:
                raise InvalidVerificationUpdate(f"Unknown status: {changes['status']!r}")
            if new_status is not current_status and current_status.is_terminal:
                raise InvalidVerificationUpdate(
                    f"Cannot change status from {current_status.value} to {new_status.value}"
                )
            changes["status"] = new_status.value

        if "benefits" in changes:
            raw_benefits = changes["benefits"]
            if raw_benefits is not None and load_benefits(raw_benefits) is None:
                raise InvalidVerificationUpdate("Benefits must be a JSON object")
            changes["benefits"] = _serialized_benefits(raw_benefits)

        benefits_after = changes["benefits"] if "benefits" in changes else current.get("benefits")
        if new_status is VerificationStatus.IN_PROGRESS and benefits_after is not None:
            raise InvalidVerificationUpdate("Benefits cannot be set while the call is in progress")

        if new_status is not current_status:
            changes.setdefault("completedAt", _now())
        changes["updatedAt"] = _now()

        updated = await self.verifications.find_one_and_update(
            {"_id": current["_id"], "status": current_status.value},
            {"$set": changes},
            return_document=ReturnDocument.AFTER
        )
        if updated is None:
            raise InvalidVerificationUpdate("Verification status changed during update, retry the edit")
        return updated

    async def delete(self, verification_id: str, practice_id: Optional[str] = None) -> bool:
        oid = _object_id(verification_id)
        if oid is None:
            return False
        query = {"_id": oid}
        if practice_id:
            query["practiceId"] = practice_id
        result = await self.verifications.delete_one(query)
        return result.deleted_count > 0


_verification_db_instance: Optional[AsyncVerificationRecord] = None


def get_async_verification_db() -> AsyncVerificationRecord:
    global _verification_db_instance
    if _verification_db_instance is None:
        _verification_db_instance = AsyncVerificationRecord(get_mongo_client())
    return _verification_db_instance
