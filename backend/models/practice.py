import logging
from datetime import datetime, timezone
from typing import Optional
from motor.motor_asyncio import AsyncIOMotorClient

from backend.database import get_mongo_client, MONGO_DB_NAME

logger = logging.getLogger(__name__)

EDITABLE_FIELDS = (
    "name",
    "address",
    "city",
    "state",
    "zip",
    "phone",
    "fax",
    "npiPractice",
    "npiIndividual",
    "taxId",
    "dentistName",
)


class AsyncPracticeRecord:
    """Practices are the tenant boundary. Ids are opaque strings."""

    def __init__(self, db_client: AsyncIOMotorClient):
        self.client = db_client
        self.db = db_client[MONGO_DB_NAME]
        self.practices = self.db.practices

    async def create(self, practice_id: str, practice_data: dict) -> str:
        now = datetime.now(timezone.utc).isoformat()
        document = {k: v for k, v in practice_data.items() if k in EDITABLE_FIELDS}
        document.update({"_id": practice_id, "createdAt": now, "updatedAt": now})
        await self.practices.insert_one(document)
        logger.info(f"Created practice {practice_id}")
        return practice_id

    async def get_by_id(self, practice_id: str) -> Optional[dict]:
        if not practice_id:
            return None
        return await self.practices.find_one({"_id": practice_id})

    async def exists(self, practice_id: str) -> bool:
        if not practice_id:
            return False
        return await self.practices.count_documents({"_id": practice_id}) > 0

    async def update(self, practice_id: str, update_fields: dict) -> Optional[dict]:
        """Apply whitelisted fields only. Returns the updated practice or None."""
        changes = {k: v for k, v in update_fields.items() if k in EDITABLE_FIELDS}
        if not changes:
            return await self.get_by_id(practice_id)
        changes["updatedAt"] = datetime.now(timezone.utc).isoformat()
        await self.practices.update_one({"_id": practice_id}, {"$set": changes})
        return await self.get_by_id(practice_id)


_practice_db_instance: Optional[AsyncPracticeRecord] = None


def get_async_practice_db() -> AsyncPracticeRecord:
    global _practice_db_instance
    if _practice_db_instance is None:
        _practice_db_instance = AsyncPracticeRecord(get_mongo_client())
    return _practice_db_instance
