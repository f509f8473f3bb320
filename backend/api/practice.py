from fastapi import APIRouter, HTTPException, Depends
from loguru import logger

from backend.dependencies import get_current_practice_id, get_practice_db, require_admin
from backend.models import AsyncPracticeRecord
from backend.schemas import PracticeUpdate
from backend.utils import convert_objectid, mask_id

router = APIRouter()


@router.get("")
async def get_practice(
    practice_id: str = Depends(get_current_practice_id),
    practice_db: AsyncPracticeRecord = Depends(get_practice_db)
):
    practice = await practice_db.get_by_id(practice_id)
    if not practice:
        raise HTTPException(status_code=404, detail="Practice not found")
    return convert_objectid(practice)


@router.patch("")
async def update_practice(
    update: PracticeUpdate,
    admin: dict = Depends(require_admin),
    practice_id: str = Depends(get_current_practice_id),
    practice_db: AsyncPracticeRecord = Depends(get_practice_db)
):
    changes = update.changes()
    practice = await practice_db.update(practice_id, changes)
    if not practice:
        raise HTTPException(status_code=404, detail="Practice not found")

    logger.info(f"Practice {mask_id(practice_id)} updated by {mask_id(admin['sub'])}: {sorted(changes)}")
    return convert_objectid(practice)
