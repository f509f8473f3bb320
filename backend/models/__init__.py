"""Database models package"""
from backend.models.practice import AsyncPracticeRecord, get_async_practice_db
from backend.models.verification import (
    AsyncVerificationRecord,
    InvalidVerificationUpdate,
    TerminalUpdateResult,
    get_async_verification_db
)

__all__ = [
    'AsyncPracticeRecord',
    'get_async_practice_db',
    'AsyncVerificationRecord',
    'InvalidVerificationUpdate',
    'TerminalUpdateResult',
    'get_async_verification_db'
]
