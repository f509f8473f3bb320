"""Verification status classification for a terminal call-outcome event."""

from enum import Enum
from typing import Any, Dict, Optional

from benefits.fields import MISSING, get_field, resolve


class VerificationStatus(str, Enum):
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self is not VerificationStatus.IN_PROGRESS


GRACEFUL_END_REASONS = frozenset({
    "customer-ended-call",
    "assistant-ended-call",
    "hangup",
})

_ELIGIBLE = get_field("eligibility.eligible")
_ANNUAL_MAXIMUM = get_field("maximums.annual")


def is_graceful_end(ended_reason: Optional[str]) -> bool:
    # No end reason reported means the call system did not flag a failure
    if not ended_reason:
        return True
    return ended_reason in GRACEFUL_END_REASONS


def has_eligibility_signal(benefits: Optional[Dict[str, Any]]) -> bool:
    return resolve(benefits or {}, _ELIGIBLE) is not MISSING


def has_annual_maximum(benefits: Optional[Dict[str, Any]]) -> bool:
    return resolve(benefits or {}, _ANNUAL_MAXIMUM) is not MISSING


def classify_call(ended_reason: Optional[str], benefits: Optional[Dict[str, Any]]) -> VerificationStatus:
    """
    First match wins:
      1. non-graceful end reason -> failed
      2. neither an eligibility flag nor an annual maximum captured -> failed
      3. otherwise -> completed
    """
    if not is_graceful_end(ended_reason):
        return VerificationStatus.FAILED

    if not has_eligibility_signal(benefits) and not has_annual_maximum(benefits):
        return VerificationStatus.FAILED

    return VerificationStatus.COMPLETED
