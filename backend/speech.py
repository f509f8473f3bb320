"""Spoken-form formatting for values the voice agent reads out on a call."""
import re
from typing import Optional

from dateutil import parser as dateutil_parser

DIGIT_WORDS = {
    "0": "zero",
    "1": "one",
    "2": "two",
    "3": "three",
    "4": "four",
    "5": "five",
    "6": "six",
    "7": "seven",
    "8": "eight",
    "9": "nine",
}


class InvalidPhoneNumber(ValueError):
    pass


def normalize_phone_number(value: str) -> str:
    """
    US number to E.164.

        "(555) 123-4567" -> "+15551234567"
        "1-555-123-4567" -> "+15551234567"
    """
    digits = re.sub(r"\D", "", value or "")
    if len(digits) == 10:
        return f"+1{digits}"
    if len(digits) == 11 and digits.startswith("1"):
        return f"+{digits}"
    raise InvalidPhoneNumber("Invalid phone number. Please enter a 10-digit US phone number.")


def format_date_for_speech(value: str) -> str:
    """
    "1990-01-01" -> "January 1, 1990".

    Values that do not parse as a date are returned unchanged.
    """
    if not value or not value.strip():
        return value
    try:
        parsed = dateutil_parser.isoparse(value.strip())
    except ValueError:
        try:
            parsed = dateutil_parser.parse(value.strip())
        except (ValueError, OverflowError):
            return value
    return f"{parsed.strftime('%B')} {parsed.day}, {parsed.year}"


def format_alphanumeric_for_speech(value: Optional[str]) -> str:
    """Read an id one character at a time: "G0C" -> "G, zero, C"."""
    if not value:
        return ""
    return ", ".join(DIGIT_WORDS.get(char, char) for char in value.upper() if not char.isspace())
