"""
Normalizer / reconciler.

Reduces a flat candidate bag (or any previously stored benefits document)
to the canonical nested Benefits document. Pure and idempotent.
"""

import json
from typing import Any, Dict, Optional

from loguru import logger

from benefits.fields import BENEFIT_FIELDS, MISSING, resolve, set_path


def normalize_benefits(bag: Any) -> Dict[str, Any]:
    """
    Build the canonical document from whatever generation supplied the bag.

    For each dictionary field the canonical name wins, then the newest alias
    that holds a value of the right type. Fields with no value are omitted,
    never defaulted.
    """
    if not isinstance(bag, dict):
        return {}

    document: Dict[str, Any] = {}
    for field in BENEFIT_FIELDS:
        value = resolve(bag, field)
        if value is not MISSING:
            set_path(document, field.path, value)
    return document


def load_benefits(raw: Any) -> Optional[Dict[str, Any]]:
    """
    Read a persisted benefits value, stored as a JSON string or a dict.

    Returns None for absent or undecodable values.
    """
    if raw is None or raw == "":
        return None
    if isinstance(raw, dict):
        return raw
    if isinstance(raw, (str, bytes)):
        try:
            decoded = json.loads(raw)
        except ValueError:
            logger.warning("Stored benefits value is not valid JSON, treating as absent")
            return None
        return decoded if isinstance(decoded, dict) else None
    return None


def dump_benefits(document: Optional[Dict[str, Any]]) -> Optional[str]:
    if document is None:
        return None
    return json.dumps(document, sort_keys=True)
