import logging
from typing import Any, Dict, List, Optional, Union

from bson import ObjectId

logger = logging.getLogger(__name__)


def convert_objectid(doc: Union[Dict, List, Any]) -> Union[Dict, List, Any]:
    """ObjectIds to strings, recursively. A top-level `_id` is exposed as `id`."""
    if doc is None:
        return doc

    if isinstance(doc, ObjectId):
        return str(doc)

    if isinstance(doc, list):
        return [convert_objectid(item) for item in doc]

    if isinstance(doc, dict):
        result = {}
        for key, value in doc.items():
            if isinstance(value, ObjectId):
                result[key] = str(value)
            elif isinstance(value, (dict, list)):
                result[key] = convert_objectid(value)
            else:
                result[key] = value

        if "_id" in result:
            result["id"] = str(result.pop("_id"))

        return result

    return doc


def mask_id(value: Optional[Any], visible: int = 4) -> str:
    """Mask an identifier for logs, keeping the last few characters."""
    if value is None:
        return "<none>"
    text = str(value)
    if len(text) <= visible:
        return "*" * len(text)
    return f"***{text[-visible:]}"
