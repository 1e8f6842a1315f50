"""
resources/ingest.py -- Parser for bulk resource imports.

Reads a JSON array of resource documents in the directory's document shape
(camelCase keys, e.g. isPremiumContent / dateAdded / lastUpdated) and
normalizes each entry to a Resource dataclass ready for
ResourceStore.create_resource().

Pipeline:
  seed file -> parse_resources_json() -> list[Resource]
  -> caller: ResourceStore.create_resource() per record

Records that fail validation (missing title, unknown category, ...) are
skipped with a warning so one bad entry does not block a whole import.
Identifiers in the source file are ignored; the store assigns new ones.
"""

import json
import logging
from typing import Any, Optional

from resources.models import Resource, ResourceCategory, ResourceSubcategory

logger = logging.getLogger("vet1stop.resources.ingest")

_REQUIRED = ("title", "category", "subcategory", "description", "url")


def _str_list(value: Any) -> Optional[list[str]]:
    if value is None:
        return None
    if not isinstance(value, list):
        raise ValueError(f"expected a list, got {type(value).__name__}")
    return [str(v).strip() for v in value if str(v).strip()]


def _bool(doc: dict, key: str, default: Optional[bool]) -> Optional[bool]:
    value = doc.get(key)
    if value is None:
        return default
    if not isinstance(value, bool):
        raise ValueError(f"{key} must be true or false, got {value!r}")
    return value


def _content(doc: dict) -> Optional[str]:
    value = doc.get("content")
    if value is None or value == "":
        return None
    if not isinstance(value, str):
        raise ValueError(f"content must be a string, got {type(value).__name__}")
    return value


def _timestamp(doc: dict, key: str) -> str:
    """Accept an ISO 8601 string or an extended-JSON {"$date": "..."} wrapper."""
    value = doc.get(key)
    if isinstance(value, dict) and set(value) == {"$date"}:
        value = value["$date"]
    if value is None or value == "":
        return ""
    if not isinstance(value, str):
        raise ValueError(f"{key} must be an ISO 8601 string, got {type(value).__name__}")
    return value


def _parse_document(doc: dict) -> Resource:
    missing = [k for k in _REQUIRED if not str(doc.get(k) or "").strip()]
    if missing:
        raise ValueError(f"missing required field(s): {', '.join(missing)}")
    return Resource(
        title=str(doc["title"]).strip(),
        category=ResourceCategory(str(doc["category"]).strip().lower()),
        subcategory=ResourceSubcategory(str(doc["subcategory"]).strip().lower()),
        description=str(doc["description"]).strip(),
        url=str(doc["url"]).strip(),
        content=_content(doc),
        eligibility=_str_list(doc.get("eligibility")),
        tags=_str_list(doc.get("tags")) or [],
        featured=_bool(doc, "featured", False),
        is_premium_content=_bool(doc, "isPremiumContent", None),
        date_added=_timestamp(doc, "dateAdded"),
        last_updated=_timestamp(doc, "lastUpdated"),
    )


def parse_resources_json(content: str) -> list[Resource]:
    """Parse a JSON array of resource documents.

    Raises ValueError if the content is not JSON or not a top-level array.
    Individual entries that are not objects or fail validation are skipped.
    """
    try:
        data = json.loads(content)
    except json.JSONDecodeError as e:
        raise ValueError(f"Invalid JSON: {e}") from e
    if not isinstance(data, list):
        raise ValueError("Expected a JSON array of resource documents")

    records: list[Resource] = []
    for index, doc in enumerate(data):
        if not isinstance(doc, dict):
            logger.warning("Skipping entry %d: not an object", index)
            continue
        try:
            records.append(_parse_document(doc))
        except ValueError as e:
            logger.warning("Skipping entry %d (%s): %s", index, doc.get("title", "untitled"), e)
    return records
