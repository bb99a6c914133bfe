"""
MongoDB helpers shared by every service.

- ObjectId parsing with client-facing 400 errors
- JSON-friendly serialization of documents (ObjectId -> str)
- Reference population (the pymongo equivalent of `populate`)
"""

from datetime import datetime, timezone
from typing import Any, Iterable, List, Optional

from bson import ObjectId
from bson.errors import InvalidId
from fastapi import HTTPException
from pymongo.collection import Collection


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


# ============================================================
# HELPER: ObjectId validation
# ============================================================

def is_valid_object_id(value: Any) -> bool:
    """True for ObjectId instances and 24-char hex strings."""
    if isinstance(value, ObjectId):
        return True
    return isinstance(value, str) and ObjectId.is_valid(value) and len(value) == 24


def to_object_id(value: Any, detail: str = "Invalid id") -> ObjectId:
    """Parse an id coming from the client, raising 400 when malformed."""
    if isinstance(value, ObjectId):
        return value
    if not is_valid_object_id(value):
        raise HTTPException(status_code=400, detail=detail)
    try:
        return ObjectId(value)
    except (InvalidId, TypeError):
        raise HTTPException(status_code=400, detail=detail)


# ============================================================
# HELPER: Convert ObjectId to string for JSON serialization
# ============================================================

def _serialize_value(value: Any) -> Any:
    if isinstance(value, ObjectId):
        return str(value)
    if isinstance(value, dict):
        return serialize_doc(value)
    if isinstance(value, list):
        return [_serialize_value(v) for v in value]
    return value


def serialize_doc(doc: Optional[dict]) -> Optional[dict]:
    """Convert MongoDB document to JSON-serializable dict."""
    if doc is None:
        return None
    return {key: _serialize_value(value) for key, value in doc.items()}


def serialize_docs(docs: Iterable[dict]) -> list:
    """Convert list of MongoDB documents to JSON-serializable list."""
    return [serialize_doc(doc) for doc in docs]


# ============================================================
# HELPER: Resolve references
# ============================================================

def populate(
    docs: List[dict],
    field: str,
    collection: Collection,
    projection: Optional[dict] = None,
) -> List[dict]:
    """
    Replace the ObjectId stored in `field` with the referenced document.

    One query per call, whatever the number of docs. Dangling references
    become None.
    """
    ids = {doc.get(field) for doc in docs if isinstance(doc.get(field), ObjectId)}
    if not ids:
        return docs

    found = {ref["_id"]: ref for ref in collection.find({"_id": {"$in": list(ids)}}, projection)}
    for doc in docs:
        ref_id = doc.get(field)
        if isinstance(ref_id, ObjectId):
            doc[field] = found.get(ref_id)
    return docs
