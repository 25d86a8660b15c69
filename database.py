"""
MongoDB access helpers.

Collections are named after the lowercased schema class (see schemas.py).
Documents created through ``create_document`` carry ``created_at`` and
``updated_at`` timestamps.
"""

import logging
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Union

from bson import ObjectId
from bson.errors import InvalidId
from pydantic import BaseModel
from pymongo import ASCENDING, MongoClient
from pymongo.database import Database

from config import Settings

logger = logging.getLogger(__name__)


def connect(settings: Settings) -> Optional[Database]:
    """Return the configured database, or None when the env is not set."""
    if not settings.database_url or not settings.database_name:
        logger.warning("DATABASE_URL / DATABASE_NAME not set, running without a database")
        return None
    client = MongoClient(settings.database_url)
    logger.info("MongoDB client created for database %s", settings.database_name)
    return client[settings.database_name]


def ensure_indexes(db: Database) -> None:
    db["user"].create_index([("email", ASCENDING)], unique=True)
    db["cart"].create_index([("user_id", ASCENDING)], unique=True)
    db["product"].create_index([("farmer_id", ASCENDING)])


def _now() -> datetime:
    return datetime.now(timezone.utc)


def create_document(db: Database, collection_name: str, data: Union[BaseModel, Dict[str, Any]]) -> str:
    if isinstance(data, BaseModel):
        data_dict = data.model_dump()
    else:
        data_dict = dict(data)
    now = _now()
    data_dict["created_at"] = now
    data_dict["updated_at"] = now
    result = db[collection_name].insert_one(data_dict)
    return str(result.inserted_id)


def get_documents(db: Database, collection_name: str, filter_dict: Optional[Dict[str, Any]] = None,
                  limit: Optional[int] = None) -> List[dict]:
    cursor = db[collection_name].find(filter_dict or {})
    if limit:
        cursor = cursor.limit(limit)
    return list(cursor)


def to_object_id(value: Any) -> Optional[ObjectId]:
    """Parse a client supplied id; malformed ids give None."""
    if isinstance(value, ObjectId):
        return value
    try:
        return ObjectId(str(value))
    except (InvalidId, TypeError):
        return None


def serialize(doc: Optional[dict]) -> Optional[dict]:
    """Make a stored document JSON friendly: ``_id`` becomes ``id``."""
    if doc is None:
        return None
    out = {}
    for key, value in doc.items():
        if key == "_id":
            out["id"] = str(value)
        elif isinstance(value, ObjectId):
            out[key] = str(value)
        else:
            out[key] = value
    return out


def canonical_id(value: str) -> str:
    """Lower-case hex form of an ObjectId string; other ids pass through."""
    oid = to_object_id(value)
    return str(oid) if oid is not None else value
