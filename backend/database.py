"""
MongoDB access helpers.

The database handle is created once by `connect()` and kept on
`app.state.db`; route handlers receive it through the `get_db` dependency
instead of importing a module-level connection.
"""
import logging
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Union

from bson import ObjectId
from bson.errors import InvalidId
from fastapi import Request
from pydantic import BaseModel
from pymongo import ASCENDING, MongoClient
from pymongo.database import Database

from config import Settings
from errors import NotFoundError, ServerError

logger = logging.getLogger(__name__)

# Collection names (lowercase class name of the schema)
USERS = "user"
PRODUCTS = "product"
CARTS = "cart"
ORDERS = "order"
CONVERSATIONS = "conversation"


def connect(settings: Settings) -> Database:
    client = MongoClient(settings.database_url, serverSelectionTimeoutMS=5000)
    logger.info("Using MongoDB database %r", settings.database_name)
    return client[settings.database_name]


def ensure_indexes(db: Database) -> None:
    db[USERS].create_index([("email", ASCENDING)], unique=True)
    db[CARTS].create_index([("user_id", ASCENDING)], unique=True)
    db[ORDERS].create_index([("user_id", ASCENDING), ("created_at", ASCENDING)])
    db[CONVERSATIONS].create_index([("user_id", ASCENDING), ("status", ASCENDING)])


def get_db(request: Request) -> Database:
    db = getattr(request.app.state, "db", None)
    if db is None:
        raise ServerError("Database not configured")
    return db


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def object_id(value: Union[str, ObjectId], resource: str = "Document") -> ObjectId:
    """Parse an id from the URL; malformed ids are reported as not found."""
    if isinstance(value, ObjectId):
        return value
    try:
        return ObjectId(str(value))
    except (InvalidId, TypeError):
        raise NotFoundError(resource, value)


def to_str_id(doc: Optional[dict]) -> Optional[dict]:
    if not doc:
        return doc
    d = doc.copy()
    if "_id" in d:
        d["id"] = str(d.pop("_id"))
    return d


def create_document(db: Database, collection_name: str, data: Union[BaseModel, dict]) -> str:
    """Insert a document stamped with created_at/updated_at and return its id."""
    if isinstance(data, BaseModel):
        data_dict = data.model_dump()
    else:
        data_dict = data.copy()
    now = utcnow()
    data_dict.setdefault("created_at", now)
    data_dict["updated_at"] = now
    result = db[collection_name].insert_one(data_dict)
    return str(result.inserted_id)


def get_documents(
    db: Database,
    collection_name: str,
    filter_dict: Optional[Dict[str, Any]] = None,
    limit: Optional[int] = None,
    sort: Optional[List[tuple]] = None,
) -> List[dict]:
    cursor = db[collection_name].find(filter_dict or {})
    if sort:
        cursor = cursor.sort(sort)
    if limit:
        cursor = cursor.limit(limit)
    return list(cursor)


def get_document(db: Database, collection_name: str, doc_id: Union[str, ObjectId], resource: str) -> dict:
    doc = db[collection_name].find_one({"_id": object_id(doc_id, resource)})
    if not doc:
        raise NotFoundError(resource, doc_id)
    return doc
