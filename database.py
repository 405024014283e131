"""
Database Helper Functions

MongoDB helper functions shared by the catalog, order and bill modules.
Every collection is flat (one per entity, no joins); names that other
records need are copied into them when they are written.
"""

from pymongo import MongoClient
from pymongo.errors import PyMongoError
from bson import ObjectId
from bson.errors import InvalidId
from datetime import datetime, timezone
from decimal import Decimal, ROUND_HALF_UP
from functools import wraps
from typing import Union, Optional, List, Dict, Any
from pydantic import BaseModel

import config
from errors import StoreError

CENTS = Decimal("0.01")

_client = None
db = None

if config.DATABASE_URL and config.DATABASE_NAME:
    _client = MongoClient(config.DATABASE_URL, tz_aware=True)
    db = _client[config.DATABASE_NAME]


def init_db(database) -> None:
    """Point every helper at ``database`` (a pymongo or mongomock Database)."""
    global db
    db = database


def _get_db():
    if db is None:
        raise StoreError("Database not available. Check DATABASE_URL and DATABASE_NAME environment variables.")
    return db


def _store_call(func):
    @wraps(func)
    def wrapper(*args, **kwargs):
        try:
            return func(*args, **kwargs)
        except PyMongoError as e:
            raise StoreError(f"{func.__name__} failed: {e}") from e
    return wrapper

# ------------- Utilities -------------

def now_utc() -> datetime:
    return datetime.now(timezone.utc)


def as_utc(value: datetime) -> datetime:
    # The store hands back naive datetimes unless the client is tz aware
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def store_datetime(value: datetime) -> datetime:
    """``value`` as naive UTC, which is how the store keeps and compares dates."""
    return as_utc(value).astimezone(timezone.utc).replace(tzinfo=None)


def date_range(field: str, start: Optional[datetime] = None, end: Optional[datetime] = None) -> Dict[str, Any]:
    """Filter for ``start <= field < end``; a missing bound is left open."""
    bounds = {}
    if start is not None:
        bounds["$gte"] = store_datetime(start)
    if end is not None:
        bounds["$lt"] = store_datetime(end)
    return {field: bounds} if bounds else {}


def money(value) -> Decimal:
    """Currency amount rounded to cents."""
    return Decimal(str(value)).quantize(CENTS, rounding=ROUND_HALF_UP)


def new_id() -> str:
    return str(ObjectId())


def to_object_id(id_str: str) -> Optional[ObjectId]:
    try:
        return ObjectId(id_str)
    except (InvalidId, TypeError):
        return None


def serialize_doc(doc: Dict[str, Any]) -> Dict[str, Any]:
    if not doc:
        return doc
    if "_id" in doc:
        doc["id"] = str(doc.pop("_id"))
    return doc

# Helper functions for common database operations

@_store_call
def create_document(collection_name: str, data: Union[BaseModel, dict]) -> str:
    """Insert a single document with timestamp"""
    # Convert Pydantic model to dict if needed
    if isinstance(data, BaseModel):
        data_dict = data.model_dump(exclude={"id"})
    else:
        data_dict = {k: v for k, v in data.items() if k not in ("id", "_id")}

    now = now_utc()
    data_dict['created_at'] = now
    data_dict['updated_at'] = now

    result = _get_db()[collection_name].insert_one(data_dict)
    return str(result.inserted_id)


@_store_call
def get_documents(collection_name: str, filter_dict: dict = None, limit: Optional[int] = None, sort: Optional[List[tuple]] = None):
    """Get documents from collection"""
    cursor = _get_db()[collection_name].find(filter_dict or {})
    if sort:
        cursor = cursor.sort(sort)
    if limit:
        cursor = cursor.limit(limit)
    return [serialize_doc(d) for d in list(cursor)]


@_store_call
def get_document_by_id(collection_name: str, id_str: str):
    oid = to_object_id(id_str)
    if oid is None:
        return None
    doc = _get_db()[collection_name].find_one({"_id": oid})
    return serialize_doc(doc) if doc else None


@_store_call
def get_documents_by_ids(collection_name: str, ids: List[str]) -> Dict[str, Dict[str, Any]]:
    oids = [oid for oid in (to_object_id(i) for i in ids) if oid is not None]
    docs = _get_db()[collection_name].find({"_id": {"$in": oids}})
    return {d["id"]: d for d in (serialize_doc(doc) for doc in docs)}


@_store_call
def update_document(collection_name: str, id_str: str, update_data: dict, unset: Optional[List[str]] = None):
    oid = to_object_id(id_str)
    if oid is None:
        return False
    update_data = dict(update_data)
    update_data['updated_at'] = now_utc()
    update = {"$set": update_data}
    if unset:
        update["$unset"] = {field: "" for field in unset}
    result = _get_db()[collection_name].update_one({"_id": oid}, update)
    return result.matched_count > 0


@_store_call
def delete_document(collection_name: str, id_str: str):
    oid = to_object_id(id_str)
    if oid is None:
        return False
    result = _get_db()[collection_name].delete_one({"_id": oid})
    return result.deleted_count > 0


@_store_call
def list_collection_names() -> List[str]:
    return _get_db().list_collection_names()
