"""
MongoDB access helpers.

`db` is None when DATABASE_URL is not configured; callers report that as an
unavailable database instead of failing at import time.
"""
import os
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Union

from bson import ObjectId
from dotenv import load_dotenv
from pydantic import BaseModel
from pymongo import ASCENDING, DESCENDING, MongoClient

load_dotenv()

DATABASE_URL = os.getenv("DATABASE_URL")
DATABASE_NAME = os.getenv("DATABASE_NAME", "catalog")

client = MongoClient(DATABASE_URL) if DATABASE_URL else None
db = client[DATABASE_NAME] if client is not None else None

CATALOG_COLLECTIONS = ("navbarcategory", "category", "subcategory", "product")


def get_db():
    """FastAPI dependency returning the shared database handle."""
    return db


def now() -> datetime:
    return datetime.now(timezone.utc)


def to_object_id(value: Any) -> Optional[ObjectId]:
    """Parse an id string, returning None for anything that is not an ObjectId."""
    if isinstance(value, ObjectId):
        return value
    if not isinstance(value, str) or not ObjectId.is_valid(value):
        return None
    return ObjectId(value)


def create_document(database, collection_name: str, data: Union[BaseModel, Dict[str, Any]]) -> str:
    """Insert a document stamped with createdAt/updatedAt and return its id."""
    if isinstance(data, BaseModel):
        data_dict = data.model_dump(by_alias=True)
    else:
        data_dict = dict(data)
    stamp = now()
    data_dict["createdAt"] = stamp
    data_dict["updatedAt"] = stamp
    result = database[collection_name].insert_one(data_dict)
    return str(result.inserted_id)


def get_documents(database, collection_name: str, filter_dict: Optional[Dict[str, Any]] = None,
                  sort: Optional[List] = None, limit: Optional[int] = None) -> List[Dict[str, Any]]:
    cursor = database[collection_name].find(filter_dict or {})
    if sort:
        cursor = cursor.sort(sort)
    if limit:
        cursor = cursor.limit(limit)
    return list(cursor)


def update_document(database, collection_name: str, object_id: ObjectId, changes: Dict[str, Any]) -> bool:
    """Apply a $set of `changes` plus updatedAt. Returns False when nothing matched."""
    update = dict(changes)
    update["updatedAt"] = now()
    result = database[collection_name].update_one({"_id": object_id}, {"$set": update})
    return result.matched_count > 0


def ensure_indexes(database) -> None:
    """Create the unique slug indexes and the query indexes used by the API."""
    for name in CATALOG_COLLECTIONS:
        database[name].create_index([("slug", ASCENDING)], unique=True)

    database["navbarcategory"].create_index([("order", ASCENDING), ("isActive", ASCENDING)])
    database["category"].create_index(
        [("navbarCategoryId", ASCENDING), ("order", ASCENDING), ("isActive", ASCENDING)]
    )
    database["subcategory"].create_index(
        [("categoryId", ASCENDING), ("order", ASCENDING), ("isActive", ASCENDING)]
    )
    database["subcategory"].create_index([("navbarCategoryId", ASCENDING), ("categoryId", ASCENDING)])
    database["product"].create_index(
        [("subcategoryId", ASCENDING), ("order", ASCENDING), ("isActive", ASCENDING)]
    )
    database["product"].create_index([("categoryId", ASCENDING), ("isActive", ASCENDING)])
    database["product"].create_index([("navbarCategoryId", ASCENDING), ("isActive", ASCENDING)])

    database["contact"].create_index([("status", ASCENDING), ("createdAt", DESCENDING)])
    database["contact"].create_index([("email", ASCENDING)])
    database["contact"].create_index([("productId", ASCENDING)])
    database["contact"].create_index([("enquiryType", ASCENDING)])
