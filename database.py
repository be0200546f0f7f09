"""
MongoDB access helpers.

Each pydantic document model in ``schemas`` maps to one collection:
- User -> "users"
- Item -> "items"
- Booking -> "bookings"
- Payment -> "payments"
- Theater -> "theaters"
- Movie -> "movies"
- Cart -> "cart"
- Ticket -> "tickets"
"""
from datetime import datetime, timezone
from typing import Any, Optional

from bson import ObjectId
from fastapi import Request
from pydantic import BaseModel
from pymongo import ASCENDING, MongoClient
from pymongo.database import Database as MongoDatabase

from config import Settings
from exceptions import BadRequestError
from logger_config import Logger


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Database:
    """Owns the MongoClient for one app instance."""

    def __init__(self, client: MongoClient, name: str):
        self.client = client
        self.db: MongoDatabase = client[name]

    @classmethod
    def connect(cls, settings: Settings, client: Optional[MongoClient] = None) -> "Database":
        if client is None:
            client = MongoClient(settings.MONGO_URL, tz_aware=True, serverSelectionTimeoutMS=5000)
        Logger.base.info(f"Using MongoDB database {settings.DATABASE_NAME!r}")
        return cls(client, settings.DATABASE_NAME)

    def ensure_indexes(self) -> None:
        self.db["users"].create_index([("email", ASCENDING)], unique=True)
        self.db["items"].create_index([("seller", ASCENDING)])
        self.db["items"].create_index([("category", ASCENDING), ("createdAt", ASCENDING)])
        self.db["cart"].create_index([("userId", ASCENDING)], unique=True)
        self.db["tickets"].create_index([("userId", ASCENDING)], unique=True)
        self.db["payments"].create_index([("transactionId", ASCENDING)], unique=True)

    def ping(self) -> bool:
        self.client.admin.command("ping")
        return True

    def close(self) -> None:
        self.client.close()
        Logger.base.info("MongoDB connection closed")


def get_db(request: Request) -> MongoDatabase:
    return request.app.state.database.db


def get_objectid(id_str: Any) -> ObjectId:
    if isinstance(id_str, ObjectId):
        return id_str
    if not isinstance(id_str, str) or not ObjectId.is_valid(id_str):
        raise BadRequestError("Invalid ID format")
    return ObjectId(id_str)


def stringify_ids(value: Any) -> Any:
    if isinstance(value, ObjectId):
        return str(value)
    if isinstance(value, dict):
        return {key: stringify_ids(val) for key, val in value.items()}
    if isinstance(value, list):
        return [stringify_ids(item) for item in value]
    return value


def str_id(doc: Optional[dict]) -> Optional[dict]:
    """Rename ``_id`` to ``id`` at the top level and stringify every ObjectId."""
    if not doc:
        return doc
    doc = dict(doc)
    if "_id" in doc:
        doc["id"] = doc.pop("_id")
    return stringify_ids(doc)


def create_document(db: MongoDatabase, collection_name: str, data: BaseModel | dict) -> str:
    if isinstance(data, BaseModel):
        data = data.model_dump(by_alias=True, exclude_none=True)
    data = dict(data)
    now = utcnow()
    data.setdefault("createdAt", now)
    data["updatedAt"] = now
    result = db[collection_name].insert_one(data)
    return str(result.inserted_id)


def get_documents(
    db: MongoDatabase, collection_name: str, filter_dict: Optional[dict] = None, limit: Optional[int] = None
) -> list:
    cursor = db[collection_name].find(filter_dict or {})
    if limit:
        cursor = cursor.limit(limit)
    return list(cursor)
