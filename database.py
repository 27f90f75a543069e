from __future__ import annotations
import logging
from typing import Any, Optional
from motor.motor_asyncio import AsyncIOMotorClient, AsyncIOMotorDatabase
from pydantic_settings import BaseSettings, SettingsConfigDict
from bson import ObjectId
from bson.errors import InvalidId
from pymongo.errors import PyMongoError
from datetime import datetime

from errors import StoreError

logger = logging.getLogger("ebooks.database")


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    DATABASE_URL: str = "mongodb://localhost:27017"
    DATABASE_NAME: str = "ebooks"
    LOG_LEVEL: str = "INFO"
    CORS_ORIGINS: list[str] = ["*"]

    DEFAULT_PAGE_LIMIT: int = 32
    SEARCH_RESULT_LIMIT: int = 10
    DEFAULT_SHIPPING_CHARGE: float = 120.0
    STOCK_ALLOW_OVERSELL: bool = True
    STOCK_UPDATE_RETRIES: int = 3


settings = Settings()

_client: Optional[AsyncIOMotorClient] = None
_db: Optional[AsyncIOMotorDatabase] = None


def configure_logging(level: Optional[str] = None) -> None:
    logging.basicConfig(
        level=(level or settings.LOG_LEVEL).upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


async def get_db() -> AsyncIOMotorDatabase:
    global _client, _db
    if _db is None:
        _client = AsyncIOMotorClient(settings.DATABASE_URL)
        _db = _client[settings.DATABASE_NAME]
    return _db


def to_object_id(value: Any) -> Optional[ObjectId]:
    """Parse a string id, returning None for anything that is not an ObjectId."""
    if isinstance(value, ObjectId):
        return value
    try:
        return ObjectId(value)
    except (InvalidId, TypeError):
        return None


def serialize(doc: Optional[dict[str, Any]]) -> Optional[dict[str, Any]]:
    if doc is None:
        return None
    d = dict(doc)
    if "_id" in d:
        d["id"] = str(d.pop("_id"))
    return d


async def create_document(collection_name: str, data: dict[str, Any]) -> dict[str, Any]:
    now = datetime.utcnow()
    data_with_meta = {**data, "created_at": now, "updated_at": now}
    try:
        db = await get_db()
        result = await db[collection_name].insert_one(data_with_meta)
        inserted = await db[collection_name].find_one({"_id": result.inserted_id})
    except PyMongoError as e:
        raise StoreError(f"Could not create {collection_name} document") from e
    return serialize(inserted) or {}


async def get_documents(
    collection_name: str,
    filter_dict: dict[str, Any] | None = None,
    limit: int = 100,
    sort: list[tuple[str, int]] | None = None,
) -> list[dict[str, Any]]:
    """Find documents; ``limit=0`` means no limit, as with the driver."""
    try:
        db = await get_db()
        cursor = db[collection_name].find(filter_dict or {})
        if sort:
            cursor = cursor.sort(sort)
        if limit:
            cursor = cursor.limit(limit)
        docs = []
        async for d in cursor:
            docs.append(serialize(d))
    except PyMongoError as e:
        raise StoreError(f"Could not read {collection_name} documents") from e
    return docs


async def get_document(collection_name: str, doc_id: str) -> Optional[dict[str, Any]]:
    oid = to_object_id(doc_id)
    if oid is None:
        return None
    try:
        db = await get_db()
        doc = await db[collection_name].find_one({"_id": oid})
    except PyMongoError as e:
        raise StoreError(f"Could not read {collection_name} document") from e
    return serialize(doc)


async def find_document(collection_name: str, filter_dict: dict[str, Any] | None = None) -> Optional[dict[str, Any]]:
    try:
        db = await get_db()
        doc = await db[collection_name].find_one(filter_dict or {})
    except PyMongoError as e:
        raise StoreError(f"Could not read {collection_name} document") from e
    return serialize(doc)


async def update_document(
    collection_name: str,
    doc_id: str,
    data: dict[str, Any],
    expected: dict[str, Any] | None = None,
) -> Optional[dict[str, Any]]:
    """Set fields on one document and return it after the update.

    ``expected`` adds field conditions to the match, turning the write into
    a compare-and-swap. Returns None when nothing matched.
    """
    oid = to_object_id(doc_id)
    if oid is None:
        return None
    match = {**(expected or {}), "_id": oid}
    try:
        db = await get_db()
        result = await db[collection_name].update_one(
            match, {"$set": {**data, "updated_at": datetime.utcnow()}}
        )
        if result.matched_count == 0:
            return None
        doc = await db[collection_name].find_one({"_id": oid})
    except PyMongoError as e:
        raise StoreError(f"Could not update {collection_name} document") from e
    return serialize(doc)


async def delete_document(collection_name: str, doc_id: str) -> bool:
    oid = to_object_id(doc_id)
    if oid is None:
        return False
    try:
        db = await get_db()
        result = await db[collection_name].delete_one({"_id": oid})
    except PyMongoError as e:
        raise StoreError(f"Could not delete {collection_name} document") from e
    return result.deleted_count > 0


async def delete_documents(collection_name: str, filter_dict: dict[str, Any]) -> int:
    try:
        db = await get_db()
        result = await db[collection_name].delete_many(filter_dict)
    except PyMongoError as e:
        raise StoreError(f"Could not delete {collection_name} documents") from e
    return result.deleted_count


async def count_documents(collection_name: str, filter_dict: dict[str, Any] | None = None) -> int:
    try:
        db = await get_db()
        return await db[collection_name].count_documents(filter_dict or {})
    except PyMongoError as e:
        raise StoreError(f"Could not count {collection_name} documents") from e
