from __future__ import annotations
from datetime import datetime, timezone
from typing import Any, Optional, Protocol
from bson import ObjectId
from motor.motor_asyncio import AsyncIOMotorClient, AsyncIOMotorDatabase

from .config import Settings, settings as default_settings

class DocumentStore(Protocol):
    """Hosted document database as seen by the storefront."""

    async def list_all(self, collection_name: str) -> list[dict[str, Any]]: ...

    async def list_where(self, collection_name: str, field: str, value: Any) -> list[dict[str, Any]]: ...

    async def get_by_id(self, collection_name: str, doc_id: str) -> Optional[dict[str, Any]]: ...

    async def create(self, collection_name: str, data: dict[str, Any]) -> str: ...

def to_client(doc: Optional[dict[str, Any]]) -> Optional[dict[str, Any]]:
    if doc is None:
        return None
    d = dict(doc)
    if "_id" in d:
        d["id"] = str(d.pop("_id"))
    return d

def _id_filter(doc_id: str) -> dict[str, Any]:
    if ObjectId.is_valid(doc_id):
        return {"_id": {"$in": [ObjectId(doc_id), doc_id]}}
    return {"_id": doc_id}

class MongoDocumentStore:
    def __init__(self, settings: Settings | None = None, client: AsyncIOMotorClient | None = None):
        self.settings = settings or default_settings
        self._client: Optional[AsyncIOMotorClient] = client
        self._db: Optional[AsyncIOMotorDatabase] = None

    def get_db(self) -> AsyncIOMotorDatabase:
        if self._db is None:
            if self._client is None:
                self._client = AsyncIOMotorClient(self.settings.DATABASE_URL)
            self._db = self._client[self.settings.DATABASE_NAME]
        return self._db

    async def _find(self, collection_name: str, filter_dict: dict[str, Any] | None = None) -> list[dict[str, Any]]:
        db = self.get_db()
        cursor = db[collection_name].find(filter_dict or {})
        docs = []
        async for d in cursor:
            docs.append(to_client(d))
        return docs

    async def list_all(self, collection_name: str) -> list[dict[str, Any]]:
        return await self._find(collection_name)

    async def list_where(self, collection_name: str, field: str, value: Any) -> list[dict[str, Any]]:
        return await self._find(collection_name, {field: value})

    async def get_by_id(self, collection_name: str, doc_id: str) -> Optional[dict[str, Any]]:
        db = self.get_db()
        doc = await db[collection_name].find_one(_id_filter(doc_id))
        return to_client(doc)

    async def create(self, collection_name: str, data: dict[str, Any]) -> str:
        db = self.get_db()
        now = datetime.now(timezone.utc)
        data_with_meta = {**data, "updatedAt": now}
        data_with_meta.setdefault("createdAt", now)
        result = await db[collection_name].insert_one(data_with_meta)
        return str(result.inserted_id)

    def close(self) -> None:
        if self._client is not None:
            self._client.close()
        self._client = None
        self._db = None
