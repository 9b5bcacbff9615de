# vibe_api/repositories/gallery_repository.py
# Published apps in MongoDB

from __future__ import annotations

from typing import Any, Optional

from vibe_api.constants import PUBLISHED_APPS_COLLECTION

CHECK_PUBLISHED_PROJECTION = {
    "_id": 1,
    "title": 1,
    "description": 1,
    "category": 1,
    "createdAt": 1,
    "updatedAt": 1,
}


def _serialize(doc: dict[str, Any]) -> dict[str, Any]:
    """ObjectId is not JSON; expose it as a string."""
    out = dict(doc)
    if "_id" in out:
        out["_id"] = str(out["_id"])
    return out


class GalleryRepository:

    def __init__(self, database: Any):
        self._collection = database[PUBLISHED_APPS_COLLECTION]

    async def count(self, query: dict[str, Any]) -> int:
        return await self._collection.count_documents(query)

    async def find_page(self, query: dict[str, Any], skip: int, limit: int) -> list[dict[str, Any]]:
        cursor = self._collection.find(query).sort("createdAt", -1).skip(skip).limit(limit)
        docs = await cursor.to_list(length=limit)
        return [_serialize(d) for d in docs]

    async def find_by_app_url(self, app_url: str) -> Optional[dict[str, Any]]:
        doc = await self._collection.find_one({"appUrl": app_url}, projection=CHECK_PUBLISHED_PROJECTION)
        return _serialize(doc) if doc else None

    async def insert(self, app: dict[str, Any]) -> str:
        result = await self._collection.insert_one(dict(app))
        return str(result.inserted_id)
