from __future__ import annotations

from datetime import datetime, timezone
from typing import Any

from vibe_api.constants import SESSION_FILES_COLLECTION


class SessionFilesRepository:
    """File snapshots per chat session, one document per sessionId."""

    def __init__(self, database: Any):
        self._collection = database[SESSION_FILES_COLLECTION]

    async def upsert(self, session_id: str, files: list[dict[str, Any]]) -> None:
        now = datetime.now(timezone.utc)
        await self._collection.update_one(
            {"sessionId": session_id},
            {
                "$set": {"sessionId": session_id, "files": files, "updatedAt": now},
                "$setOnInsert": {"createdAt": now},
            },
            upsert=True,
        )

    async def get_files(self, session_id: str) -> list[dict[str, Any]]:
        doc = await self._collection.find_one({"sessionId": session_id})
        if not doc:
            return []
        return list(doc.get("files") or [])
