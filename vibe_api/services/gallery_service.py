# vibe_api/services/gallery_service.py

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Optional

from vibe_api.constants import GALLERY_DEFAULT_LIMIT, GALLERY_MAX_LIMIT
from vibe_api.repositories.gallery_repository import GalleryRepository
from vibe_api.services.auth_service import Identity
from vibe_api.utils.pagination import build_pagination, clamp_limit, clamp_page, page_window


class GalleryService:
    """Public listing of published apps, publish-check and publish."""

    def __init__(self, repository: GalleryRepository):
        self._repo = repository

    async def list_apps(self, page: Any = None, limit: Any = None, category: Optional[str] = None) -> dict[str, Any]:
        page_n = clamp_page(page)
        limit_n = clamp_limit(limit, GALLERY_DEFAULT_LIMIT, GALLERY_MAX_LIMIT)
        query: dict[str, Any] = {}
        if category and category != "all":
            query["category"] = category

        skip, _ = page_window(page_n, limit_n)
        total = await self._repo.count(query)
        apps = await self._repo.find_page(query, skip=skip, limit=limit_n)
        return {
            "success": True,
            "apps": apps,
            "pagination": build_pagination(page_n, limit_n, total, with_has_more=True),
        }

    async def check_published(self, app_url: str) -> dict[str, Any]:
        app = await self._repo.find_by_app_url(app_url)
        return {"success": True, "isPublished": app is not None, "app": app}

    async def publish(
        self,
        identity: Identity,
        title: str,
        app_url: Optional[str],
        sandbox_id: Optional[str] = None,
        description: Optional[str] = None,
        category: Optional[str] = None,
    ) -> dict[str, Any]:
        now = datetime.now(timezone.utc)
        app: dict[str, Any] = {
            "title": title,
            "appUrl": app_url,
            "creatorEmail": identity.email,
            "creatorName": identity.name,
            "creatorAvatar": identity.image,
            "category": category,
            "description": description,
            "createdAt": now,
            "updatedAt": now,
            "likes": 0,
            "views": 0,
            "sandboxId": sandbox_id,
            "deploymentUrl": app_url,
        }
        # optional fields are left out rather than stored as null
        app = {k: v for k, v in app.items() if v is not None}
        app_id = await self._repo.insert(app)
        return {"success": True, "id": app_id, "app": {**app, "_id": app_id}}
