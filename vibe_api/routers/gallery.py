from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends, Request

from vibe_api.container import AppServices
from vibe_api.dependencies import get_current_user, get_services
from vibe_api.middleware.error_handler import BadRequestError
from vibe_api.schemas.common import PublishRequest
from vibe_api.services.auth_service import Identity
from vibe_api.utils.request import parse_body

router = APIRouter(prefix="/gallery", tags=["Gallery"])


@router.get("/apps")
async def list_apps(
    page: Optional[str] = None,
    limit: Optional[str] = None,
    category: Optional[str] = None,
    services: AppServices = Depends(get_services),
):
    """Public listing; page/limit are parsed leniently and clamped."""
    return await services.gallery.list_apps(page, limit, category)


@router.get("/check-published")
async def check_published(
    appUrl: Optional[str] = None,
    user: Identity = Depends(get_current_user),
    services: AppServices = Depends(get_services),
):
    if not appUrl:
        raise BadRequestError("App URL is required")
    return await services.gallery.check_published(appUrl)


@router.post("/publish")
async def publish_app(
    request: Request,
    user: Identity = Depends(get_current_user),
    services: AppServices = Depends(get_services),
):
    body = await parse_body(request, PublishRequest)
    return await services.gallery.publish(
        user,
        body.title,
        body.appUrl,
        sandbox_id=body.sandboxId,
        description=body.description,
        category=body.category,
    )
