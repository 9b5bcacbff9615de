# vibe_api/routers/session_files.py
# Save/restore of a session's sandbox files

from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends, Request

from vibe_api.container import AppServices
from vibe_api.dependencies import get_current_user, get_services
from vibe_api.middleware.error_handler import BadRequestError
from vibe_api.schemas.common import SessionFilesRequest
from vibe_api.services.auth_service import Identity
from vibe_api.utils.request import parse_body

router = APIRouter(prefix="/session-files", tags=["Session files"])


@router.post("")
async def save_session_files(
    request: Request,
    user: Identity = Depends(get_current_user),
    services: AppServices = Depends(get_services),
):
    body = await parse_body(request, SessionFilesRequest)
    await services.files.save_session_files(body.sessionId, body.sandboxId)
    return {"success": True}


@router.get("")
async def get_session_files(
    sessionId: Optional[str] = None,
    user: Identity = Depends(get_current_user),
    services: AppServices = Depends(get_services),
):
    if not sessionId:
        raise BadRequestError("Session ID is required")
    return {"files": await services.files.get_session_files(sessionId)}


@router.post("/restore")
async def restore_session_files(
    request: Request,
    user: Identity = Depends(get_current_user),
    services: AppServices = Depends(get_services),
):
    body = await parse_body(request, SessionFilesRequest)
    return await services.files.restore_session_files_to_sandbox(body.sessionId, body.sandboxId)
