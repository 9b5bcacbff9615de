# vibe_api/routers/chat_history.py
# Chat sessions of the signed-in user
# Ownership is checked before the body is read: an unowned id is 404 whatever the payload

from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends, Request

from vibe_api.container import AppServices
from vibe_api.dependencies import get_current_user, get_services
from vibe_api.schemas.chat import ChatSessionCreate, ChatSessionReplace, DeploymentUpdate, SandboxUpdate
from vibe_api.services.auth_service import Identity
from vibe_api.utils.logger import log_api
from vibe_api.utils.request import parse_body

router = APIRouter(prefix="/chat-history", tags=["Chat history"])


@router.get("")
async def list_sessions(
    page: Optional[str] = None,
    limit: Optional[str] = None,
    user: Identity = Depends(get_current_user),
    services: AppServices = Depends(get_services),
):
    return await services.chat_sessions.list_sessions(user.email, page, limit)


@router.post("")
async def create_session(
    request: Request,
    user: Identity = Depends(get_current_user),
    services: AppServices = Depends(get_services),
):
    body = await parse_body(request, ChatSessionCreate)
    session = await services.chat_sessions.create_session(
        user.email, body.messages, session_id=body.sessionId, sandbox_id=body.sandboxId
    )
    return {"success": True, "sessionId": session["id"], "session": session}


@router.delete("")
async def delete_all_sessions(
    user: Identity = Depends(get_current_user),
    services: AppServices = Depends(get_services),
):
    deleted = await services.chat_sessions.delete_all(user.email)
    log_api("chat-history", "DELETE", f"Cleared {deleted} sessions")
    return {"success": True}


@router.get("/{session_id}")
async def get_session(
    session_id: str,
    user: Identity = Depends(get_current_user),
    services: AppServices = Depends(get_services),
):
    return {"session": await services.chat_sessions.get_session(user.email, session_id)}


@router.put("/{session_id}")
async def replace_session_messages(
    session_id: str,
    request: Request,
    user: Identity = Depends(get_current_user),
    services: AppServices = Depends(get_services),
):
    await services.chat_sessions.ensure_owned(user.email, session_id)
    body = await parse_body(request, ChatSessionReplace)
    session = await services.chat_sessions.replace_messages(session_id, body.messages, sandbox_id=body.sandboxId)
    return {"success": True, "session": session}


@router.delete("/{session_id}")
async def delete_session(
    session_id: str,
    user: Identity = Depends(get_current_user),
    services: AppServices = Depends(get_services),
):
    await services.chat_sessions.delete_session(user.email, session_id)
    return {"success": True}


@router.post("/{session_id}/deployment")
async def update_deployment(
    session_id: str,
    request: Request,
    user: Identity = Depends(get_current_user),
    services: AppServices = Depends(get_services),
):
    await services.chat_sessions.ensure_owned(user.email, session_id)
    body = await parse_body(request, DeploymentUpdate)
    session = await services.chat_sessions.update_deployment(
        session_id, body.model_dump(include={"latestDeploymentUrl", "latestCustomDomain"}, exclude_unset=True)
    )
    return {"success": True, "session": session}


@router.post("/{session_id}/sandbox")
async def update_sandbox(
    session_id: str,
    request: Request,
    user: Identity = Depends(get_current_user),
    services: AppServices = Depends(get_services),
):
    await services.chat_sessions.ensure_owned(user.email, session_id)
    body = await parse_body(request, SandboxUpdate)
    session = await services.chat_sessions.update_sandbox(session_id, body.sandbox.model_dump())
    log_api(f"chat-history/{session_id}/sandbox", "POST", "Sandbox metadata saved", sandbox_id=body.sandbox.sandboxId)
    return {"success": True, "session": session}
