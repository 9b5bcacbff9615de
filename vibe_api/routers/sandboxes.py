# vibe_api/routers/sandboxes.py
# Sandbox lookups, per-session sandbox hand-out and directory listings

from __future__ import annotations

from fastapi import APIRouter, Depends, Request

from vibe_api.container import AppServices
from vibe_api.dependencies import get_current_user, get_services
from vibe_api.schemas.common import CreateSandboxForSessionRequest, ListFilesRequest, SandboxConnectRequest
from vibe_api.services.auth_service import Identity
from vibe_api.utils.logger import log_api
from vibe_api.utils.request import parse_body

router = APIRouter(tags=["Sandboxes"])


@router.post("/sandboxes/connect")
async def connect_sandbox(request: Request, services: AppServices = Depends(get_services)):
    body = await parse_body(request, SandboxConnectRequest)
    return await services.sandboxes.connect(body.sandboxId)


@router.post("/create-sandbox-for-session")
async def create_sandbox_for_session(
    request: Request,
    user: Identity = Depends(get_current_user),
    services: AppServices = Depends(get_services),
):
    body = await parse_body(request, CreateSandboxForSessionRequest)
    result = await services.sandboxes.create_for_session(
        user.email, body.sessionId, body.ports, run_dev_server=body.runDevServer
    )
    log_api(
        "create-sandbox-for-session", "POST", "Sandbox ready",
        session_id=body.sessionId, sandbox_id=result["sandboxId"], reused=result["reused"],
    )
    return result


@router.post("/list-files")
async def list_files(request: Request, services: AppServices = Depends(get_services)):
    body = await parse_body(request, ListFilesRequest)
    log_api("list-files", "POST", "Listing files", sandbox_id=body.sandboxId, path=body.path, recursive=body.recursive)
    return await services.sandboxes.list_files(body.sandboxId, body.path, body.recursive)
