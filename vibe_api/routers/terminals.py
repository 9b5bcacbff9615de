# vibe_api/routers/terminals.py
# Terminal lifecycle inside a sandbox (no identity required)

from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends, Request

from vibe_api.container import AppServices
from vibe_api.dependencies import get_services
from vibe_api.middleware.error_handler import BadRequestError
from vibe_api.schemas.terminals import TerminalCreate, TerminalDelete, TerminalExecute
from vibe_api.utils.logger import log_api
from vibe_api.utils.request import parse_body

router = APIRouter(prefix="/terminals", tags=["Terminals"])


@router.post("/create")
async def create_terminal(request: Request, services: AppServices = Depends(get_services)):
    body = await parse_body(request, TerminalCreate)
    log_api("terminals/create", "POST", "Creating terminal", sandbox_id=body.sandboxId, name=body.name)
    terminal = await services.terminals.create(body.sandboxId, body.name, body.workingDirectory)
    return {"success": True, "terminal": terminal}


@router.delete("/delete")
async def delete_terminal(request: Request, services: AppServices = Depends(get_services)):
    body = await parse_body(request, TerminalDelete)
    return await services.terminals.delete(body.sandboxId, body.terminalId)


@router.get("/list")
async def list_terminals(sandboxId: Optional[str] = None, services: AppServices = Depends(get_services)):
    if not sandboxId:
        raise BadRequestError("Sandbox ID is required")
    return {"success": True, "terminals": await services.terminals.list(sandboxId)}


@router.post("/execute")
async def execute_command(request: Request, services: AppServices = Depends(get_services)):
    body = await parse_body(request, TerminalExecute)
    log_api("terminals/execute", "POST", "Executing command", sandbox_id=body.sandboxId, terminal_id=body.terminalId)
    return await services.terminals.execute(body.sandboxId, body.terminalId, body.command, body.workingDirectory)
