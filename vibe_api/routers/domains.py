from __future__ import annotations

from fastapi import APIRouter, Depends, Request

from vibe_api.container import AppServices
from vibe_api.dependencies import get_current_user, get_services
from vibe_api.schemas.common import DomainVerifyRequest
from vibe_api.services.auth_service import Identity
from vibe_api.utils.request import parse_body

router = APIRouter(prefix="/vercel", tags=["Domains"])


@router.post("/domain/verify")
async def verify_domain(
    request: Request,
    user: Identity = Depends(get_current_user),
    services: AppServices = Depends(get_services),
):
    body = await parse_body(request, DomainVerifyRequest)
    return await services.domains.verify(body.domain)


@router.get("/domains/user")
async def list_user_domains(
    user: Identity = Depends(get_current_user),
    services: AppServices = Depends(get_services),
):
    return {"success": True, "domains": await services.domains.list_user_domains(user.email)}
