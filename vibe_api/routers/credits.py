# vibe_api/routers/credits.py
# Credits balance, purchase (with 3-D Secure hand-off) and card setup

from __future__ import annotations

from fastapi import APIRouter, Depends, Request

from vibe_api.container import AppServices
from vibe_api.dependencies import get_current_user, get_services
from vibe_api.schemas.billing import ConfirmPaymentRequest, PurchaseRequest
from vibe_api.services.auth_service import Identity
from vibe_api.utils.request import parse_body

router = APIRouter(prefix="/credits", tags=["Credits"])


@router.get("/get")
async def get_credits(
    user: Identity = Depends(get_current_user),
    services: AppServices = Depends(get_services),
):
    return await services.credits.get_credits(user.email)


@router.post("/purchase")
async def purchase_credits(
    request: Request,
    user: Identity = Depends(get_current_user),
    services: AppServices = Depends(get_services),
):
    await services.credits.track_purchase_requested()
    body = await parse_body(request, PurchaseRequest)
    return await services.credits.purchase(user.email, body.amount)


@router.post("/confirm-payment")
async def confirm_payment(
    request: Request,
    user: Identity = Depends(get_current_user),
    services: AppServices = Depends(get_services),
):
    body = await parse_body(request, ConfirmPaymentRequest)
    return await services.credits.confirm_payment(body.paymentIntentId)


@router.post("/setup-intent")
async def create_setup_intent(
    user: Identity = Depends(get_current_user),
    services: AppServices = Depends(get_services),
):
    return await services.credits.create_setup_intent(user.email)
