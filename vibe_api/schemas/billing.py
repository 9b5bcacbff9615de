from __future__ import annotations

from pydantic import BaseModel, Field


class PurchaseRequest(BaseModel):
    # strict: booleans and numeric strings are rejected
    amount: float = Field(gt=0, strict=True, allow_inf_nan=False)


class ConfirmPaymentRequest(BaseModel):
    paymentIntentId: str = Field(min_length=1)
