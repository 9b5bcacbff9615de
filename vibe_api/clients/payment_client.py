# vibe_api/clients/payment_client.py
# Payment processor (Stripe) and credits ledger (payment server) adapters
# Stripe's SDK is synchronous; calls run in a worker thread

from __future__ import annotations

import asyncio
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Optional

import httpx
import stripe

from vibe_api.config import Settings
from vibe_api.constants import CUSTOMER_CREATED_VIA
from vibe_api.middleware.circuit_breaker import get_circuit_breaker
from vibe_api.utils.logger import log_exception

PAYMENT_SERVER_BREAKER = "payment-server"


class PaymentClientError(Exception):
    """The payment processor or the payment server failed or answered nonsense."""


@dataclass
class PurchaseResult:
    success: bool
    requires_action: bool = False
    client_secret: Optional[str] = None
    payment_intent_id: Optional[str] = None
    payment_method_id: Optional[str] = None
    error: Optional[str] = None


class PaymentClient:

    def __init__(self, settings: Settings, http: Optional[httpx.AsyncClient] = None):
        self._stripe = stripe.StripeClient(settings.STRIPE_SECRET_KEY)
        self._base_url = settings.PAYMENT_SERVER.rstrip("/")
        self._http = http or httpx.AsyncClient(timeout=httpx.Timeout(15.0))
        self._breaker = get_circuit_breaker(PAYMENT_SERVER_BREAKER, failure_threshold=5, recovery_timeout=30.0)

    async def close(self) -> None:
        await self._http.aclose()

    # --- processor: customers ---

    async def search_customer(self, email: str) -> Optional[str]:
        """Return the first customer id matching ``email`` or None."""
        result = await asyncio.to_thread(
            self._stripe.customers.search, params={"query": f"email:'{email}'"}
        )
        data = list(result.data)
        return data[0].id if data else None

    async def create_customer(self, email: str) -> str:
        customer = await asyncio.to_thread(
            self._stripe.customers.create,
            params={
                "email": email,
                "metadata": {
                    "created_via": CUSTOMER_CREATED_VIA,
                    "created_at": datetime.now(timezone.utc).isoformat(),
                },
            },
        )
        return customer.id

    async def has_payment_methods(self, customer_id: str) -> bool:
        methods = await asyncio.to_thread(
            self._stripe.payment_methods.list,
            params={"customer": customer_id, "type": "card"},
        )
        return len(methods.data) > 0

    async def create_setup_intent(self, customer_id: str) -> Optional[str]:
        intent = await asyncio.to_thread(
            self._stripe.setup_intents.create,
            params={
                "customer": customer_id,
                "payment_method_types": ["card"],
                "usage": "off_session",
            },
        )
        return intent.client_secret

    async def payment_intent_succeeded(self, payment_intent_id: str) -> bool:
        intent = await asyncio.to_thread(self._stripe.payment_intents.retrieve, payment_intent_id)
        return intent.status == "succeeded"

    # --- payment server: credits ledger ---

    async def get_credits(self, customer_id: str) -> float:
        response = await self._breaker.call(
            self._http.get,
            f"{self._base_url}/api/get-credits",
            params={"customerId": customer_id},
            headers={"Content-Type": "application/json"},
        )
        if response.status_code >= 400:
            raise PaymentClientError(f"get-credits answered {response.status_code}")
        data: Any = response.json()
        credits = data.get("credits") if isinstance(data, dict) else None
        if isinstance(credits, bool) or not isinstance(credits, (int, float)):
            raise PaymentClientError("get-credits returned no numeric balance")
        return credits

    async def purchase_credits(self, customer_id: str, amount: float) -> PurchaseResult:
        """Charge ``amount`` (dollars) against the saved card; the ledger expects cents."""
        try:
            response = await self._breaker.call(
                self._http.post,
                f"{self._base_url}/api/purchase-credits",
                json={"customerId": customer_id, "amount": amount * 100},
            )
        except Exception as e:
            log_exception(e, context="purchase_credits")
            return PurchaseResult(success=False, error="An unexpected error occurred")

        if response.status_code >= 400:
            return PurchaseResult(success=False, error="Failed to purchase credits")

        data = response.json()
        if data.get("requiresAction"):
            return PurchaseResult(
                success=False,
                requires_action=True,
                client_secret=data.get("clientSecret"),
                payment_intent_id=data.get("paymentIntentId"),
                payment_method_id=data.get("paymentMethodId"),
            )
        return PurchaseResult(success=bool(data.get("success")), error=data.get("error"))
