# vibe_api/services/credits_service.py
# Credits billing flow: customer lookup/creation, balance, purchase with 3DS, setup intents

from __future__ import annotations

import asyncio
from typing import Any, Optional

from vibe_api.clients.payment_client import PaymentClient
from vibe_api.clients.telemetry_client import TelemetryClient
from vibe_api.middleware.error_handler import NotFoundError, UpstreamError
from vibe_api.utils.cache import CustomerIdCache
from vibe_api.utils.logger import log_exception, log_info

PURCHASE_TAG = "web-credit-purchase"
PURCHASE_3DS_TAG = "web-credit-purchase-3ds-confirmed"


class CreditsService:

    def __init__(
        self,
        payments: PaymentClient,
        customer_cache: CustomerIdCache,
        telemetry: TelemetryClient,
        recheck_delay_seconds: float = 10.0,
    ):
        self._payments = payments
        self._cache = customer_cache
        self._telemetry = telemetry
        self._recheck_delay = recheck_delay_seconds

    async def find_customer_id(self, email: str) -> Optional[str]:
        """
        Cached lookup of the processor customer for ``email``.

        A miss searches the processor, waits once and searches again before
        caching a negative result. Any failure reads as "no customer".
        """
        try:
            found, customer_id = await self._cache.get(email)
            if found:
                return customer_id

            customer_id = await self._payments.search_customer(email)
            if customer_id is None:
                # newly created customers take a moment to become searchable
                await asyncio.sleep(self._recheck_delay)
                customer_id = await self._payments.search_customer(email)

            await self._cache.set(email, customer_id)
            hits, misses = self._cache.stats()
            log_info("Customer id cache miss resolved", found=customer_id is not None, cache_hits=hits, cache_misses=misses)
            return customer_id
        except Exception as e:
            log_exception(e, context=f"customer lookup for {email}")
            return None

    async def create_customer(self, email: str) -> Optional[str]:
        try:
            customer_id = await self._payments.create_customer(email)
            await self._cache.set(email, customer_id)
        except Exception as e:
            log_exception(e, context=f"create customer for {email}")
            return None
        log_info(f"Created payment customer {customer_id}")
        return customer_id

    async def get_credits(self, email: str) -> dict[str, Any]:
        customer_id = await self.find_customer_id(email)
        if not customer_id:
            customer_id = await self.create_customer(email)
            if not customer_id:
                raise UpstreamError("Failed to initialize customer account")

        try:
            credits, has_payment_method = await asyncio.gather(
                self._payments.get_credits(customer_id),
                self._payments.has_payment_methods(customer_id),
            )
        except Exception as e:
            log_exception(e, context=f"fetch credits for {customer_id}")
            raise UpstreamError("Failed to fetch credits")

        return {"credits": credits, "hasPaymentMethod": has_payment_method, "customerId": customer_id}

    async def track_purchase_requested(self) -> None:
        await self._telemetry.track(PURCHASE_TAG, status="request-done")

    async def purchase(self, email: str, amount: float) -> dict[str, Any]:
        customer_id = await self.find_customer_id(email)
        if not customer_id:
            raise NotFoundError("Customer not found")

        log_info(f"Purchasing credits for {customer_id}", amount=amount)
        result = await self._payments.purchase_credits(customer_id, amount)

        if result.requires_action:
            return {
                "requiresAction": True,
                "clientSecret": result.client_secret,
                "paymentIntentId": result.payment_intent_id,
                "paymentMethodId": result.payment_method_id,
            }
        if not result.success:
            raise UpstreamError(result.error or "Failed to purchase credits")

        await self._telemetry.track(PURCHASE_TAG, status="request-success")
        return {"success": True}

    async def confirm_payment(self, payment_intent_id: str) -> dict[str, Any]:
        try:
            succeeded = await self._payments.payment_intent_succeeded(payment_intent_id)
        except Exception as e:
            log_exception(e, context=f"confirm payment intent {payment_intent_id}")
            succeeded = False
        if not succeeded:
            raise UpstreamError("Payment confirmation failed")

        await self._telemetry.track(PURCHASE_3DS_TAG, status="request-success")
        return {"success": True}

    async def create_setup_intent(self, email: str) -> dict[str, Any]:
        customer_id = await self.find_customer_id(email)
        if not customer_id:
            raise NotFoundError("Customer not found")

        try:
            client_secret = await self._payments.create_setup_intent(customer_id)
        except Exception as e:
            log_exception(e, context=f"setup intent for {customer_id}")
            client_secret = None
        if not client_secret:
            raise UpstreamError("Failed to create setup intent")
        return {"clientSecret": client_secret}
