from typing import Any, Optional, Tuple

from vibe_api.constants import (
    CUSTOMER_CACHE_TTL_SECONDS,
    CUSTOMER_NEGATIVE_CACHE_TTL_SECONDS,
    STRIPE_CUSTOMER_KEY,
)

# Stored in place of a customer id to remember "no such customer"
NEGATIVE_MARKER = ""


class CustomerIdCache:
    """Email -> payment-processor customer id, with a shorter-lived negative entry."""

    def __init__(
        self,
        client: Any,
        ttl_seconds: int = CUSTOMER_CACHE_TTL_SECONDS,
        negative_ttl_seconds: int = CUSTOMER_NEGATIVE_CACHE_TTL_SECONDS,
    ):
        self._client = client
        self.ttl = ttl_seconds
        self.negative_ttl = negative_ttl_seconds
        self.hits = 0
        self.misses = 0

    @staticmethod
    def build_key(email: str) -> str:
        return STRIPE_CUSTOMER_KEY.format(email=email)

    async def get(self, email: str) -> Tuple[bool, Optional[str]]:
        """Return (found, customer_id). A cached negative is (True, None)."""
        value = await self._client.get(self.build_key(email))
        if value is None:
            self.misses += 1
            return False, None
        self.hits += 1
        return True, (value or None)

    async def set(self, email: str, customer_id: Optional[str]) -> None:
        if customer_id:
            await self._client.setex(self.build_key(email), self.ttl, customer_id)
        else:
            await self._client.setex(self.build_key(email), self.negative_ttl, NEGATIVE_MARKER)

    def stats(self) -> Tuple[int, int]:
        return self.hits, self.misses
