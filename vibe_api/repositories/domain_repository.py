from __future__ import annotations

import json
from typing import Any

from vibe_api.constants import USER_DOMAINS_KEY


class DomainRepository:
    """Purchased domains per user, one JSON array under ``user_domains:<email>``."""

    def __init__(self, client: Any):
        self._r = client

    async def list_for_user(self, email: str) -> list[dict[str, Any]]:
        raw = await self._r.get(USER_DOMAINS_KEY.format(email=email))
        if not raw:
            return []
        data = json.loads(raw)
        return data if isinstance(data, list) else []

