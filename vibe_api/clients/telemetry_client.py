# vibe_api/clients/telemetry_client.py

from __future__ import annotations

from typing import Any, Optional

import httpx

from vibe_api.constants import TELEMETRY_EVENT_OTHER, TELEMETRY_PRODUCT
from vibe_api.middleware.error_handler import best_effort


class TelemetryClient:
    """Fire-and-forget analytics events. Never raises."""

    def __init__(self, url: str, http: Optional[httpx.AsyncClient] = None):
        self._url = url
        self._http = http or httpx.AsyncClient(timeout=httpx.Timeout(5.0))

    async def close(self) -> None:
        await self._http.aclose()

    async def _post(self, payload: dict[str, Any]) -> None:
        response = await self._http.post(
            self._url,
            json=payload,
            headers={"Accept": "application/json"},
        )
        response.raise_for_status()

    async def track(self, tag: str, status: Optional[str] = None, user_id: str = "") -> None:
        metadata: dict[str, Any] = {"tag": tag, "product": TELEMETRY_PRODUCT}
        if status:
            metadata["status"] = status
        await best_effort(
            self._post({"userId": user_id, "eventName": TELEMETRY_EVENT_OTHER, "eventMetadata": metadata}),
            context=f"telemetry {tag}",
        )
