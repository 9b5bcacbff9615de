# vibe_api/repositories/terminal_registry.py
# Server-side record of terminals started in a sandbox
# Redis hash sandbox-terminals:<sandboxId>, field = terminalId, value = descriptor JSON

from __future__ import annotations

import json
from typing import Any

from vibe_api.constants import SANDBOX_TERMINALS_KEY, TERMINAL_REGISTRY_TTL_SECONDS


class TerminalRegistry:

    def __init__(self, client: Any, ttl_seconds: int = TERMINAL_REGISTRY_TTL_SECONDS):
        self._r = client
        self.ttl = ttl_seconds

    @staticmethod
    def _key(sandbox_id: str) -> str:
        return SANDBOX_TERMINALS_KEY.format(sandbox_id=sandbox_id)

    async def add(self, terminal: dict[str, Any]) -> None:
        key = self._key(terminal["sandboxId"])
        await self._r.hset(key, terminal["terminalId"], json.dumps(terminal))
        # sandboxes are ephemeral; let abandoned registries expire with them
        await self._r.expire(key, self.ttl)

    async def remove(self, sandbox_id: str, terminal_id: str) -> None:
        await self._r.hdel(self._key(sandbox_id), terminal_id)

    async def list(self, sandbox_id: str) -> list[dict[str, Any]]:
        entries = await self._r.hgetall(self._key(sandbox_id))
        terminals = [json.loads(v) for v in entries.values()]
        return sorted(terminals, key=lambda t: t.get("createdAt", ""))
