# vibe_api/repositories/chat_session_repository.py
# Chat sessions in Redis: one JSON blob per session plus a per-user set of owned ids

from __future__ import annotations

import json
from typing import Any, Callable, Optional

from redis.exceptions import WatchError

from vibe_api.constants import CHAT_HISTORY_KEY, CHAT_SESSION_KEY, SESSION_UPDATE_MAX_RETRIES
from vibe_api.middleware.circuit_breaker import retry_with_backoff

Session = dict[str, Any]
Mutator = Callable[[Session], Session]


def _session_key(session_id: str) -> str:
    return CHAT_SESSION_KEY.format(session_id=session_id)


def _owner_key(email: str) -> str:
    return CHAT_HISTORY_KEY.format(email=email)


def _decode(raw: Any) -> Optional[Session]:
    if raw is None:
        return None
    if isinstance(raw, (bytes, bytearray)):
        raw = raw.decode("utf-8")
    return json.loads(raw)


class ChatSessionRepository:
    """Persistence for ChatSession records and their ownership sets."""

    def __init__(self, client: Any):
        self._r = client

    # --- ownership ---

    async def is_owner(self, email: str, session_id: str) -> bool:
        return bool(await self._r.sismember(_owner_key(email), session_id))

    async def list_owned_ids(self, email: str) -> list[str]:
        members = await self._r.smembers(_owner_key(email))
        return [m.decode("utf-8") if isinstance(m, bytes) else m for m in members]

    async def add_owned(self, email: str, session_id: str) -> None:
        await self._r.sadd(_owner_key(email), session_id)

    async def remove_owned(self, email: str, session_id: str) -> None:
        await self._r.srem(_owner_key(email), session_id)

    # --- records ---

    async def get(self, session_id: str) -> Optional[Session]:
        return _decode(await self._r.get(_session_key(session_id)))

    async def save(self, session: Session) -> None:
        await self._r.set(_session_key(session["id"]), json.dumps(session))

    async def delete(self, session_id: str) -> None:
        await self._r.delete(_session_key(session_id))

    async def delete_all(self, email: str) -> int:
        """Delete every session owned by ``email`` and the ownership set."""
        ids = await self.list_owned_ids(email)
        keys = [_session_key(i) for i in ids]
        if keys:
            await self._r.delete(*keys)
        await self._r.delete(_owner_key(email))
        return len(ids)

    async def update(self, session_id: str, mutate: Mutator) -> Optional[Session]:
        """
        Read-merge-write under WATCH/MULTI/EXEC.

        ``mutate`` receives the stored session and returns the new one. A concurrent
        write to the same key aborts the transaction and the whole read-merge-write
        is retried. Returns None when the record does not exist; raises WatchError
        once retries are exhausted.
        """
        return await self._update_with_retry(session_id, mutate)

    @retry_with_backoff(
        max_retries=SESSION_UPDATE_MAX_RETRIES,
        base_delay=0.05,
        max_delay=1.0,
        exceptions=(WatchError,),
    )
    async def _update_with_retry(self, session_id: str, mutate: Mutator) -> Optional[Session]:
        key = _session_key(session_id)
        async with self._r.pipeline(transaction=True) as pipe:
            await pipe.watch(key)
            current = _decode(await pipe.get(key))
            if current is None:
                await pipe.unwatch()
                return None
            updated = mutate(current)
            pipe.multi()
            pipe.set(key, json.dumps(updated))
            await pipe.execute()
            return updated
