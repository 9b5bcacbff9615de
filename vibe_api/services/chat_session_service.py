# vibe_api/services/chat_session_service.py

from __future__ import annotations

import asyncio
import secrets
import string
import time
from datetime import datetime, timezone
from typing import Any, Optional

from redis.exceptions import WatchError

from vibe_api.constants import CHAT_HISTORY_DEFAULT_LIMIT, CHAT_HISTORY_MAX_LIMIT, SESSION_TITLE_MAX_CHARS
from vibe_api.middleware.error_handler import NotFoundError, UpstreamError, best_effort
from vibe_api.repositories.chat_session_repository import ChatSessionRepository, Session
from vibe_api.utils.logger import log_info
from vibe_api.utils.pagination import build_pagination, clamp_limit, clamp_page, page_window

_BASE36 = string.digits + string.ascii_lowercase


def now_ms() -> int:
    return int(time.time() * 1000)


def generate_session_id() -> str:
    """session_<ms>_<9 base36 chars>"""
    suffix = "".join(secrets.choice(_BASE36) for _ in range(9))
    return f"session_{now_ms()}_{suffix}"


def session_id_timestamp(session_id: str) -> int:
    parts = session_id.split("_")
    try:
        return int(parts[1])
    except (IndexError, ValueError):
        return 0


def derive_title(messages: list[Any], today: Optional[datetime] = None) -> str:
    """First text part of the first user message, else ``Chat <date>``."""
    day = (today or datetime.now(timezone.utc)).strftime("%Y-%m-%d")
    title = f"Chat {day}"
    first_user = next(
        (m for m in messages if isinstance(m, dict) and m.get("role") == "user"),
        None,
    )
    if not first_user:
        return title
    parts = first_user.get("parts") or []
    if not parts or not isinstance(parts[0], dict):
        return title
    first = parts[0]
    if first.get("type") == "text" and isinstance(first.get("text"), str):
        text = first["text"]
        return text[:SESSION_TITLE_MAX_CHARS] + ("..." if len(text) > SESSION_TITLE_MAX_CHARS else "")
    return title


def sandbox_restored_message(sandbox_id: str, at_ms: int) -> dict[str, Any]:
    return {
        "id": f"sandbox-restored-{at_ms}",
        "role": "assistant",
        "parts": [
            {
                "type": "data-create-sandbox",
                "data": {"sandboxId": sandbox_id, "status": "done", "restored": True},
            }
        ],
        "metadata": {"model": "system"},
    }


class ChatSessionService:
    """Ownership, merging and listing of chat sessions."""

    def __init__(self, repository: ChatSessionRepository, snapshot_queue: Any = None):
        self._repo = repository
        self._snapshots = snapshot_queue

    async def ensure_owned(self, email: str, session_id: str) -> None:
        if not await self._repo.is_owner(email, session_id):
            raise NotFoundError("Session not found")

    async def get_if_owned_or_absent(self, email: str, session_id: str) -> Optional[Session]:
        """The stored record when ``email`` owns it, None when there is no record; 404 for someone else's."""
        session = await self._repo.get(session_id)
        if session is not None:
            await self.ensure_owned(email, session_id)
        return session

    async def list_sessions(self, email: str, page: Any = None, limit: Any = None) -> dict[str, Any]:
        page_n = clamp_page(page)
        limit_n = clamp_limit(limit, CHAT_HISTORY_DEFAULT_LIMIT, CHAT_HISTORY_MAX_LIMIT)

        ids = await self._repo.list_owned_ids(email)
        ids.sort(key=session_id_timestamp, reverse=True)
        start, end = page_window(page_n, limit_n)

        records = await asyncio.gather(*(self._repo.get(i) for i in ids[start:end]))
        sessions = [r for r in records if r]
        sessions.sort(key=lambda s: s.get("lastUpdated") or 0, reverse=True)

        return {"sessions": sessions, "pagination": build_pagination(page_n, limit_n, len(ids))}

    async def create_session(
        self,
        email: str,
        messages: list[Any],
        session_id: Optional[str] = None,
        sandbox_id: Optional[str] = None,
    ) -> Session:
        if session_id:
            await self.get_if_owned_or_absent(email, session_id)
        final_id = session_id or generate_session_id()
        ts = now_ms()
        session: Session = {
            "id": final_id,
            "timestamp": ts,
            "messages": messages,
            "title": derive_title(messages),
            "lastUpdated": ts,
        }
        await self._repo.save(session)
        await self._repo.add_owned(email, final_id)

        if sandbox_id:
            await self._enqueue_snapshot(final_id, sandbox_id)
        return session

    async def get_session(self, email: str, session_id: str) -> Session:
        await self.ensure_owned(email, session_id)
        session = await self._repo.get(session_id)
        if not session:
            raise NotFoundError("Session not found")

        sandbox = session.get("sandbox")
        if isinstance(sandbox, dict) and sandbox.get("sandboxId"):
            at = now_ms()
            expires_at = sandbox.get("expiresAt")
            if isinstance(expires_at, (int, float)) and at < expires_at:
                # response only; never written back
                session = {
                    **session,
                    "messages": [*session.get("messages", []), sandbox_restored_message(sandbox["sandboxId"], at)],
                }
        return session

    async def replace_messages(self, session_id: str, messages: list[Any], sandbox_id: Optional[str] = None) -> Session:
        """Caller must have checked ownership."""
        def mutate(current: Session) -> Session:
            return {**current, "messages": messages, "lastUpdated": now_ms()}

        updated = await self._merge(session_id, mutate)
        if sandbox_id:
            await self._enqueue_snapshot(session_id, sandbox_id)
        return updated

    async def update_deployment(self, session_id: str, fields: dict[str, Any]) -> Session:
        """Shallow-merge the deployment fields the client sent, nulls included. Caller must have checked ownership."""
        def mutate(current: Session) -> Session:
            return {**current, **fields, "lastUpdated": now_ms()}

        return await self._merge(session_id, mutate)

    async def update_sandbox(self, session_id: str, sandbox: dict[str, Any]) -> Session:
        """Replace the sandbox metadata. Caller must have checked ownership."""
        def mutate(current: Session) -> Session:
            return {**current, "sandbox": sandbox}

        return await self._merge(session_id, mutate)

    async def delete_session(self, email: str, session_id: str) -> None:
        await self.ensure_owned(email, session_id)
        await self._repo.delete(session_id)
        await self._repo.remove_owned(email, session_id)

    async def delete_all(self, email: str) -> int:
        return await self._repo.delete_all(email)

    async def _merge(self, session_id: str, mutate) -> Session:
        try:
            updated = await self._repo.update(session_id, mutate)
        except WatchError:
            raise UpstreamError("Failed to update session")
        if updated is None:
            raise NotFoundError("Session not found")
        return updated

    async def _enqueue_snapshot(self, session_id: str, sandbox_id: str) -> None:
        if self._snapshots is None:
            return
        await best_effort(
            self._snapshots.enqueue_save(session_id, sandbox_id),
            context=f"enqueue file snapshot for {session_id}",
        )
        log_info("Initiated async file saving", session_id=session_id, sandbox_id=sandbox_id)
