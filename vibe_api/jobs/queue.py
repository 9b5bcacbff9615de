# vibe_api/jobs/queue.py
# API-side handle for enqueueing background jobs into arq

from __future__ import annotations

from typing import Any, Optional

from arq.connections import ArqRedis, RedisSettings, create_pool
from arq.jobs import Job

SAVE_SESSION_FILES = "save_session_files"


class JobQueue:
    """Lazily connects to the arq Redis on first use."""

    def __init__(self, redis_url: str):
        self._settings = RedisSettings.from_dsn(redis_url)
        self._pool: Optional[ArqRedis] = None

    async def _get_pool(self) -> ArqRedis:
        if self._pool is None:
            self._pool = await create_pool(self._settings)
        return self._pool

    async def enqueue_save(self, session_id: str, sandbox_id: str) -> str:
        pool = await self._get_pool()
        job = await pool.enqueue_job(SAVE_SESSION_FILES, session_id, sandbox_id)
        return job.job_id if job else ""

    async def status(self, task_id: str) -> dict[str, Any]:
        pool = await self._get_pool()
        job = Job(task_id, pool)
        status = await job.status()
        info = await job.result_info()
        result = info.result if info is not None and info.success else None
        return {"task_id": task_id, "status": status.value, "result": result}

    async def close(self) -> None:
        if self._pool is not None:
            await self._pool.aclose()
            self._pool = None
