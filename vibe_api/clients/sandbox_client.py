# vibe_api/clients/sandbox_client.py
# Thin adapter over the Vercel sandbox SDK
# Services only see SandboxHandle / CommandResult, never SDK objects

from __future__ import annotations

import base64
import time
from dataclasses import dataclass
from typing import Any, Optional

from vercel.sandbox import Sandbox

from vibe_api.config import Settings
from vibe_api.constants import SANDBOX_CREATE_MAX_RETRIES
from vibe_api.middleware.circuit_breaker import retry_with_backoff
from vibe_api.utils.logger import log_performance, log_sandbox


@dataclass
class CommandResult:
    exit_code: int
    stdout: str
    stderr: str


@dataclass
class DetachedCommand:
    cmd_id: Optional[str]


class SandboxHandle:
    """A connected sandbox able to run commands and move files."""

    def __init__(self, sandbox_id: str, sandbox: Any):
        self.sandbox_id = sandbox_id
        self._sandbox = sandbox

    async def run(self, cmd: str, args: list[str]) -> CommandResult:
        result = await self._sandbox.run_command(cmd, args)
        stdout = await result.stdout()
        stderr = await result.stderr()
        return CommandResult(
            exit_code=int(getattr(result, "exit_code", 0) or 0),
            stdout=stdout or "",
            stderr=stderr or "",
        )

    async def run_detached(self, cmd: str, args: list[str]) -> DetachedCommand:
        command = await self._sandbox.run_command_detached(cmd, args)
        cmd_id = getattr(command, "cmd_id", None) or getattr(getattr(command, "cmd", None), "id", None)
        return DetachedCommand(cmd_id=cmd_id)

    async def read_file(self, path: str) -> str:
        """Return file contents as text; raises when the file cannot be read."""
        result = await self.run("base64", [path])
        if result.exit_code != 0:
            raise FileNotFoundError(f"Cannot read {path}: {result.stderr.strip()}")
        raw = base64.b64decode("".join(result.stdout.split()))
        return raw.decode("utf-8", errors="replace")

    async def write_files(self, files: list[dict[str, Any]]) -> None:
        """Write ``[{path, content}]`` in a single provider call."""
        payload = [
            {"path": f["path"], "content": f["content"].encode("utf-8") if isinstance(f["content"], str) else f["content"]}
            for f in files
        ]
        await self._sandbox.write_files(payload)


def is_rate_limited(error: Exception) -> bool:
    status = getattr(error, "status_code", None) or getattr(error, "status", None)
    if status == 429:
        return True
    message = str(error).lower()
    return "429" in message or "too many requests" in message or "rate limit" in message


class SandboxRateLimitedError(Exception):
    """The provider refused to create a sandbox because of rate limiting."""


class SandboxClient:
    """Creates sandboxes and looks up existing ones with the configured provider credentials."""

    def __init__(self, settings: Settings):
        self._credentials = {
            key: value for key, value in (
                ("token", settings.VERCEL_TOKEN),
                ("team_id", settings.VERCEL_TEAM_ID),
                ("project_id", settings.VERCEL_PROJECT_ID),
            ) if value
        }

    async def get(self, sandbox_id: str) -> SandboxHandle:
        start = time.time()
        sandbox = await Sandbox.get(sandbox_id=sandbox_id, **self._credentials)
        log_sandbox(sandbox_id, "Connected")
        log_performance("sandbox.get", (time.time() - start) * 1000, sandbox_id=sandbox_id)
        return SandboxHandle(sandbox_id, sandbox)

    async def create(self, ports: list[int], timeout_ms: int) -> SandboxHandle:
        start = time.time()
        sandbox = await self._create_with_retry(ports, timeout_ms)
        log_sandbox(sandbox.sandbox_id, "Created", ports=ports)
        log_performance("sandbox.create", (time.time() - start) * 1000, sandbox_id=sandbox.sandbox_id)
        return SandboxHandle(sandbox.sandbox_id, sandbox)

    @retry_with_backoff(
        max_retries=SANDBOX_CREATE_MAX_RETRIES,
        base_delay=1.0,
        max_delay=10.0,
        exceptions=(SandboxRateLimitedError,),
    )
    async def _create_with_retry(self, ports: list[int], timeout_ms: int) -> Any:
        try:
            return await Sandbox.create(timeout=timeout_ms, ports=ports or None, **self._credentials)
        except Exception as e:
            if is_rate_limited(e):
                raise SandboxRateLimitedError(str(e)) from e
            raise
