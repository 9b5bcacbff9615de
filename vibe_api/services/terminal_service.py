# vibe_api/services/terminal_service.py
# Terminals are shell processes inside a sandbox
# The optional registry keeps a server-side list; without it listing is always empty

from __future__ import annotations

import secrets
import shlex
import time
from datetime import datetime, timezone
from typing import Any, Optional

from vibe_api.clients.sandbox_client import SandboxClient
from vibe_api.constants import TERMINAL_STATUS_READY
from vibe_api.middleware.error_handler import UpstreamError, best_effort
from vibe_api.repositories.terminal_registry import TerminalRegistry
from vibe_api.utils.logger import log_api, log_exception


def fallback_terminal_id() -> str:
    return f"term_{int(time.time() * 1000)}_{secrets.token_hex(4)}"


def _iso_now() -> str:
    return datetime.now(timezone.utc).isoformat().replace("+00:00", "Z")


class TerminalService:

    def __init__(self, sandboxes: SandboxClient, registry: Optional[TerminalRegistry] = None):
        self._sandboxes = sandboxes
        self._registry = registry

    async def create(self, sandbox_id: str, name: str, working_directory: Optional[str] = None) -> dict[str, Any]:
        wd = working_directory or "."
        name = name.strip()
        banner = shlex.quote("Terminal '" + name + "' created at ")
        script = f"cd {shlex.quote(wd)} && echo {banner}\"$(pwd)\" && pwd"
        try:
            sandbox = await self._sandboxes.get(sandbox_id)
            command = await sandbox.run_detached("bash", ["-c", script])
        except Exception as e:
            log_exception(e, context=f"create terminal in {sandbox_id}")
            raise UpstreamError("Failed to create terminal")

        terminal = {
            "terminalId": command.cmd_id or fallback_terminal_id(),
            "name": name,
            "sandboxId": sandbox_id,
            "workingDirectory": wd,
            "status": TERMINAL_STATUS_READY,
            "createdAt": _iso_now(),
        }
        if self._registry is not None:
            await best_effort(self._registry.add(terminal), context=f"register terminal {terminal['terminalId']}")

        log_api("terminals/create", "POST", "Terminal created", terminal_id=terminal["terminalId"], sandbox_id=sandbox_id)
        return terminal

    async def delete(self, sandbox_id: str, terminal_id: str) -> dict[str, Any]:
        """Signal the process; the process may already be gone, which is fine."""
        await best_effort(self._kill(sandbox_id, terminal_id), context=f"kill terminal {terminal_id}")
        if self._registry is not None:
            await best_effort(self._registry.remove(sandbox_id, terminal_id), context=f"unregister terminal {terminal_id}")
        return {"success": True, "terminalId": terminal_id}

    async def _kill(self, sandbox_id: str, terminal_id: str) -> None:
        sandbox = await self._sandboxes.get(sandbox_id)
        await sandbox.run("kill", ["-TERM", terminal_id])

    async def list(self, sandbox_id: str) -> list[dict[str, Any]]:
        if self._registry is None:
            return []
        return await self._registry.list(sandbox_id)

    async def execute(
        self,
        sandbox_id: str,
        terminal_id: str,
        command: str,
        working_directory: Optional[str] = None,
    ) -> dict[str, Any]:
        command = command.strip()
        parts = command.split()
        cmd, args = parts[0], parts[1:]
        current_wd = working_directory or "."
        final_wd = current_wd
        new_wd: Optional[str] = None

        if cmd == "cd":
            target = " ".join(args) if args else "~"
            script = f"cd {shlex.quote(current_wd)} && cd {target} && pwd"
        else:
            script = f"cd {shlex.quote(current_wd)} && {command}"

        try:
            sandbox = await self._sandboxes.get(sandbox_id)
            result = await sandbox.run("bash", ["-c", script])
        except Exception as e:
            log_exception(e, context=f"execute in terminal {terminal_id}")
            raise UpstreamError("Failed to execute command")

        output = result.stdout + (f"\n{result.stderr}" if result.stderr else "")

        if cmd == "cd" and result.exit_code == 0:
            moved_to = result.stdout.strip()
            if moved_to:
                new_wd = final_wd = moved_to
                output = result.stderr or ""

        if cmd in ("pushd", "popd") and result.exit_code == 0:
            pwd = await best_effort(
                sandbox.run("bash", ["-c", f"cd {shlex.quote(final_wd)} && pwd"]),
                context=f"{cmd} working directory for {terminal_id}",
            )
            if pwd is not None and pwd.stdout.strip():
                new_wd = final_wd = pwd.stdout.strip()

        log_api(
            "terminals/execute", "POST", "Command executed",
            terminal_id=terminal_id, exit_code=result.exit_code, working_directory=final_wd,
        )
        return {
            "success": True,
            "output": output,
            "exitCode": result.exit_code,
            "workingDirectory": new_wd,
            "currentWorkingDirectory": final_wd,
            "timestamp": _iso_now(),
        }
