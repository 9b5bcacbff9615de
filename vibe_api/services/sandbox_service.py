# vibe_api/services/sandbox_service.py
# Sandbox lifecycle for chat sessions, plus connect checks and directory listings

from __future__ import annotations

import time
from typing import Any, Optional

from vibe_api.clients.sandbox_client import SandboxClient, SandboxHandle
from vibe_api.constants import (
    DEV_SERVER_SCRIPT,
    INITIAL_FILE_LISTING_ARGS,
    LIST_FILES_EXCLUDE_ARGS,
    LIST_FILES_MAX_DEPTH,
    SANDBOX_EXPIRATION_MINUTES,
)
from vibe_api.middleware.error_handler import NotFoundError, UpstreamError, best_effort
from vibe_api.services.chat_session_service import ChatSessionService, now_ms
from vibe_api.services.file_collection_service import FileCollectionService
from vibe_api.utils.logger import log_exception, log_info, log_performance, log_sandbox, log_warning

FileItem = dict[str, Any]


def _relative_to(full_path: str, base: str) -> str:
    if full_path.startswith(base):
        return full_path[len(base):].lstrip("/")
    return full_path


def parse_find_output(stdout: str, base_path: str) -> list[FileItem]:
    """Parse ``find -printf '%p|%y\\n'`` lines into file items relative to ``base_path``."""
    base = base_path.rstrip("/") or "."
    files: list[FileItem] = []
    for line in stdout.split("\n"):
        if not line.strip():
            continue
        parts = line.split("|")
        if len(parts) != 2:
            log_warning(f"Invalid find output line: {line}")
            continue
        full_path, kind = parts
        relative = _relative_to(full_path, base)
        if not relative or relative in (".", base):
            continue
        files.append({
            "name": relative.split("/")[-1],
            "type": "directory" if kind == "d" else "file",
            "path": relative,
        })
    return files


def parse_ls_output(stdout: str) -> list[FileItem]:
    """Parse ``ls -la`` lines; sizes are kept for regular files."""
    files: list[FileItem] = []
    for line in stdout.split("\n"):
        parts = line.split()
        if len(parts) < 9:
            continue
        permissions = parts[0]
        name = " ".join(parts[8:])
        if name in (".", ".."):
            continue
        is_dir = permissions.startswith("d")
        item: FileItem = {"name": name, "type": "directory" if is_dir else "file", "path": name}
        if not is_dir and parts[4].isdigit():
            item["size"] = int(parts[4])
        files.append(item)
    return files


def sort_file_items(files: list[FileItem]) -> list[FileItem]:
    """Directories first, then by name."""
    return sorted(files, key=lambda f: (f["type"] != "directory", f["name"].lower(), f["name"]))


def listing_error_message(stderr: str) -> str:
    lowered = (stderr or "").lower()
    if "no such file" in lowered:
        return "Directory not found"
    if "permission denied" in lowered:
        return "Permission denied"
    if "not a directory" in lowered:
        return "Path is not a directory"
    return "Directory listing failed"


class SandboxService:

    def __init__(
        self,
        sandboxes: SandboxClient,
        sessions: Optional[ChatSessionService] = None,
        files: Optional[FileCollectionService] = None,
    ):
        self._sandboxes = sandboxes
        self._sessions = sessions
        self._files = files

    async def connect(self, sandbox_id: str) -> dict[str, Any]:
        """Confirm the sandbox still exists at the provider."""
        start = time.time()
        try:
            await self._sandboxes.get(sandbox_id)
        except Exception as e:
            log_exception(e, context=f"connect sandbox {sandbox_id}")
            raise NotFoundError("Failed to connect to sandbox. It may not exist or may have expired.")
        log_performance("sandboxes.connect", (time.time() - start) * 1000, sandbox_id=sandbox_id)
        log_sandbox(sandbox_id, "Reconnected")
        return {"success": True, "sandbox": {"sandboxId": sandbox_id}}

    async def create_for_session(
        self,
        email: str,
        session_id: str,
        ports: list[int],
        run_dev_server: bool = False,
    ) -> dict[str, Any]:
        """
        Hand out a sandbox for a chat session.

        A sandbox recorded on the session is reused while it has not expired.
        Otherwise a new one is created, the session's saved files are restored
        into it, and its metadata is written back onto the session (when the
        session record exists). Someone else's session is 404.
        """
        session = await self._sessions.get_if_owned_or_absent(email, session_id)

        existing = session.get("sandbox") if session else None
        if isinstance(existing, dict) and existing.get("sandboxId"):
            expires_at = existing.get("expiresAt")
            if isinstance(expires_at, (int, float)) and now_ms() < expires_at:
                log_info("Reusing live sandbox for session", session_id=session_id, sandbox_id=existing["sandboxId"])
                return {
                    "success": True,
                    "sandboxId": existing["sandboxId"],
                    "sessionId": session_id,
                    "duration": 0,
                    "starterFilesCopied": False,
                    "npmInstallCompleted": False,
                    "fileCount": 0,
                    "filesRestored": False,
                    "restoredFileCount": 0,
                    "devServerStarted": False,
                    "reused": True,
                }
            log_info("Session sandbox expired, creating a new one", session_id=session_id, sandbox_id=existing["sandboxId"])

        start = time.time()
        try:
            sandbox = await self._sandboxes.create(ports, SANDBOX_EXPIRATION_MINUTES * 60 * 1000)
        except Exception as e:
            log_exception(e, context=f"create sandbox for session {session_id}")
            raise UpstreamError("Failed to create sandbox")

        restore = await self._files.restore_session_files_to_sandbox(session_id, sandbox.sandbox_id)
        if not restore["success"]:
            log_warning(f"Failed to restore files from session: {restore.get('error')}", session_id=session_id)

        file_count = await self._count_initial_files(sandbox)

        dev_server_started = False
        if run_dev_server:
            started = await best_effort(
                sandbox.run_detached("bash", ["-c", DEV_SERVER_SCRIPT]),
                context=f"start dev server in {sandbox.sandbox_id}",
            )
            dev_server_started = started is not None

        created_at = now_ms()
        metadata = {
            "sandboxId": sandbox.sandbox_id,
            "createdAt": created_at,
            "expiresAt": created_at + SANDBOX_EXPIRATION_MINUTES * 60 * 1000,
        }
        if session is not None:
            await self._sessions.update_sandbox(session_id, metadata)

        duration = int((time.time() - start) * 1000)
        log_performance("sandbox-initialization", duration, sandbox_id=sandbox.sandbox_id, session_id=session_id)
        return {
            "success": True,
            "sandboxId": sandbox.sandbox_id,
            "sessionId": session_id,
            "duration": duration,
            "starterFilesCopied": False,
            "npmInstallCompleted": dev_server_started,
            "fileCount": file_count,
            "filesRestored": bool(restore["success"]),
            "restoredFileCount": restore["restoredCount"],
            "devServerStarted": dev_server_started,
            "reused": False,
        }

    async def _count_initial_files(self, sandbox: SandboxHandle) -> int:
        listing = await best_effort(
            sandbox.run("find", list(INITIAL_FILE_LISTING_ARGS)),
            context=f"initial file listing in {sandbox.sandbox_id}",
        )
        if listing is None or listing.exit_code != 0:
            return 0
        return len([p for p in listing.stdout.split("\n") if p.strip() and p.strip() != "."])

    async def list_files(self, sandbox_id: str, path: str = ".", recursive: bool = True) -> dict[str, Any]:
        start = time.time()
        try:
            sandbox = await self._sandboxes.get(sandbox_id)
            if recursive:
                args = [path, "-maxdepth", LIST_FILES_MAX_DEPTH, *LIST_FILES_EXCLUDE_ARGS, "-printf", "%p|%y\\n"]
                result = await sandbox.run("find", args)
            else:
                result = await sandbox.run("ls", ["-la", path])
        except Exception as e:
            log_exception(e, context=f"list files in {sandbox_id}")
            raise UpstreamError("Failed to list files")

        if result.exit_code != 0:
            log_warning(
                "Directory listing failed",
                sandbox_id=sandbox_id, path=path, exit_code=result.exit_code, stderr=result.stderr[:500],
            )
            return {"success": False, "error": listing_error_message(result.stderr), "files": []}

        items = parse_find_output(result.stdout, path) if recursive else parse_ls_output(result.stdout)
        duration = int((time.time() - start) * 1000)
        log_performance("list-files", duration, sandbox_id=sandbox_id, file_count=len(items))
        return {
            "success": True,
            "files": sort_file_items(items),
            "path": path,
            "recursive": recursive,
            "duration": duration,
        }
