# vibe_api/services/file_collection_service.py
# Snapshot a sandbox's project files into the document store and push them back later

from __future__ import annotations

import re
import time
from typing import Any

from vibe_api.clients.sandbox_client import SandboxClient
from vibe_api.constants import EXCLUDED_FILE_PATTERNS, FIND_PRUNE_ARGS
from vibe_api.repositories.session_files_repository import SessionFilesRepository
from vibe_api.utils.logger import log_exception, log_info, log_warning

_LEADING_DOT_SLASH = re.compile(r"^\./")


def should_exclude_file(path: str) -> bool:
    return any(p.search(path) for p in EXCLUDED_FILE_PATTERNS)


class FileCollectionService:

    def __init__(self, sandboxes: SandboxClient, repository: SessionFilesRepository):
        self._sandboxes = sandboxes
        self._repo = repository

    async def collect_sandbox_files(self, sandbox_id: str) -> list[dict[str, Any]]:
        sandbox = await self._sandboxes.get(sandbox_id)
        listing = await sandbox.run("find", list(FIND_PRUNE_ARGS))
        if listing.exit_code != 0 or not listing.stdout:
            return []

        paths = [p for p in listing.stdout.split("\n") if p.strip() and not should_exclude_file(p)]
        files: list[dict[str, Any]] = []
        for path in paths:
            clean = _LEADING_DOT_SLASH.sub("", path.strip())
            try:
                content = await sandbox.read_file(clean)
            except Exception as e:
                log_warning(f"Failed to read file {clean}: {e}", sandbox_id=sandbox_id)
                continue
            files.append({"path": clean, "content": content, "lastModified": int(time.time() * 1000)})
        return files

    async def save_session_files(self, session_id: str, sandbox_id: str) -> int:
        """Store the current sandbox files for ``session_id``. Nothing is written when none were collected."""
        files = await self.collect_sandbox_files(sandbox_id)
        if not files:
            return 0
        await self._repo.upsert(session_id, files)
        log_info(f"Saved {len(files)} files for session {session_id}", sandbox_id=sandbox_id)
        return len(files)

    async def get_session_files(self, session_id: str) -> list[dict[str, Any]]:
        return await self._repo.get_files(session_id)

    async def restore_session_files_to_sandbox(self, session_id: str, sandbox_id: str) -> dict[str, Any]:
        try:
            files = await self._repo.get_files(session_id)
            if not files:
                return {"success": True, "restoredCount": 0}

            sandbox = await self._sandboxes.get(sandbox_id)
            await sandbox.write_files([{"path": f["path"], "content": f["content"]} for f in files])
            log_info(f"Restored {len(files)} files to sandbox {sandbox_id} from session {session_id}")
            return {"success": True, "restoredCount": len(files)}
        except Exception as e:
            log_exception(e, context=f"restore session files {session_id}")
            return {"success": False, "restoredCount": 0, "error": str(e) or "Unknown error"}
