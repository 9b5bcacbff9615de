from __future__ import annotations

from typing import Any, Optional

from pydantic import BaseModel, Field

from vibe_api.constants import SANDBOX_DEFAULT_PORTS


class SandboxConnectRequest(BaseModel):
    sandboxId: str = Field(min_length=1)


class SessionFilesRequest(BaseModel):
    sessionId: str = Field(min_length=1)
    sandboxId: str = Field(min_length=1)


class DomainVerifyRequest(BaseModel):
    projectName: str = Field(min_length=1)
    domain: str = Field(min_length=1)


class PublishRequest(BaseModel):
    title: str = Field(min_length=1)
    appUrl: Optional[str] = None
    sandboxId: Optional[str] = None
    description: Optional[str] = None
    category: Optional[str] = None


class JobStatusResponse(BaseModel):
    task_id: str
    status: str
    result: Optional[Any] = None


class CreateSandboxForSessionRequest(BaseModel):
    sessionId: str = Field(min_length=1)
    ports: list[int] = Field(default_factory=lambda: list(SANDBOX_DEFAULT_PORTS))
    runDevServer: bool = False


class ListFilesRequest(BaseModel):
    sandboxId: str = Field(min_length=1)
    path: str = "."
    recursive: bool = True
