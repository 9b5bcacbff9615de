from __future__ import annotations

from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field


class ChatSessionCreate(BaseModel):
    messages: list[Any]
    sessionId: Optional[str] = None
    sandboxId: Optional[str] = None


class ChatSessionReplace(BaseModel):
    messages: list[Any]
    sandboxId: Optional[str] = None


class DeploymentUpdate(BaseModel):
    latestDeploymentUrl: Optional[str] = None
    latestCustomDomain: Optional[str] = None


class SandboxMetadata(BaseModel):
    # createdAt/expiresAt and any provider keys are kept as sent
    model_config = ConfigDict(extra="allow")

    sandboxId: str = Field(min_length=1)


class SandboxUpdate(BaseModel):
    sandbox: SandboxMetadata
