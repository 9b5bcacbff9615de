from __future__ import annotations

from typing import Annotated, Optional

from pydantic import AfterValidator, BaseModel, Field


def _not_blank(v: str) -> str:
    if not v.strip():
        raise ValueError("must not be blank")
    return v


NonBlankStr = Annotated[str, AfterValidator(_not_blank)]


class TerminalCreate(BaseModel):
    sandboxId: str = Field(min_length=1)
    name: NonBlankStr
    workingDirectory: Optional[str] = None


class TerminalDelete(BaseModel):
    sandboxId: str = Field(min_length=1)
    terminalId: str = Field(min_length=1)


class TerminalExecute(BaseModel):
    sandboxId: str = Field(min_length=1)
    terminalId: str = Field(min_length=1)
    command: NonBlankStr
    workingDirectory: Optional[str] = None
