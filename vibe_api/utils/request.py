# vibe_api/utils/request.py
# Explicit body parsing so routes decide when validation runs
# (identity and ownership checks come first)

import json
from typing import Any, Type, TypeVar

import pydantic
from fastapi import Request

from vibe_api.middleware.error_handler import ValidationError, format_validation_errors

M = TypeVar("M", bound=pydantic.BaseModel)


async def read_json(request: Request) -> Any:
    """Return the decoded JSON body; an empty body reads as ``{}``."""
    raw = await request.body()
    if not raw:
        return {}
    try:
        return json.loads(raw)
    except (json.JSONDecodeError, UnicodeDecodeError):
        raise ValidationError("Request body must be valid JSON")


async def parse_body(request: Request, model: Type[M]) -> M:
    data = await read_json(request)
    try:
        return model.model_validate(data)
    except pydantic.ValidationError as e:
        raise ValidationError(details={"errors": format_validation_errors(e.errors())})
