# vibe_api/dependencies.py
# FastAPI dependencies shared by routers

from __future__ import annotations

from typing import Optional

from fastapi import Depends, Request

from vibe_api.container import AppServices
from vibe_api.middleware.error_handler import UnauthorizedError
from vibe_api.services.auth_service import Identity


def get_services(request: Request) -> AppServices:
    return request.app.state.services


def get_optional_user(request: Request, services: AppServices = Depends(get_services)) -> Optional[Identity]:
    return services.auth.identify(
        request.cookies.get(services.auth.cookie_name),
        request.headers.get("Authorization"),
    )


def get_current_user(user: Optional[Identity] = Depends(get_optional_user)) -> Identity:
    """Authenticated caller or 401. Runs before the handler touches anything external."""
    if user is None:
        raise UnauthorizedError()
    return user
