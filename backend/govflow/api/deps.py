"""API Dependencies - Common dependencies for routes"""
from typing import Optional
from fastapi import Header

from ..domain.models import ActorContext
from ..services.container import ServiceContainer, get_container
from ..utils.jwt import get_current_user as _jwt_get_current_user  # Internal use only


async def get_current_user_dep(
    authorization: Optional[str] = Header(None)
) -> ActorContext:
    """
    Dependency to get current user from Authorization header

    Raises:
        AuthenticationError: Token missing or invalid (mapped to 401)
    """
    return _jwt_get_current_user(authorization)


def get_container_dep() -> ServiceContainer:
    """Dependency to get the process-wide service container"""
    return get_container()
