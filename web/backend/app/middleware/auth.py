"""Auth middleware -- FastAPI dependencies for extracting the current user.

Supports two authentication methods:
1. ``Authorization: Bearer <api_key>`` header
2. ``X-API-Key: <raw_key>`` header

A request authenticated with the configured internal key comes from the
enforcement bot acting on behalf of the Discord user named in
``X-Acting-User``; the resulting user is marked ``internal``.
"""

from __future__ import annotations

import hmac
from typing import Optional

from fastapi import Depends, Header

from tcn.auth.models import User
from tcn.errors import UnauthorizedError
from web.backend.app.services import Services, get_services


def _internal_user(services: Services, acting_user: Optional[str]) -> User:
    if not acting_user:
        raise UnauthorizedError(
            "This request is not authenticated. This error should never occur; please contact a developer."
        )
    user = services.users.get_user(acting_user) or User(id=acting_user)
    user.internal = True
    return user


async def get_current_user(
    authorization: Optional[str] = Header(None),
    x_api_key: Optional[str] = Header(None, alias="X-API-Key"),
    x_acting_user: Optional[str] = Header(None, alias="X-Acting-User"),
    services: Services = Depends(get_services),
) -> User:
    """FastAPI dependency that extracts and validates the current user.

    Raises ``UnauthorizedError`` (401) if no valid credentials are provided.
    """
    raw_key = x_api_key
    if authorization:
        scheme, _, token = authorization.partition(" ")
        if scheme.lower() == "bearer" and token:
            raw_key = token

    if raw_key:
        internal_key = services.settings.internal_key
        if internal_key and hmac.compare_digest(raw_key, internal_key):
            return _internal_user(services, x_acting_user)
        user = services.users.validate_api_key(raw_key)
        if user is not None:
            return user

    raise UnauthorizedError("You must be signed in to access this route.")
