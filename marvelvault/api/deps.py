"""
API dependencies.

The admin role itself is verified upstream (gateway/session layer).
Console endpoints only need to know *which* admin is acting, so it can
be recorded on migration logs and passed explicitly to every service.
"""

from typing import Annotated

from fastapi import Header, HTTPException, status

from marvelvault.models.principal import AdminPrincipal


async def get_admin_principal(
    x_admin_user_id: Annotated[int | None, Header()] = None,
    x_admin_username: Annotated[str | None, Header()] = None,
) -> AdminPrincipal:
    """
    Build the acting admin from request headers.

    Raises 401 if the admin user id header is missing.
    """
    if x_admin_user_id is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Admin identity required (X-Admin-User-Id header)",
        )
    return AdminPrincipal(user_id=x_admin_user_id, username=x_admin_username)
