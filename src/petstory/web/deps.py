# src/petstory/web/deps.py
"""Request dependencies: database session and caller identity."""

from __future__ import annotations

import secrets
from collections.abc import AsyncIterator

from fastapi import Header, HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession

from petstory.canon import get_pg
from petstory.config import config


async def get_session() -> AsyncIterator[AsyncSession]:
    """Yield one session per request."""
    async with get_pg() as session:
        yield session


async def get_current_user_id(
    x_user_id: str | None = Header(default=None, alias="X-User-Id"),
) -> str:
    """Return the opaque caller id supplied by the identity gateway."""
    if not x_user_id or not x_user_id.strip():
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED, detail="Missing X-User-Id header"
        )
    return x_user_id.strip()


async def require_admin(
    x_admin_token: str | None = Header(default=None, alias="X-Admin-Token"),
) -> None:
    """Reject authoring calls without the configured admin token."""
    if config.system.disable_auth:
        return
    if not x_admin_token or not secrets.compare_digest(
        x_admin_token, config.system.admin_token
    ):
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN, detail="Invalid admin token"
        )


__all__ = ["get_current_user_id", "get_session", "require_admin"]
