"""Caller identity taken from the upstream-authenticated ``X-User-Id`` header."""
from __future__ import annotations

from fastapi import Header

from ..services import errors


async def get_optional_user_id(x_user_id: str | None = Header(default=None)) -> str | None:
    if x_user_id is None:
        return None
    return x_user_id.strip() or None


async def get_user_id(x_user_id: str | None = Header(default=None)) -> str:
    user_id = await get_optional_user_id(x_user_id)
    if user_id is None:
        raise errors.AuthenticationRequired()
    return user_id
