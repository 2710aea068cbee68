# telecare/dependencies.py
"""
Auth dependencies: the bearer token yields the acting user, whose id and
role every scheduling operation checks against.
"""
from __future__ import annotations

from fastapi import Depends, HTTPException, status
from fastapi.security import OAuth2PasswordBearer
from sqlalchemy.ext.asyncio import AsyncSession

from telecare.core.config import settings
from telecare.core.security import InvalidTokenError, TokenType, decode_token
from telecare.db.sql import get_session
from telecare.modules.users.models import User, UserRole
from telecare.modules.users.repository import get_by_id

# Swagger's "Authorize" form posts to /auth/token
oauth2_scheme = OAuth2PasswordBearer(tokenUrl=f"{settings.API_PREFIX}/auth/token")


def _unauthorized(code: str) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail=code,
        headers={"WWW-Authenticate": "Bearer"},
    )


async def get_current_user(
    token: str = Depends(oauth2_scheme),
    session: AsyncSession = Depends(get_session),
) -> User:
    try:
        user_id = decode_token(token, TokenType.ACCESS)
    except InvalidTokenError as exc:
        raise _unauthorized(str(exc)) from exc

    user = await get_by_id(session, user_id)
    if user is None:
        raise _unauthorized("user_not_found")
    if not user.is_active:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="user_inactive")
    return user


def require_roles(*roles: UserRole):
    """Depends(require_roles(UserRole.DOCTOR)) -> the current user, or 403."""
    allowed = {r.value for r in roles}

    async def _guard(user: User = Depends(get_current_user)) -> User:
        if user.role not in allowed:
            raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="insufficient_role")
        return user

    return _guard
