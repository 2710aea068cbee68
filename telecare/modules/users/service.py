# telecare/modules/users/service.py
from __future__ import annotations

import logging
from typing import Optional

from sqlalchemy.ext.asyncio import AsyncSession

from telecare.core.config import settings
from telecare.core.security import (
    InvalidTokenError,
    TokenType,
    access_token_for,
    decode_token,
    hash_password,
    refresh_token_for,
    verify_password,
)
from telecare.modules.users import repository as users_repo
from telecare.modules.users.models import User
from telecare.modules.users.schemas import LoginRequest, RegisterRequest, TokenPair, UserPublic

logger = logging.getLogger(__name__)


# Service-level errors (map them to HTTP in the router)
class EmailAlreadyExists(Exception):
    pass


class InvalidCredentials(Exception):
    pass


def to_public(user: User) -> UserPublic:
    return UserPublic.model_validate(user)


def issue_tokens(user: User, refresh_token: Optional[str] = None) -> TokenPair:
    """New access token; a fresh refresh token unless one is being reused."""
    return TokenPair(
        access_token=access_token_for(user.id, user.role),
        expires_in=settings.ACCESS_EXPIRES_MIN * 60,
        refresh_token=refresh_token or refresh_token_for(user.id),
    )


async def register_user(session: AsyncSession, payload: RegisterRequest) -> UserPublic:
    if await users_repo.get_by_email(session, payload.email):
        raise EmailAlreadyExists(payload.email)

    user = User(
        email=payload.email,
        password_hash=hash_password(payload.password.get_secret_value()),
        first_name=payload.first_name,
        last_name=payload.last_name,
        phone=payload.phone,
        specialization=payload.specialization,
        role=payload.role.value,
    )
    try:
        user = await users_repo.add_user(session, user)
    except users_repo.EmailAlreadyExistsError as exc:
        raise EmailAlreadyExists(payload.email) from exc

    logger.info("Registered %s %s", user.role, user.id)
    return to_public(user)


async def login_user(session: AsyncSession, payload: LoginRequest) -> TokenPair:
    user = await users_repo.get_by_email(session, payload.email)
    if user is None or not user.is_active:
        raise InvalidCredentials("invalid_credentials")
    if not verify_password(payload.password.get_secret_value(), user.password_hash):
        logger.warning("Failed login for user %s", user.id)
        raise InvalidCredentials("invalid_credentials")
    return issue_tokens(user)


async def refresh_access(session: AsyncSession, refresh_token: str) -> TokenPair:
    """Role in the new access token comes from the database, not the old token."""
    try:
        user_id = decode_token(refresh_token, TokenType.REFRESH)
    except InvalidTokenError as exc:
        raise InvalidCredentials(str(exc)) from exc

    user = await users_repo.get_by_id(session, user_id)
    if user is None or not user.is_active:
        raise InvalidCredentials("user_not_found")
    return issue_tokens(user, refresh_token=refresh_token)
