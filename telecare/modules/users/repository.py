# telecare/modules/users/repository.py
from __future__ import annotations

from typing import Optional
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from telecare.modules.users.models import User


class EmailAlreadyExistsError(Exception):
    """Insert hit uq_users_email."""


async def get_by_id(session: AsyncSession, user_id: UUID) -> Optional[User]:
    return await session.get(User, user_id)


async def get_by_email(session: AsyncSession, email: str) -> Optional[User]:
    result = await session.execute(select(User).where(User.email == email.strip().lower()))
    return result.scalar_one_or_none()


async def add_user(session: AsyncSession, user: User) -> User:
    """
    Persist a new account built by the service (password already hashed).
    Server defaults are loaded back before returning.
    """
    session.add(user)
    try:
        await session.flush()
    except IntegrityError as exc:
        raise EmailAlreadyExistsError(user.email) from exc
    await session.refresh(user)
    return user
