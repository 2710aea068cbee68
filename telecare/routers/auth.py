# telecare/routers/auth.py
from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, status
from fastapi.security import OAuth2PasswordRequestForm
from sqlalchemy.ext.asyncio import AsyncSession

from telecare.db.sql import get_session
from telecare.dependencies import get_current_user
from telecare.modules.users.models import User
from telecare.modules.users.schemas import LoginRequest, RefreshRequest, RegisterRequest, TokenPair, UserPublic
from telecare.modules.users.service import (
    EmailAlreadyExists,
    InvalidCredentials,
    login_user,
    refresh_access,
    register_user,
    to_public,
)

router = APIRouter(tags=["auth"])


async def _login_or_401(session: AsyncSession, payload: LoginRequest) -> TokenPair:
    try:
        return await login_user(session, payload)
    except InvalidCredentials as exc:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail=str(exc)) from exc


@router.post(
    "/auth/register",
    response_model=UserPublic,
    status_code=status.HTTP_201_CREATED,
    summary="Create a patient or doctor account",
    responses={409: {"description": "Email already registered"}},
)
async def auth_register(
    payload: RegisterRequest,
    session: AsyncSession = Depends(get_session),
):
    try:
        return await register_user(session, payload)
    except EmailAlreadyExists as exc:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="email_already_exists") from exc


@router.post("/auth/login", response_model=TokenPair, summary="Email/password login (JSON body)")
async def auth_login(payload: LoginRequest, session: AsyncSession = Depends(get_session)):
    return await _login_or_401(session, payload)


@router.post("/auth/token", response_model=TokenPair, summary="OAuth2 password flow (Swagger UI)")
async def auth_token(
    form_data: OAuth2PasswordRequestForm = Depends(),
    session: AsyncSession = Depends(get_session),
):
    return await _login_or_401(
        session, LoginRequest(email=form_data.username, password=form_data.password)
    )


@router.post("/auth/refresh", response_model=TokenPair, summary="New access token from a refresh token")
async def auth_refresh(payload: RefreshRequest, session: AsyncSession = Depends(get_session)):
    try:
        return await refresh_access(session, payload.refresh_token)
    except InvalidCredentials as exc:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail=str(exc)) from exc


@router.get("/auth/me", response_model=UserPublic, summary="Current user's profile")
async def auth_me(current_user: User = Depends(get_current_user)):
    return to_public(current_user)
