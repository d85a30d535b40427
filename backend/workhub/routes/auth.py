from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Body, Depends, status

from workhub.dependencies.auth import get_bearer_token, get_bootstrap_service, require_bearer_token
from workhub.schemas.auth import (
    CanonicalUserOut,
    LoginIn,
    LoginOut,
    MeOut,
    MeUpdateOut,
    ProfileUpdateIn,
    RegisterIn,
    RegisterOut,
    TokenExchangeIn,
    TokenExchangeOut,
)
from workhub.services.session_bootstrap import SessionBootstrapService

router = APIRouter(prefix="/auth", tags=["auth"])

REGISTER_SESSION_MESSAGE = "Account created successfully"
REGISTER_VERIFY_MESSAGE = "Account created. Please check your email to verify your account."


@router.post("/token", response_model=TokenExchangeOut)
def exchange_token(
    payload: Optional[TokenExchangeIn] = Body(None),
    header_token: str | None = Depends(get_bearer_token),
    service: SessionBootstrapService = Depends(get_bootstrap_service),
):
    # The Authorization header wins over a body token.
    token = header_token or (payload.access_token if payload else None)
    result = service.token_exchange(token)
    return TokenExchangeOut(
        access_token=result.session_token,
        user=CanonicalUserOut.model_validate(result.user),
    )


@router.post("/login", response_model=LoginOut)
def login(
    payload: LoginIn,
    service: SessionBootstrapService = Depends(get_bootstrap_service),
):
    result = service.login(payload.email, payload.password)
    return LoginOut(
        message="Login successful",
        token=result.session_token,
        email=result.email,
        first_name=result.first_name,
        last_name=result.last_name,
    )


@router.post(
    "/register",
    response_model=RegisterOut,
    response_model_exclude_none=True,
    status_code=status.HTTP_201_CREATED,
)
def register(
    payload: RegisterIn,
    service: SessionBootstrapService = Depends(get_bootstrap_service),
):
    result = service.register(
        payload.email,
        payload.password,
        payload.first_name,
        payload.last_name,
    )
    if result.requires_email_verification:
        return RegisterOut(
            message=REGISTER_VERIFY_MESSAGE,
            email=result.email,
            requires_email_verification=True,
        )
    return RegisterOut(message=REGISTER_SESSION_MESSAGE, token=result.session_token, email=result.email)


@router.get("/me", response_model=MeOut)
def get_me(
    token: str = Depends(require_bearer_token),
    service: SessionBootstrapService = Depends(get_bootstrap_service),
):
    user = service.get_profile(token)
    return MeOut(user=CanonicalUserOut.model_validate(user))


@router.put("/me", response_model=MeUpdateOut)
def update_me(
    payload: ProfileUpdateIn,
    token: str = Depends(require_bearer_token),
    service: SessionBootstrapService = Depends(get_bootstrap_service),
):
    # Only fields present in the body are applied; explicit "" clears a field.
    patch = payload.model_dump(exclude_unset=True)
    user = service.update_profile(token, patch)
    return MeUpdateOut(user=CanonicalUserOut.model_validate(user), message="Profile updated successfully")
