# src/bulk_stage/api/v1/endpoints/auth.py
"""Registration and login endpoints."""

from __future__ import annotations

from fastapi import APIRouter, HTTPException, status

from bulk_stage.api.v1.dependencies import SessionDep
from bulk_stage.core.security import create_access_token
from bulk_stage.schemas.account import (
    AccountRegister,
    AccountResponse,
    LoginRequest,
    TokenResponse,
)
from bulk_stage.services import accounts

router = APIRouter(prefix="/auth", tags=["auth"])


def _token_for(account) -> TokenResponse:
    return TokenResponse(
        access_token=create_access_token(account.id),
        account=AccountResponse.model_validate(account),
    )


@router.post("/register", response_model=TokenResponse, status_code=status.HTTP_201_CREATED)
async def register(payload: AccountRegister, db: SessionDep) -> TokenResponse:
    """Create an account and return an access token for it."""
    account = accounts.register_account(db, payload)
    return _token_for(account)


@router.post("/login", response_model=TokenResponse)
async def login(payload: LoginRequest, db: SessionDep) -> TokenResponse:
    """Exchange email or handle plus password for an access token."""
    account = accounts.authenticate(db, payload.identifier, payload.password)
    if account is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid credentials",
        )
    return _token_for(account)
