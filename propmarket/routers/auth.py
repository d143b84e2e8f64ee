from __future__ import annotations

from fastapi import APIRouter, Depends, Response

from ..auth import require_auth
from ..config import settings
from ..db import get_store
from ..schemas import LoginIn, RegisterIn, TokenOut, UserOut
from ..services import accounts
from ..services.auth_service import AuthenticatedUser, issue_token

router = APIRouter(prefix="/auth", tags=["auth"])


def _set_cookie(response: Response, token: str) -> None:
    response.set_cookie(
        settings.jwt_cookie_name,
        token,
        httponly=True,
        secure=bool(settings.jwt_cookie_secure),
        samesite=str(settings.jwt_cookie_samesite),
        max_age=int(settings.jwt_exp_minutes) * 60,
        path="/",
    )


@router.post("/register", response_model=TokenOut, status_code=201)
def register(payload: RegisterIn, response: Response, store=Depends(get_store)):
    """Create a CUSTOMER or PROMOTER account and sign it in."""
    user = accounts.register(
        store,
        email=payload.email,
        password=payload.password,
        full_name=payload.full_name,
        role=payload.role,
        phone_e164=payload.phone_e164,
    )
    token = issue_token(user_id=int(user.id), role=str(user.role), email=str(user.email))
    _set_cookie(response, token)
    return TokenOut(access_token=token, user=UserOut.model_validate(user))


@router.post("/login", response_model=TokenOut)
def login(payload: LoginIn, response: Response, store=Depends(get_store)):
    user, token = accounts.login(store, email=payload.email, password=payload.password)
    _set_cookie(response, token)
    return TokenOut(access_token=token, user=UserOut.model_validate(user))


@router.post("/logout")
def logout(response: Response):
    response.delete_cookie(settings.jwt_cookie_name, path="/")
    return {"ok": True}


@router.get("/me", response_model=UserOut)
def me(user: AuthenticatedUser = Depends(require_auth), store=Depends(get_store)):
    return accounts.current_user(store, user)
