from __future__ import annotations

from typing import Callable, Optional

from fastapi import Depends, Header, Request

from .config import settings
from .domain.errors import Forbidden, MarketError, Unauthorized
from .domain.roles import ADMIN, PROMOTER
from .services.auth_service import AuthenticatedUser, verify_token


def _token_from_request(request: Request, authorization: Optional[str]) -> Optional[str]:
    # Bearer header wins over the cookie. No other source of identity is consulted.
    if authorization and str(authorization).lower().startswith("bearer "):
        token = str(authorization).split(" ", 1)[1].strip()
        if token:
            return token
    if settings.jwt_cookie_name:
        token = request.cookies.get(settings.jwt_cookie_name)
        if token:
            return token
    return None


def require_auth(
    request: Request,
    authorization: Optional[str] = Header(default=None, alias="Authorization"),
) -> AuthenticatedUser:
    token = _token_from_request(request, authorization)
    if not token:
        raise Unauthorized("Unauthorized: missing")
    user = verify_token(token)
    # read back by the access log line
    request.state.user_id = user.user_id
    request.state.role = user.role
    return user


def optional_auth(
    request: Request,
    authorization: Optional[str] = Header(default=None, alias="Authorization"),
) -> Optional[AuthenticatedUser]:
    """Anonymous on any failure; for endpoints that only change what they reveal."""
    token = _token_from_request(request, authorization)
    if not token:
        return None
    try:
        return verify_token(token)
    except MarketError:
        return None


def require_role(role: str) -> Callable[..., AuthenticatedUser]:
    def _dep(user: AuthenticatedUser = Depends(require_auth)) -> AuthenticatedUser:
        if user.role != role:
            raise Forbidden(f"Requires role {role}")
        return user

    return _dep


require_admin = require_role(ADMIN)
require_promoter = require_role(PROMOTER)
