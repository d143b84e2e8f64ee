from __future__ import annotations

import base64
import hashlib
import hmac
import os
import secrets
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Any, Optional

import jwt  # PyJWT

from ..config import settings
from ..domain.errors import Unauthorized
from ..domain.roles import normalize_role

JWT_ALGORITHM = "HS256"


@dataclass(frozen=True)
class AuthenticatedUser:
    user_id: int
    role: str  # CUSTOMER | PROMOTER | ADMIN
    email: str | None = None


def _now() -> datetime:
    return datetime.now(timezone.utc)


def hash_password(password: str) -> str:
    salt = secrets.token_bytes(16)
    iters = int(os.getenv("AUTH_PBKDF2_ITERS", "210000"))
    dk = hashlib.pbkdf2_hmac("sha256", password.encode("utf-8"), salt, iters)
    return f"pbkdf2_sha256${iters}${base64.b64encode(salt).decode()}${base64.b64encode(dk).decode()}"


def verify_password(password: str, stored: Optional[str]) -> bool:
    if not stored:
        return False
    try:
        algo, iters_s, salt_b64, dk_b64 = stored.split("$", 3)
        if algo != "pbkdf2_sha256":
            return False
        iters = int(iters_s)
        salt = base64.b64decode(salt_b64.encode())
        dk = base64.b64decode(dk_b64.encode())
    except ValueError:
        return False
    test = hashlib.pbkdf2_hmac("sha256", password.encode("utf-8"), salt, iters)
    return hmac.compare_digest(test, dk)


def issue_token(*, user_id: int, role: str, email: str | None = None, minutes: int | None = None) -> str:
    now = _now()
    ttl = int(minutes if minutes is not None else settings.jwt_exp_minutes)
    payload: dict[str, Any] = {
        "sub": str(int(user_id)),
        "role": str(role),
        "iat": int(now.timestamp()),
        "exp": int((now + timedelta(minutes=ttl)).timestamp()),
    }
    if email:
        payload["email"] = str(email)
    return jwt.encode(payload, settings.jwt_secret, algorithm=JWT_ALGORITHM)


def verify_token(token: str) -> AuthenticatedUser:
    """
    Signature + expiry check against the server secret.

    Expired -> Unauthorized("Unauthorized: expired").
    Anything else wrong (malformed, bad signature, missing sub, unknown role) ->
    Unauthorized("Unauthorized: invalid").
    """
    if not token:
        raise Unauthorized("Unauthorized: missing")
    try:
        claims = jwt.decode(
            token,
            settings.jwt_secret,
            algorithms=[JWT_ALGORITHM],
            options={"require": ["sub", "exp"]},
        )
    except jwt.ExpiredSignatureError:
        raise Unauthorized("Unauthorized: expired")
    except jwt.PyJWTError:
        raise Unauthorized("Unauthorized: invalid")

    try:
        user_id = int(str(claims.get("sub") or ""))
    except ValueError:
        raise Unauthorized("Unauthorized: invalid")

    role = normalize_role(claims.get("role"))
    if role is None:
        raise Unauthorized("Unauthorized: invalid")

    email = claims.get("email")
    return AuthenticatedUser(user_id=user_id, role=role, email=str(email) if email else None)
