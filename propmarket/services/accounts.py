from __future__ import annotations

import re
from datetime import datetime
from typing import Any, Optional

from ..domain.errors import Forbidden, InvalidInput, NotFound, Unauthorized
from ..domain.roles import SELF_SERVICE_ROLES, normalize_role
from ..models import User
from .auth_service import AuthenticatedUser, hash_password, issue_token, verify_password

MIN_PASSWORD_LEN = 6
_E164_RE = re.compile(r"^\+?[1-9]\d{1,14}$")


def is_e164(phone: str) -> bool:
    return bool(_E164_RE.match(phone))


def _now() -> datetime:
    return datetime.utcnow()


def _clean(v: Any) -> str:
    return str(v or "").strip()


def normalize_phone(raw: Any) -> Optional[str]:
    s = re.sub(r"[\s\-()]", "", _clean(raw))
    return s or None


def register(
    store,
    *,
    email: Any,
    password: Any,
    full_name: Any = None,
    role: Any = "CUSTOMER",
    phone_e164: Any = None,
) -> User:
    """
    Self-service sign up. Only CUSTOMER and PROMOTER can be chosen here.
    Every bad field is reported at once; a taken email raises Conflict.
    """
    email_s = _clean(email).lower()
    password_s = str(password or "")
    role_s = normalize_role(role or "CUSTOMER")
    phone = normalize_phone(phone_e164)

    violations: list[str] = []
    if not email_s or "@" not in email_s:
        violations.append("email")
    if len(password_s) < MIN_PASSWORD_LEN:
        violations.append("password")
    if role_s not in SELF_SERVICE_ROLES:
        violations.append("role")
    if phone is not None and not is_e164(phone):
        violations.append("phone_e164")
    if violations:
        raise InvalidInput(violations)

    user = User(
        email=email_s,
        password_hash=hash_password(password_s),
        role=role_s,
        is_verified=False,
        phone_e164=phone,
        full_name=_clean(full_name) or email_s.split("@")[0],
        created_at=_now(),
    )
    store.users.add(user)
    store.commit()
    return user


def login(store, *, email: Any, password: Any) -> tuple[User, str]:
    email_s = _clean(email).lower()
    user = store.users.get_by_email(email_s) if email_s else None
    if user is None or not verify_password(str(password or ""), user.password_hash):
        raise Unauthorized("Invalid email or password")

    user.last_login_at = _now()
    store.users.save(user)
    store.commit()

    token = issue_token(user_id=int(user.id), role=str(user.role), email=str(user.email))
    return user, token


def get_user(store, user_id: int) -> User:
    user = store.users.get(int(user_id))
    if user is None:
        raise NotFound("User not found")
    return user


def current_user(store, caller: AuthenticatedUser) -> User:
    user = store.users.get(int(caller.user_id))
    if user is None:
        # token outlived its account
        raise Unauthorized("Unauthorized: invalid")
    if user.role != caller.role:
        raise Forbidden("Role changed; sign in again")
    return user


def list_users(store, *, limit: int = 200) -> list[User]:
    return store.users.list_all(limit=limit)
