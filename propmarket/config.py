from __future__ import annotations

import math
from typing import Any

from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

DEFAULT_UNLOCK_FEE_INR = 99
MIN_JWT_SECRET_BYTES = 32


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    # ---- App ----
    app_env: str = "local"  # local|dev|prod
    database_url: str = "sqlite:///./propmarket.db"

    # ---- CORS (used by main.py) ----
    cors_allow_origins: list[str] | str = ["*"]

    # ---- JWT ----
    jwt_secret: str = ""
    jwt_exp_minutes: int = 60 * 24 * 7  # 7 days
    jwt_cookie_name: str = "propmarket_token"
    jwt_cookie_secure: int = 0
    jwt_cookie_samesite: str = "lax"

    # ---- Contact unlock ----
    free_unlock_enabled: bool = True
    unlock_fee_inr: int = DEFAULT_UNLOCK_FEE_INR
    unlock_currency: str = "INR"

    # ---- Razorpay ----
    razorpay_key_id: str | None = None
    razorpay_key_secret: str | None = None
    razorpay_base_url: str = "https://api.razorpay.com/v1"
    razorpay_timeout_seconds: float = 20.0

    # ---- Search ----
    search_limit: int = 100

    @field_validator("unlock_fee_inr", mode="before")
    @classmethod
    def _coerce_unlock_fee(cls, v: Any) -> int:
        # Misconfigured fee falls back to the default rather than blocking startup.
        try:
            fee = float(v)
        except (TypeError, ValueError):
            return DEFAULT_UNLOCK_FEE_INR
        if not math.isfinite(fee) or fee <= 0:
            return DEFAULT_UNLOCK_FEE_INR
        return int(fee) or DEFAULT_UNLOCK_FEE_INR

    def model_post_init(self, __context) -> None:
        secret = (self.jwt_secret or "").strip()
        if not secret:
            raise ValueError("SECURITY: JWT_SECRET is required (minimum 32 bytes)")
        if len(secret.encode("utf-8")) < MIN_JWT_SECRET_BYTES:
            raise ValueError(
                f"SECURITY: JWT_SECRET must be at least {MIN_JWT_SECRET_BYTES} bytes "
                f"(got {len(secret.encode('utf-8'))})"
            )

        env = (self.app_env or "local").strip().lower()
        if env in ("prod", "production"):
            origins = self.cors_allow_origins
            if origins == "*" or origins == ["*"] or (isinstance(origins, str) and "*" in origins):
                raise ValueError("SECURITY: cors_allow_origins wildcard is not allowed in prod")

    def payments_enabled(self) -> bool:
        return bool(self.razorpay_key_id and self.razorpay_key_secret)

    def unlock_fee_minor_units(self) -> int:
        return int(self.unlock_fee_inr) * 100


settings = Settings()
