from __future__ import annotations

from typing import Optional, Sequence


class MarketError(Exception):
    """
    Base for every typed outcome the core reports to callers.

    Routers do not catch these; the handler registered in main.create_app()
    renders them as {"error": code, "detail": message}.
    """

    code = "error"
    status_code = 500

    def __init__(self, message: Optional[str] = None) -> None:
        self.message = message or self.code
        super().__init__(self.message)

    def as_dict(self) -> dict:
        return {"error": self.code, "detail": self.message}


class Unauthorized(MarketError):
    code = "Unauthorized"
    status_code = 401


class Forbidden(MarketError):
    code = "Forbidden"
    status_code = 403


class NotFound(MarketError):
    code = "NotFound"
    status_code = 404


class InvalidInput(MarketError):
    code = "InvalidInput"
    status_code = 400

    def __init__(self, fields: Sequence[str], message: Optional[str] = None) -> None:
        self.fields = list(fields)
        super().__init__(message or f"Invalid or missing fields: {', '.join(self.fields)}")

    def as_dict(self) -> dict:
        out = super().as_dict()
        out["fields"] = self.fields
        return out


class InvalidState(MarketError):
    code = "InvalidState"
    status_code = 409


class Conflict(MarketError):
    code = "Conflict"
    status_code = 409


class InvalidSignature(MarketError):
    code = "InvalidSignature"
    status_code = 400


class Unavailable(MarketError):
    code = "Unavailable"
    status_code = 503
