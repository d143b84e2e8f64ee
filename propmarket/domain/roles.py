from __future__ import annotations

CUSTOMER = "CUSTOMER"
PROMOTER = "PROMOTER"
ADMIN = "ADMIN"

ROLES = (CUSTOMER, PROMOTER, ADMIN)

# Roles a caller may pick for themselves at registration. Admins are provisioned out of band.
SELF_SERVICE_ROLES = (CUSTOMER, PROMOTER)


def normalize_role(raw: object) -> str | None:
    s = str(raw or "").strip().upper()
    return s if s in ROLES else None
