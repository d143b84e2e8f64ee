from __future__ import annotations

import json
from datetime import datetime
from typing import Any, Optional

from ..models import ActivityLog

APPROVE_LISTING = "APPROVE_LISTING"
REJECT_LISTING = "REJECT_LISTING"
UNLOCK_CONTACT = "UNLOCK_CONTACT"
PAYMENT_VERIFIED = "PAYMENT_VERIFIED"
PAYMENT_FAILED = "PAYMENT_FAILED"


def _dumps(v: Optional[dict[str, Any]]) -> Optional[str]:
    if v is None:
        return None
    return json.dumps(v, sort_keys=True, default=str)


def activity_write(
    store,
    *,
    actor_user_id: Optional[int],
    action: str,
    entity_type: str,
    entity_id: Any,
    details: Optional[dict[str, Any]] = None,
) -> ActivityLog:
    """
    Record one activity row.

    Does NOT commit: the row lands in the same transaction as the write it describes.
    """
    row = ActivityLog(
        actor_user_id=actor_user_id,
        action=action,
        entity_type=entity_type,
        entity_id=str(entity_id),
        details_json=_dumps(details),
        created_at=datetime.utcnow(),
    )
    return store.activity.add(row)


def activity_details(row: ActivityLog) -> dict[str, Any]:
    if not row.details_json:
        return {}
    try:
        v = json.loads(row.details_json)
    except json.JSONDecodeError:
        return {}
    return v if isinstance(v, dict) else {}
