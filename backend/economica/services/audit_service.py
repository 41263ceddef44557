# Overview: Append-only audit log writes.

from __future__ import annotations

from typing import Any, Optional

from ..extensions import db
from ..models import AuditLog
from economica.time_utils import utcnow

"""
Audit log invariants

- Append-only: no updates, no deletes.
- Entries are added to the caller's session and committed together with the
  action they describe, so a rolled-back checkout leaves no audit row.
"""


def log_action(
    *,
    user_id: int | None,
    action: str,
    table_name: str | None = None,
    record_id: int | None = None,
    details: Optional[dict[str, Any]] = None,
) -> AuditLog:
    entry = AuditLog(
        user_id=user_id,
        action=action,
        table_name=table_name,
        record_id=record_id,
        details=details or {},
        created_at=utcnow(),
    )
    db.session.add(entry)
    db.session.flush()
    return entry
