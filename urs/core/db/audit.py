from __future__ import annotations

from typing import Any

from sqlalchemy import select
from sqlalchemy.orm import Session

from urs.core.context import get_run_id
from urs.core.db.models import MigrationAuditEvent
from urs.shared.utils import json_safe


def write_audit_event(
    db: Session,
    *,
    step: str,
    action: str,
    summary: dict[str, Any] | None,
    actor_id: str,
    run_id: str | None = None,
) -> MigrationAuditEvent:
    run_id = run_id or get_run_id() or "unknown"

    event = MigrationAuditEvent(
        run_id=run_id,
        actor_id=actor_id,
        action=action,
        step=step,
        summary=json_safe(summary),
        created_by=actor_id,
        updated_by=actor_id,
    )
    db.add(event)
    db.flush()
    return event


def get_audit_log(
    db: Session,
    *,
    step: str | None = None,
    run_id: str | None = None,
    limit: int = 200,
) -> list[MigrationAuditEvent]:
    stmt = select(MigrationAuditEvent)
    if step:
        stmt = stmt.where(MigrationAuditEvent.step == step)
    if run_id:
        stmt = stmt.where(MigrationAuditEvent.run_id == run_id)
    stmt = stmt.order_by(MigrationAuditEvent.created_at.asc()).limit(limit)
    return list(db.execute(stmt).scalars().all())
