# Overview: Best-effort audit trail written after the primary change commits.

from __future__ import annotations

from flask import current_app, has_request_context, request
from sqlalchemy.exc import SQLAlchemyError

from ..extensions import db
from ..models import AuditLog


SYSTEM_ORIGIN = "system"


def _request_origin() -> str:
    if has_request_context():
        return request.remote_addr or SYSTEM_ORIGIN
    return SYSTEM_ORIGIN


def record_audit(
    *,
    actor_user_id: int | None,
    action: str,
    entity_type: str,
    entity_id: int | None,
    detail: str | None = None,
    origin: str | None = None,
) -> AuditLog | None:
    """
    Write one AuditLog row in its own commit.

    Must run after the audited change has committed: a failure here is
    logged and swallowed, never propagated.
    """
    entry = AuditLog(
        actor_user_id=actor_user_id,
        action=action,
        entity_type=entity_type,
        entity_id=entity_id,
        detail=detail,
        origin=origin or _request_origin(),
    )
    try:
        db.session.add(entry)
        db.session.commit()
    except SQLAlchemyError:
        db.session.rollback()
        current_app.logger.exception(
            "Failed to record audit entry %s for %s %s", action, entity_type, entity_id
        )
        return None
    return entry


def list_audit_entries(
    *,
    entity_type: str | None = None,
    entity_id: int | None = None,
    limit: int = 200,
) -> list[AuditLog]:
    q = db.session.query(AuditLog)
    if entity_type:
        q = q.filter(AuditLog.entity_type == entity_type)
    if entity_id is not None:
        q = q.filter(AuditLog.entity_id == entity_id)
    return q.order_by(AuditLog.occurred_at.desc(), AuditLog.id.desc()).limit(limit).all()
