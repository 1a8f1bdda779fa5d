"""Append-only audit log service. No update API; the retention cleanup is the only delete."""
from __future__ import annotations

import enum
import logging
from dataclasses import dataclass
from datetime import date, datetime, timedelta
from typing import Any

from sqlalchemy.orm import Session

from app.database import SessionLocal, utcnow
from app.models.audit_log import AuditLog

logger = logging.getLogger(__name__)


class AuditAction(str, enum.Enum):
    link_created = "link_created"
    link_accessed = "link_accessed"
    link_revoked = "link_revoked"
    questionnaire_viewed = "questionnaire_viewed"
    questionnaire_saved = "questionnaire_saved"
    questionnaire_validated = "questionnaire_validated"
    contract_generated = "contract_generated"
    contract_edited = "contract_edited"
    contract_validated = "contract_validated"
    contract_viewed = "contract_viewed"
    contract_signed = "contract_signed"
    pdf_generated = "pdf_generated"
    pdf_downloaded = "pdf_downloaded"
    gallery_viewed = "gallery_viewed"
    gallery_visibility_changed = "gallery_visibility_changed"
    data_exported = "data_exported"


@dataclass(frozen=True)
class RequestContext:
    """Who is calling, for the legal weight of audit rows."""
    ip_address: str | None = None
    user_agent: str | None = None


# Column limits (match model)
_IP_LEN = 64
_USER_AGENT_LEN = 500
_ENTITY_TYPE_LEN = 32
_ENTITY_ID_LEN = 64


def _sanitize_meta_value(v: Any) -> Any:
    """Convert to JSON-serializable value so meta never raises on INSERT."""
    if v is None:
        return None
    if isinstance(v, (str, int, float, bool)):
        return v
    if isinstance(v, (datetime, date)):
        return v.isoformat()
    if isinstance(v, enum.Enum):
        return getattr(v, "value", str(v))
    if isinstance(v, dict):
        return {str(k): _sanitize_meta_value(x) for k, x in v.items()}
    if isinstance(v, (list, tuple, set)):
        return [_sanitize_meta_value(x) for x in v]
    return str(v)


def _sanitize_meta(meta: dict[str, Any] | None) -> dict[str, Any] | None:
    if meta is None:
        return None
    return {str(k): _sanitize_meta_value(v) for k, v in meta.items()}


def create_log(
    db: Session,
    action: AuditAction,
    *,
    client_link_id: int | None = None,
    user_id: int | None = None,
    entity_type: str | None = None,
    entity_id: int | str | None = None,
    context: RequestContext | None = None,
    meta: dict[str, Any] | None = None,
) -> AuditLog:
    """Append one audit record. String fields are truncated to column limits; meta is sanitized for JSON."""
    context = context or RequestContext()
    entry = AuditLog(
        action=AuditAction(action).value,
        client_link_id=client_link_id,
        user_id=user_id,
        entity_type=entity_type[:_ENTITY_TYPE_LEN] if entity_type else None,
        entity_id=str(entity_id)[:_ENTITY_ID_LEN] if entity_id is not None else None,
        ip_address=context.ip_address[:_IP_LEN] if context.ip_address else None,
        user_agent=str(context.user_agent)[:_USER_AGENT_LEN] if context.user_agent else None,
        meta=_sanitize_meta(meta),
    )
    db.add(entry)
    db.flush()  # get entry.id if caller needs it; commit remains with caller
    return entry


def list_for_link(db: Session, client_link_id: int) -> list[AuditLog]:
    return (
        db.query(AuditLog)
        .filter(AuditLog.client_link_id == client_link_id)
        .order_by(AuditLog.created_at.desc(), AuditLog.id.desc())
        .all()
    )


def list_for_user(db: Session, user_id: int, limit: int = 100) -> list[AuditLog]:
    return (
        db.query(AuditLog)
        .filter(AuditLog.user_id == user_id)
        .order_by(AuditLog.created_at.desc(), AuditLog.id.desc())
        .limit(limit)
        .all()
    )


def list_for_entity(db: Session, entity_type: str, entity_id: int | str) -> list[AuditLog]:
    return (
        db.query(AuditLog)
        .filter(AuditLog.entity_type == entity_type, AuditLog.entity_id == str(entity_id))
        .order_by(AuditLog.created_at.desc(), AuditLog.id.desc())
        .all()
    )


def serialize(entry: AuditLog) -> dict[str, Any]:
    return {
        "id": entry.id,
        "client_link_id": entry.client_link_id,
        "user_id": entry.user_id,
        "action": entry.action,
        "entity_type": entry.entity_type,
        "entity_id": entry.entity_id,
        "ip_address": entry.ip_address,
        "user_agent": entry.user_agent,
        "metadata": entry.meta,
        "created_at": entry.created_at.isoformat() if entry.created_at else None,
    }


def export_for_client(
    db: Session, client_link_id: int, context: RequestContext | None = None
) -> dict[str, Any]:
    """GDPR export of a link's trail. The export itself is audited, after the rows are read."""
    logs = list_for_link(db, client_link_id)
    create_log(
        db,
        AuditAction.data_exported,
        client_link_id=client_link_id,
        context=context,
        meta={"logs_count": len(logs)},
    )
    db.commit()
    return {
        "client_link_id": client_link_id,
        "exported_at": utcnow().isoformat(),
        "logs": [serialize(e) for e in logs],
    }


def clean_old_logs(db: Session, older_than_years: int = 5) -> int:
    """Data-minimization cleanup: delete rows older than the cutoff. Returns deleted count."""
    if older_than_years < 1:
        raise ValueError("older_than_years must be at least 1")
    cutoff = utcnow() - timedelta(days=365 * older_than_years)
    deleted = db.query(AuditLog).filter(AuditLog.created_at < cutoff).delete(synchronize_session=False)
    db.commit()
    return deleted


def run_audit_cleanup_job(older_than_years: int) -> None:
    """Scheduled entry point (APScheduler); owns its session."""
    db: Session = SessionLocal()
    try:
        deleted = clean_old_logs(db, older_than_years)
        if deleted:
            logger.info("Audit cleanup: deleted %d log(s) older than %d year(s).", deleted, older_than_years)
    finally:
        db.close()
