"""Append-only audit log: legal proof of signature and GDPR export trail.
No updates; the only delete is the retention cleanup in app.services.audit_log."""
from sqlalchemy import Column, Integer, String, DateTime, ForeignKey, JSON
from sqlalchemy.dialects.postgresql import JSONB
from app.database import Base, utcnow


class AuditLog(Base):
    __tablename__ = "audit_logs"

    id = Column(Integer, primary_key=True, index=True)

    # ON DELETE SET NULL so link/user deletion keeps the trail
    client_link_id = Column(Integer, ForeignKey("client_links.id", ondelete="SET NULL"), nullable=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="SET NULL"), nullable=True, index=True)

    action = Column(String(64), nullable=False, index=True)
    entity_type = Column(String(32), nullable=True)
    entity_id = Column(String(64), nullable=True)

    # Request context for legal weight
    ip_address = Column(String(64), nullable=True)
    user_agent = Column(String(500), nullable=True)

    meta = Column("metadata", JSON().with_variant(JSONB, "postgresql"), nullable=True)

    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False, index=True)
