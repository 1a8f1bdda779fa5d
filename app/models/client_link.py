"""Opaque-token link giving one client anonymous access to the portal."""
from sqlalchemy import Column, Integer, String, Boolean, ForeignKey, DateTime
from sqlalchemy.orm import relationship
from app.database import Base, utcnow


class ClientLink(Base):
    __tablename__ = "client_links"

    id = Column(Integer, primary_key=True, index=True)
    client_id = Column(Integer, ForeignKey("clients.id", ondelete="CASCADE"), nullable=False, index=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)

    # Pre-selection made by the photographer when issuing the link
    event_type_id = Column(Integer, ForeignKey("event_types.id", ondelete="SET NULL"), nullable=True)
    template_id = Column(Integer, ForeignKey("contract_templates.id", ondelete="SET NULL"), nullable=True)

    # Not a JWT: carries no claims and is looked up on every request
    token = Column(String(128), unique=True, nullable=False, index=True)
    expires_at = Column(DateTime(timezone=True), nullable=True)  # null = never expires
    is_revoked = Column(Boolean, nullable=False, default=False)  # permanent once set

    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)
    last_accessed_at = Column(DateTime(timezone=True), nullable=True)

    client = relationship("Client")
    user = relationship("User")
