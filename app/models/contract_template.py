"""Contract templates and tenant-scoped substitution variables."""
from sqlalchemy import Column, Integer, String, Text, Boolean, ForeignKey, DateTime, UniqueConstraint
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from app.database import Base


class ContractTemplate(Base):
    __tablename__ = "contract_templates"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=True, index=True)  # null = system
    event_type_id = Column(Integer, ForeignKey("event_types.id", ondelete="SET NULL"), nullable=True)

    name = Column(String(255), nullable=False)
    content = Column(Text, nullable=False)  # HTML with {{placeholders}}

    # System rows are shared seed data: never updated in place
    is_system = Column(Boolean, nullable=False, default=False)
    is_default = Column(Boolean, nullable=False, default=False)

    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())

    event_type = relationship("EventType")


class CustomVariable(Base):
    __tablename__ = "contract_custom_variables"
    __table_args__ = (UniqueConstraint("user_id", "var_key", name="uq_custom_variables_user_key"),)

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)

    var_key = Column(String(100), nullable=False)
    label = Column(String(255), nullable=False)
    default_value = Column(Text, nullable=False, default="")
    category = Column(String(50), nullable=False, default="general")
    sort_order = Column(Integer, nullable=False, default=0)
