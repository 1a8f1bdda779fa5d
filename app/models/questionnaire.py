"""Client answers to an event type's questionnaire."""
import enum

from sqlalchemy import Column, Integer, ForeignKey, DateTime, JSON, Enum as SQLEnum, UniqueConstraint
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from app.database import Base


class QuestionnaireStatus(str, enum.Enum):
    draft = "draft"
    validated = "validated"


# validated is terminal (write-once lock)
QUESTIONNAIRE_TRANSITIONS = {
    None: {QuestionnaireStatus.draft, QuestionnaireStatus.validated},
    QuestionnaireStatus.draft: {QuestionnaireStatus.draft, QuestionnaireStatus.validated},
    QuestionnaireStatus.validated: set(),
}


class QuestionnaireResponse(Base):
    __tablename__ = "questionnaire_responses"
    __table_args__ = (UniqueConstraint("client_link_id", "event_type_id", name="uq_responses_link_event_type"),)

    id = Column(Integer, primary_key=True, index=True)
    client_link_id = Column(Integer, ForeignKey("client_links.id", ondelete="CASCADE"), nullable=False, index=True)
    event_type_id = Column(Integer, ForeignKey("event_types.id", ondelete="RESTRICT"), nullable=False)

    responses = Column(JSON, nullable=False, default=dict)
    status = Column(SQLEnum(QuestionnaireStatus, name="questionnaire_status"), nullable=False, default=QuestionnaireStatus.draft)
    validated_at = Column(DateTime(timezone=True), nullable=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())

    event_type = relationship("EventType")
    client_link = relationship("ClientLink", backref="questionnaire_responses")
