"""Event types (wedding, portrait, ...) and their questionnaire questions."""
from sqlalchemy import Column, Integer, String, Boolean, ForeignKey, Text, JSON
from sqlalchemy.orm import relationship
from app.database import Base


class EventType(Base):
    __tablename__ = "event_types"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=True, index=True)  # null = system-wide
    name = Column(String(100), nullable=False)
    icon = Column(String(50), nullable=False, default="calendar")
    is_system = Column(Boolean, nullable=False, default=False)
    sort_order = Column(Integer, nullable=False, default=0)

    questions = relationship(
        "Question",
        back_populates="event_type",
        order_by="Question.sort_order",
        cascade="all, delete-orphan",
    )


class FieldType:
    text = "text"
    textarea = "textarea"
    number = "number"
    date = "date"
    time = "time"
    select = "select"
    radio = "radio"
    checkbox = "checkbox"

    ALL = (text, textarea, number, date, time, select, radio, checkbox)


class Question(Base):
    __tablename__ = "questionnaire_questions"

    id = Column(Integer, primary_key=True, index=True)
    event_type_id = Column(Integer, ForeignKey("event_types.id", ondelete="CASCADE"), nullable=False, index=True)

    question = Column(String(500), nullable=False)
    field_type = Column(String(20), nullable=False, default=FieldType.text)
    options = Column(JSON, nullable=True)  # list of choices for select/radio/checkbox
    is_required = Column(Boolean, nullable=False, default=False)
    placeholder = Column(String(255), nullable=True)
    help_text = Column(Text, nullable=True)
    sort_order = Column(Integer, nullable=False, default=0)

    # Single-level visibility rule: shown iff responses[condition_field] == condition_value
    condition_field = Column(String(64), nullable=True)
    condition_value = Column(String(255), nullable=True)

    event_type = relationship("EventType", back_populates="questions")

    @property
    def key(self) -> str:
        """Key under which the answer is stored in QuestionnaireResponse.responses."""
        return str(self.id)
