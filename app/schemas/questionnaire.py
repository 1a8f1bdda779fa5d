"""Event type, question and questionnaire response schemas."""
from datetime import datetime
from typing import Any

from pydantic import BaseModel

from app.models.questionnaire import QuestionnaireStatus


class EventTypeCreate(BaseModel):
    name: str
    icon: str | None = None
    sort_order: int | None = None


class EventTypeUpdate(BaseModel):
    name: str | None = None
    icon: str | None = None
    sort_order: int | None = None


class EventTypeResponse(BaseModel):
    id: int
    user_id: int | None = None
    name: str
    icon: str
    is_system: bool
    sort_order: int

    class Config:
        from_attributes = True


class QuestionCreate(BaseModel):
    question: str
    field_type: str = "text"
    options: list[str] | None = None
    is_required: bool = False
    placeholder: str | None = None
    help_text: str | None = None
    condition_field: str | None = None
    condition_value: str | None = None


class QuestionResponse(BaseModel):
    id: int
    key: str
    event_type_id: int
    question: str
    field_type: str
    options: list[str] | None = None
    is_required: bool
    placeholder: str | None = None
    help_text: str | None = None
    sort_order: int
    condition_field: str | None = None
    condition_value: str | None = None

    class Config:
        from_attributes = True


class ResponsesBody(BaseModel):
    """Answers keyed by question key (the question id as a string)."""
    responses: dict[str, Any]


class QuestionnaireView(BaseModel):
    event_type: EventTypeResponse
    questions: list[QuestionResponse]
    saved_responses: dict[str, Any]
    status: str
    is_locked: bool


class QuestionnaireResponseOut(BaseModel):
    id: int
    client_link_id: int
    event_type_id: int
    responses: dict[str, Any]
    status: QuestionnaireStatus
    validated_at: datetime | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None

    class Config:
        from_attributes = True
