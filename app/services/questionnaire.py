"""Questionnaire engine: event types, questions, conditional visibility and the write-once lock."""
from __future__ import annotations

from typing import Any

from sqlalchemy import or_
from sqlalchemy.orm import Session

from app.config import Settings
from app.database import utcnow
from app.errors import Conflict, Forbidden, NotFound, ValidationError
from app.models.client_link import ClientLink
from app.models.contract_template import ContractTemplate
from app.models.event_type import EventType, FieldType, Question
from app.models.questionnaire import QuestionnaireResponse, QuestionnaireStatus
from app.services import notifications
from app.services.audit_log import AuditAction, RequestContext, create_log
from app.services.lifecycle import ensure_questionnaire_transition
from app.services.outbox import Outbox


# --- Event types ---

def list_event_types(db: Session, user_id: int | None) -> list[EventType]:
    """System types plus the user's own, ordered by sort_order."""
    return (
        db.query(EventType)
        .filter(or_(EventType.user_id.is_(None), EventType.user_id == user_id))
        .order_by(EventType.sort_order.asc(), EventType.is_system.desc(), EventType.name.asc())
        .all()
    )


def get_visible_event_type(db: Session, event_type_id: int, user_id: int) -> EventType:
    et = db.query(EventType).filter(EventType.id == event_type_id).first()
    if not et or (et.user_id is not None and et.user_id != user_id):
        raise NotFound("Event type not found")
    return et


def _get_owned_event_type(db: Session, event_type_id: int, user_id: int) -> EventType:
    et = get_visible_event_type(db, event_type_id, user_id)
    if et.is_system:
        raise Forbidden("System event types cannot be modified")
    return et


def create_event_type(db: Session, user_id: int, name: str, icon: str | None = None, sort_order: int | None = None) -> EventType:
    name = (name or "").strip()
    if not name:
        raise ValidationError("name is required")
    if sort_order is None:
        last = db.query(EventType.sort_order).order_by(EventType.sort_order.desc()).first()
        sort_order = (last[0] if last else 0) + 1
    et = EventType(user_id=user_id, name=name, icon=icon or "calendar", is_system=False, sort_order=sort_order)
    db.add(et)
    db.commit()
    db.refresh(et)
    return et


def update_event_type(db: Session, event_type_id: int, user_id: int, **changes: Any) -> EventType:
    et = _get_owned_event_type(db, event_type_id, user_id)
    for field in ("name", "icon", "sort_order"):
        if changes.get(field) is not None:
            setattr(et, field, changes[field])
    db.commit()
    db.refresh(et)
    return et


def delete_event_type(db: Session, event_type_id: int, user_id: int) -> None:
    """Answers are part of the client record, so a type that has any is kept."""
    et = _get_owned_event_type(db, event_type_id, user_id)
    answered = db.query(QuestionnaireResponse.id).filter(QuestionnaireResponse.event_type_id == et.id).count()
    if answered:
        raise Conflict("This event type has questionnaire answers and cannot be deleted", responses_count=answered)
    db.delete(et)
    db.commit()


def portal_event_types(db: Session, link: ClientLink) -> list[EventType]:
    """Event types offered to the client: the link's pre-selection if any, else all visible ones."""
    if link.template_id:
        template = db.query(ContractTemplate).filter(ContractTemplate.id == link.template_id).first()
        if template and template.event_type_id:
            return db.query(EventType).filter(EventType.id == template.event_type_id).all()
    if link.event_type_id:
        return db.query(EventType).filter(EventType.id == link.event_type_id).all()
    return list_event_types(db, link.user_id)


# --- Questions ---

def list_questions(db: Session, event_type_id: int) -> list[Question]:
    return (
        db.query(Question)
        .filter(Question.event_type_id == event_type_id)
        .order_by(Question.sort_order.asc(), Question.id.asc())
        .all()
    )


def add_question(
    db: Session,
    user_id: int,
    event_type_id: int,
    *,
    question: str,
    field_type: str = FieldType.text,
    options: list[str] | None = None,
    is_required: bool = False,
    placeholder: str | None = None,
    help_text: str | None = None,
    condition_field: str | None = None,
    condition_value: str | None = None,
) -> Question:
    et = _get_owned_event_type(db, event_type_id, user_id)
    if field_type not in FieldType.ALL:
        raise ValidationError(f"Unknown field type: {field_type}")
    if field_type in (FieldType.select, FieldType.radio, FieldType.checkbox) and not options:
        raise ValidationError("options are required for choice questions")
    if (condition_field is None) != (condition_value is None):
        raise ValidationError("condition_field and condition_value go together")
    existing = list_questions(db, et.id)
    if condition_field is not None and condition_field not in {q.key for q in existing}:
        raise ValidationError("condition_field must reference an earlier question of this event type")
    q = Question(
        event_type_id=et.id,
        question=question,
        field_type=field_type,
        options=options,
        is_required=is_required,
        placeholder=placeholder,
        help_text=help_text,
        sort_order=(existing[-1].sort_order + 1) if existing else 1,
        condition_field=condition_field,
        condition_value=condition_value,
    )
    db.add(q)
    db.commit()
    db.refresh(q)
    return q


def is_visible(question: Question, responses: dict[str, Any]) -> bool:
    """Shown iff no condition, or the referenced answer equals condition_value exactly."""
    if not question.condition_field or question.condition_value is None:
        return True
    return responses.get(question.condition_field) == question.condition_value


def _is_blank(value: Any) -> bool:
    if value is None:
        return True
    if isinstance(value, str):
        return value.strip() == ""
    if isinstance(value, (list, tuple, dict)):
        return len(value) == 0
    return False


def missing_required(questions: list[Question], responses: dict[str, Any]) -> list[Question]:
    return [q for q in questions if q.is_required and is_visible(q, responses) and _is_blank(responses.get(q.key))]


# --- Responses ---

def _normalize_responses(responses: Any) -> dict[str, Any]:
    if not isinstance(responses, dict):
        raise ValidationError("responses must be an object")
    return {str(k): v for k, v in responses.items()}


def _find_response(db: Session, link_id: int, event_type_id: int) -> QuestionnaireResponse | None:
    return (
        db.query(QuestionnaireResponse)
        .filter(QuestionnaireResponse.client_link_id == link_id, QuestionnaireResponse.event_type_id == event_type_id)
        .first()
    )


def current_response(db: Session, link_id: int) -> QuestionnaireResponse | None:
    """The link's questionnaire: the latest validated one if any, else the most recently touched draft."""
    validated = (
        db.query(QuestionnaireResponse)
        .filter(
            QuestionnaireResponse.client_link_id == link_id,
            QuestionnaireResponse.status == QuestionnaireStatus.validated,
        )
        .order_by(QuestionnaireResponse.validated_at.desc(), QuestionnaireResponse.id.desc())
        .first()
    )
    if validated:
        return validated
    rows = db.query(QuestionnaireResponse).filter(QuestionnaireResponse.client_link_id == link_id).all()
    if not rows:
        return None
    return max(rows, key=lambda r: ((r.updated_at or r.created_at) is not None, r.updated_at or r.created_at, r.id))


def _offered_event_type(db: Session, link: ClientLink, event_type_id: int) -> EventType:
    for et in portal_event_types(db, link):
        if et.id == event_type_id:
            return et
    raise NotFound("Event type not found")


def get_questionnaire(db: Session, link: ClientLink, event_type_id: int, context: RequestContext | None = None) -> dict[str, Any]:
    et = _offered_event_type(db, link, event_type_id)
    existing = _find_response(db, link.id, et.id)
    create_log(
        db,
        AuditAction.questionnaire_viewed,
        client_link_id=link.id,
        entity_type="questionnaire",
        entity_id=et.id,
        context=context,
    )
    db.commit()
    return {
        "event_type": et,
        "questions": list_questions(db, et.id),
        "saved_responses": dict(existing.responses or {}) if existing else {},
        "status": existing.status.value if existing else "new",
        "is_locked": bool(existing and existing.status == QuestionnaireStatus.validated),
    }


def save_draft(
    db: Session, link: ClientLink, event_type_id: int, responses: Any, context: RequestContext | None = None
) -> QuestionnaireResponse:
    et = _offered_event_type(db, link, event_type_id)
    responses = _normalize_responses(responses)
    existing = _find_response(db, link.id, et.id)
    ensure_questionnaire_transition(existing.status if existing else None, QuestionnaireStatus.draft)

    if existing:
        existing.responses = responses
        row = existing
    else:
        row = QuestionnaireResponse(
            client_link_id=link.id, event_type_id=et.id, responses=responses, status=QuestionnaireStatus.draft
        )
        db.add(row)
        db.flush()
    create_log(
        db,
        AuditAction.questionnaire_saved,
        client_link_id=link.id,
        entity_type="questionnaire",
        entity_id=et.id,
        context=context,
    )
    db.commit()
    db.refresh(row)
    return row


def validate(
    db: Session,
    settings: Settings,
    outbox: Outbox,
    link: ClientLink,
    event_type_id: int,
    responses: Any,
    context: RequestContext | None = None,
) -> QuestionnaireResponse:
    """Final save and lock. Re-validating is rejected so the trail holds exactly one validation."""
    et = _offered_event_type(db, link, event_type_id)
    responses = _normalize_responses(responses)
    existing = _find_response(db, link.id, et.id)
    ensure_questionnaire_transition(existing.status if existing else None, QuestionnaireStatus.validated)

    missing = missing_required(list_questions(db, et.id), responses)
    if missing:
        raise ValidationError(
            "Please fill in all required fields",
            missing_fields=[q.question for q in missing],
        )

    row = existing or QuestionnaireResponse(client_link_id=link.id, event_type_id=et.id)
    row.responses = responses
    row.status = QuestionnaireStatus.validated
    row.validated_at = utcnow()
    if existing is None:
        db.add(row)
    db.flush()
    create_log(
        db,
        AuditAction.questionnaire_validated,
        client_link_id=link.id,
        entity_type="questionnaire",
        entity_id=et.id,
        context=context,
        meta={"response_id": row.id},
    )
    db.commit()
    db.refresh(row)

    photographer = link.user
    if photographer and photographer.email:
        outbox.add(
            "questionnaire_validated_email",
            notifications.send_questionnaire_validated,
            settings,
            photographer.email,
            link.client.name if link.client else "",
            et.name,
            notifications.dashboard_url(settings, link.id),
        )
    return row
