"""Event types and their questionnaire questions (photographer side)."""
from fastapi import APIRouter, Depends, Response
from sqlalchemy.orm import Session

from app.database import get_db
from app.dependencies import get_current_user
from app.models.user import User
from app.schemas.questionnaire import EventTypeCreate, EventTypeResponse, EventTypeUpdate, QuestionCreate, QuestionResponse
from app.services import questionnaire

router = APIRouter(prefix="/espace-client/event-types", tags=["event-types"])


@router.get("", response_model=list[EventTypeResponse])
def list_event_types(db: Session = Depends(get_db), current_user: User = Depends(get_current_user)):
    return questionnaire.list_event_types(db, current_user.id)


@router.post("", response_model=EventTypeResponse, status_code=201)
def create_event_type(data: EventTypeCreate, db: Session = Depends(get_db), current_user: User = Depends(get_current_user)):
    return questionnaire.create_event_type(db, current_user.id, data.name, data.icon, data.sort_order)


@router.put("/{event_type_id}", response_model=EventTypeResponse)
def update_event_type(
    event_type_id: int,
    data: EventTypeUpdate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    return questionnaire.update_event_type(db, event_type_id, current_user.id, **data.model_dump(exclude_unset=True))


@router.delete("/{event_type_id}", status_code=204)
def delete_event_type(event_type_id: int, db: Session = Depends(get_db), current_user: User = Depends(get_current_user)):
    questionnaire.delete_event_type(db, event_type_id, current_user.id)
    return Response(status_code=204)


@router.get("/{event_type_id}/questions", response_model=list[QuestionResponse])
def list_questions(event_type_id: int, db: Session = Depends(get_db), current_user: User = Depends(get_current_user)):
    et = questionnaire.get_visible_event_type(db, event_type_id, current_user.id)
    return questionnaire.list_questions(db, et.id)


@router.post("/{event_type_id}/questions", response_model=QuestionResponse, status_code=201)
def add_question(
    event_type_id: int,
    data: QuestionCreate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    return questionnaire.add_question(db, current_user.id, event_type_id, **data.model_dump())
