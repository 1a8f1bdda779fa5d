"""Photographer side of the client space: links, progress and audit trail."""
from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from app.config import Settings, get_settings
from app.database import get_db
from app.dependencies import get_current_user, get_request_context
from app.models.client_link import ClientLink
from app.models.user import User
from app.schemas.link import LinkCreate, LinkExpirationUpdate, LinkResponse, LinkSummary
from app.schemas.contract import ContractResponse
from app.schemas.gallery import GalleryResponse
from app.schemas.questionnaire import QuestionnaireResponseOut
from app.services import audit_log, client_links, notifications
from app.services.audit_log import RequestContext
from app.services.outbox import Outbox, get_outbox
from app.services.portal import snapshot

router = APIRouter(prefix="/espace-client", tags=["espace-client"])


def _link_response(settings: Settings, link: ClientLink) -> LinkResponse:
    out = LinkResponse.model_validate(link)
    out.url = notifications.portal_url(settings, link.token)
    return out


@router.post("/links", status_code=201)
def create_link(
    data: LinkCreate,
    db: Session = Depends(get_db),
    settings: Settings = Depends(get_settings),
    outbox: Outbox = Depends(get_outbox),
    current_user: User = Depends(get_current_user),
    context: RequestContext = Depends(get_request_context),
):
    link = client_links.create_link(
        db,
        settings,
        outbox,
        client_id=data.client_id,
        user=current_user,
        expires_in_days=data.expires_in_days,
        event_type_id=data.event_type_id,
        template_id=data.template_id,
        send_email=data.send_email,
        context=context,
    )
    delivered = outbox.drain()
    return {
        **_link_response(settings, link).model_dump(mode="json"),
        "email_sent": delivered.get("questionnaire_link_email", False),
    }


@router.get("/links", response_model=list[LinkSummary])
def list_links(
    db: Session = Depends(get_db),
    settings: Settings = Depends(get_settings),
    current_user: User = Depends(get_current_user),
):
    rows = []
    for link in client_links.list_links(db, current_user.id):
        snap = snapshot(db, link)
        rows.append(
            LinkSummary(
                **_link_response(settings, link).model_dump(),
                client_name=link.client.name if link.client else None,
                client_email=link.client.email if link.client else None,
                questionnaire_status=snap.questionnaire.status.value if snap.questionnaire else None,
                contract_status=snap.contract.status.value if snap.contract else None,
                gallery_visible=snap.gallery_visible,
                workflow_state=snap.state.value,
            )
        )
    return rows


@router.put("/links/{link_id}/expiration", response_model=LinkResponse)
def update_link_expiration(
    link_id: int,
    data: LinkExpirationUpdate,
    db: Session = Depends(get_db),
    settings: Settings = Depends(get_settings),
    current_user: User = Depends(get_current_user),
):
    link = client_links.update_expiration(db, link_id, current_user.id, data.expires_in_days)
    return _link_response(settings, link)


@router.delete("/links/{link_id}", response_model=LinkResponse)
def revoke_link(
    link_id: int,
    db: Session = Depends(get_db),
    settings: Settings = Depends(get_settings),
    current_user: User = Depends(get_current_user),
    context: RequestContext = Depends(get_request_context),
):
    link = client_links.revoke(db, link_id, current_user.id, context)
    return _link_response(settings, link)


@router.get("/workflow/{link_id}")
def get_workflow(
    link_id: int,
    db: Session = Depends(get_db),
    settings: Settings = Depends(get_settings),
    current_user: User = Depends(get_current_user),
):
    link = client_links.get_owned_link(db, link_id, current_user.id)
    snap = snapshot(db, link)
    return {
        "link": _link_response(settings, link).model_dump(mode="json"),
        "questionnaire": QuestionnaireResponseOut.model_validate(snap.questionnaire).model_dump(mode="json") if snap.questionnaire else None,
        "contract": ContractResponse.model_validate(snap.contract).model_dump(mode="json") if snap.contract else None,
        "gallery": GalleryResponse.model_validate(snap.gallery).model_dump(mode="json") if snap.gallery else None,
        "workflow_state": snap.state.value,
    }


@router.get("/audit")
def list_my_audit(
    limit: int = 100,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    limit = max(1, min(limit, 500))
    return [audit_log.serialize(e) for e in audit_log.list_for_user(db, current_user.id, limit)]


@router.get("/audit/{link_id}")
def get_link_audit(
    link_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    link = client_links.get_owned_link(db, link_id, current_user.id)
    return [audit_log.serialize(e) for e in audit_log.list_for_link(db, link.id)]
