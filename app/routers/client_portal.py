"""Anonymous client portal, addressed by the opaque link token in the path."""
from fastapi import APIRouter, Depends
from fastapi.responses import FileResponse
from sqlalchemy.orm import Session

from app.config import Settings, get_settings
from app.database import get_db
from app.dependencies import get_portal_link, get_request_context
from app.models.client_link import ClientLink
from app.schemas.contract import PortalContractResponse, SignatureResponse, SignRequest, SignResponse
from app.schemas.gallery import GalleryResponse
from app.schemas.questionnaire import EventTypeResponse, QuestionnaireResponseOut, QuestionnaireView, ResponsesBody
from app.services import contracts, galleries, questionnaire
from app.services.audit_log import RequestContext
from app.services.outbox import Outbox, get_outbox
from app.services.portal import export_client_data, snapshot

router = APIRouter(prefix="/client-portal", tags=["client-portal"])


@router.get("/{token}")
def portal_home(link: ClientLink = Depends(get_portal_link), db: Session = Depends(get_db)):
    snap = snapshot(db, link)
    photographer = link.user
    return {
        "client": {"name": link.client.name if link.client else None},
        "photographer": {
            "name": photographer.display_name,
            "email": photographer.email,
            "phone": photographer.phone,
            "logo_url": photographer.logo_url,
        },
        "expires_at": link.expires_at.isoformat() if link.expires_at else None,
        "event_types": [
            EventTypeResponse.model_validate(et).model_dump() for et in questionnaire.portal_event_types(db, link)
        ],
        "questionnaire": {
            "event_type_id": snap.questionnaire.event_type_id,
            "status": snap.questionnaire.status.value,
        } if snap.questionnaire else None,
        "contract_status": snap.contract.status.value if snap.contract else None,
        "gallery_available": snap.gallery_visible,
        "workflow_state": snap.state.value,
        "can_sign": snap.can_sign,
    }


@router.get("/{token}/event-types", response_model=list[EventTypeResponse])
def portal_event_types(link: ClientLink = Depends(get_portal_link), db: Session = Depends(get_db)):
    return questionnaire.portal_event_types(db, link)


@router.get("/{token}/questionnaire/{event_type_id}", response_model=QuestionnaireView)
def get_questionnaire(
    event_type_id: int,
    link: ClientLink = Depends(get_portal_link),
    db: Session = Depends(get_db),
    context: RequestContext = Depends(get_request_context),
):
    return questionnaire.get_questionnaire(db, link, event_type_id, context)


@router.post("/{token}/questionnaire/{event_type_id}/save", response_model=QuestionnaireResponseOut)
def save_questionnaire(
    event_type_id: int,
    data: ResponsesBody,
    link: ClientLink = Depends(get_portal_link),
    db: Session = Depends(get_db),
    context: RequestContext = Depends(get_request_context),
):
    return questionnaire.save_draft(db, link, event_type_id, data.responses, context)


@router.post("/{token}/questionnaire/{event_type_id}/validate", response_model=QuestionnaireResponseOut)
def validate_questionnaire(
    event_type_id: int,
    data: ResponsesBody,
    link: ClientLink = Depends(get_portal_link),
    db: Session = Depends(get_db),
    settings: Settings = Depends(get_settings),
    outbox: Outbox = Depends(get_outbox),
    context: RequestContext = Depends(get_request_context),
):
    row = questionnaire.validate(db, settings, outbox, link, event_type_id, data.responses, context)
    outbox.drain()
    return row


@router.get("/{token}/contract", response_model=PortalContractResponse)
def get_contract(
    link: ClientLink = Depends(get_portal_link),
    db: Session = Depends(get_db),
    context: RequestContext = Depends(get_request_context),
):
    contract = contracts.portal_contract(db, link, context)
    return PortalContractResponse(
        id=contract.id,
        content=contract.content,
        status=contract.status,
        photographer_validated_at=contract.photographer_validated_at,
        can_sign=snapshot(db, link).can_sign,
        signatures=[SignatureResponse.model_validate(s) for s in contract.signatures],
    )


@router.post("/{token}/contract/sign", response_model=SignResponse)
def sign_contract(
    data: SignRequest,
    link: ClientLink = Depends(get_portal_link),
    db: Session = Depends(get_db),
    settings: Settings = Depends(get_settings),
    outbox: Outbox = Depends(get_outbox),
    context: RequestContext = Depends(get_request_context),
):
    result = contracts.sign_contract(db, settings, outbox, link, data.signature_data, context)
    outbox.drain()
    return SignResponse(status=result["contract"].status, signed_at=result["signed_at"], audit_token=result["audit_token"])


@router.get("/{token}/contract/pdf")
def download_contract_pdf(
    link: ClientLink = Depends(get_portal_link),
    db: Session = Depends(get_db),
    context: RequestContext = Depends(get_request_context),
):
    path, filename = contracts.portal_pdf_file(db, link, context)
    return FileResponse(path, media_type="application/pdf", filename=filename)


@router.get("/{token}/gallery", response_model=GalleryResponse)
def get_gallery(
    link: ClientLink = Depends(get_portal_link),
    db: Session = Depends(get_db),
    context: RequestContext = Depends(get_request_context),
):
    return galleries.portal_gallery(db, link, context)


@router.get("/{token}/gallery/photos/{photo_id}/file")
def serve_gallery_photo(
    photo_id: int,
    link: ClientLink = Depends(get_portal_link),
    db: Session = Depends(get_db),
    settings: Settings = Depends(get_settings),
):
    gallery = galleries.visible_gallery(db, link)
    path, photo = galleries.photo_file(settings, db, gallery, photo_id)
    return FileResponse(path, media_type=photo.mime_type)


@router.get("/{token}/export")
def export_data(
    link: ClientLink = Depends(get_portal_link),
    db: Session = Depends(get_db),
    context: RequestContext = Depends(get_request_context),
):
    return export_client_data(db, link, context)
