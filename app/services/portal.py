"""Read models shared by the photographer dashboard and the client portal."""
from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from sqlalchemy.orm import Session

from app.models.client_link import ClientLink
from app.models.contract import Contract, ContractStatus
from app.models.gallery import Gallery
from app.models.questionnaire import QuestionnaireResponse
from app.services import audit_log, contracts, galleries, questionnaire
from app.services.audit_log import RequestContext
from app.services.workflow import WorkflowState, derive_state


@dataclass
class LinkSnapshot:
    link: ClientLink
    questionnaire: QuestionnaireResponse | None
    contract: Contract | None
    gallery: Gallery | None
    gallery_visible: bool
    state: WorkflowState

    @property
    def can_sign(self) -> bool:
        return self.contract is not None and self.contract.status == ContractStatus.pending_signature


def snapshot(db: Session, link: ClientLink) -> LinkSnapshot:
    q = questionnaire.current_response(db, link.id)
    c = contracts.contract_for_link(db, link.id)
    g = galleries.gallery_for_link(db, link.id)
    visible = galleries.is_visible_for_link(db, link.id)
    return LinkSnapshot(
        link=link,
        questionnaire=q,
        contract=c,
        gallery=g,
        gallery_visible=visible,
        state=derive_state(q, c, visible),
    )


def export_client_data(db: Session, link: ClientLink, context: RequestContext | None = None) -> dict[str, Any]:
    """GDPR export: client record, answers, contract, signature metadata and the audit trail."""
    snap = snapshot(db, link)
    client = link.client
    c = snap.contract
    trail = audit_log.export_for_client(db, link.id, context)
    return {
        "exported_at": trail["exported_at"],
        "client": {
            "name": client.name,
            "email": client.email,
            "phone": client.phone,
            "address": client.full_address,
        } if client else None,
        "questionnaire": {
            "event_type_id": snap.questionnaire.event_type_id,
            "status": snap.questionnaire.status.value,
            "responses": snap.questionnaire.responses or {},
            "validated_at": snap.questionnaire.validated_at.isoformat() if snap.questionnaire.validated_at else None,
        } if snap.questionnaire else None,
        "contract": {
            "id": c.id,
            "status": c.status.value,
            "content": c.content,
            "photographer_validated_at": c.photographer_validated_at.isoformat() if c.photographer_validated_at else None,
        } if c else None,
        # image data stays out of the export; the hash and receipt identify the signature
        "signatures": [
            {
                "id": s.id,
                "signer_type": s.signer_type,
                "signed_at": s.signed_at.isoformat() if s.signed_at else None,
                "ip_address": s.ip_address,
                "user_agent": s.user_agent,
                "document_hash": s.document_hash,
                "audit_token": s.audit_token,
            }
            for s in (c.signatures if c else [])
        ],
        "audit_logs": trail["logs"],
    }
