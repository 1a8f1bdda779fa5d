"""Contract lifecycle: draft -> pending_signature -> signed.

Content is frozen once the contract leaves draft. PDF rendering and emails are
side effects: a failure is logged and never reverses the status change.
"""
from __future__ import annotations

import logging
import uuid
from pathlib import Path
from typing import Any

from sqlalchemy.orm import Session

from app.config import Settings
from app.database import as_utc, utcnow
from app.errors import InvalidState, NotFound, ValidationError
from app.models.client_link import ClientLink
from app.models.contract import Contract, ContractStatus, Signature
from app.models.user import User
from app.services import audit_log, notifications
from app.services.audit_log import AuditAction, RequestContext, create_log
from app.services.lifecycle import ensure_contract_transition
from app.services.outbox import Outbox
from app.services.pdf import PartyInfo, PdfStore, decode_signature_data_url, render_contract_pdf, sha256_hex

logger = logging.getLogger(__name__)

PDF_VERSION_SIGNED = "signed"
PDF_VERSION_DRAFT = "draft"


def get_owned_contract(db: Session, contract_id: int, user_id: int) -> Contract:
    contract = db.query(Contract).filter(Contract.id == contract_id).first()
    if not contract or contract.user_id != user_id:
        raise NotFound("Contract not found")
    return contract


def contract_for_link(db: Session, client_link_id: int) -> Contract | None:
    """Latest contract generated for the link."""
    return (
        db.query(Contract)
        .filter(Contract.client_link_id == client_link_id)
        .order_by(Contract.id.desc())
        .first()
    )


def list_contracts(db: Session, user_id: int, client_link_id: int | None = None) -> list[Contract]:
    q = db.query(Contract).filter(Contract.user_id == user_id)
    if client_link_id is not None:
        q = q.filter(Contract.client_link_id == client_link_id)
    return q.order_by(Contract.id.desc()).all()


def update_contract_content(
    db: Session, contract_id: int, user_id: int, content: str, context: RequestContext | None = None
) -> Contract:
    contract = get_owned_contract(db, contract_id, user_id)
    if contract.status != ContractStatus.draft:
        raise InvalidState("Only draft contracts can be edited", current_status=contract.status.value)
    if not (content or "").strip():
        raise ValidationError("content is required")
    contract.content = content
    create_log(
        db,
        AuditAction.contract_edited,
        client_link_id=contract.client_link_id,
        user_id=user_id,
        entity_type="contract",
        entity_id=contract.id,
        context=context,
    )
    db.commit()
    db.refresh(contract)
    return contract


def _parties(user: User, link: ClientLink) -> PartyInfo:
    client = link.client
    return PartyInfo(
        photographer_name=user.display_name,
        photographer_address=user.full_address,
        photographer_siret=user.siret or "",
        client_name=client.name if client else "",
        client_address=client.full_address if client else "",
    )


def _footer(contract: Contract, version: int) -> str:
    return f"Contract #{contract.id} - version {version} - generated on {utcnow().strftime('%d/%m/%Y %H:%M')} UTC"


def validate_contract(
    db: Session,
    settings: Settings,
    outbox: Outbox,
    contract_id: int,
    user: User,
    send_email: bool = False,
    context: RequestContext | None = None,
) -> Contract:
    """Freeze the draft, render its PDF and open it for signature."""
    contract = get_owned_contract(db, contract_id, user.id)
    ensure_contract_transition(contract.status, ContractStatus.pending_signature, "Only draft contracts can be validated")

    link = contract.client_link
    version = (contract.pdf_version or 0) + 1
    pdf_result = None
    try:
        data = render_contract_pdf("Service contract", contract.content, _parties(user, link), _footer(contract, version))
        pdf_result = PdfStore(settings).write_draft(user.id, contract.id, data, version)
    except Exception:
        logger.exception("Contract %s: PDF generation failed", contract.id)

    contract.status = ContractStatus.pending_signature
    contract.photographer_validated_at = utcnow()
    contract.pdf_version = version
    contract.pdf_path = pdf_result.file_path if pdf_result else None

    if pdf_result:
        create_log(
            db,
            AuditAction.pdf_generated,
            client_link_id=link.id,
            user_id=user.id,
            entity_type="contract",
            entity_id=contract.id,
            context=context,
            meta={"file_name": pdf_result.file_name, "sha256": pdf_result.sha256, "version": version},
        )
    create_log(
        db,
        AuditAction.contract_validated,
        client_link_id=link.id,
        user_id=user.id,
        entity_type="contract",
        entity_id=contract.id,
        context=context,
        meta={
            "pdf_version": version,
            "pdf_sha256": pdf_result.sha256 if pdf_result else None,
            "pdf_generated": pdf_result is not None,
            "email_requested": bool(send_email),
        },
    )
    db.commit()
    db.refresh(contract)

    client = link.client
    if send_email and client and client.email:
        outbox.add(
            "contract_ready_email",
            notifications.send_contract_ready,
            settings,
            client.email,
            client.name,
            user.display_name or "Your photographer",
            notifications.portal_url(settings, link.token),
        )
    elif send_email:
        logger.info("Contract %s: client has no email, contract-ready email not sent", contract.id)
    return contract


def sign_contract(
    db: Session,
    settings: Settings,
    outbox: Outbox,
    link: ClientLink,
    signature_data: str,
    context: RequestContext | None = None,
) -> dict[str, Any]:
    contract = contract_for_link(db, link.id)
    if contract is None:
        raise NotFound("Contract not found")
    ensure_contract_transition(contract.status, ContractStatus.signed, "Contract is not awaiting signature")
    image = decode_signature_data_url(signature_data)
    if image is None:
        raise ValidationError("signature_data must be a base64 data:image URL")

    context = context or RequestContext()
    signed_at = utcnow()
    document_hash = (PdfStore.file_hash(contract.pdf_path) if contract.pdf_path else None) or sha256_hex(
        contract.content.encode("utf-8")
    )
    signature = Signature(
        contract_id=contract.id,
        signer_type="client",
        signature_image=signature_data.strip(),
        signed_at=signed_at,
        ip_address=context.ip_address,
        user_agent=context.user_agent,
        document_hash=document_hash,
        audit_token=uuid.uuid4().hex,
    )
    db.add(signature)
    contract.status = ContractStatus.signed
    db.flush()

    photographer = link.user
    signed_label = signed_at.strftime("%d/%m/%Y %H:%M UTC")
    signed_pdf = None
    try:
        data = render_contract_pdf(
            "Service contract",
            contract.content,
            _parties(photographer, link),
            _footer(contract, contract.pdf_version or 1) + f" - signature {signature.audit_token}",
            signature_image=image,
            signed_at=signed_label,
        )
        signed_pdf = PdfStore(settings).write_signed(contract.user_id, contract.id, data)
        contract.signed_pdf_path = signed_pdf.file_path
    except Exception:
        logger.exception("Contract %s: signed PDF generation failed", contract.id)

    create_log(
        db,
        AuditAction.contract_signed,
        client_link_id=link.id,
        entity_type="signature",
        entity_id=signature.id,
        context=context,
        meta={
            "contract_id": contract.id,
            "document_hash": document_hash,
            "audit_token": signature.audit_token,
            "signed_pdf_sha256": signed_pdf.sha256 if signed_pdf else None,
        },
    )
    db.commit()
    db.refresh(contract)

    if photographer and photographer.email:
        outbox.add(
            "contract_signed_email",
            notifications.send_contract_signed,
            settings,
            photographer.email,
            link.client.name if link.client else "",
            signed_label,
            notifications.dashboard_url(settings, link.id),
        )
    return {"contract": contract, "signed_at": signed_at, "audit_token": signature.audit_token}


def portal_contract(db: Session, link: ClientLink, context: RequestContext | None = None) -> Contract:
    """Contract as shown to the client; drafts are never exposed."""
    contract = contract_for_link(db, link.id)
    if contract is None or contract.status == ContractStatus.draft:
        raise NotFound("No contract available yet")
    create_log(
        db,
        AuditAction.contract_viewed,
        client_link_id=link.id,
        entity_type="contract",
        entity_id=contract.id,
        context=context,
    )
    db.commit()
    return contract


def pdf_file(
    db: Session,
    contract: Contract,
    version: str | None = None,
    *,
    user_id: int | None = None,
    context: RequestContext | None = None,
) -> tuple[Path, str]:
    """Path and download name of the signed (version="signed") or draft PDF. Logs the download."""
    want_signed = version == PDF_VERSION_SIGNED
    path_str = contract.signed_pdf_path if want_signed else contract.pdf_path
    if not path_str or not Path(path_str).is_file():
        raise NotFound("PDF not available")
    path = Path(path_str)
    create_log(
        db,
        AuditAction.pdf_downloaded,
        client_link_id=contract.client_link_id,
        user_id=user_id,
        entity_type="contract",
        entity_id=contract.id,
        context=context,
        meta={"version": PDF_VERSION_SIGNED if want_signed else PDF_VERSION_DRAFT, "file_name": path.name},
    )
    db.commit()
    return path, f"contract_{contract.id}_{PDF_VERSION_SIGNED if want_signed else f'v{contract.pdf_version}'}.pdf"


def portal_pdf_file(db: Session, link: ClientLink, context: RequestContext | None = None) -> tuple[Path, str]:
    """Signed PDF once signed, else the frozen draft PDF."""
    contract = contract_for_link(db, link.id)
    if contract is None or contract.status == ContractStatus.draft:
        raise NotFound("No contract available yet")
    version = PDF_VERSION_SIGNED if contract.status == ContractStatus.signed and contract.signed_pdf_path else PDF_VERSION_DRAFT
    return pdf_file(db, contract, version, context=context)


def signature_audit_trail(db: Session, contract_id: int, user_id: int) -> dict[str, Any]:
    contract = get_owned_contract(db, contract_id, user_id)
    rows = audit_log.list_for_entity(db, "contract", contract.id)
    for s in contract.signatures:
        rows += audit_log.list_for_entity(db, "signature", s.id)
    rows.sort(key=lambda r: (as_utc(r.created_at), r.id))
    return {"contract": contract, "signatures": list(contract.signatures), "logs": rows}
