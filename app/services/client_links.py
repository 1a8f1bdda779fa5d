"""Client link issuance, token resolution and revocation."""
from __future__ import annotations

import logging
import secrets
from datetime import timedelta

from sqlalchemy.orm import Session

from app.config import Settings
from app.database import as_utc, utcnow
from app.errors import NotFound, ValidationError, invalid_link
from app.models.client import Client
from app.models.client_link import ClientLink
from app.models.contract_template import ContractTemplate
from app.models.event_type import EventType
from app.models.user import User
from app.services import notifications
from app.services.audit_log import AuditAction, RequestContext, create_log
from app.services.outbox import Outbox

logger = logging.getLogger(__name__)

_TOKEN_BYTES = 32


def generate_token() -> str:
    return secrets.token_urlsafe(_TOKEN_BYTES)


def _expiry(expires_in_days: int | None):
    if expires_in_days is None:
        return None
    if expires_in_days <= 0:
        raise ValidationError("expires_in_days must be positive")
    return utcnow() + timedelta(days=expires_in_days)


def create_link(
    db: Session,
    settings: Settings,
    outbox: Outbox,
    *,
    client_id: int,
    user: User,
    expires_in_days: int | None = None,
    event_type_id: int | None = None,
    template_id: int | None = None,
    send_email: bool = False,
    context: RequestContext | None = None,
) -> ClientLink:
    client = db.query(Client).filter(Client.id == client_id, Client.user_id == user.id).first()
    if not client:
        raise NotFound("Client not found")

    if template_id is not None:
        template = db.query(ContractTemplate).filter(ContractTemplate.id == template_id).first()
        if not template or (template.user_id is not None and template.user_id != user.id):
            raise NotFound("Template not found")
        if event_type_id is None:
            event_type_id = template.event_type_id
    if event_type_id is not None:
        et = db.query(EventType).filter(EventType.id == event_type_id).first()
        if not et or (et.user_id is not None and et.user_id != user.id):
            raise NotFound("Event type not found")

    token = generate_token()
    while db.query(ClientLink.id).filter(ClientLink.token == token).first() is not None:
        token = generate_token()

    link = ClientLink(
        client_id=client.id,
        user_id=user.id,
        event_type_id=event_type_id,
        template_id=template_id,
        token=token,
        expires_at=_expiry(expires_in_days),
        is_revoked=False,
    )
    db.add(link)
    db.flush()
    create_log(
        db,
        AuditAction.link_created,
        client_link_id=link.id,
        user_id=user.id,
        entity_type="client_link",
        entity_id=link.id,
        context=context,
        meta={"expires_at": link.expires_at, "event_type_id": event_type_id, "template_id": template_id},
    )
    db.commit()
    db.refresh(link)

    if send_email:
        if client.email:
            outbox.add(
                "questionnaire_link_email",
                notifications.send_questionnaire_link,
                settings,
                client.email,
                client.name,
                user.display_name or "Your photographer",
                notifications.portal_url(settings, link.token),
                as_utc(link.expires_at).strftime("%d/%m/%Y") if link.expires_at else None,
            )
        else:
            logger.info("Link %s: client %s has no email, invitation not sent", link.id, client.id)
    return link


def resolve_token(db: Session, token: str) -> ClientLink:
    """Look the token up: exists, not revoked, not expired. Any failure is the same NotFound."""
    if not token:
        raise invalid_link()
    link = db.query(ClientLink).filter(ClientLink.token == token).first()
    if link is None:
        raise invalid_link()
    if link.is_revoked:
        raise invalid_link()
    expires_at = as_utc(link.expires_at)
    if expires_at is not None and expires_at <= utcnow():
        raise invalid_link()
    link.last_accessed_at = utcnow()
    return link


def get_owned_link(db: Session, link_id: int, user_id: int) -> ClientLink:
    link = db.query(ClientLink).filter(ClientLink.id == link_id).first()
    if not link or link.user_id != user_id:
        raise NotFound("Link not found")
    return link


def revoke(db: Session, link_id: int, requesting_user_id: int, context: RequestContext | None = None) -> ClientLink:
    link = get_owned_link(db, link_id, requesting_user_id)
    if not link.is_revoked:
        link.is_revoked = True
        create_log(
            db,
            AuditAction.link_revoked,
            client_link_id=link.id,
            user_id=requesting_user_id,
            entity_type="client_link",
            entity_id=link.id,
            context=context,
        )
        db.commit()
    return link


def update_expiration(db: Session, link_id: int, user_id: int, expires_in_days: int | None) -> ClientLink:
    link = get_owned_link(db, link_id, user_id)
    link.expires_at = _expiry(expires_in_days)
    db.commit()
    db.refresh(link)
    return link


def list_links(db: Session, user_id: int) -> list[ClientLink]:
    return (
        db.query(ClientLink)
        .filter(ClientLink.user_id == user_id)
        .order_by(ClientLink.created_at.desc(), ClientLink.id.desc())
        .all()
    )
