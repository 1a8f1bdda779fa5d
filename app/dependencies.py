"""Shared dependencies: DB session, settings, current photographer, portal link, request context."""
from fastapi import Depends, Request
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from sqlalchemy.orm import Session

from app.config import Settings, get_settings
from app.database import get_db
from app.errors import Forbidden, Unauthorized
from app.models.client_link import ClientLink
from app.models.user import User
from app.services.audit_log import AuditAction, RequestContext, create_log
from app.services.auth import decode_token_with_error
from app.services.client_links import resolve_token

security = HTTPBearer(auto_error=False)


def get_request_context(request: Request) -> RequestContext:
    forwarded = request.headers.get("x-forwarded-for")
    ip = forwarded.split(",")[0].strip() if forwarded else (request.client.host if request.client else None)
    return RequestContext(ip_address=ip, user_agent=request.headers.get("user-agent"))


def get_current_user(
    db: Session = Depends(get_db),
    settings: Settings = Depends(get_settings),
    credentials: HTTPAuthorizationCredentials | None = Depends(security),
) -> User:
    if not credentials:
        raise Unauthorized("Not authenticated")
    payload, _ = decode_token_with_error(settings, (credentials.credentials or "").strip())
    if not payload:
        raise Forbidden("Invalid or expired token")
    try:
        user_id = int(payload.get("sub"))
    except (TypeError, ValueError):
        raise Forbidden("Invalid token")
    user = db.query(User).filter(User.id == user_id).first()
    if not user:
        raise Forbidden("Invalid token")
    return user


def get_portal_link(
    token: str,
    db: Session = Depends(get_db),
    context: RequestContext = Depends(get_request_context),
) -> ClientLink:
    """Resolve the opaque link token from the path. Every portal request is logged as link_accessed."""
    link = resolve_token(db, token)
    create_log(
        db,
        AuditAction.link_accessed,
        client_link_id=link.id,
        entity_type="client_link",
        entity_id=link.id,
        context=context,
    )
    db.commit()
    return link
