"""Photo galleries and the client visibility gate."""
from __future__ import annotations

import base64
import binascii
import logging
import re
import secrets
import unicodedata
import uuid
from pathlib import Path
from typing import Any

from sqlalchemy.orm import Session

from app.config import Settings
from app.errors import NotFound, ValidationError
from app.models.client_link import ClientLink
from app.models.gallery import Gallery, GalleryPhoto
from app.models.user import User
from app.services import notifications
from app.services.audit_log import AuditAction, RequestContext, create_log
from app.services.client_links import get_owned_link
from app.services.outbox import Outbox

logger = logging.getLogger(__name__)

_DATA_URL_PREFIX_RE = re.compile(r"^data:[\w.+-]+/[\w.+-]+;base64,")
_EXT_RE = re.compile(r"^[a-z0-9]{1,8}$")


def slugify(title: str) -> str:
    ascii_title = unicodedata.normalize("NFD", title).encode("ascii", "ignore").decode("ascii")
    base = re.sub(r"[^a-z0-9]+", "-", ascii_title.lower()).strip("-") or "gallery"
    return f"{base}-{secrets.token_hex(3)}"


def _photo_dir(settings: Settings, gallery_id: int) -> Path:
    return Path(settings.upload_dir) / "galleries" / str(gallery_id)


def list_galleries(db: Session, user_id: int) -> list[Gallery]:
    return db.query(Gallery).filter(Gallery.user_id == user_id).order_by(Gallery.id.desc()).all()


def get_owned_gallery(db: Session, gallery_id: int, user_id: int) -> Gallery:
    g = db.query(Gallery).filter(Gallery.id == gallery_id).first()
    if not g or g.user_id != user_id:
        raise NotFound("Gallery not found")
    return g


def create_gallery(db: Session, user_id: int, title: str, client_link_id: int | None = None) -> Gallery:
    title = (title or "").strip()
    if not title:
        raise ValidationError("title is required")
    if client_link_id is not None:
        get_owned_link(db, client_link_id, user_id)
    slug = slugify(title)
    while db.query(Gallery.id).filter(Gallery.slug == slug).first() is not None:
        slug = slugify(title)
    g = Gallery(user_id=user_id, client_link_id=client_link_id, title=title, slug=slug, is_visible_to_client=False)
    db.add(g)
    db.commit()
    db.refresh(g)
    return g


def update_gallery(db: Session, gallery_id: int, user_id: int, *, title: str | None = None, client_link_id: int | None = None) -> Gallery:
    """Title and link attachment. Visibility goes through set_visibility so it is always audited."""
    g = get_owned_gallery(db, gallery_id, user_id)
    if title is not None:
        if not title.strip():
            raise ValidationError("title is required")
        g.title = title.strip()
    if client_link_id is not None:
        get_owned_link(db, client_link_id, user_id)
        g.client_link_id = client_link_id
    db.commit()
    db.refresh(g)
    return g


def delete_gallery(db: Session, settings: Settings, gallery_id: int, user_id: int) -> None:
    g = get_owned_gallery(db, gallery_id, user_id)
    directory = _photo_dir(settings, g.id)
    db.delete(g)
    db.commit()
    if directory.is_dir():
        for f in directory.iterdir():
            f.unlink(missing_ok=True)
        try:
            directory.rmdir()
        except OSError as e:
            logger.warning("Gallery %s: could not remove %s: %s", gallery_id, directory, e)


def _decode_photo(data: str) -> bytes:
    payload = _DATA_URL_PREFIX_RE.sub("", (data or "").strip())
    try:
        raw = base64.b64decode(payload, validate=True)
    except (binascii.Error, ValueError):
        raise ValidationError("Photo data must be base64 encoded")
    if not raw:
        raise ValidationError("Photo data is empty")
    return raw


def add_photos(db: Session, settings: Settings, gallery_id: int, user_id: int, photos: list[dict[str, Any]]) -> list[GalleryPhoto]:
    """photos: [{data: base64 or data URL, name?, mime_type?}]. All are decoded before anything is written."""
    g = get_owned_gallery(db, gallery_id, user_id)
    if not photos:
        raise ValidationError("photos is required")
    decoded = [(_decode_photo(p.get("data", "")), p) for p in photos]

    directory = _photo_dir(settings, g.id)
    directory.mkdir(parents=True, exist_ok=True)
    sort_order = max((p.sort_order for p in g.photos), default=0) + 1
    created: list[GalleryPhoto] = []
    written: list[Path] = []
    try:
        for raw, p in decoded:
            name = (p.get("name") or "").strip()
            ext = name.rsplit(".", 1)[-1].lower() if "." in name else "jpg"
            if not _EXT_RE.match(ext):
                ext = "jpg"
            filename = f"{uuid.uuid4().hex}.{ext}"
            path = directory / filename
            path.write_bytes(raw)
            written.append(path)
            photo = GalleryPhoto(
                gallery_id=g.id,
                filename=filename,
                original_name=name or filename,
                mime_type=p.get("mime_type") or "image/jpeg",
                size=len(raw),
                sort_order=sort_order,
            )
            db.add(photo)
            created.append(photo)
            sort_order += 1
        db.commit()
    except Exception:
        # a file without a row is never served or cleaned up
        db.rollback()
        for path in written:
            path.unlink(missing_ok=True)
        raise
    for photo in created:
        db.refresh(photo)
    return created


def _get_photo(db: Session, gallery: Gallery, photo_id: int) -> GalleryPhoto:
    photo = db.query(GalleryPhoto).filter(GalleryPhoto.id == photo_id, GalleryPhoto.gallery_id == gallery.id).first()
    if not photo:
        raise NotFound("Photo not found")
    return photo


def delete_photo(db: Session, settings: Settings, gallery_id: int, photo_id: int, user_id: int) -> None:
    g = get_owned_gallery(db, gallery_id, user_id)
    photo = _get_photo(db, g, photo_id)
    (_photo_dir(settings, g.id) / photo.filename).unlink(missing_ok=True)
    db.delete(photo)
    db.commit()


def photo_file(settings: Settings, db: Session, gallery: Gallery, photo_id: int) -> tuple[Path, GalleryPhoto]:
    photo = _get_photo(db, gallery, photo_id)
    path = _photo_dir(settings, gallery.id) / photo.filename
    if not path.is_file():
        raise NotFound("Photo not found")
    return path, photo


def gallery_for_link(db: Session, client_link_id: int) -> Gallery | None:
    return (
        db.query(Gallery)
        .filter(Gallery.client_link_id == client_link_id)
        .order_by(Gallery.is_visible_to_client.desc(), Gallery.id.desc())
        .first()
    )


def is_visible_for_link(db: Session, client_link_id: int) -> bool:
    return (
        db.query(Gallery.id)
        .filter(Gallery.client_link_id == client_link_id, Gallery.is_visible_to_client.is_(True))
        .first()
        is not None
    )


def set_visibility(
    db: Session,
    settings: Settings,
    outbox: Outbox,
    link_id: int,
    user: User,
    is_visible: bool,
    send_email: bool = False,
    context: RequestContext | None = None,
) -> Gallery:
    link = get_owned_link(db, link_id, user.id)
    g = gallery_for_link(db, link.id)
    if g is None:
        raise NotFound("No gallery attached to this link")
    previous = bool(g.is_visible_to_client)
    g.is_visible_to_client = bool(is_visible)
    create_log(
        db,
        AuditAction.gallery_visibility_changed,
        client_link_id=link.id,
        user_id=user.id,
        entity_type="gallery",
        entity_id=g.id,
        context=context,
        meta={"previous": previous, "is_visible": bool(is_visible)},
    )
    db.commit()
    db.refresh(g)

    client = link.client
    if is_visible and send_email and client and client.email:
        outbox.add(
            "gallery_ready_email",
            notifications.send_gallery_ready,
            settings,
            client.email,
            client.name,
            user.display_name or "Your photographer",
            g.title,
            notifications.portal_url(settings, link.token),
        )
    return g


def visible_gallery(db: Session, link: ClientLink) -> Gallery:
    """Readable by the client only while visible; a hidden gallery looks like no gallery."""
    g = (
        db.query(Gallery)
        .filter(Gallery.client_link_id == link.id, Gallery.is_visible_to_client.is_(True))
        .order_by(Gallery.id.desc())
        .first()
    )
    if g is None:
        raise NotFound("Gallery not available")
    return g


def portal_gallery(db: Session, link: ClientLink, context: RequestContext | None = None) -> Gallery:
    g = visible_gallery(db, link)
    create_log(
        db,
        AuditAction.gallery_viewed,
        client_link_id=link.id,
        entity_type="gallery",
        entity_id=g.id,
        context=context,
    )
    db.commit()
    return g
