"""Photo galleries and their client visibility (photographer side)."""
from fastapi import APIRouter, Depends, Response
from fastapi.responses import FileResponse
from sqlalchemy.orm import Session

from app.config import Settings, get_settings
from app.database import get_db
from app.dependencies import get_current_user, get_request_context
from app.models.user import User
from app.schemas.gallery import GalleryCreate, GalleryResponse, GalleryUpdate, PhotoResponse, PhotosUpload, VisibilityUpdate
from app.services import galleries
from app.services.audit_log import RequestContext
from app.services.outbox import Outbox, get_outbox

router = APIRouter(prefix="/espace-client", tags=["galleries"])


@router.get("/galleries", response_model=list[GalleryResponse])
def list_galleries(db: Session = Depends(get_db), current_user: User = Depends(get_current_user)):
    return galleries.list_galleries(db, current_user.id)


@router.post("/galleries", response_model=GalleryResponse, status_code=201)
def create_gallery(data: GalleryCreate, db: Session = Depends(get_db), current_user: User = Depends(get_current_user)):
    return galleries.create_gallery(db, current_user.id, data.title, data.client_link_id)


@router.get("/galleries/{gallery_id}", response_model=GalleryResponse)
def get_gallery(gallery_id: int, db: Session = Depends(get_db), current_user: User = Depends(get_current_user)):
    return galleries.get_owned_gallery(db, gallery_id, current_user.id)


@router.put("/galleries/{gallery_id}", response_model=GalleryResponse)
def update_gallery(
    gallery_id: int,
    data: GalleryUpdate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    return galleries.update_gallery(db, gallery_id, current_user.id, title=data.title, client_link_id=data.client_link_id)


@router.delete("/galleries/{gallery_id}", status_code=204)
def delete_gallery(
    gallery_id: int,
    db: Session = Depends(get_db),
    settings: Settings = Depends(get_settings),
    current_user: User = Depends(get_current_user),
):
    galleries.delete_gallery(db, settings, gallery_id, current_user.id)
    return Response(status_code=204)


@router.get("/galleries/{gallery_id}/photos", response_model=list[PhotoResponse])
def list_photos(gallery_id: int, db: Session = Depends(get_db), current_user: User = Depends(get_current_user)):
    return galleries.get_owned_gallery(db, gallery_id, current_user.id).photos


@router.post("/galleries/{gallery_id}/photos", response_model=list[PhotoResponse], status_code=201)
def upload_photos(
    gallery_id: int,
    data: PhotosUpload,
    db: Session = Depends(get_db),
    settings: Settings = Depends(get_settings),
    current_user: User = Depends(get_current_user),
):
    return galleries.add_photos(db, settings, gallery_id, current_user.id, [p.model_dump() for p in data.photos])


@router.delete("/galleries/{gallery_id}/photos/{photo_id}", status_code=204)
def delete_photo(
    gallery_id: int,
    photo_id: int,
    db: Session = Depends(get_db),
    settings: Settings = Depends(get_settings),
    current_user: User = Depends(get_current_user),
):
    galleries.delete_photo(db, settings, gallery_id, photo_id, current_user.id)
    return Response(status_code=204)


@router.get("/galleries/{gallery_id}/photos/{photo_id}/file")
def serve_photo(
    gallery_id: int,
    photo_id: int,
    db: Session = Depends(get_db),
    settings: Settings = Depends(get_settings),
    current_user: User = Depends(get_current_user),
):
    gallery = galleries.get_owned_gallery(db, gallery_id, current_user.id)
    path, photo = galleries.photo_file(settings, db, gallery, photo_id)
    return FileResponse(path, media_type=photo.mime_type, headers={"Cache-Control": "private, max-age=86400"})


@router.put("/gallery/{link_id}/visibility")
def set_gallery_visibility(
    link_id: int,
    data: VisibilityUpdate,
    db: Session = Depends(get_db),
    settings: Settings = Depends(get_settings),
    outbox: Outbox = Depends(get_outbox),
    current_user: User = Depends(get_current_user),
    context: RequestContext = Depends(get_request_context),
):
    gallery = galleries.set_visibility(db, settings, outbox, link_id, current_user, data.is_visible, data.send_email, context)
    delivered = outbox.drain()
    return {
        "gallery": GalleryResponse.model_validate(gallery).model_dump(mode="json"),
        "email_sent": delivered.get("gallery_ready_email", False),
    }
