"""Gallery schemas."""
from datetime import datetime

from pydantic import BaseModel


class GalleryCreate(BaseModel):
    title: str
    client_link_id: int | None = None


class GalleryUpdate(BaseModel):
    title: str | None = None
    client_link_id: int | None = None


class PhotoUpload(BaseModel):
    data: str  # base64, optionally as a data URL
    name: str | None = None
    mime_type: str | None = None


class PhotosUpload(BaseModel):
    photos: list[PhotoUpload]


class PhotoResponse(BaseModel):
    id: int
    gallery_id: int
    filename: str
    original_name: str
    mime_type: str
    size: int
    sort_order: int
    created_at: datetime | None = None

    class Config:
        from_attributes = True


class GalleryResponse(BaseModel):
    id: int
    client_link_id: int | None = None
    title: str
    slug: str
    is_visible_to_client: bool
    created_at: datetime | None = None
    photos: list[PhotoResponse] = []

    class Config:
        from_attributes = True


class VisibilityUpdate(BaseModel):
    is_visible: bool
    send_email: bool = False
