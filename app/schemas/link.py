"""Client link schemas."""
from datetime import datetime

from pydantic import BaseModel, Field


class LinkCreate(BaseModel):
    client_id: int
    expires_in_days: int | None = Field(default=None, gt=0)
    event_type_id: int | None = None
    template_id: int | None = None
    send_email: bool = False


class LinkExpirationUpdate(BaseModel):
    expires_in_days: int | None = Field(default=None, gt=0)  # null = never expires


class LinkResponse(BaseModel):
    id: int
    client_id: int
    event_type_id: int | None = None
    template_id: int | None = None
    token: str
    url: str | None = None
    expires_at: datetime | None = None
    is_revoked: bool
    created_at: datetime | None = None
    last_accessed_at: datetime | None = None

    class Config:
        from_attributes = True


class LinkSummary(LinkResponse):
    """Dashboard row: link plus client identity and derived progress."""
    client_name: str | None = None
    client_email: str | None = None
    questionnaire_status: str | None = None
    contract_status: str | None = None
    gallery_visible: bool = False
    workflow_state: str
