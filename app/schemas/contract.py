"""Template, custom variable, contract and signature schemas."""
from datetime import datetime

from pydantic import BaseModel

from app.models.contract import ContractStatus


class TemplateCreate(BaseModel):
    name: str
    content: str
    event_type_id: int | None = None
    is_default: bool = False


class TemplateUpdate(BaseModel):
    name: str | None = None
    content: str | None = None
    event_type_id: int | None = None
    is_default: bool | None = None


class TemplateResponse(BaseModel):
    id: int
    user_id: int | None = None
    event_type_id: int | None = None
    name: str
    content: str
    is_system: bool
    is_default: bool
    created_at: datetime | None = None
    updated_at: datetime | None = None

    class Config:
        from_attributes = True


class TemplateSaveResponse(BaseModel):
    template: TemplateResponse
    forked: bool


class CustomVariableCreate(BaseModel):
    var_key: str
    label: str
    default_value: str = ""
    category: str = "general"
    sort_order: int = 0


class CustomVariableUpdate(BaseModel):
    var_key: str | None = None
    label: str | None = None
    default_value: str | None = None
    category: str | None = None
    sort_order: int | None = None


class CustomVariableResponse(BaseModel):
    id: int
    var_key: str
    label: str
    default_value: str
    category: str
    sort_order: int

    class Config:
        from_attributes = True


class ContractGenerate(BaseModel):
    client_link_id: int
    template_id: int | None = None


class ContractContentUpdate(BaseModel):
    content: str


class ContractValidate(BaseModel):
    send_email: bool = False


class SignatureResponse(BaseModel):
    """Signature receipt without the image data."""
    id: int
    signer_type: str
    signed_at: datetime
    ip_address: str | None = None
    user_agent: str | None = None
    document_hash: str
    audit_token: str

    class Config:
        from_attributes = True


class ContractResponse(BaseModel):
    id: int
    client_link_id: int
    template_id: int | None = None
    content: str
    status: ContractStatus
    photographer_validated_at: datetime | None = None
    has_pdf: bool = False
    pdf_version: int
    has_signed_pdf: bool = False
    created_at: datetime | None = None
    updated_at: datetime | None = None
    signatures: list[SignatureResponse] = []

    class Config:
        from_attributes = True


class PortalContractResponse(BaseModel):
    id: int
    content: str
    status: ContractStatus
    photographer_validated_at: datetime | None = None
    can_sign: bool
    signatures: list[SignatureResponse] = []


class SignRequest(BaseModel):
    signature_data: str  # data:image/png;base64,...


class SignResponse(BaseModel):
    status: ContractStatus
    signed_at: datetime
    audit_token: str
