"""Contract templates, custom variables and contracts (photographer side)."""
from fastapi import APIRouter, Depends, Query, Response
from fastapi.responses import FileResponse
from sqlalchemy.orm import Session

from app.config import Settings, get_settings
from app.database import get_db
from app.dependencies import get_current_user, get_request_context
from app.models.user import User
from app.schemas.contract import (
    ContractContentUpdate,
    ContractGenerate,
    ContractResponse,
    ContractValidate,
    CustomVariableCreate,
    CustomVariableResponse,
    CustomVariableUpdate,
    SignatureResponse,
    TemplateCreate,
    TemplateResponse,
    TemplateSaveResponse,
    TemplateUpdate,
)
from app.services import audit_log, client_links, contracts, templates
from app.services.audit_log import RequestContext
from app.services.outbox import Outbox, get_outbox

router = APIRouter(prefix="/espace-client", tags=["contracts"])


# --- Templates ---

@router.get("/templates", response_model=list[TemplateResponse])
def list_templates(
    event_type_id: int | None = None,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    return templates.list_templates(db, current_user.id, event_type_id)


@router.get("/templates/{template_id}", response_model=TemplateResponse)
def get_template(template_id: int, db: Session = Depends(get_db), current_user: User = Depends(get_current_user)):
    return templates.get_template(db, template_id, current_user.id)


@router.post("/templates", response_model=TemplateResponse, status_code=201)
def create_template(data: TemplateCreate, db: Session = Depends(get_db), current_user: User = Depends(get_current_user)):
    return templates.create_template(db, current_user.id, **data.model_dump())


@router.post("/templates/{template_id}/fork", response_model=TemplateResponse, status_code=201)
def fork_template(
    template_id: int,
    data: TemplateUpdate | None = None,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    return templates.fork_template(db, template_id, current_user.id, data.model_dump(exclude_unset=True) if data else None)


@router.put("/templates/{template_id}", response_model=TemplateSaveResponse)
def save_template(
    template_id: int,
    data: TemplateUpdate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    """System templates are copied on save; the response carries the template edits now apply to."""
    template, forked = templates.save_template(db, template_id, current_user.id, data.model_dump(exclude_unset=True))
    return TemplateSaveResponse(template=TemplateResponse.model_validate(template), forked=forked)


@router.delete("/templates/{template_id}", status_code=204)
def delete_template(template_id: int, db: Session = Depends(get_db), current_user: User = Depends(get_current_user)):
    templates.delete_template(db, template_id, current_user.id)
    return Response(status_code=204)


# --- Custom variables ---

@router.get("/custom-variables", response_model=list[CustomVariableResponse])
def list_custom_variables(db: Session = Depends(get_db), current_user: User = Depends(get_current_user)):
    return templates.list_custom_variables(db, current_user.id)


@router.post("/custom-variables", response_model=CustomVariableResponse, status_code=201)
def create_custom_variable(
    data: CustomVariableCreate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    return templates.create_custom_variable(db, current_user.id, **data.model_dump())


@router.put("/custom-variables/{variable_id}", response_model=CustomVariableResponse)
def update_custom_variable(
    variable_id: int,
    data: CustomVariableUpdate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    return templates.update_custom_variable(db, variable_id, current_user.id, **data.model_dump(exclude_unset=True))


@router.delete("/custom-variables/{variable_id}", status_code=204)
def delete_custom_variable(variable_id: int, db: Session = Depends(get_db), current_user: User = Depends(get_current_user)):
    templates.delete_custom_variable(db, variable_id, current_user.id)
    return Response(status_code=204)


# --- Contracts ---

@router.get("/contracts", response_model=list[ContractResponse])
def list_contracts(
    client_link_id: int | None = None,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    return contracts.list_contracts(db, current_user.id, client_link_id)


@router.post("/contracts/generate", response_model=ContractResponse, status_code=201)
def generate_contract(
    data: ContractGenerate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
    context: RequestContext = Depends(get_request_context),
):
    link = client_links.get_owned_link(db, data.client_link_id, current_user.id)
    return templates.generate_contract(db, link, current_user, data.template_id, context)


@router.get("/contracts/{contract_id}", response_model=ContractResponse)
def get_contract(contract_id: int, db: Session = Depends(get_db), current_user: User = Depends(get_current_user)):
    return contracts.get_owned_contract(db, contract_id, current_user.id)


@router.put("/contracts/{contract_id}", response_model=ContractResponse)
def update_contract(
    contract_id: int,
    data: ContractContentUpdate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
    context: RequestContext = Depends(get_request_context),
):
    return contracts.update_contract_content(db, contract_id, current_user.id, data.content, context)


@router.post("/contracts/{contract_id}/validate")
def validate_contract(
    contract_id: int,
    data: ContractValidate | None = None,
    db: Session = Depends(get_db),
    settings: Settings = Depends(get_settings),
    outbox: Outbox = Depends(get_outbox),
    current_user: User = Depends(get_current_user),
    context: RequestContext = Depends(get_request_context),
):
    send_email = bool(data and data.send_email)
    contract = contracts.validate_contract(db, settings, outbox, contract_id, current_user, send_email, context)
    delivered = outbox.drain()
    return {
        "contract": ContractResponse.model_validate(contract).model_dump(mode="json"),
        "email_sent": delivered.get("contract_ready_email", False),
    }


@router.get("/contracts/{contract_id}/pdf")
def download_contract_pdf(
    contract_id: int,
    version: str = Query("draft", pattern="^(signed|draft)$"),
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
    context: RequestContext = Depends(get_request_context),
):
    contract = contracts.get_owned_contract(db, contract_id, current_user.id)
    path, filename = contracts.pdf_file(db, contract, version, user_id=current_user.id, context=context)
    return FileResponse(path, media_type="application/pdf", filename=filename)


@router.get("/contracts/{contract_id}/audit-trail")
def get_signature_audit_trail(contract_id: int, db: Session = Depends(get_db), current_user: User = Depends(get_current_user)):
    trail = contracts.signature_audit_trail(db, contract_id, current_user.id)
    return {
        "contract_id": trail["contract"].id,
        "status": trail["contract"].status.value,
        "signatures": [SignatureResponse.model_validate(s).model_dump(mode="json") for s in trail["signatures"]],
        "logs": [audit_log.serialize(e) for e in trail["logs"]],
    }
