"""Contract templates, custom variables and placeholder substitution.

System templates are shared seed rows and are never updated in place: saving
one forks a user-owned copy (fork_template); saving an owned template edits it
(edit_owned_template).
"""
from __future__ import annotations

import html
import re
from typing import Any

from sqlalchemy import or_
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from app.database import utcnow
from app.errors import Conflict, Forbidden, InvalidState, NotFound, ValidationError
from app.models.client_link import ClientLink
from app.models.contract import Contract, ContractStatus
from app.models.contract_template import ContractTemplate, CustomVariable
from app.models.event_type import EventType
from app.models.questionnaire import QuestionnaireStatus
from app.models.user import User
from app.services import questionnaire as questionnaire_service
from app.services.audit_log import AuditAction, RequestContext, create_log
from app.services.lifecycle import ensure_contract_transition

PLACEHOLDER_RE = re.compile(r"\{\{\s*([A-Za-z0-9_]+)\s*\}\}")
_VAR_KEY_RE = re.compile(r"[^a-z0-9_]+")

BUILTIN_VARIABLES = (
    "client_name",
    "client_email",
    "client_phone",
    "client_address",
    "photographer_name",
    "photographer_address",
    "photographer_siret",
    "photographer_phone",
    "photographer_email",
    "event_type",
    "date",
)

_TEMPLATE_FIELDS = ("name", "content", "event_type_id", "is_default")


def normalize_var_key(raw: str) -> str:
    key = _VAR_KEY_RE.sub("_", (raw or "").strip().lower()).strip("_")
    if not key:
        raise ValidationError("var_key must contain at least one letter or digit")
    return key


def _stringify(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, bool):
        return "Yes" if value else "No"
    if isinstance(value, (list, tuple)):
        return ", ".join(_stringify(v) for v in value if v not in (None, ""))
    return str(value)


def build_variables(
    user: User,
    link: ClientLink,
    event_type: EventType | None,
    custom_variables: list[CustomVariable],
    responses: dict[str, Any] | None = None,
) -> dict[str, str]:
    """Built-ins, overlaid by custom variable defaults, overlaid by every questionnaire answer.

    Answers are keyed by question id, so a template reaches them as {{<question id>}}.
    """
    client = link.client
    variables = {
        "client_name": client.name if client else "",
        "client_email": (client.email or "") if client else "",
        "client_phone": (client.phone or "") if client else "",
        "client_address": client.full_address if client else "",
        "photographer_name": user.display_name,
        "photographer_address": user.full_address,
        "photographer_siret": user.siret or "",
        "photographer_phone": user.phone or "",
        "photographer_email": user.email or "",
        "event_type": event_type.name if event_type else "",
        "date": utcnow().strftime("%d/%m/%Y"),
    }
    for cv in custom_variables:
        variables[cv.var_key] = cv.default_value or ""
    for key, value in (responses or {}).items():
        variables[str(key)] = _stringify(value)
    return variables


def substitute(content: str, variables: dict[str, str]) -> tuple[str, list[str]]:
    """Replace {{ key }} placeholders with escaped values.

    Returns the rendered content and the keys left unresolved, which stay
    visible in the output as <mark class="missing-variable">{{key}}</mark>.
    """
    unresolved: list[str] = []

    def _replace(m: re.Match) -> str:
        key = m.group(1)
        value = variables.get(key)
        if value is None or str(value).strip() == "":
            if key not in unresolved:
                unresolved.append(key)
            return f'<mark class="missing-variable">{{{{{key}}}}}</mark>'
        return html.escape(str(value))

    return PLACEHOLDER_RE.sub(_replace, content or ""), unresolved


def questionnaire_annex(questions: list, responses: dict[str, Any]) -> str:
    """Question/answer table of the visible, answered questions."""
    rows = []
    for q in questions:
        if not questionnaire_service.is_visible(q, responses):
            continue
        answer = _stringify(responses.get(q.key))
        if not answer.strip():
            continue
        rows.append(f"<tr><td>{html.escape(q.question)}</td><td>{html.escape(answer)}</td></tr>")
    if not rows:
        return ""
    return (
        '<section class="questionnaire-annex"><h2>Annex: questionnaire</h2>'
        f"<table><thead><tr><th>Question</th><th>Answer</th></tr></thead><tbody>{''.join(rows)}</tbody></table>"
        "</section>"
    )


# --- Templates ---

def list_templates(db: Session, user_id: int, event_type_id: int | None = None) -> list[ContractTemplate]:
    q = db.query(ContractTemplate).filter(or_(ContractTemplate.user_id.is_(None), ContractTemplate.user_id == user_id))
    if event_type_id is not None:
        q = q.filter(ContractTemplate.event_type_id == event_type_id)
    return q.order_by(ContractTemplate.is_system.desc(), ContractTemplate.name.asc(), ContractTemplate.id.asc()).all()


def get_template(db: Session, template_id: int, user_id: int) -> ContractTemplate:
    t = db.query(ContractTemplate).filter(ContractTemplate.id == template_id).first()
    if not t or (t.user_id is not None and t.user_id != user_id):
        raise NotFound("Template not found")
    return t


def _check_event_type(db: Session, event_type_id: int | None, user_id: int) -> None:
    if event_type_id is not None:
        questionnaire_service.get_visible_event_type(db, event_type_id, user_id)


def _clear_other_defaults(db: Session, template: ContractTemplate) -> None:
    (
        db.query(ContractTemplate)
        .filter(
            ContractTemplate.user_id == template.user_id,
            ContractTemplate.event_type_id == template.event_type_id,
            ContractTemplate.id != template.id,
            ContractTemplate.is_default.is_(True),
        )
        .update({ContractTemplate.is_default: False}, synchronize_session=False)
    )


def create_template(
    db: Session,
    user_id: int,
    *,
    name: str,
    content: str,
    event_type_id: int | None = None,
    is_default: bool = False,
) -> ContractTemplate:
    if not (name or "").strip():
        raise ValidationError("name is required")
    if not (content or "").strip():
        raise ValidationError("content is required")
    _check_event_type(db, event_type_id, user_id)
    t = ContractTemplate(
        user_id=user_id,
        event_type_id=event_type_id,
        name=name.strip(),
        content=content,
        is_system=False,
        is_default=bool(is_default),
    )
    db.add(t)
    db.flush()
    if t.is_default:
        _clear_other_defaults(db, t)
    db.commit()
    db.refresh(t)
    return t


def fork_template(db: Session, source_id: int, owner_id: int, overrides: dict[str, Any] | None = None) -> ContractTemplate:
    """Copy a visible template into a new row owned by owner_id. The source row is not touched."""
    source = get_template(db, source_id, owner_id)
    overrides = {k: v for k, v in (overrides or {}).items() if k in _TEMPLATE_FIELDS and v is not None}
    name = overrides.get("name") or (f"{source.name} (copy)" if source.is_system else source.name)
    return create_template(
        db,
        owner_id,
        name=name,
        content=overrides.get("content", source.content),
        event_type_id=overrides.get("event_type_id", source.event_type_id),
        is_default=overrides.get("is_default", False),
    )


def edit_owned_template(db: Session, template_id: int, owner_id: int, changes: dict[str, Any]) -> ContractTemplate:
    t = get_template(db, template_id, owner_id)
    if t.is_system or t.user_id != owner_id:
        raise Forbidden("System templates cannot be edited; fork them instead")
    changes = {k: v for k, v in (changes or {}).items() if k in _TEMPLATE_FIELDS and v is not None}
    if "event_type_id" in changes:
        _check_event_type(db, changes["event_type_id"], owner_id)
    if "name" in changes and not str(changes["name"]).strip():
        raise ValidationError("name is required")
    for field, value in changes.items():
        setattr(t, field, value)
    db.flush()
    if t.is_default:
        _clear_other_defaults(db, t)
    db.commit()
    db.refresh(t)
    return t


def save_template(db: Session, template_id: int, user_id: int, changes: dict[str, Any]) -> tuple[ContractTemplate, bool]:
    """Save edits. Returns (template, forked); forked is True when a system template was copied."""
    t = get_template(db, template_id, user_id)
    if t.is_system:
        return fork_template(db, t.id, user_id, changes), True
    return edit_owned_template(db, t.id, user_id, changes), False


def delete_template(db: Session, template_id: int, user_id: int) -> None:
    t = get_template(db, template_id, user_id)
    if t.is_system or t.user_id != user_id:
        raise Forbidden("System templates cannot be deleted")
    db.delete(t)
    db.commit()


def resolve_template(
    db: Session, user_id: int, link: ClientLink, event_type_id: int | None, template_id: int | None = None
) -> ContractTemplate:
    if template_id is not None:
        return get_template(db, template_id, user_id)
    if link.template_id is not None:
        t = db.query(ContractTemplate).filter(ContractTemplate.id == link.template_id).first()
        if t and (t.user_id is None or t.user_id == user_id):
            return t
    if event_type_id is not None:
        for owner in (user_id, None):
            t = (
                db.query(ContractTemplate)
                .filter(
                    ContractTemplate.user_id.is_(None) if owner is None else ContractTemplate.user_id == owner,
                    ContractTemplate.event_type_id == event_type_id,
                    ContractTemplate.is_default.is_(True),
                )
                .order_by(ContractTemplate.id.asc())
                .first()
            )
            if t:
                return t
    t = (
        db.query(ContractTemplate)
        .filter(ContractTemplate.is_system.is_(True), ContractTemplate.event_type_id.is_(None))
        .order_by(ContractTemplate.is_default.desc(), ContractTemplate.id.asc())
        .first()
    )
    if t is None:
        raise InvalidState("No contract template available")
    return t


def generate_contract(
    db: Session,
    link: ClientLink,
    user: User,
    template_id: int | None = None,
    context: RequestContext | None = None,
) -> Contract:
    questionnaire = questionnaire_service.current_response(db, link.id)
    if questionnaire is None or questionnaire.status != QuestionnaireStatus.validated:
        raise InvalidState(
            "The questionnaire must be validated before generating a contract",
            current_status=questionnaire.status.value if questionnaire else None,
        )
    frozen = (
        db.query(Contract)
        .filter(Contract.client_link_id == link.id, Contract.status != ContractStatus.draft)
        .first()
    )
    if frozen is not None:
        raise InvalidState(
            "A contract for this link has already been validated",
            current_status=frozen.status.value,
        )
    ensure_contract_transition(None, ContractStatus.draft, "Contract cannot be created")

    event_type = db.query(EventType).filter(EventType.id == questionnaire.event_type_id).first()
    template = resolve_template(db, user.id, link, questionnaire.event_type_id, template_id)
    responses = dict(questionnaire.responses or {})
    variables = build_variables(user, link, event_type, list_custom_variables(db, user.id), responses)
    content, unresolved = substitute(template.content, variables)
    content += questionnaire_annex(questionnaire_service.list_questions(db, questionnaire.event_type_id), responses)

    contract = Contract(
        client_link_id=link.id,
        user_id=user.id,
        template_id=template.id,
        content=content,
        status=ContractStatus.draft,
    )
    db.add(contract)
    db.flush()
    create_log(
        db,
        AuditAction.contract_generated,
        client_link_id=link.id,
        user_id=user.id,
        entity_type="contract",
        entity_id=contract.id,
        context=context,
        meta={"template_id": template.id, "unresolved_variables": unresolved},
    )
    db.commit()
    db.refresh(contract)
    return contract


# --- Custom variables ---

def list_custom_variables(db: Session, user_id: int) -> list[CustomVariable]:
    return (
        db.query(CustomVariable)
        .filter(CustomVariable.user_id == user_id)
        .order_by(CustomVariable.category.asc(), CustomVariable.sort_order.asc(), CustomVariable.var_key.asc())
        .all()
    )


def _get_owned_variable(db: Session, variable_id: int, user_id: int) -> CustomVariable:
    cv = db.query(CustomVariable).filter(CustomVariable.id == variable_id, CustomVariable.user_id == user_id).first()
    if not cv:
        raise NotFound("Variable not found")
    return cv


def _key_taken(db: Session, user_id: int, var_key: str, exclude_id: int | None = None) -> bool:
    q = db.query(CustomVariable.id).filter(CustomVariable.user_id == user_id, CustomVariable.var_key == var_key)
    if exclude_id is not None:
        q = q.filter(CustomVariable.id != exclude_id)
    return q.first() is not None


def create_custom_variable(
    db: Session,
    user_id: int,
    *,
    var_key: str,
    label: str,
    default_value: str = "",
    category: str = "general",
    sort_order: int = 0,
) -> CustomVariable:
    key = normalize_var_key(var_key)
    if key in BUILTIN_VARIABLES:
        raise ValidationError(f"'{key}' is a built-in variable")
    if _key_taken(db, user_id, key):
        raise Conflict("A variable with this key already exists", var_key=key)
    cv = CustomVariable(
        user_id=user_id,
        var_key=key,
        label=label or key,
        default_value=default_value or "",
        category=category or "general",
        sort_order=sort_order or 0,
    )
    db.add(cv)
    try:
        db.commit()
    except IntegrityError:
        db.rollback()
        raise Conflict("A variable with this key already exists", var_key=key)
    db.refresh(cv)
    return cv


def update_custom_variable(db: Session, variable_id: int, user_id: int, **changes: Any) -> CustomVariable:
    cv = _get_owned_variable(db, variable_id, user_id)
    if changes.get("var_key") is not None:
        key = normalize_var_key(changes["var_key"])
        if key in BUILTIN_VARIABLES:
            raise ValidationError(f"'{key}' is a built-in variable")
        if _key_taken(db, user_id, key, exclude_id=cv.id):
            raise Conflict("A variable with this key already exists", var_key=key)
        cv.var_key = key
    for field in ("label", "default_value", "category", "sort_order"):
        if changes.get(field) is not None:
            setattr(cv, field, changes[field])
    db.commit()
    db.refresh(cv)
    return cv


def delete_custom_variable(db: Session, variable_id: int, user_id: int) -> None:
    cv = _get_owned_variable(db, variable_id, user_id)
    db.delete(cv)
    db.commit()
