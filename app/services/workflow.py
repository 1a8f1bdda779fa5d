"""Single derived label summarizing a client link's progress.

Pure: shared by the photographer dashboard and the client portal so both
always show the same state.
"""
from __future__ import annotations

import enum

from app.models.contract import ContractStatus
from app.models.questionnaire import QuestionnaireStatus


class WorkflowState(str, enum.Enum):
    questionnaire = "questionnaire"
    questionnaire_draft = "questionnaire_draft"
    questionnaire_validated = "questionnaire_validated"
    contract_draft = "contract_draft"
    contract_ready = "contract_ready"
    contract_signed = "contract_signed"
    gallery_visible = "gallery_visible"


def _status(value, enum_cls):
    if value is None:
        return None
    return enum_cls(getattr(value, "status", value))


def derive_state(questionnaire=None, contract=None, gallery_visible: bool | None = None) -> WorkflowState:
    """questionnaire/contract may be model rows, status enums or status strings.

    Precedence, highest first: signed contract, pending-signature contract,
    draft contract, validated questionnaire, draft questionnaire, nothing.
    A visible gallery only counts on top of a signed contract.
    """
    q_status = _status(questionnaire, QuestionnaireStatus)
    c_status = _status(contract, ContractStatus)

    if c_status == ContractStatus.signed:
        return WorkflowState.gallery_visible if gallery_visible else WorkflowState.contract_signed
    if c_status == ContractStatus.pending_signature:
        return WorkflowState.contract_ready
    if c_status == ContractStatus.draft:
        return WorkflowState.contract_draft
    if q_status == QuestionnaireStatus.validated:
        return WorkflowState.questionnaire_validated
    if q_status == QuestionnaireStatus.draft:
        return WorkflowState.questionnaire_draft
    return WorkflowState.questionnaire
