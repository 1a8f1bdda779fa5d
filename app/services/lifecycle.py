"""Server-side guard for questionnaire and contract status transitions."""
from __future__ import annotations

import enum
from typing import Mapping

from app.errors import InvalidState, Locked
from app.models.contract import CONTRACT_TRANSITIONS
from app.models.questionnaire import QUESTIONNAIRE_TRANSITIONS, QuestionnaireStatus


def ensure_transition(
    table: Mapping[enum.Enum | None, set],
    current: enum.Enum | None,
    target: enum.Enum,
    message: str,
) -> None:
    if target not in table.get(current, set()):
        raise InvalidState(message, current_status=getattr(current, "value", None), requested_status=target.value)


def ensure_questionnaire_transition(current: QuestionnaireStatus | None, target: QuestionnaireStatus) -> None:
    if current == QuestionnaireStatus.validated:
        raise Locked("Questionnaire has already been validated", current_status=current.value)
    ensure_transition(QUESTIONNAIRE_TRANSITIONS, current, target, "Questionnaire cannot change status")


def ensure_contract_transition(current, target, message: str) -> None:
    ensure_transition(CONTRACT_TRANSITIONS, current, target, message)
