"""
All SQLAlchemy models. Schema is the source of truth for new DBs.
Base.metadata.create_all() creates every table.
"""
from app.models.user import User
from app.models.client import Client
from app.models.client_link import ClientLink
from app.models.event_type import EventType, Question
from app.models.questionnaire import QuestionnaireResponse, QuestionnaireStatus
from app.models.contract_template import ContractTemplate, CustomVariable
from app.models.contract import Contract, ContractStatus, Signature
from app.models.gallery import Gallery, GalleryPhoto
from app.models.audit_log import AuditLog

__all__ = [
    "User",
    "Client",
    "ClientLink",
    "EventType",
    "Question",
    "QuestionnaireResponse",
    "QuestionnaireStatus",
    "ContractTemplate",
    "CustomVariable",
    "Contract",
    "ContractStatus",
    "Signature",
    "Gallery",
    "GalleryPhoto",
    "AuditLog",
]
