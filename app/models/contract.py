"""Generated contracts and their signatures."""
import enum

from sqlalchemy import Column, Integer, String, Text, ForeignKey, DateTime, Enum as SQLEnum
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from app.database import Base


class ContractStatus(str, enum.Enum):
    draft = "draft"
    pending_signature = "pending_signature"
    signed = "signed"


# Strictly forward, one step at a time
CONTRACT_TRANSITIONS = {
    None: {ContractStatus.draft},
    ContractStatus.draft: {ContractStatus.pending_signature},
    ContractStatus.pending_signature: {ContractStatus.signed},
    ContractStatus.signed: set(),
}


class Contract(Base):
    __tablename__ = "generated_contracts"

    id = Column(Integer, primary_key=True, index=True)
    client_link_id = Column(Integer, ForeignKey("client_links.id", ondelete="CASCADE"), nullable=False, index=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    template_id = Column(Integer, ForeignKey("contract_templates.id", ondelete="SET NULL"), nullable=True)

    content = Column(Text, nullable=False)  # rendered HTML; frozen once status leaves draft
    status = Column(SQLEnum(ContractStatus, name="contract_status"), nullable=False, default=ContractStatus.draft)

    photographer_validated_at = Column(DateTime(timezone=True), nullable=True)
    pdf_path = Column(String(500), nullable=True)
    pdf_version = Column(Integer, nullable=False, default=0)
    signed_pdf_path = Column(String(500), nullable=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())

    signatures = relationship("Signature", back_populates="contract", order_by="Signature.id")
    template = relationship("ContractTemplate")
    client_link = relationship("ClientLink", backref="contracts")

    @property
    def has_pdf(self) -> bool:
        return bool(self.pdf_path)

    @property
    def has_signed_pdf(self) -> bool:
        return bool(self.signed_pdf_path)


class Signature(Base):
    """Append-only: exactly one row per signing event."""
    __tablename__ = "signatures"

    id = Column(Integer, primary_key=True, index=True)
    contract_id = Column(Integer, ForeignKey("generated_contracts.id", ondelete="CASCADE"), nullable=False, index=True)
    signer_type = Column(String(20), nullable=False, default="client")
    signature_image = Column(Text, nullable=False)  # data URL as drawn by the client

    signed_at = Column(DateTime(timezone=True), nullable=False)
    ip_address = Column(String(64), nullable=True)
    user_agent = Column(String(500), nullable=True)
    document_hash = Column(String(64), nullable=False)
    audit_token = Column(String(64), nullable=False, unique=True)

    contract = relationship("Contract", back_populates="signatures")
