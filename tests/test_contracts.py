from pathlib import Path

import pytest

from app.errors import InvalidState, NotFound, ValidationError
from app.models.audit_log import AuditLog
from app.models.contract import Contract, ContractStatus, Signature
from app.services import contracts, questionnaire, templates
from app.services.audit_log import AuditAction, RequestContext
from tests.factories import PNG_DATA_URL, make_link, required_answers, system_event_type


@pytest.fixture()
def link(db, settings, outbox, photographer, customer):
    link = make_link(db, settings, photographer, customer)
    wedding = system_event_type(db, "Wedding")
    questionnaire.validate(db, settings, outbox, link, wedding.id, required_answers(wedding))
    outbox.drain()
    return link


@pytest.fixture()
def draft(db, photographer, link):
    return templates.generate_contract(db, link, photographer)


def _actions(db, action):
    return db.query(AuditLog).filter(AuditLog.action == action.value).all()


def test_edit_only_while_draft(db, settings, outbox, photographer, draft):
    contracts.update_contract_content(db, draft.id, photographer.id, "<p>edited</p>")
    assert draft.content == "<p>edited</p>"
    assert len(_actions(db, AuditAction.contract_edited)) == 1

    contracts.validate_contract(db, settings, outbox, draft.id, photographer)
    with pytest.raises(InvalidState):
        contracts.update_contract_content(db, draft.id, photographer.id, "<p>too late</p>")
    db.expire_all()
    assert db.get(Contract, draft.id).content == "<p>edited</p>"


def test_validate_freezes_and_writes_pdf(db, settings, outbox, photographer, draft):
    contract = contracts.validate_contract(db, settings, outbox, draft.id, photographer, send_email=True)
    assert contract.status == ContractStatus.pending_signature
    assert contract.photographer_validated_at is not None
    assert contract.pdf_version == 1
    path = Path(contract.pdf_path)
    assert path.is_file()
    assert path.name == "contract_v1.pdf"
    assert path.parent == Path(settings.pdf_dir) / str(photographer.id) / str(contract.id)
    assert path.read_bytes().startswith(b"%PDF")

    [log] = _actions(db, AuditAction.contract_validated)
    assert log.meta["pdf_version"] == 1
    assert len(log.meta["pdf_sha256"]) == 64
    assert len(_actions(db, AuditAction.pdf_generated)) == 1
    assert outbox.drain() == {"contract_ready_email": True}


def test_validate_twice_is_rejected(db, settings, outbox, photographer, draft):
    contracts.validate_contract(db, settings, outbox, draft.id, photographer)
    with pytest.raises(InvalidState) as exc:
        contracts.validate_contract(db, settings, outbox, draft.id, photographer)
    assert exc.value.extra["current_status"] == "pending_signature"


def test_validate_by_other_tenant_is_not_found(db, settings, outbox, other_photographer, draft):
    with pytest.raises(NotFound):
        contracts.validate_contract(db, settings, outbox, draft.id, other_photographer)


def test_pdf_failure_does_not_block_validation(db, settings, outbox, photographer, draft, monkeypatch):
    def _boom(*args, **kwargs):
        raise RuntimeError("renderer down")

    monkeypatch.setattr(contracts, "render_contract_pdf", _boom)
    contract = contracts.validate_contract(db, settings, outbox, draft.id, photographer)
    assert contract.status == ContractStatus.pending_signature
    assert contract.pdf_path is None
    [log] = _actions(db, AuditAction.contract_validated)
    assert log.meta["pdf_generated"] is False


def test_cannot_sign_a_draft(db, settings, outbox, link, draft):
    with pytest.raises(InvalidState):
        contracts.sign_contract(db, settings, outbox, link, PNG_DATA_URL)
    assert db.query(Signature).count() == 0


def test_sign_exactly_once(db, settings, outbox, photographer, link, draft):
    contracts.validate_contract(db, settings, outbox, draft.id, photographer)
    ctx = RequestContext(ip_address="203.0.113.7", user_agent="Browser/1.0")

    result = contracts.sign_contract(db, settings, outbox, link, PNG_DATA_URL, ctx)
    contract = result["contract"]
    assert contract.status == ContractStatus.signed
    assert result["audit_token"]
    assert contract.signed_pdf_path and contract.signed_pdf_path != contract.pdf_path
    assert Path(contract.signed_pdf_path).name == "contract_signed.pdf"

    [sig] = db.query(Signature).all()
    assert sig.ip_address == "203.0.113.7"
    assert sig.user_agent == "Browser/1.0"
    assert sig.document_hash == contracts.PdfStore.file_hash(contract.pdf_path)

    [log] = _actions(db, AuditAction.contract_signed)
    assert log.entity_type == "signature"
    assert log.ip_address == "203.0.113.7"
    assert log.meta["audit_token"] == sig.audit_token

    with pytest.raises(InvalidState):
        contracts.sign_contract(db, settings, outbox, link, PNG_DATA_URL, ctx)
    assert db.query(Signature).count() == 1
    assert len(_actions(db, AuditAction.contract_signed)) == 1


@pytest.mark.parametrize("bad", ["", "not-a-data-url", "data:image/png;base64,!!!", "data:text/plain;base64,aGVsbG8="])
def test_sign_rejects_malformed_signature(db, settings, outbox, photographer, link, draft, bad):
    contracts.validate_contract(db, settings, outbox, draft.id, photographer)
    with pytest.raises(ValidationError):
        contracts.sign_contract(db, settings, outbox, link, bad)
    db.expire_all()
    assert db.get(Contract, draft.id).status == ContractStatus.pending_signature
    assert db.query(Signature).count() == 0


def test_generate_refused_once_contract_left_draft(db, settings, outbox, photographer, link, draft):
    # a new draft may replace an unvalidated one
    templates.generate_contract(db, link, photographer)
    contracts.validate_contract(db, settings, outbox, contracts.contract_for_link(db, link.id).id, photographer)
    with pytest.raises(InvalidState):
        templates.generate_contract(db, link, photographer)


def test_pdf_download_versions(db, settings, outbox, photographer, link, draft):
    with pytest.raises(NotFound):
        contracts.pdf_file(db, draft, "draft")
    contracts.validate_contract(db, settings, outbox, draft.id, photographer)
    path, name = contracts.pdf_file(db, draft, "draft", user_id=photographer.id)
    assert path.name == "contract_v1.pdf"
    assert name == f"contract_{draft.id}_v1.pdf"
    with pytest.raises(NotFound):
        contracts.pdf_file(db, draft, "signed")

    contracts.sign_contract(db, settings, outbox, link, PNG_DATA_URL)
    path, _ = contracts.pdf_file(db, draft, "signed")
    assert path.name == "contract_signed.pdf"
    assert len(_actions(db, AuditAction.pdf_downloaded)) == 2


def test_portal_hides_draft_contract(db, settings, outbox, photographer, link, draft):
    with pytest.raises(NotFound):
        contracts.portal_contract(db, link)
    contracts.validate_contract(db, settings, outbox, draft.id, photographer)
    assert contracts.portal_contract(db, link).id == draft.id
    assert len(_actions(db, AuditAction.contract_viewed)) == 1


def test_signature_audit_trail(db, settings, outbox, photographer, other_photographer, link, draft):
    contracts.validate_contract(db, settings, outbox, draft.id, photographer)
    contracts.sign_contract(db, settings, outbox, link, PNG_DATA_URL)
    trail = contracts.signature_audit_trail(db, draft.id, photographer.id)
    actions = [row.action for row in trail["logs"]]
    assert actions[0] == AuditAction.contract_generated.value
    assert AuditAction.contract_validated.value in actions
    assert actions[-1] == AuditAction.contract_signed.value
    assert len(trail["signatures"]) == 1
    with pytest.raises(NotFound):
        contracts.signature_audit_trail(db, draft.id, other_photographer.id)


def test_api_contract_lifecycle(client, db, settings, photographer, link, headers):
    r = client.post("/api/espace-client/contracts/generate", json={"client_link_id": link.id}, headers=headers)
    assert r.status_code == 201, r.text
    contract_id = r.json()["id"]
    assert r.json()["status"] == "draft"

    r = client.get(f"/api/client-portal/{link.token}/contract")
    assert r.status_code == 404

    r = client.post(f"/api/espace-client/contracts/{contract_id}/validate", json={"send_email": False}, headers=headers)
    assert r.status_code == 200
    assert r.json()["contract"]["status"] == "pending_signature"
    assert r.json()["contract"]["has_pdf"] is True
    assert r.json()["contract"]["has_signed_pdf"] is False
    assert "pdf_path" not in r.json()["contract"]
    assert settings.pdf_dir not in r.text

    r = client.get(f"/api/client-portal/{link.token}/contract")
    assert r.status_code == 200
    assert r.json()["can_sign"] is True

    r = client.get(f"/api/espace-client/contracts/{contract_id}/pdf?version=draft", headers=headers)
    assert r.status_code == 200
    assert r.headers["content-type"] == "application/pdf"

    r = client.post(f"/api/client-portal/{link.token}/contract/sign", json={"signature_data": PNG_DATA_URL})
    assert r.status_code == 200
    assert r.json()["status"] == "signed"

    r = client.post(f"/api/client-portal/{link.token}/contract/sign", json={"signature_data": PNG_DATA_URL})
    assert r.status_code == 409

    r = client.get(f"/api/client-portal/{link.token}/contract/pdf")
    assert r.status_code == 200
    assert "_signed.pdf" in r.headers["content-disposition"]

    r = client.get(f"/api/espace-client/contracts/{contract_id}/audit-trail", headers=headers)
    assert r.status_code == 200
    assert r.json()["signatures"][0]["audit_token"]
    assert "signature_image" not in r.json()["signatures"][0]
