from datetime import timedelta

import pytest

from app.database import utcnow
from app.errors import INVALID_LINK_MESSAGE, NotFound, ValidationError
from app.models.audit_log import AuditLog
from app.services import client_links
from app.services.audit_log import AuditAction
from tests.factories import auth_headers, make_client, make_link, system_event_type


def _resolve_error(db, token):
    with pytest.raises(NotFound) as exc:
        client_links.resolve_token(db, token)
    return exc.value.to_dict(), exc.value.status_code


def test_create_link_issues_opaque_unique_token(db, settings, photographer, customer):
    a = make_link(db, settings, photographer, customer)
    b = make_link(db, settings, photographer, customer)
    assert a.token != b.token
    assert len(a.token) >= 40
    assert "." not in a.token  # not a JWT
    assert a.expires_at is None
    assert a.is_revoked is False
    assert db.query(AuditLog).filter(AuditLog.action == AuditAction.link_created.value, AuditLog.client_link_id == a.id).count() == 1


def test_create_link_for_someone_elses_client_is_not_found(db, settings, photographer, other_photographer):
    foreign_client = make_client(db, other_photographer, name="Bob")
    with pytest.raises(NotFound):
        make_link(db, settings, photographer, foreign_client)


def test_create_link_takes_event_type_from_template(db, settings, photographer, customer):
    from app.models.contract_template import ContractTemplate

    wedding = system_event_type(db)
    template = db.query(ContractTemplate).filter(ContractTemplate.event_type_id == wedding.id).first()
    link = make_link(db, settings, photographer, customer, template_id=template.id)
    assert link.event_type_id == wedding.id


def test_resolve_valid_token_stamps_last_access(db, settings, photographer, customer):
    link = make_link(db, settings, photographer, customer, expires_in_days=7)
    resolved = client_links.resolve_token(db, link.token)
    assert resolved.id == link.id
    assert resolved.last_accessed_at is not None


def test_unknown_revoked_and_expired_tokens_are_indistinguishable(db, settings, photographer, customer):
    revoked = make_link(db, settings, photographer, customer)
    client_links.revoke(db, revoked.id, photographer.id)

    expired = make_link(db, settings, photographer, customer, expires_in_days=1)
    expired.expires_at = utcnow() - timedelta(minutes=1)
    db.commit()

    errors = [
        _resolve_error(db, "never-issued-token"),
        _resolve_error(db, revoked.token),
        _resolve_error(db, expired.token),
        _resolve_error(db, ""),
    ]
    assert all(e == ({"error": INVALID_LINK_MESSAGE, "code": "INVALID_LINK"}, 404) for e in errors)


def test_revoke_requires_owner(db, settings, photographer, other_photographer, customer):
    link = make_link(db, settings, photographer, customer)
    with pytest.raises(NotFound):
        client_links.revoke(db, link.id, other_photographer.id)
    db.refresh(link)
    assert link.is_revoked is False


def test_revoke_is_permanent(db, settings, photographer, customer):
    link = make_link(db, settings, photographer, customer)
    client_links.revoke(db, link.id, photographer.id)
    client_links.update_expiration(db, link.id, photographer.id, 30)
    db.refresh(link)
    assert link.is_revoked is True
    with pytest.raises(NotFound):
        client_links.resolve_token(db, link.token)
    assert db.query(AuditLog).filter(AuditLog.action == AuditAction.link_revoked.value).count() == 1


def test_update_expiration(db, settings, photographer, customer):
    link = make_link(db, settings, photographer, customer, expires_in_days=1)
    client_links.update_expiration(db, link.id, photographer.id, None)
    db.refresh(link)
    assert link.expires_at is None
    with pytest.raises(ValidationError):
        client_links.update_expiration(db, link.id, photographer.id, 0)


def test_api_create_list_and_revoke(client, db, settings, photographer, customer, headers):
    r = client.post("/api/espace-client/links", json={"client_id": customer.id, "expires_in_days": 30}, headers=headers)
    assert r.status_code == 201, r.text
    body = r.json()
    assert body["token"]
    assert body["url"].endswith(f"/client/{body['token']}")
    assert body["email_sent"] is False

    r = client.get("/api/espace-client/links", headers=headers)
    assert r.status_code == 200
    [row] = r.json()
    assert row["client_name"] == "Alice Martin"
    assert row["workflow_state"] == "questionnaire"

    r = client.delete(f"/api/espace-client/links/{body['id']}", headers=headers)
    assert r.status_code == 200
    assert r.json()["is_revoked"] is True

    r = client.get(f"/api/client-portal/{body['token']}")
    assert r.status_code == 404
    assert r.json() == {"error": INVALID_LINK_MESSAGE, "code": "INVALID_LINK"}


def test_api_ignores_user_id_in_body_and_query(client, db, settings, photographer, other_photographer, customer):
    link = make_link(db, settings, photographer, customer)
    rival_headers = auth_headers(settings, other_photographer)

    r = client.delete(f"/api/espace-client/links/{link.id}?userId={photographer.id}", headers=rival_headers)
    assert r.status_code == 404

    r = client.post(
        "/api/espace-client/links",
        json={"client_id": customer.id, "user_id": photographer.id},
        headers=rival_headers,
    )
    assert r.status_code == 404


def test_portal_access_is_logged(client, db, settings, photographer, customer):
    link = make_link(db, settings, photographer, customer)
    r = client.get(f"/api/client-portal/{link.token}", headers={"User-Agent": "pytest-browser"})
    assert r.status_code == 200
    body = r.json()
    assert body["workflow_state"] == "questionnaire"
    assert body["photographer"]["name"] == "Lens Studio"
    assert len(body["event_types"]) >= 4

    row = db.query(AuditLog).filter(AuditLog.action == AuditAction.link_accessed.value).one()
    assert row.client_link_id == link.id
    assert row.user_agent == "pytest-browser"


def test_portal_event_types_follow_link_preselection(client, db, settings, photographer, customer):
    wedding = system_event_type(db)
    link = make_link(db, settings, photographer, customer, event_type_id=wedding.id)
    r = client.get(f"/api/client-portal/{link.token}/event-types")
    assert r.status_code == 200
    assert [et["id"] for et in r.json()] == [wedding.id]
