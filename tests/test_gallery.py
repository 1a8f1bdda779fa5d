import base64
from pathlib import Path

import pytest
from sqlalchemy.exc import SQLAlchemyError

from app.errors import NotFound, ValidationError
from app.models.audit_log import AuditLog
from app.services import contracts, galleries, questionnaire, templates
from app.services.audit_log import AuditAction
from app.services.portal import snapshot
from app.services.workflow import WorkflowState
from tests.factories import PNG_BASE64, PNG_DATA_URL, auth_headers, make_link, required_answers, system_event_type


@pytest.fixture()
def link(db, settings, photographer, customer):
    return make_link(db, settings, photographer, customer)


@pytest.fixture()
def gallery(db, settings, photographer, link):
    g = galleries.create_gallery(db, photographer.id, "Mariage Alice & Paul", link.id)
    galleries.add_photos(db, settings, g.id, photographer.id, [{"data": PNG_BASE64, "name": "first.png", "mime_type": "image/png"}])
    return g


def _sign(db, settings, outbox, photographer, link):
    wedding = system_event_type(db, "Wedding")
    questionnaire.validate(db, settings, outbox, link, wedding.id, required_answers(wedding))
    draft = templates.generate_contract(db, link, photographer)
    contracts.validate_contract(db, settings, outbox, draft.id, photographer)
    contracts.sign_contract(db, settings, outbox, link, PNG_DATA_URL)
    outbox.drain()


def test_slugify_strips_accents():
    slug = galleries.slugify("Séance Été à Lyon")
    assert slug.startswith("seance-ete-a-lyon-")
    assert galleries.slugify("!!!").startswith("gallery-")


def test_create_gallery_starts_hidden_and_stores_photos(db, settings, photographer, link, gallery):
    assert gallery.is_visible_to_client is False
    [photo] = gallery.photos
    assert photo.original_name == "first.png"
    assert photo.size == len(base64.b64decode(PNG_BASE64))
    path, _ = galleries.photo_file(settings, db, gallery, photo.id)
    assert path.parent == Path(settings.upload_dir) / "galleries" / str(gallery.id)
    assert path.read_bytes() == base64.b64decode(PNG_BASE64)

    more = galleries.add_photos(db, settings, gallery.id, photographer.id, [{"data": PNG_DATA_URL}])
    assert more[0].sort_order == photo.sort_order + 1
    assert more[0].filename.endswith(".jpg")


def test_add_photos_rejects_bad_data_before_writing(db, settings, photographer, gallery):
    with pytest.raises(ValidationError):
        galleries.add_photos(db, settings, gallery.id, photographer.id, [{"data": PNG_BASE64}, {"data": "%%%"}])
    db.refresh(gallery)
    assert len(gallery.photos) == 1


def test_add_photos_removes_written_files_when_commit_fails(db, settings, photographer, gallery, monkeypatch):
    directory = Path(settings.upload_dir) / "galleries" / str(gallery.id)
    before = sorted(directory.iterdir())

    def fail():
        raise SQLAlchemyError("disk full")

    monkeypatch.setattr(db, "commit", fail)
    with pytest.raises(SQLAlchemyError):
        galleries.add_photos(db, settings, gallery.id, photographer.id, [{"data": PNG_BASE64}, {"data": PNG_DATA_URL}])
    monkeypatch.undo()

    assert sorted(directory.iterdir()) == before
    db.refresh(gallery)
    assert len(gallery.photos) == 1


def test_gallery_ownership(db, settings, photographer, other_photographer, link, gallery):
    with pytest.raises(NotFound):
        galleries.get_owned_gallery(db, gallery.id, other_photographer.id)
    with pytest.raises(NotFound):
        galleries.create_gallery(db, other_photographer.id, "Stolen", link.id)


def test_hidden_gallery_is_not_readable_by_client(db, link, gallery):
    with pytest.raises(NotFound) as exc:
        galleries.portal_gallery(db, link)
    assert exc.value.message == "Gallery not available"


def test_visibility_toggle_is_audited_and_notifies(db, settings, outbox, photographer, link, gallery):
    galleries.set_visibility(db, settings, outbox, link.id, photographer, True, send_email=True)
    assert galleries.is_visible_for_link(db, link.id)
    [log] = db.query(AuditLog).filter(AuditLog.action == AuditAction.gallery_visibility_changed.value).all()
    assert log.meta == {"previous": False, "is_visible": True}
    assert log.user_id == photographer.id
    assert outbox.drain() == {"gallery_ready_email": True}

    assert galleries.portal_gallery(db, link).id == gallery.id
    assert db.query(AuditLog).filter(AuditLog.action == AuditAction.gallery_viewed.value).count() == 1

    galleries.set_visibility(db, settings, outbox, link.id, photographer, False, send_email=True)
    assert outbox.drain() == {}
    with pytest.raises(NotFound):
        galleries.visible_gallery(db, link)


def test_visibility_requires_a_gallery_on_the_link(db, settings, outbox, photographer, link):
    with pytest.raises(NotFound):
        galleries.set_visibility(db, settings, outbox, link.id, photographer, True)


def test_gallery_visible_state_needs_a_signed_contract(db, settings, outbox, photographer, link, gallery):
    galleries.set_visibility(db, settings, outbox, link.id, photographer, True)
    assert snapshot(db, link).state == WorkflowState.questionnaire

    _sign(db, settings, outbox, photographer, link)
    assert snapshot(db, link).state == WorkflowState.gallery_visible

    galleries.set_visibility(db, settings, outbox, link.id, photographer, False)
    assert snapshot(db, link).state == WorkflowState.contract_signed


def test_delete_photo_and_gallery_remove_files(db, settings, photographer, gallery):
    [photo] = gallery.photos
    path, _ = galleries.photo_file(settings, db, gallery, photo.id)
    galleries.delete_photo(db, settings, gallery.id, photo.id, photographer.id)
    assert not path.exists()
    with pytest.raises(NotFound):
        galleries.photo_file(settings, db, gallery, photo.id)

    galleries.delete_gallery(db, settings, gallery.id, photographer.id)
    assert not (Path(settings.upload_dir) / "galleries" / str(gallery.id)).exists()


def test_api_gallery_flow(client, db, settings, photographer, other_photographer, link, headers):
    r = client.post("/api/espace-client/galleries", json={"title": "Portraits", "client_link_id": link.id}, headers=headers)
    assert r.status_code == 201
    gallery_id = r.json()["id"]

    r = client.post(
        f"/api/espace-client/galleries/{gallery_id}/photos",
        json={"photos": [{"data": PNG_DATA_URL, "name": "a.png", "mime_type": "image/png"}]},
        headers=headers,
    )
    assert r.status_code == 201
    photo_id = r.json()[0]["id"]

    r = client.get(f"/api/espace-client/galleries/{gallery_id}/photos/{photo_id}/file", headers=headers)
    assert r.status_code == 200
    assert r.headers["content-type"] == "image/png"
    assert r.content == base64.b64decode(PNG_BASE64)

    rival = auth_headers(settings, other_photographer)
    assert client.get(f"/api/espace-client/galleries/{gallery_id}", headers=rival).status_code == 404

    r = client.get(f"/api/client-portal/{link.token}/gallery")
    assert r.status_code == 404
    assert r.json()["error"] == "Gallery not available"
    assert client.get(f"/api/client-portal/{link.token}/gallery/photos/{photo_id}/file").status_code == 404

    r = client.put(f"/api/espace-client/gallery/{link.id}/visibility", json={"is_visible": True, "send_email": True}, headers=headers)
    assert r.status_code == 200
    assert r.json()["gallery"]["is_visible_to_client"] is True
    assert r.json()["email_sent"] is True

    r = client.get(f"/api/client-portal/{link.token}/gallery")
    assert r.status_code == 200
    assert [p["id"] for p in r.json()["photos"]] == [photo_id]
    r = client.get(f"/api/client-portal/{link.token}/gallery/photos/{photo_id}/file")
    assert r.status_code == 200

    assert client.delete(f"/api/espace-client/galleries/{gallery_id}/photos/{photo_id}", headers=headers).status_code == 204
    assert client.get(f"/api/espace-client/galleries/{gallery_id}/photos", headers=headers).json() == []
