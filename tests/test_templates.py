import pytest

from app.errors import Conflict, Forbidden, InvalidState, NotFound, ValidationError
from app.models.audit_log import AuditLog
from app.models.contract import ContractStatus
from app.models.contract_template import ContractTemplate
from app.services import questionnaire, templates
from app.services.audit_log import AuditAction
from tests.factories import make_link, question_by_label, required_answers, system_event_type


@pytest.fixture()
def wedding(db):
    return system_event_type(db, "Wedding")


@pytest.fixture()
def link(db, settings, photographer, customer):
    return make_link(db, settings, photographer, customer)


@pytest.fixture()
def validated_link(db, settings, outbox, link, wedding):
    questionnaire.validate(db, settings, outbox, link, wedding.id, required_answers(wedding))
    return link


def _system_template(db, event_type_id=None):
    return (
        db.query(ContractTemplate)
        .filter(ContractTemplate.is_system.is_(True), ContractTemplate.event_type_id == event_type_id)
        .first()
        if event_type_id is not None
        else db.query(ContractTemplate).filter(ContractTemplate.is_system.is_(True), ContractTemplate.event_type_id.is_(None)).first()
    )


def test_substitute_resolves_escapes_and_marks_missing():
    content, unresolved = templates.substitute(
        "<p>{{client_name}} / {{ client_email }} / {{deposit}} / {{empty}} / {{deposit}}</p>",
        {"client_name": "Tom & <Jerry>", "client_email": "tom@example.com", "empty": "  "},
    )
    assert "Tom &amp; &lt;Jerry&gt;" in content
    assert "tom@example.com" in content
    assert content.count('<mark class="missing-variable">{{deposit}}</mark>') == 2
    assert '<mark class="missing-variable">{{empty}}</mark>' in content
    assert unresolved == ["deposit", "empty"]


def test_normalize_var_key():
    assert templates.normalize_var_key("  Deposit Amount ") == "deposit_amount"
    assert templates.normalize_var_key("Prix-TTC (€)") == "prix_ttc"
    with pytest.raises(ValidationError):
        templates.normalize_var_key("€€")


def test_build_variables_overlay_order(db, settings, photographer, customer, link, wedding):
    templates.create_custom_variable(db, photographer.id, var_key="deposit", label="Deposit", default_value="300")
    templates.create_custom_variable(db, photographer.id, var_key="venue", label="Venue", default_value="TBD")
    variables = templates.build_variables(
        photographer,
        link,
        wedding,
        templates.list_custom_variables(db, photographer.id),
        {"venue": "Chateau", "client_name": "Override", "12": "Lyon", "deposit": ["a", "b"], "7": True},
    )
    assert variables["photographer_name"] == "Lens Studio"
    assert variables["photographer_address"] == "1 rue de la Paix, 75002, Paris"
    assert variables["event_type"] == "Wedding"
    assert variables["venue"] == "Chateau"
    assert variables["deposit"] == "a, b"
    assert variables["client_name"] == "Override"
    assert variables["12"] == "Lyon"
    assert variables["7"] == "Yes"
    assert len(variables["date"]) == 10


def test_save_system_template_forks_and_leaves_original_untouched(db, photographer):
    system = _system_template(db)
    original_content = system.content
    before = db.query(ContractTemplate).count()

    copy, forked = templates.save_template(db, system.id, photographer.id, {"content": "<p>mine {{client_name}}</p>"})

    assert forked is True
    assert copy.id != system.id
    assert copy.user_id == photographer.id
    assert copy.is_system is False
    assert copy.content == "<p>mine {{client_name}}</p>"
    db.expire_all()
    assert db.get(ContractTemplate, system.id).content == original_content
    assert db.query(ContractTemplate).count() == before + 1

    # further saves go to the copy
    again, forked_again = templates.save_template(db, copy.id, photographer.id, {"name": "Renamed"})
    assert forked_again is False
    assert again.id == copy.id
    assert again.name == "Renamed"


def test_edit_owned_template_refuses_system_rows(db, photographer):
    system = _system_template(db)
    with pytest.raises(Forbidden):
        templates.edit_owned_template(db, system.id, photographer.id, {"content": "x"})
    with pytest.raises(Forbidden):
        templates.delete_template(db, system.id, photographer.id)


def test_templates_are_tenant_scoped(db, photographer, other_photographer):
    t = templates.create_template(db, photographer.id, name="Mine", content="<p>x</p>")
    with pytest.raises(NotFound):
        templates.get_template(db, t.id, other_photographer.id)
    with pytest.raises(NotFound):
        templates.fork_template(db, t.id, other_photographer.id)
    names = [x.name for x in templates.list_templates(db, other_photographer.id)]
    assert "Mine" not in names
    assert "Generic contract" in names


def test_is_default_is_exclusive_per_event_type(db, photographer, wedding):
    a = templates.create_template(db, photographer.id, name="A", content="a", event_type_id=wedding.id, is_default=True)
    b = templates.create_template(db, photographer.id, name="B", content="b", event_type_id=wedding.id, is_default=True)
    db.refresh(a)
    assert a.is_default is False
    assert b.is_default is True


def test_resolve_template_order(db, photographer, link, wedding):
    system_wedding = _system_template(db, wedding.id)
    assert templates.resolve_template(db, photographer.id, link, wedding.id).id == system_wedding.id

    mine = templates.create_template(db, photographer.id, name="Mine", content="m", event_type_id=wedding.id, is_default=True)
    assert templates.resolve_template(db, photographer.id, link, wedding.id).id == mine.id

    explicit = templates.create_template(db, photographer.id, name="Explicit", content="e")
    assert templates.resolve_template(db, photographer.id, link, wedding.id, explicit.id).id == explicit.id

    family = system_event_type(db, "Family")
    assert templates.resolve_template(db, photographer.id, link, family.id).id == _system_template(db).id


def test_custom_variables_crud(db, photographer, other_photographer):
    cv = templates.create_custom_variable(db, photographer.id, var_key="Deposit", label="Deposit", default_value="300")
    assert cv.var_key == "deposit"
    with pytest.raises(Conflict):
        templates.create_custom_variable(db, photographer.id, var_key="DEPOSIT", label="Again")
    with pytest.raises(ValidationError):
        templates.create_custom_variable(db, photographer.id, var_key="client_name", label="Nope")
    # same key is fine for another tenant
    templates.create_custom_variable(db, other_photographer.id, var_key="deposit", label="Deposit")

    templates.update_custom_variable(db, cv.id, photographer.id, default_value="500")
    assert templates.list_custom_variables(db, photographer.id)[0].default_value == "500"
    with pytest.raises(NotFound):
        templates.delete_custom_variable(db, cv.id, other_photographer.id)
    templates.delete_custom_variable(db, cv.id, photographer.id)
    assert templates.list_custom_variables(db, photographer.id) == []


def test_generate_requires_validated_questionnaire(db, photographer, link, wedding):
    with pytest.raises(InvalidState):
        templates.generate_contract(db, link, photographer)
    questionnaire.save_draft(db, link, wedding.id, {"x": "y"})
    with pytest.raises(InvalidState):
        templates.generate_contract(db, link, photographer)


def test_generate_contract_from_default_wedding_template(db, photographer, validated_link, wedding):
    contract = templates.generate_contract(db, validated_link, photographer)
    assert contract.status == ContractStatus.draft
    assert contract.template.event_type_id == wedding.id
    assert "Alice Martin" in contract.content
    assert "{{client_name}}" not in contract.content
    assert "Lens Studio" in contract.content
    assert "questionnaire-annex" in contract.content
    assert "Wedding date" in contract.content

    log = db.query(AuditLog).filter(AuditLog.action == AuditAction.contract_generated.value).one()
    assert log.meta["template_id"] == contract.template_id
    assert log.meta["unresolved_variables"] == []


def test_generate_contract_fills_answers_by_question_id(db, settings, outbox, photographer, link, wedding):
    answers = required_answers(wedding)
    asked = question_by_label(wedding, "Ceremony venue")
    answers[asked.key] = "Chateau de Versailles & park"
    questionnaire.validate(db, settings, outbox, link, wedding.id, answers)
    content = "<p>Venue: {{%s}}</p><p>{{ %s }}</p>" % (asked.key, asked.key)
    t = templates.create_template(db, photographer.id, name="Venue", content=content)

    contract = templates.generate_contract(db, link, photographer, t.id)

    assert contract.content.startswith(
        "<p>Venue: Chateau de Versailles &amp; park</p><p>Chateau de Versailles &amp; park</p>"
    )
    assert "missing-variable" not in contract.content


def test_generate_contract_marks_unresolved_variables(db, photographer, validated_link):
    t = templates.create_template(db, photographer.id, name="Deposit", content="<p>{{client_name}} pays {{deposit}}</p>")
    contract = templates.generate_contract(db, validated_link, photographer, t.id)
    assert '<mark class="missing-variable">{{deposit}}</mark>' in contract.content
    log = db.query(AuditLog).filter(AuditLog.action == AuditAction.contract_generated.value).one()
    assert log.meta["unresolved_variables"] == ["deposit"]


def test_api_save_system_template_returns_fork(client, db, photographer, headers):
    system = _system_template(db)
    r = client.put(f"/api/espace-client/templates/{system.id}", json={"content": "<p>x</p>"}, headers=headers)
    assert r.status_code == 200
    body = r.json()
    assert body["forked"] is True
    assert body["template"]["id"] != system.id
    assert body["template"]["is_system"] is False

    r = client.post("/api/espace-client/custom-variables", json={"var_key": "a", "label": "A"}, headers=headers)
    assert r.status_code == 201
    r = client.post("/api/espace-client/custom-variables", json={"var_key": "A", "label": "A"}, headers=headers)
    assert r.status_code == 409
    assert r.json()["var_key"] == "a"
