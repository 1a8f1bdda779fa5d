"""Seed system event types, their questionnaires and the system contract templates."""
from sqlalchemy.orm import Session

from app.models.contract_template import ContractTemplate
from app.models.event_type import EventType, FieldType, Question

EVENT_TYPES = [
    ("Wedding", "heart"),
    ("Engagement", "heart"),
    ("Portrait", "user"),
    ("Corporate", "briefcase"),
    ("Event", "calendar"),
    ("Family", "users"),
    ("Maternity & Newborn", "baby"),
    ("Real estate", "home"),
    ("Product", "package"),
]

# (question, field_type, options, is_required, placeholder, help_text, condition)
# condition: (index of an earlier question in the same list, value)
QUESTIONS = {
    "Wedding": [
        ("Wedding date", FieldType.date, None, True, None, None, None),
        ("Ceremony venue", FieldType.text, None, True, "Church, town hall, garden...", None, None),
        ("Reception venue", FieldType.text, None, True, "Castle, estate, restaurant...", None, None),
        ("Planned start time", FieldType.time, None, True, None, None, None),
        ("Approximate number of guests", FieldType.number, None, False, None, None, None),
        ("Photograph the preparations?", FieldType.radio, ["Bride only", "Groom only", "Both", "No"], True, None, None, None),
        ("Preparations address", FieldType.text, None, True, None, None, (5, "Both")),
        ("Would you like a couple session?", FieldType.radio, ["Yes, before the wedding", "Yes, on the day", "Yes, the day after", "No"], False, None, None, None),
        ("Any particular theme or style?", FieldType.textarea, None, False, "Describe the atmosphere you want...", None, None),
        ("Other vendors to coordinate with?", FieldType.textarea, None, False, "Videographer, DJ, wedding planner...", None, None),
        ("Special moments not to miss?", FieldType.textarea, None, False, None, "Surprise, first dance, tradition...", None),
    ],
    "Portrait": [
        ("Type of portrait", FieldType.select, ["Professional", "Artistic", "Corporate", "Model / actor book", "Personal"], True, None, None, None),
        ("Preferred date", FieldType.date, None, True, None, None, None),
        ("Session location", FieldType.radio, ["Studio", "Outdoors", "Home / office", "Open to suggestions"], True, None, None, None),
        ("Address of the session", FieldType.text, None, True, None, None, (2, "Home / office")),
        ("Number of people", FieldType.number, None, True, None, None, None),
        ("Intended use of the photos", FieldType.checkbox, ["LinkedIn / CV", "Personal website", "Social media", "Company communication", "Personal use"], False, None, None, None),
        ("Visual references?", FieldType.textarea, None, False, "Pinterest links, photos you like...", None, None),
    ],
    "Corporate": [
        ("Type of service", FieldType.select, ["Team photos", "Executive portraits", "Event coverage", "Premises / architecture", "Products", "Business reportage"], True, None, None, None),
        ("Preferred date", FieldType.date, None, True, None, None, None),
        ("Address", FieldType.text, None, True, None, None, None),
        ("Estimated duration", FieldType.select, ["1-2 hours", "Half day", "Full day", "Several days"], True, None, None, None),
        ("Brand guidelines to follow?", FieldType.radio, ["Yes", "No", "To discuss"], False, None, None, None),
        ("Logistic constraints", FieldType.textarea, None, False, "Access, parking, badges, hours...", None, None),
    ],
    "Event": [
        ("Type of event", FieldType.select, ["Birthday", "Baptism", "Bar/Bat Mitzvah", "Private party", "Gala", "Opening", "Other"], True, None, None, None),
        ("Please specify", FieldType.text, None, True, None, None, (0, "Other")),
        ("Event date", FieldType.date, None, True, None, None, None),
        ("Venue", FieldType.text, None, True, None, None, None),
        ("Start time", FieldType.time, None, True, None, None, None),
        ("Key moments to capture", FieldType.textarea, None, False, "Speeches, cake, show...", None, None),
    ],
}

GENERIC_TEMPLATE = """<h1>Photography services contract</h1>
<p>Between <strong>{{photographer_name}}</strong>, {{photographer_address}}, SIRET {{photographer_siret}}
(the "Photographer"), and <strong>{{client_name}}</strong>, {{client_address}} (the "Client").</p>
<h2>1. Purpose</h2>
<p>The Photographer provides a {{event_type}} photography service to the Client under the terms below.</p>
<h2>2. Fees</h2>
<p>The agreed price and deposit are stated in the quote accepted by the Client.</p>
<h2>3. Delivery</h2>
<p>Edited photographs are delivered through an online gallery.</p>
<h2>4. Image rights</h2>
<p>The Photographer keeps the copyright on the photographs. The Client receives a licence for private use.</p>
<h2>5. Cancellation</h2>
<p>Any cancellation by the Client must be notified in writing. The deposit is not refundable.</p>
<p>Contact: {{photographer_email}} / {{photographer_phone}}. Client contact: {{client_email}} / {{client_phone}}.</p>
<p>Drawn up on {{date}}.</p>
"""

WEDDING_TEMPLATE = """<h1>Wedding photography contract</h1>
<p>Between <strong>{{photographer_name}}</strong>, {{photographer_address}}, SIRET {{photographer_siret}}
(the "Photographer"), and <strong>{{client_name}}</strong>, {{client_address}} (the "Couple").</p>
<h2>1. The day</h2>
<p>The Photographer covers the wedding of the Couple. The date, venues and schedule are those given in the
questionnaire annexed to this contract.</p>
<h2>2. Coverage</h2>
<p>Coverage includes the ceremony, the couple photos and the reception up to the first dance.</p>
<h2>3. Fees and deposit</h2>
<p>A deposit of 30% of the agreed price secures the date. The balance is due on the day of the wedding.</p>
<h2>4. Delivery</h2>
<p>Edited photographs are delivered through an online gallery within eight weeks.</p>
<h2>5. Image rights</h2>
<p>The Photographer keeps the copyright on the photographs and may use a selection for promotion unless the
Couple objects in writing.</p>
<h2>6. Cancellation</h2>
<p>The deposit is not refundable if the Couple cancels less than six months before the wedding.</p>
<p>Drawn up on {{date}}.</p>
"""

PORTRAIT_TEMPLATE = """<h1>Portrait session contract</h1>
<p>Between <strong>{{photographer_name}}</strong>, SIRET {{photographer_siret}}, and <strong>{{client_name}}</strong>.</p>
<p>The session, its location and the intended use of the photos are described in the annexed questionnaire.</p>
<p>Fees are due at the end of the session. Photos are delivered through an online gallery.</p>
<p>Drawn up on {{date}}.</p>
"""


def seed_event_types(db: Session) -> dict[str, EventType]:
    existing = {et.name: et for et in db.query(EventType).filter(EventType.is_system.is_(True)).all()}
    for order, (name, icon) in enumerate(EVENT_TYPES, start=1):
        if name not in existing:
            et = EventType(user_id=None, name=name, icon=icon, is_system=True, sort_order=order)
            db.add(et)
            existing[name] = et
    db.flush()
    for name, rows in QUESTIONS.items():
        et = existing[name]
        if db.query(Question.id).filter(Question.event_type_id == et.id).first() is not None:
            continue
        created: list[Question] = []
        for order, (text, field_type, options, required, placeholder, help_text, condition) in enumerate(rows, start=1):
            q = Question(
                event_type_id=et.id,
                question=text,
                field_type=field_type,
                options=options,
                is_required=required,
                placeholder=placeholder,
                help_text=help_text,
                sort_order=order,
            )
            if condition is not None:
                parent, value = condition
                # responses are keyed by question id, so the parent must be flushed first
                q.condition_field = created[parent].key
                q.condition_value = value
            db.add(q)
            db.flush()
            created.append(q)
    return existing


def seed_templates(db: Session, event_types: dict[str, EventType]) -> None:
    if db.query(ContractTemplate.id).filter(ContractTemplate.is_system.is_(True)).first() is not None:
        return
    db.add_all([
        ContractTemplate(user_id=None, event_type_id=None, name="Generic contract", content=GENERIC_TEMPLATE, is_system=True, is_default=True),
        ContractTemplate(
            user_id=None, event_type_id=event_types["Wedding"].id, name="Wedding contract",
            content=WEDDING_TEMPLATE, is_system=True, is_default=True,
        ),
        ContractTemplate(
            user_id=None, event_type_id=event_types["Portrait"].id, name="Portrait contract",
            content=PORTRAIT_TEMPLATE, is_system=True, is_default=True,
        ),
    ])


def seed_system_data(db: Session) -> None:
    """Idempotent: rows that already exist are left alone."""
    event_types = seed_event_types(db)
    seed_templates(db, event_types)
    db.commit()
