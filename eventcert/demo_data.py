"""Demo events and participants for local development."""

from datetime import date

from .app import db
from .constants import STATUS_FAILED, STATUS_NOT_SENT, STATUS_SENT
from .models import Event
from .services.registration import seed_participants

DEMO_EVENTS = [
    {
        "key": "summit",
        "title": "Web3 & Blockchain Summit 2024",
        "description": "A deep dive into the future of decentralized technologies, with hands-on workshops and expert panels.",
        "date": date(2024, 9, 15),
        "category": "Tech",
    },
    {
        "key": "leadership",
        "title": "Future of Leadership Conference",
        "description": "Explore modern leadership strategies and network with top executives from various industries.",
        "date": date(2024, 10, 20),
        "category": "Business",
    },
    {
        "key": "arts",
        "title": "Digital Arts & Creative Coding Fest",
        "description": "A vibrant festival celebrating the intersection of art and technology, featuring interactive installations.",
        "date": date(2024, 11, 5),
        "category": "Art",
    },
    {
        "key": "education",
        "title": "Advanced AI in Education Workshop",
        "description": "Learn how to implement cutting-edge AI tools in educational settings to enhance student learning.",
        "date": date(2024, 11, 22),
        "category": "Education",
    },
]

DEMO_PARTICIPANTS = {
    "summit": [
        {"name": "Alice Johnson", "email": "alice@example.com", "phone": "123-456-7890", "certificate_status": STATUS_SENT},
        {"name": "Bob Williams", "email": "bob@example.com", "phone": "234-567-8901", "certificate_status": STATUS_SENT},
    ],
    "leadership": [
        {"name": "Charlie Brown", "email": "charlie@example.com", "phone": "345-678-9012", "certificate_status": STATUS_NOT_SENT},
        {
            "name": "Diana Prince",
            "email": "diana@example.com",
            "phone": "456-789-0123",
            "organization": "Themyscira Inc.",
            "job_title": "Ambassador",
            "certificate_status": STATUS_NOT_SENT,
        },
    ],
    "arts": [
        {"name": "Ethan Hunt", "email": "ethan@example.com", "phone": "567-890-1234", "certificate_status": STATUS_FAILED},
    ],
    "education": [
        {"name": "Fiona Glenanne", "email": "fiona@example.com", "phone": "678-901-2345", "certificate_status": STATUS_SENT},
    ],
}


def seed_demo_data() -> tuple[int, int]:
    """Insert demo events that are not present yet (matched by title).

    Returns ``(events_added, participants_added)``.
    """

    existing = {title for (title,) in db.session.query(Event.title)}
    events_added = participants_added = 0
    for row in DEMO_EVENTS:
        if row["title"] in existing:
            continue
        event = Event(
            title=row["title"],
            description=row["description"],
            date=row["date"],
            category=row["category"],
            participant_count=0,
        )
        db.session.add(event)
        db.session.flush()
        participants_added += seed_participants(event, DEMO_PARTICIPANTS[row["key"]])
        events_added += 1
    db.session.commit()
    return events_added, participants_added
