"""Sample data seeder: default scoring model, contacts and a scored history.

Run with ``python -m leadscore.scripts.seed``.  Existing scoring data is
cleared first so the script can be re-run.
"""

import asyncio

from sqlalchemy import func, select, text
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from leadscore.core.config import settings
from leadscore.models import Contact, ScoreHistoryEntry
from leadscore.repositories.scoring_model_repository import ScoringModelRepository
from leadscore.schemas.common import ScoringEventType
from leadscore.services.lead_scoring import ScoringEngine

FIRST_NAMES = ["Ava", "Noah", "Mia", "Liam", "Zoe", "Omar", "Lena", "Ravi"]
LAST_NAMES = ["Walker", "Okafor", "Schmidt", "Nakamura", "Silva"]

# (event, related_type) pairs replayed against every few contacts
SAMPLE_JOURNEY = [
    (ScoringEventType.EMAIL_OPENED, None),
    (ScoringEventType.EMAIL_CLICKED, None),
    (ScoringEventType.PAGE_VISITED, "pricing"),
    (ScoringEventType.FORM_SUBMITTED, None),
    (ScoringEventType.MEETING_BOOKED, None),
    (ScoringEventType.DEMO_REQUESTED, None),
    (ScoringEventType.QUOTE_REQUESTED, None),
]

# Children before parents
_TABLES = (
    "contact_status_changes",
    "rule_applications",
    "score_history",
    "contacts",
    "scoring_rules",
    "scoring_models",
)


async def seed():
    engine = create_async_engine(settings.DATABASE_URL, echo=False)
    session_maker = async_sessionmaker(
        engine, class_=AsyncSession, expire_on_commit=False
    )

    async with session_maker() as session:
        print("Seeding lead scoring sample data")

        for table in _TABLES:
            await session.execute(text(f"DELETE FROM {table}"))
        await session.commit()
        print("Cleared existing scoring data")

        # 1. Default model, from the single source of truth
        model = await ScoringModelRepository(session).seed_default_if_empty()
        await session.commit()
        print(f"Created default model with {len(model.rules)} rules")

        # 2. Contacts
        contacts = []
        for i in range(40):
            contact = Contact(
                first_name=FIRST_NAMES[i % len(FIRST_NAMES)],
                last_name=LAST_NAMES[i % len(LAST_NAMES)],
                email=f"contact{i}@example.com",
            )
            session.add(contact)
            contacts.append(contact)
        await session.commit()
        print(f"Created {len(contacts)} contacts")

    # 3. Replay a partial journey per contact through the engine
    scoring = ScoringEngine(session_factory=session_maker)
    events = 0
    for i, contact in enumerate(contacts):
        for event_type, related_type in SAMPLE_JOURNEY[: i % (len(SAMPLE_JOURNEY) + 1)]:
            await scoring.process_event(
                contact.contact_id, event_type, related_type=related_type
            )
            events += 1
    print(f"Processed {events} sample events")

    async with session_maker() as session:
        entries = (
            await session.execute(select(func.count()).select_from(ScoreHistoryEntry))
        ).scalar()
        qualified = (
            await session.execute(
                select(func.count())
                .select_from(Contact)
                .where(Contact.status != "new")
            )
        ).scalar()

    print("\nValidation:")
    print(f"  Ledger entries: {entries}")
    print(f"  Qualified or customer contacts: {qualified}")
    print("Seeding complete")

    await engine.dispose()


if __name__ == "__main__":
    asyncio.run(seed())
