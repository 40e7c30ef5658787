"""Seed the database with the default rulebook and demo members.

Run with: python -m scripts.seed
Creates the tables, inserts any missing booking rule with its default value
and a handful of roster entries for local testing.
"""

import asyncio

from sqlalchemy import select

from app.core.auth import hash_password
from app.core.config import settings
from app.core.database import async_session_factory, engine
from app.models import Base, Member
from app.services.rules_config import seed_default_rules

# (first name, last name, birth year, email)
DEMO_MEMBERS = [
    ("Anna", "Schmidt", 1985, "anna.schmidt@example.com"),
    ("Bernd", "Müller", 1972, "bernd.mueller@example.com"),
    ("Clara", "Weber", 1990, None),
    ("Dieter", "Fischer", 1958, "dieter.fischer@example.com"),
    ("Eva", "Wagner", 2004, None),
    ("Felix", "Becker", 1999, "felix.becker@example.com"),
]

DEV_ADMIN_PASSWORD = "admin123"


async def seed():
    # Create tables (in dev; production uses Alembic migrations)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    async with async_session_factory() as db:
        added_rules = await seed_default_rules(db)

        result = await db.execute(select(Member.first_name, Member.last_name, Member.birth_year))
        existing = {(f.lower(), l.lower(), y) for f, l, y in result.all()}

        added_members = 0
        for first_name, last_name, birth_year, email in DEMO_MEMBERS:
            if (first_name.lower(), last_name.lower(), birth_year) in existing:
                continue
            db.add(Member(first_name=first_name, last_name=last_name, birth_year=birth_year, email=email))
            added_members += 1

        await db.commit()

    await engine.dispose()

    print(f"Seeded: {settings.club_name}")
    print(f"  {added_rules} booking rules added")
    print(f"  {added_members} demo members added")
    for first_name, last_name, birth_year, _ in DEMO_MEMBERS:
        print(f"    {first_name} {last_name} ({birth_year})")
    if not settings.admin_password_hash:
        print("\nNo admin password configured. For local use set:")
        print(f"  CS_ADMIN_EMAIL={settings.admin_email}")
        print(f"  CS_ADMIN_PASSWORD_HASH='{hash_password(DEV_ADMIN_PASSWORD)}'  # {DEV_ADMIN_PASSWORD}")


if __name__ == "__main__":
    asyncio.run(seed())
