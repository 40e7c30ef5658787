"""Roster CSV parsing and import."""

import pytest
from sqlalchemy import select

from app.models.member import Member
from scripts.import_csv import import_members, parse_member_row


def test_parse_german_headers():
    row = {"Vorname": " Anna ", "Nachname": "Schmidt", "Geburtsjahr": "1985", "E-Mail": "Anna@Example.com"}
    assert parse_member_row(row) == ("Anna", "Schmidt", 1985, "anna@example.com")


def test_parse_falls_back_to_date_of_birth():
    row = {"First name": "Bernd", "Last name": "Weber", "Date of Birth": "03.11.1972"}
    assert parse_member_row(row) == ("Bernd", "Weber", 1972, None)

    row = {"first_name": "Clara", "last_name": "Fischer", "date_of_birth": "1990-02-28"}
    assert parse_member_row(row)[2] == 1990


@pytest.mark.parametrize(
    "row",
    [
        {"Vorname": "Anna", "Geburtsjahr": "1985"},
        {"Vorname": "Anna", "Nachname": "Schmidt", "Geburtsjahr": "85"},
        {"Vorname": "Anna", "Nachname": "Schmidt", "Geburtsjahr": "neunzehn"},
        {"Vorname": "Anna", "Nachname": "Schmidt"},
        {"Vorname": "Anna", "Nachname": "Schmidt", "Geburtsdatum": "sometime"},
    ],
)
def test_parse_rejects_bad_rows(row):
    with pytest.raises(ValueError):
        parse_member_row(row)


@pytest.mark.asyncio
async def test_import_members_skips_duplicates_and_bad_rows(db, members):
    rows = [
        {"Vorname": "anna", "Nachname": "schmidt", "Geburtsjahr": "1985"},
        {"Vorname": "Dieter", "Nachname": "Klein", "Geburtsjahr": "1960"},
        {"Vorname": "Dieter", "Nachname": "Klein", "Geburtsjahr": "1960"},
        {"Vorname": "Eva", "Nachname": "", "Geburtsjahr": "1999"},
    ]
    await import_members(db, rows, dry_run=False, replace=False)
    await db.commit()

    result = await db.execute(select(Member.last_name).order_by(Member.last_name))
    assert result.scalars().all() == ["Fischer", "Klein", "Schmidt", "Weber"]


@pytest.mark.asyncio
async def test_import_members_dry_run_writes_nothing(db, members):
    rows = [{"Vorname": "Dieter", "Nachname": "Klein", "Geburtsjahr": "1960"}]
    await import_members(db, rows, dry_run=True, replace=False)
    await db.commit()

    result = await db.execute(select(Member).where(Member.last_name == "Klein"))
    assert result.scalars().first() is None
