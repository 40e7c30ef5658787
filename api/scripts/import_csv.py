"""Import the club's member roster from a CSV export.

Usage:
    python -m scripts.import_csv data/members.csv [--dry-run] [--replace]

The roster is what booking identities are checked against: a member is a
(first name, last name, birth year) triple. Column mappings are defined
below; either a birth year or a full date of birth column is accepted.
"""

import argparse
import asyncio
import csv
import sys
from datetime import date, datetime
from pathlib import Path

from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.database import async_session_factory
from app.models.member import Member

# ---------------------------------------------------------------------------
# Column mappings. Keys are internal field names, values are accepted CSV
# headers (first match wins).
# ---------------------------------------------------------------------------

MEMBER_COLUMNS = {
    "first_name": ("Vorname", "First name", "first_name"),
    "last_name": ("Nachname", "Last name", "last_name"),
    "birth_year": ("Geburtsjahr", "Birth year", "birth_year"),
    "date_of_birth": ("Geburtsdatum", "Date of Birth", "date_of_birth"),
    "email": ("E-Mail", "Email", "email"),
}


def _read_csv(path: Path) -> list[dict[str, str]]:
    """Read CSV with encoding fallback. Semicolon-separated files are detected."""
    for encoding in ("utf-8-sig", "utf-8", "latin-1"):
        try:
            with open(path, encoding=encoding, newline="") as f:
                sample = f.read(4096)
                f.seek(0)
                delimiter = ";" if sample.count(";") > sample.count(",") else ","
                reader = csv.DictReader(f, delimiter=delimiter)
                return list(reader)
        except UnicodeDecodeError:
            continue
    print(f"ERROR: Could not decode {path} with any supported encoding")
    sys.exit(1)


def _get(row: dict[str, str], field: str) -> str:
    """Get a field from a CSV row using the column mapping. Returns empty string if missing."""
    for col in MEMBER_COLUMNS.get(field, ()):
        value = row.get(col)
        if value:
            return value.strip()
    return ""


def _parse_date(value: str) -> date | None:
    """Try common date formats."""
    for fmt in ("%d.%m.%Y", "%Y-%m-%d", "%d/%m/%Y"):
        try:
            return datetime.strptime(value, fmt).date()
        except ValueError:
            continue
    return None


def parse_member_row(row: dict[str, str]) -> tuple[str, str, int, str | None]:
    """Return (first name, last name, birth year, email). Raises ValueError on bad rows."""
    first_name = _get(row, "first_name")
    last_name = _get(row, "last_name")
    if not first_name or not last_name:
        raise ValueError("missing name")

    year_str = _get(row, "birth_year")
    if year_str:
        if not year_str.isdigit() or len(year_str) != 4:
            raise ValueError(f"invalid birth year '{year_str}'")
        birth_year = int(year_str)
    else:
        dob_str = _get(row, "date_of_birth")
        dob = _parse_date(dob_str) if dob_str else None
        if dob is None:
            raise ValueError(f"missing or invalid date of birth '{dob_str}'")
        birth_year = dob.year

    return first_name, last_name, birth_year, _get(row, "email").lower() or None


async def import_members(db: AsyncSession, rows: list[dict[str, str]], *, dry_run: bool, replace: bool) -> None:
    """Import roster rows. Existing identities are skipped unless --replace wipes the roster first."""
    if replace and not dry_run:
        await db.execute(delete(Member))

    existing: set[tuple[str, str, int]] = set()
    if not replace:
        result = await db.execute(select(Member.first_name, Member.last_name, Member.birth_year))
        existing = {(f.lower(), l.lower(), y) for f, l, y in result.all()}

    imported = 0
    skipped = 0
    errors: list[str] = []

    for i, row in enumerate(rows):
        row_num = i + 2  # 1-indexed, +1 for header

        try:
            first_name, last_name, birth_year, email = parse_member_row(row)
        except ValueError as exc:
            errors.append(f"Row {row_num}: {exc}")
            continue

        key = (first_name.lower(), last_name.lower(), birth_year)
        if key in existing:
            skipped += 1
            continue

        if dry_run:
            print(f"  [DRY RUN] Would import: {first_name} {last_name} ({birth_year})")
        else:
            db.add(Member(first_name=first_name, last_name=last_name, birth_year=birth_year, email=email))

        existing.add(key)
        imported += 1

        if (i + 1) % 100 == 0:
            print(f"  Processed {i + 1}/{len(rows)} rows...")

    print(f"\nMembers import {'(DRY RUN) ' if dry_run else ''}complete:")
    print(f"  Imported: {imported}")
    print(f"  Skipped (duplicate): {skipped}")
    print(f"  Errors: {len(errors)}")
    for err in errors:
        print(f"    {err}")


# ---------------------------------------------------------------------------
# CLI
# ---------------------------------------------------------------------------


async def main(args: argparse.Namespace) -> None:
    path = Path(args.csv_file)
    if not path.exists():
        print(f"ERROR: File not found: {path}")
        sys.exit(1)

    print(f"Reading {path}...")
    rows = _read_csv(path)
    print(f"Found {len(rows)} rows.")

    async with async_session_factory() as db:
        await import_members(db, rows, dry_run=args.dry_run, replace=args.replace)

        if not args.dry_run:
            await db.commit()
            print("Committed to database.")
        else:
            await db.rollback()
            print("Dry run: no changes made.")


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="Import the member roster into CourtSlot")
    parser.add_argument("csv_file", help="Path to members CSV file")
    parser.add_argument("--dry-run", action="store_true", help="Validate without writing to DB")
    parser.add_argument("--replace", action="store_true", help="Replace the whole roster instead of adding to it")

    parsed = parser.parse_args()
    asyncio.run(main(parsed))
