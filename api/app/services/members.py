"""Membership verification against the club roster.

There are no member passwords: whoever supplies a (first name, last name,
birth year) triple that exists in the roster is that member. Names compare
case-insensitively after trimming, the birth year compares exactly.
"""

from dataclasses import dataclass

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.models.member import Member
from app.models.reservation import Reservation


@dataclass(frozen=True)
class Identity:
    first_name: str
    last_name: str
    birth_year: int

    @classmethod
    def of(cls, first_name: str, last_name: str, birth_year: int) -> "Identity":
        return cls(first_name.strip(), last_name.strip(), int(birth_year))

    def matches(self, first_name: str | None, last_name: str | None, birth_year: int | None) -> bool:
        if first_name is None or last_name is None or birth_year is None:
            return False
        return (
            self.first_name.lower() == first_name.strip().lower()
            and self.last_name.lower() == last_name.strip().lower()
            and self.birth_year == birth_year
        )

    def is_booker_of(self, reservation: Reservation) -> bool:
        return self.matches(
            reservation.booker_first_name, reservation.booker_last_name, reservation.booker_birth_year
        )

    def is_partner_of(self, reservation: Reservation) -> bool:
        return self.matches(
            reservation.partner_first_name, reservation.partner_last_name, reservation.partner_birth_year
        )


async def verify_member(db: AsyncSession, identity: Identity) -> bool:
    """True if the identity exists in the roster."""
    result = await db.execute(
        select(func.count(Member.id)).where(
            func.lower(Member.first_name) == identity.first_name.lower(),
            func.lower(Member.last_name) == identity.last_name.lower(),
            Member.birth_year == identity.birth_year,
        )
    )
    return result.scalar_one() > 0
