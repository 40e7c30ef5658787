"""Club roster model.

Members have no login. A (first name, last name, birth year) triple that
matches a roster row is the identity used for booking, joining, cancelling
and editing.
"""

from sqlalchemy import Index, String
from sqlalchemy.orm import Mapped, mapped_column

from app.models.base import Base, TimestampMixin


class Member(TimestampMixin, Base):
    __tablename__ = "members"

    id: Mapped[int] = mapped_column(primary_key=True)
    first_name: Mapped[str] = mapped_column(String(100), nullable=False)
    last_name: Mapped[str] = mapped_column(String(100), nullable=False)
    birth_year: Mapped[int] = mapped_column(nullable=False)
    email: Mapped[str | None] = mapped_column(String(254))

    __table_args__ = (Index("ix_members_identity", "last_name", "birth_year"),)

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}"

    def __repr__(self) -> str:
        return f"<Member {self.full_name} ({self.birth_year})>"
