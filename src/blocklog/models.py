"""Database models for the application."""

from __future__ import annotations

from datetime import datetime  # noqa: TCH003. Needed by the mapping.
from decimal import Decimal  # noqa: TCH003. Needed by the mapping.

from sqlalchemy import DateTime, ForeignKey, Index, Integer, Numeric, String
from sqlalchemy.orm import Mapped, mapped_column, relationship
from sqlalchemy.orm.decl_api import DeclarativeBase
from sqlalchemy.schema import MetaData

from .clock import local_now

# Stable constraint names on every backend
naming_convention = {
    "ix": "ix_%(column_0_label)s",
    "uq": "uq_%(table_name)s_%(column_0_name)s",
    "ck": "ck_%(table_name)s_%(constraint_name)s",
    "fk": "fk_%(table_name)s_%(column_0_name)s_%(referred_table_name)s",
    "pk": "pk_%(table_name)s",
}

metadata = MetaData(naming_convention=naming_convention)


# Define a base using the declarative base
class Base(DeclarativeBase):
    """Base class for declarative models."""

    metadata = metadata


class User(Base):
    """Account that owns blocks. Registered on first login."""

    __tablename__ = "users"

    id: Mapped[int] = mapped_column(primary_key=True)
    email: Mapped[str] = mapped_column(String(120), unique=True, nullable=False)
    name: Mapped[str | None] = mapped_column(String(100), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=local_now)

    blocks: Mapped[list[Block]] = relationship(
        "Block",
        back_populates="owner",
        cascade="all, delete-orphan",
    )

    @property
    def display_name(self) -> str:
        """Name shown in the header, the email if no name is known."""
        return self.name or self.email

    def __repr__(self) -> str:
        """Representation of a user."""
        return f"<User {self.email}>"


class Block(Base):
    """One recorded work shift.

    Scheduled and actual windows are stored as naive wall-clock datetimes
    in the app timezone, exactly as the user entered them.
    """

    __tablename__ = "blocks"
    __table_args__ = (Index("idx_blocks_owner_created", "created_by", "created_at"),)

    id: Mapped[int] = mapped_column(primary_key=True)
    pickup_location: Mapped[str] = mapped_column(String(100), nullable=False)
    scheduled_time_start: Mapped[datetime] = mapped_column(DateTime, nullable=False)
    scheduled_time_end: Mapped[datetime] = mapped_column(DateTime, nullable=False)
    time_start: Mapped[datetime] = mapped_column(DateTime, nullable=False)
    """Actual start of the worked window."""
    time_end: Mapped[datetime] = mapped_column(DateTime, nullable=False)
    """Actual end of the worked window."""
    pay: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False)
    mileage_start: Mapped[int] = mapped_column(Integer, nullable=False)
    """Odometer reading at the start of the block."""
    mileage_end: Mapped[int] = mapped_column(Integer, nullable=False)
    """Odometer reading at the end. Not forced to be >= mileage_start."""
    city: Mapped[str] = mapped_column(String(100), nullable=False)
    created_by: Mapped[int] = mapped_column(
        Integer,
        ForeignKey("users.id"),
        nullable=False,
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime,
        default=local_now,
        nullable=False,
    )

    owner: Mapped[User] = relationship("User", back_populates="blocks")

    def to_dict(self) -> dict[str, str | int]:
        """Serialize the block for the JSON API and the export command."""
        return {
            "id": self.id,
            "pickup_location": self.pickup_location,
            "scheduled_time_start": self.scheduled_time_start.isoformat(),
            "scheduled_time_end": self.scheduled_time_end.isoformat(),
            "time_start": self.time_start.isoformat(),
            "time_end": self.time_end.isoformat(),
            "pay": str(self.pay),
            "mileage_start": self.mileage_start,
            "mileage_end": self.mileage_end,
            "city": self.city,
            "created_at": self.created_at.isoformat(),
        }

    def __repr__(self) -> str:
        """Representation of a block."""
        return f"<Block {self.id} {self.pickup_location} {self.time_start:%Y-%m-%d}>"
