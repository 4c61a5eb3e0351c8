"""Store access layer for blocks.

Every operation receives the caller identity as an explicit UserContext
and only ever sees or touches blocks owned by that user. A block owned by
somebody else is reported exactly like a missing one.
"""

from __future__ import annotations

from dataclasses import dataclass, fields
from datetime import datetime
from decimal import Decimal
from logging import getLogger
from typing import TYPE_CHECKING

from .models import Block

if TYPE_CHECKING:  # pragma: no cover
    from sqlalchemy.orm import Session, scoped_session

logger = getLogger(__name__)

CENT = Decimal("0.01")
MAX_PAY = Decimal("99999999.99")
"""Largest amount the Numeric(10, 2) pay column holds."""


class ValidationError(ValueError):
    """Invalid block fields. Carries one message per offending field."""

    def __init__(self, errors: dict[str, str]) -> None:
        """Store the per field messages."""
        super().__init__("; ".join(f"{k}: {v}" for k, v in errors.items()))
        self.errors = errors


class BlockNotFoundError(LookupError):
    """The block does not exist or is not owned by the caller."""

    def __init__(self, block_id: int) -> None:
        """Keep the id that was looked up."""
        super().__init__(f"Block {block_id} not found")
        self.block_id = block_id


@dataclass(frozen=True)
class UserContext:
    """Authenticated identity on whose behalf the store is accessed."""

    user_id: int


@dataclass(frozen=True)
class BlockFields:
    """Every user editable field of a block, already typed."""

    pickup_location: str
    scheduled_time_start: datetime
    scheduled_time_end: datetime
    pay: Decimal
    time_start: datetime
    time_end: datetime
    mileage_start: int
    mileage_end: int
    city: str

    def validate(self) -> None:
        """Raise ValidationError unless every field is acceptable."""
        errors: dict[str, str] = {}

        for name in ("pickup_location", "city"):
            value = getattr(self, name)
            if not isinstance(value, str) or not value.strip():
                errors[name] = f"{FIELD_LABELS[name]} is required"

        for name in (
            "scheduled_time_start",
            "scheduled_time_end",
            "time_start",
            "time_end",
        ):
            if not isinstance(getattr(self, name), datetime):
                errors[name] = f"{FIELD_LABELS[name]} must be a valid date and time"

        for name in ("pay", "mileage_start", "mileage_end"):
            value = getattr(self, name)
            if isinstance(value, bool) or not isinstance(value, (int, Decimal)):
                errors[name] = f"{FIELD_LABELS[name]} must be a number"
            elif isinstance(value, Decimal) and not value.is_finite():
                errors[name] = f"{FIELD_LABELS[name]} must be a number"
            elif not value > 0:
                errors[name] = f"{FIELD_LABELS[name]} must be greater than zero"
            elif name == "pay" and (problem := pay_problem(Decimal(value))):
                errors[name] = problem

        if errors:
            raise ValidationError(errors)

    def apply_to(self, block: Block) -> Block:
        """Overwrite every editable field of block."""
        for field in fields(self):
            value = getattr(self, field.name)
            if isinstance(value, str):
                value = value.strip()
            setattr(block, field.name, value)
        return block


def pay_problem(amount: Decimal) -> str | None:
    """Describe why a positive amount cannot be stored as pay, if it cannot."""
    if amount > MAX_PAY:
        return f"Pay amount must be at most ${MAX_PAY:,}"
    if amount != amount.quantize(CENT):
        return "Pay amount must not have fractions of a cent"
    return None


FIELD_LABELS = {
    "pickup_location": "Pickup location",
    "date": "Date",
    "scheduled_time_start": "Scheduled starting time",
    "scheduled_time_end": "Scheduled ending time",
    "pay": "Pay amount",
    "time_start": "Starting time",
    "time_end": "Ending time",
    "mileage_start": "Starting mileage",
    "mileage_end": "Ending mileage",
    "city": "City",
}
"""Human readable names used in validation messages."""


def _owned_block(
    ctx: UserContext,
    block_id: int,
    session: Session | scoped_session,
) -> Block:
    block = session.get(Block, block_id)
    if block is None or block.created_by != ctx.user_id:
        if block is not None:
            logger.warning(
                "User %s tried to access block %s owned by user %s",
                ctx.user_id,
                block_id,
                block.created_by,
            )
        raise BlockNotFoundError(block_id)
    return block


def create_block(
    ctx: UserContext,
    block_fields: BlockFields,
    session: Session | scoped_session,
) -> Block:
    """Insert a new block owned by the caller and return it with its id."""
    block_fields.validate()
    block = block_fields.apply_to(Block(created_by=ctx.user_id))
    session.add(block)
    session.commit()
    logger.info("Block %s created by user %s", block.id, ctx.user_id)
    return block


def get_latest(ctx: UserContext, session: Session | scoped_session) -> list[Block]:
    """Return all the caller's blocks, most recently created first."""
    return (
        session.query(Block)
        .filter(Block.created_by == ctx.user_id)
        .order_by(Block.created_at.desc(), Block.id.desc())
        .all()
    )


def get_block(
    ctx: UserContext,
    block_id: int,
    session: Session | scoped_session,
) -> Block:
    """Return one of the caller's blocks."""
    return _owned_block(ctx, block_id, session)


def update_block(
    ctx: UserContext,
    block_id: int,
    block_fields: BlockFields,
    session: Session | scoped_session,
) -> Block:
    """Overwrite every field of one of the caller's blocks."""
    block_fields.validate()
    block = block_fields.apply_to(_owned_block(ctx, block_id, session))
    session.commit()
    logger.info("Block %s updated by user %s", block_id, ctx.user_id)
    return block


def delete_block(
    ctx: UserContext,
    block_id: int,
    session: Session | scoped_session,
) -> None:
    """Remove one of the caller's blocks. Fails if it is already gone."""
    block = _owned_block(ctx, block_id, session)
    session.delete(block)
    session.commit()
    logger.info("Block %s deleted by user %s", block_id, ctx.user_id)
