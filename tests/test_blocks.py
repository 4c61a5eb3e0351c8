"""Tests for the store access layer."""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import TYPE_CHECKING

import pytest
from blocklog.blocks import (
    BlockNotFoundError,
    UserContext,
    ValidationError,
    create_block,
    delete_block,
    get_block,
    get_latest,
    update_block,
)

from .factories import make_fields

if TYPE_CHECKING:
    from blocklog.models import Block, User
    from sqlalchemy.orm import scoped_session


def test_create_then_get_latest(ctx: UserContext, session: scoped_session) -> None:
    """A created block shows up in the listing with a fresh id."""
    fields = make_fields(pickup_location="Warehouse DAX5", city="Ontario")
    block = create_block(ctx, fields, session)

    assert block.id is not None
    latest = get_latest(ctx, session)
    assert [b.id for b in latest] == [block.id]
    stored = latest[0]
    assert stored.pickup_location == "Warehouse DAX5"
    assert stored.city == "Ontario"
    assert stored.pay == Decimal("100.00")
    assert stored.scheduled_time_start == datetime(2024, 3, 1, 9, 0)
    assert stored.time_end == datetime(2024, 3, 1, 11, 0)
    assert stored.mileage_start == 1000
    assert stored.mileage_end == 1150
    assert stored.created_by == ctx.user_id


def test_create_strips_text(ctx: UserContext, session: scoped_session) -> None:
    """Surrounding blanks are not stored."""
    block = create_block(ctx, make_fields(city="  Irvine "), session)
    assert block.city == "Irvine"


def test_get_latest_empty(ctx: UserContext, session: scoped_session) -> None:
    """No blocks gives an empty list."""
    assert get_latest(ctx, session) == []


def test_get_latest_most_recent_first(
    ctx: UserContext,
    session: scoped_session,
) -> None:
    """Listing is ordered by creation time, most recent first."""
    first = create_block(ctx, make_fields(pickup_location="A"), session)
    second = create_block(ctx, make_fields(pickup_location="B"), session)
    third = create_block(ctx, make_fields(pickup_location="C"), session)

    # Creation times deliberately out of id order
    first.created_at = datetime(2024, 3, 2, 8, 0)
    second.created_at = datetime(2024, 3, 1, 8, 0)
    third.created_at = datetime(2024, 3, 3, 8, 0)
    session.commit()

    assert [b.id for b in get_latest(ctx, session)] == [third.id, first.id, second.id]


def test_get_latest_only_own_blocks(
    ctx: UserContext,
    other_user: User,
    session: scoped_session,
) -> None:
    """Blocks of other users are never listed."""
    mine = create_block(ctx, make_fields(), session)
    create_block(UserContext(other_user.id), make_fields(), session)

    assert [b.id for b in get_latest(ctx, session)] == [mine.id]


@pytest.mark.parametrize(
    ("overrides", "field", "message"),
    [
        ({"pickup_location": ""}, "pickup_location", "Pickup location is required"),
        ({"city": "   "}, "city", "City is required"),
        ({"pay": Decimal("-5")}, "pay", "Pay amount must be greater than zero"),
        ({"pay": Decimal(0)}, "pay", "Pay amount must be greater than zero"),
        ({"pay": Decimal("NaN")}, "pay", "Pay amount must be a number"),
        ({"pay": Decimal("0.004")}, "pay", "must not have fractions of a cent"),
        ({"pay": Decimal("1e9")}, "pay", "must be at most $99,999,999.99"),
        ({"pay": 10**9}, "pay", "must be at most $99,999,999.99"),
        ({"mileage_start": 0}, "mileage_start", "must be greater than zero"),
        ({"mileage_end": -3}, "mileage_end", "must be greater than zero"),
        ({"time_start": "09:00"}, "time_start", "must be a valid date and time"),
    ],
)
def test_create_validation(
    ctx: UserContext,
    session: scoped_session,
    overrides: dict,
    field: str,
    message: str,
) -> None:
    """Invalid fields are rejected before touching the store."""
    with pytest.raises(ValidationError) as excinfo:
        create_block(ctx, make_fields(**overrides), session)

    assert message in excinfo.value.errors[field]
    assert get_latest(ctx, session) == []


def test_update_reflects_new_values(
    ctx: UserContext,
    session: scoped_session,
) -> None:
    """Update overwrites one block and leaves the others alone."""
    target = create_block(ctx, make_fields(pickup_location="A"), session)
    other = create_block(ctx, make_fields(pickup_location="B"), session)

    updated = update_block(
        ctx,
        target.id,
        make_fields(
            pickup_location="Warehouse DLA3",
            pay=Decimal("85.50"),
            mileage_end=1200,
            time_end=datetime(2024, 3, 1, 12, 0),
        ),
        session,
    )

    assert updated.id == target.id
    by_id = {b.id: b for b in get_latest(ctx, session)}
    assert by_id[target.id].pickup_location == "Warehouse DLA3"
    assert by_id[target.id].pay == Decimal("85.50")
    assert by_id[target.id].mileage_end == 1200
    assert by_id[target.id].time_end == datetime(2024, 3, 1, 12, 0)
    assert by_id[other.id].pickup_location == "B"
    assert by_id[other.id].pay == Decimal("100.00")


def test_update_missing_block(ctx: UserContext, session: scoped_session) -> None:
    """Updating an unknown id fails."""
    with pytest.raises(BlockNotFoundError):
        update_block(ctx, 9999, make_fields(), session)


def test_update_not_owned(
    block: Block,
    other_user: User,
    session: scoped_session,
) -> None:
    """Another user cannot update the block, and it stays unchanged."""
    with pytest.raises(BlockNotFoundError):
        update_block(
            UserContext(other_user.id),
            block.id,
            make_fields(pickup_location="Hijacked"),
            session,
        )
    assert session.get(type(block), block.id).pickup_location == "Warehouse DLA8"


def test_update_validation(
    ctx: UserContext,
    block: Block,
    session: scoped_session,
) -> None:
    """Update validates like create."""
    with pytest.raises(ValidationError):
        update_block(ctx, block.id, make_fields(pay=Decimal("-5")), session)


def test_delete(ctx: UserContext, block: Block, session: scoped_session) -> None:
    """A deleted block is gone and deleting it again fails."""
    block_id = block.id
    delete_block(ctx, block_id, session)

    assert block_id not in [b.id for b in get_latest(ctx, session)]
    with pytest.raises(BlockNotFoundError):
        delete_block(ctx, block_id, session)


def test_delete_not_owned(
    ctx: UserContext,
    block: Block,
    other_user: User,
    session: scoped_session,
) -> None:
    """Another user cannot delete the block."""
    with pytest.raises(BlockNotFoundError):
        delete_block(UserContext(other_user.id), block.id, session)
    assert [b.id for b in get_latest(ctx, session)] == [block.id]


def test_get_block(
    ctx: UserContext,
    block: Block,
    other_user: User,
    session: scoped_session,
) -> None:
    """A single block is only returned to its owner."""
    assert get_block(ctx, block.id, session).id == block.id
    with pytest.raises(BlockNotFoundError):
        get_block(UserContext(other_user.id), block.id, session)
