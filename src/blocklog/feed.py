"""Block feed: derived per block metrics and display formatting."""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import TYPE_CHECKING

if TYPE_CHECKING:  # pragma: no cover
    from collections.abc import Iterable
    from datetime import datetime
    from decimal import Decimal

    from .models import Block

NOT_AVAILABLE = "N/A"

# Independent of the process locale
MONTHS = (
    "January",
    "February",
    "March",
    "April",
    "May",
    "June",
    "July",
    "August",
    "September",
    "October",
    "November",
    "December",
)


def hours_between(start: datetime, end: datetime) -> float:
    """Elapsed hours from start to end. Negative if end comes first."""
    return (end - start).total_seconds() / 3600


def hourly_rate(start: datetime, end: datetime, pay: Decimal | float) -> float:
    """Pay per hour worked over the window.

    A zero length window does not raise: it gives inf, or nan if there is
    no pay either.
    """
    hours = hours_between(start, end)
    pay = float(pay)
    if hours == 0:
        if pay == 0:
            return math.nan
        return math.copysign(math.inf, pay)
    return pay / hours


def total_mileage(mileage_start: int, mileage_end: int) -> int:
    """Miles driven. Inconsistent readings give a negative value."""
    return mileage_end - mileage_start


@dataclass(frozen=True)
class BlockCard:
    """A block plus the metrics shown with it in the feed."""

    block: Block
    scheduled_hourly_rate: float
    actual_hourly_rate: float
    total_mileage: int

    @classmethod
    def from_block(cls, block: Block) -> BlockCard:
        """Compute the derived metrics of a block."""
        return cls(
            block=block,
            scheduled_hourly_rate=hourly_rate(
                block.scheduled_time_start,
                block.scheduled_time_end,
                block.pay,
            ),
            actual_hourly_rate=hourly_rate(block.time_start, block.time_end, block.pay),
            total_mileage=total_mileage(block.mileage_start, block.mileage_end),
        )


def build_feed(blocks: Iterable[Block]) -> list[BlockCard]:
    """Cards for the feed, in the order given."""
    return [BlockCard.from_block(block) for block in blocks]


def format_currency(value: Decimal | float | None) -> str:
    """Format as US dollars, $1,234.50."""
    if value is None or not math.isfinite(value):
        return NOT_AVAILABLE
    sign = "-" if value < 0 else ""
    return f"{sign}${abs(value):,.2f}"


def format_number(value: Decimal | float | None) -> str:
    """Format with at most two decimals, 12.5 or 1,234."""
    if value is None or not math.isfinite(value):
        return NOT_AVAILABLE
    text = f"{value:,.2f}".rstrip("0").rstrip(".")
    return "0" if text in ("-0", "") else text


def format_date(value: datetime) -> str:
    """Format a date the long way, January 5, 2024."""
    return f"{MONTHS[value.month - 1]} {value.day}, {value.year}"


def format_time(value: datetime) -> str:
    """Format a time of day on the 12 hour clock, 9:05 AM."""
    hour = value.hour % 12 or 12
    meridiem = "AM" if value.hour < 12 else "PM"  # noqa: PLR2004
    return f"{hour}:{value.minute:02d} {meridiem}"
