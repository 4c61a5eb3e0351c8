"""Dashboard statistics over all of a user's blocks."""

from __future__ import annotations

from collections import Counter
from dataclasses import dataclass, field
from decimal import Decimal
from typing import TYPE_CHECKING

from .feed import hours_between, total_mileage

if TYPE_CHECKING:  # pragma: no cover
    from collections.abc import Sequence

    from .models import Block

CHART_TITLE = "Pickup Location Breakdown"
CHART_HEADER = ["Location", "Count"]


@dataclass(frozen=True)
class DashboardStats:
    """Totals, per block averages and the pickup location breakdown.

    Averages are None when there are no blocks, so that the page can show
    a "no data" state instead of a NaN.
    """

    block_count: int = 0
    total_hours: float = 0.0
    total_mileage: int = 0
    total_pay: Decimal = Decimal(0)
    pickup_locations: list[tuple[str, int]] = field(default_factory=list)

    @property
    def has_data(self) -> bool:
        """Whether there is at least one block."""
        return self.block_count > 0

    @property
    def average_hours(self) -> float | None:
        """Worked hours per block."""
        if not self.has_data:
            return None
        return self.total_hours / self.block_count

    @property
    def average_mileage(self) -> float | None:
        """Miles per block."""
        if not self.has_data:
            return None
        return self.total_mileage / self.block_count

    @property
    def average_pay(self) -> Decimal | None:
        """Pay per block."""
        if not self.has_data:
            return None
        return self.total_pay / self.block_count

    def chart_data(self) -> list[list[str | int]]:
        """Rows for the pie chart, header first."""
        return [list(CHART_HEADER)] + [[loc, n] for loc, n in self.pickup_locations]

    def to_dict(self) -> dict:
        """Serialize for the JSON API."""

        def _num(value: Decimal | float | None) -> str | float | None:
            if isinstance(value, Decimal):
                return str(value.quantize(Decimal("0.01")))
            return value

        return {
            "block_count": self.block_count,
            "totals": {
                "hours": self.total_hours,
                "mileage": self.total_mileage,
                "pay": _num(self.total_pay),
            },
            "averages": {
                "hours": self.average_hours,
                "mileage": self.average_mileage,
                "pay": _num(self.average_pay),
            },
            "pickup_locations": dict(self.pickup_locations),
        }


def pickup_location_breakdown(blocks: Sequence[Block]) -> list[tuple[str, int]]:
    """Number of blocks per pickup location, most frequent first.

    Ties keep the order in which the locations first appear.
    """
    return Counter(block.pickup_location for block in blocks).most_common()


def compute_stats(blocks: Sequence[Block]) -> DashboardStats:
    """Compute the dashboard statistics from the full list of blocks."""
    return DashboardStats(
        block_count=len(blocks),
        total_hours=sum(
            (hours_between(block.time_start, block.time_end) for block in blocks),
            0.0,
        ),
        total_mileage=sum(
            total_mileage(block.mileage_start, block.mileage_end) for block in blocks
        ),
        total_pay=sum((Decimal(block.pay) for block in blocks), Decimal(0)),
        pickup_locations=pickup_location_breakdown(blocks),
    )
