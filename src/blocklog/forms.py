"""Block form view-model.

The form collects a single date plus separate times of day. The browser
sends everything as text, so parsing and field validation happen here
before anything reaches the store access layer.
"""

from __future__ import annotations

import re
from dataclasses import asdict, dataclass
from datetime import date, datetime, time
from decimal import Decimal, InvalidOperation
from typing import TYPE_CHECKING

from .blocks import FIELD_LABELS, BlockFields, ValidationError, pay_problem

if TYPE_CHECKING:  # pragma: no cover
    from collections.abc import Mapping

    from .models import Block

DATE_RE = re.compile(r"^\d{4}-\d{2}-\d{2}$")
TIME_RE = re.compile(r"^([01]\d|2[0-3]):[0-5]\d(:[0-5]\d)?$")
INTEGER_RE = re.compile(r"^[+-]?\d+$")

TIME_FIELDS = (
    "scheduled_time_start",
    "scheduled_time_end",
    "time_start",
    "time_end",
)


def parse_date(value: str) -> date:
    """Parse an ISO-8601 calendar date (YYYY-MM-DD)."""
    value = value.strip()
    if not DATE_RE.match(value):
        msg = f"Not an ISO-8601 date: {value!r}"
        raise ValueError(msg)
    return date.fromisoformat(value)


def parse_time(value: str) -> time:
    """Parse a 24-hour time of day, HH:MM or HH:MM:SS."""
    value = value.strip()
    if not TIME_RE.match(value):
        msg = f"Not a 24-hour time: {value!r}"
        raise ValueError(msg)
    return time.fromisoformat(value)


def parse_pay(value: str) -> Decimal:
    """Parse a currency amount. Accepts a leading $ and thousands separators."""
    cleaned = value.strip().lstrip("$").replace(",", "")
    try:
        amount = Decimal(cleaned)
    except InvalidOperation:
        msg = f"Not a number: {value!r}"
        raise ValueError(msg) from None
    if not amount.is_finite():
        msg = f"Not a number: {value!r}"
        raise ValueError(msg)
    return amount


def parse_mileage(value: str) -> int:
    """Parse an odometer reading."""
    cleaned = value.strip().replace(",", "")
    if not INTEGER_RE.match(cleaned):
        msg = f"Not a whole number: {value!r}"
        raise ValueError(msg)
    return int(cleaned)


def _clock(moment: datetime) -> str:
    if moment.second:
        return moment.strftime("%H:%M:%S")
    return moment.strftime("%H:%M")


def fits_form(block: Block) -> bool:
    """Whether the form can show block without losing anything.

    The form has a single date and times to the second, so every timestamp
    must fall on the same day and carry no fraction of a second.
    """
    stamps = [getattr(block, name) for name in TIME_FIELDS]
    day = stamps[0].date()
    return all(s.date() == day and not s.microsecond for s in stamps)


@dataclass(frozen=True)
class BlockFormValues:
    """Snapshot of the text shown in the block form.

    Built once, either empty (create mode), from an existing block (edit
    mode) or from a submitted form (redisplay after a failed submission).
    """

    block_id: int | None = None
    pickup_location: str = ""
    date: str = ""
    scheduled_time_start: str = ""
    scheduled_time_end: str = ""
    pay: str = ""
    time_start: str = ""
    time_end: str = ""
    mileage_start: str = ""
    mileage_end: str = ""
    city: str = ""

    @property
    def is_edit(self) -> bool:
        """Whether submitting the form updates an existing block."""
        return self.block_id is not None

    @classmethod
    def empty(cls) -> BlockFormValues:
        """Form values for a new block."""
        return cls()

    @classmethod
    def from_block(cls, block: Block) -> BlockFormValues:
        """Form values pre-filled from an existing block.

        Raises ValueError for blocks the form cannot represent, see fits_form.
        """
        if not fits_form(block):
            msg = f"Block {block.id} does not fit the form"
            raise ValueError(msg)
        return cls(
            block_id=block.id,
            pickup_location=block.pickup_location,
            date=block.scheduled_time_start.date().isoformat(),
            scheduled_time_start=_clock(block.scheduled_time_start),
            scheduled_time_end=_clock(block.scheduled_time_end),
            pay=f"{block.pay:.2f}",
            time_start=_clock(block.time_start),
            time_end=_clock(block.time_end),
            mileage_start=str(block.mileage_start),
            mileage_end=str(block.mileage_end),
            city=block.city,
        )

    @classmethod
    def from_form(
        cls,
        form: Mapping[str, str],
        block_id: int | None = None,
    ) -> BlockFormValues:
        """Form values as submitted by the browser."""
        values = {
            name: (form.get(name) or "")
            for name in asdict(cls()).keys() - {"block_id"}
        }
        return cls(block_id=block_id, **values)

    def to_fields(self) -> BlockFields:
        """Parse the text into typed block fields.

        All problems are collected and raised together, one message per field.
        """
        errors: dict[str, str] = {}

        for name in ("pickup_location", "city"):
            if not getattr(self, name).strip():
                errors[name] = f"{FIELD_LABELS[name]} is required"

        day: date | None = None
        if not self.date.strip():
            errors["date"] = "Date is required"
        else:
            try:
                day = parse_date(self.date)
            except ValueError:
                errors["date"] = "Date is invalid"

        times: dict[str, time] = {}
        for name in TIME_FIELDS:
            raw = getattr(self, name)
            if not raw.strip():
                errors[name] = f"{FIELD_LABELS[name]} is required"
                continue
            try:
                times[name] = parse_time(raw)
            except ValueError:
                errors[name] = f"{FIELD_LABELS[name]} is invalid"

        pay: Decimal | None = None
        if not self.pay.strip():
            errors["pay"] = "Pay amount is required"
        else:
            try:
                pay = parse_pay(self.pay)
            except ValueError:
                errors["pay"] = "Pay amount must be a number"
            else:
                if pay <= 0:
                    errors["pay"] = "Pay amount must be greater than zero"
                elif problem := pay_problem(pay):
                    errors["pay"] = problem

        mileage: dict[str, int] = {}
        for name in ("mileage_start", "mileage_end"):
            raw = getattr(self, name)
            if not raw.strip():
                errors[name] = f"{FIELD_LABELS[name]} is required"
                continue
            try:
                mileage[name] = parse_mileage(raw)
            except ValueError:
                errors[name] = f"{FIELD_LABELS[name]} must be a whole number"
                continue
            if mileage[name] <= 0:
                errors[name] = f"{FIELD_LABELS[name]} must be greater than zero"

        if errors:
            raise ValidationError(errors)

        # Every value below was checked above
        stamps = {name: datetime.combine(day, times[name]) for name in TIME_FIELDS}  # type: ignore[arg-type]
        return BlockFields(
            pickup_location=self.pickup_location.strip(),
            pay=pay,  # type: ignore[arg-type]
            mileage_start=mileage["mileage_start"],
            mileage_end=mileage["mileage_end"],
            city=self.city.strip(),
            **stamps,
        )
