"""Wall-clock time in the app timezone.

Block timestamps are stored naive, as the local time the driver read off
the clock. Everything that produces a timestamp goes through here.
"""

from __future__ import annotations

import os
from datetime import datetime
from logging import getLogger
from typing import TYPE_CHECKING

import pytz

if TYPE_CHECKING:  # pragma: no cover
    from datetime import tzinfo

logger = getLogger(__name__)

DEFAULT_TIMEZONE = "America/Los_Angeles"

_zone: tzinfo = pytz.timezone(DEFAULT_TIMEZONE)


def get_timezone() -> tzinfo:
    """Timezone block times are recorded in."""
    return _zone


def configure_timezone(name: str | None = None) -> None:
    """Switch the app timezone.

    Uses name, else the TZ environment variable, else the default.
    An unknown name is logged and the current timezone is kept.
    """
    global _zone  # noqa: PLW0603
    name = name or os.getenv("TZ") or DEFAULT_TIMEZONE
    try:
        _zone = pytz.timezone(name)
    except pytz.UnknownTimeZoneError:
        logger.warning("Unknown timezone %s, keeping %s", name, _zone)


def local_now() -> datetime:
    """Current wall-clock time, without tzinfo."""
    return datetime.now(tz=_zone).replace(tzinfo=None)


def wall_clock(stamp: datetime) -> datetime:
    """Naive local time for stamp. Naive stamps are taken as already local."""
    if stamp.tzinfo is None:
        return stamp
    return stamp.astimezone(_zone).replace(tzinfo=None)
