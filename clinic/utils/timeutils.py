"""Clinic-local time helpers.

The clinic runs on a single fixed UTC offset. Daylight saving is not observed
in Argentina, and pinning the offset keeps slot math free of tz-database
lookups at request time.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime, time, timedelta, timezone
from typing import Callable, Tuple

CLINIC_UTC_OFFSET = timedelta(hours=-3)
CLINIC_TZ = timezone(CLINIC_UTC_OFFSET, "ART")

Clock = Callable[[], datetime]


@dataclass(frozen=True)
class Interval:
    """Half-open ``[start, end)`` span between two aware instants."""

    start: datetime
    end: datetime

    def overlaps(self, other: "Interval") -> bool:
        # Touching endpoints do not collide.
        return self.start < other.end and self.end > other.start


_WEEKDAYS_ES = (
    "lunes",
    "martes",
    "miércoles",
    "jueves",
    "viernes",
    "sábado",
    "domingo",
)
_MONTHS_ES = (
    "enero",
    "febrero",
    "marzo",
    "abril",
    "mayo",
    "junio",
    "julio",
    "agosto",
    "septiembre",
    "octubre",
    "noviembre",
    "diciembre",
)


def utc_now() -> datetime:
    """Return the current aware UTC instant."""

    return datetime.now(timezone.utc)


def get_clock() -> Clock:
    """FastAPI dependency returning the wall clock."""

    return utc_now


def local_datetime(day: date, hour: int, minute: int = 0) -> datetime:
    """Build an aware datetime for a clinic-local wall time."""

    return datetime.combine(day, time(hour, minute), tzinfo=CLINIC_TZ)


def local_day_bounds(day: date) -> Tuple[datetime, datetime]:
    """Return the half-open UTC range covering a clinic-local calendar day."""

    start = local_datetime(day, 0).astimezone(timezone.utc)
    return start, start + timedelta(days=1)


def local_date(moment: datetime) -> date:
    """Return the clinic-local calendar day of an aware instant."""

    return moment.astimezone(CLINIC_TZ).date()


def format_local_datetime(moment: datetime) -> str:
    """Render an instant the way patients read it, e.g. 'sábado, 14 de marzo de 2026, 13:00'."""

    local = moment.astimezone(CLINIC_TZ)
    return "{weekday}, {day} de {month} de {year}, {clock}".format(
        weekday=_WEEKDAYS_ES[local.weekday()],
        day=local.day,
        month=_MONTHS_ES[local.month - 1],
        year=local.year,
        clock=local.strftime("%H:%M"),
    )
