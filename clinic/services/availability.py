"""Availability engine: which start times are still free on a given day.

The computation itself is pure. ``get_available_slots`` wraps it with the
storage reads (service duration and occupied intervals for the day).
"""

from __future__ import annotations

import logging
from datetime import date, datetime, timedelta
from typing import List, Optional, Sequence, Tuple

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from clinic.models.appointment import BLOCKING_STATUSES
from clinic.services import repository
from clinic.utils.errors import NotFound, Unavailable
from clinic.utils.timeutils import (
    CLINIC_TZ,
    Interval,
    local_date,
    local_datetime,
    local_day_bounds,
)

LOGGER = logging.getLogger(__name__)

SLOT_INTERVAL = timedelta(minutes=30)
MIN_LEAD_TIME = timedelta(minutes=30)

WEEKDAY_OPENING_HOUR = 10
SATURDAY_OPENING_HOUR = 12
CLOSING_HOUR = 19

SATURDAY = 5
SUNDAY = 6


def business_hours(day: date) -> Optional[Tuple[datetime, datetime]]:
    """Return the (opening, closing) instants for ``day``, or None when closed."""

    weekday = day.weekday()
    if weekday == SUNDAY:
        return None
    opening_hour = SATURDAY_OPENING_HOUR if weekday == SATURDAY else WEEKDAY_OPENING_HOUR
    return local_datetime(day, opening_hour), local_datetime(day, CLOSING_HOUR)


def compute_available_slots(
    day: date,
    duration_minutes: int,
    occupied: Sequence[Interval],
    now: datetime,
) -> List[str]:
    """Return the free start times of ``day`` as clinic-local ``HH:MM`` strings.

    Candidates are laid out every 30 minutes from opening. A candidate is
    offered when it ends by closing time, starts at least 30 minutes after
    ``now`` and does not intersect any occupied interval.

    The lead time is checked against every day, not only today, so a day that
    has already passed yields an empty list.
    """

    hours = business_hours(day)
    if hours is None:
        return []

    opening, closing = hours
    duration = timedelta(minutes=duration_minutes)
    earliest_start = now + MIN_LEAD_TIME

    slots: List[str] = []
    cursor = opening
    while cursor < closing:
        candidate = Interval(start=cursor, end=cursor + duration)
        if candidate.end > closing:
            break

        if candidate.start >= earliest_start and not any(
            candidate.overlaps(block) for block in occupied
        ):
            slots.append(cursor.astimezone(CLINIC_TZ).strftime("%H:%M"))

        cursor += SLOT_INTERVAL

    return slots


def get_available_slots(
    session: Session,
    *,
    day: date,
    service_id: str,
    now: datetime,
) -> List[str]:
    """Load the service and the day's occupancy, then compute free slots."""

    try:
        service = repository.get_active_service(session, service_id)
        if service is None:
            raise NotFound("Servicio no encontrado.")

        if business_hours(day) is None:
            return []

        start_utc, end_utc = local_day_bounds(day)
        occupied = repository.list_occupied_intervals(
            session,
            start_utc=start_utc,
            end_utc=end_utc,
            statuses=BLOCKING_STATUSES,
        )
    except SQLAlchemyError as exc:
        LOGGER.error("Availability lookup failed: day=%s service=%s error=%s", day, service_id, exc)
        raise Unavailable("Error calculando la agenda.") from exc

    slots = compute_available_slots(day, service.duration_minutes, occupied, now)
    LOGGER.debug(
        "Availability for day=%s service=%s today=%s occupied=%s free=%s",
        day,
        service_id,
        local_date(now) == day,
        len(occupied),
        len(slots),
    )
    return slots
