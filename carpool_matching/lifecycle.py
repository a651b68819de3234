"""Trip status state machine.

    active  -> matched    rider confirmation
    active  -> expired    sweep once departure + grace has passed
    active  -> cancelled  user request
    matched -> cancelled  user request

The matching pipeline only reads ``status``; these helpers are for the
surrounding system (sweepers, request handlers) that owns the transitions.
"""

from __future__ import annotations

from dataclasses import replace
from datetime import datetime, timedelta
import logging
from typing import Dict, FrozenSet, Iterable, List

from .config import TRIP_EXPIRY_GRACE_MINUTES
from .errors import InvalidTransitionError
from .models import Trip, TripStatus
from .utils import ensure_aware

_log = logging.getLogger(__name__)

DEFAULT_EXPIRY_GRACE = timedelta(minutes=TRIP_EXPIRY_GRACE_MINUTES)

ALLOWED_TRANSITIONS: Dict[TripStatus, FrozenSet[TripStatus]] = {
    TripStatus.ACTIVE: frozenset(
        {TripStatus.MATCHED, TripStatus.EXPIRED, TripStatus.CANCELLED}
    ),
    TripStatus.MATCHED: frozenset({TripStatus.CANCELLED}),
    TripStatus.EXPIRED: frozenset(),
    TripStatus.CANCELLED: frozenset(),
}


def can_transition(current: TripStatus, target: TripStatus) -> bool:
    return target in ALLOWED_TRANSITIONS[current]


def transition(trip: Trip, target: TripStatus | str) -> Trip:
    """Return a copy of ``trip`` moved to ``target`` or raise if not allowed."""

    target_status = TripStatus(target)
    if not can_transition(trip.status, target_status):
        raise InvalidTransitionError(
            f"Cannot move trip {trip.id} from {trip.status.value} to {target_status.value}"
        )
    return replace(trip, status=target_status)


def is_expired(
    trip: Trip, now: datetime, grace: timedelta = DEFAULT_EXPIRY_GRACE
) -> bool:
    """Return True when an active trip's departure plus grace lies before ``now``."""

    if trip.status is not TripStatus.ACTIVE:
        return False
    return ensure_aware(now) > ensure_aware(trip.depart_time) + grace


def expire_stale(
    trips: Iterable[Trip],
    now: datetime,
    grace: timedelta = DEFAULT_EXPIRY_GRACE,
) -> List[Trip]:
    """Return expired copies of every active trip past its grace period."""

    expired = [
        transition(trip, TripStatus.EXPIRED)
        for trip in trips
        if is_expired(trip, now, grace)
    ]
    if expired:
        _log.info("Expired %d stale trips", len(expired))
    return expired


__all__ = [
    "ALLOWED_TRANSITIONS",
    "DEFAULT_EXPIRY_GRACE",
    "can_transition",
    "expire_stale",
    "is_expired",
    "transition",
]
