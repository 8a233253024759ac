from __future__ import annotations

from datetime import date, datetime, tzinfo
from typing import Iterable, Optional, Sequence

from ..models import ReservationStatus
from ..schemas import (
    Actor,
    BookingEntry,
    Device,
    DeviceAggregate,
    Period,
    Reservation,
    Resource,
    Room,
    RoomAggregate,
    SlotCapacity,
    SlotState,
    SlotView,
)
from ..utils.time import now_local
from .periods import period_window

INACTIVE_STATUSES = frozenset({ReservationStatus.CANCELLED, ReservationStatus.REJECTED})


def holds_capacity(reservation: Reservation) -> bool:
    return reservation.status not in INACTIVE_STATUSES


def overlapping_window(
    resource: Resource,
    start: datetime,
    end: datetime,
    reservations: Iterable[Reservation],
) -> list[Reservation]:
    """Active reservations on ``resource`` whose [start, end) intersects the window."""
    return [
        r
        for r in reservations
        if r.item_id == resource.id
        and r.item_type == resource.item_type
        and holds_capacity(r)
        and r.start_time < end
        and r.end_time > start
    ]


def overlapping(
    resource: Resource,
    period: Period,
    day: date,
    reservations: Iterable[Reservation],
    *,
    tz: tzinfo | None = None,
) -> list[Reservation]:
    start, end = period_window(period, day, tz)
    return overlapping_window(resource, start, end, reservations)


def window_capacity(
    resource: Resource,
    start: datetime,
    end: datetime,
    reservations: Iterable[Reservation],
    *,
    exclude_reservation_id: Optional[str] = None,
) -> SlotCapacity:
    committed = sum(
        r.units
        for r in overlapping_window(resource, start, end, reservations)
        if r.id != exclude_reservation_id
    )
    total = resource.capacity_units()
    # Raw value; may go negative if the store already holds an overbooking.
    return SlotCapacity(committed=committed, remaining=total - committed, total=total)


def capacity(
    resource: Resource,
    period: Period,
    day: date,
    reservations: Iterable[Reservation],
    *,
    exclude_reservation_id: Optional[str] = None,
    tz: tzinfo | None = None,
) -> SlotCapacity:
    start, end = period_window(period, day, tz)
    return window_capacity(resource, start, end, reservations, exclude_reservation_id=exclude_reservation_id)


def min_remaining(
    resource: Resource,
    slots: Sequence[tuple[Period, date]],
    reservations: Sequence[Reservation],
    *,
    tz: tzinfo | None = None,
) -> int:
    return min(capacity(resource, period, day, reservations, tz=tz).remaining for period, day in slots)


def room_aggregate(
    rooms: Iterable[Room],
    period: Period,
    day: date,
    reservations: Sequence[Reservation],
    *,
    tz: tzinfo | None = None,
) -> RoomAggregate:
    rooms = list(rooms)
    booked = sum(1 for room in rooms if overlapping(room, period, day, reservations, tz=tz))
    return RoomAggregate(booked_rooms=booked, total_rooms=len(rooms))


def device_aggregate(
    devices: Iterable[Device],
    period: Period,
    day: date,
    reservations: Sequence[Reservation],
    *,
    tz: tzinfo | None = None,
) -> DeviceAggregate:
    potential = 0
    booked = 0
    for device in devices:
        potential += device.quantity
        booked += capacity(device, period, day, reservations, tz=tz).committed
    return DeviceAggregate(
        total_potential_units=potential,
        total_booked_units=booked,
        total_available_units=potential - booked,
    )


def starts_in_past(start: datetime, *, now: datetime | None = None) -> bool:
    current = now or now_local(start.tzinfo)
    return start < current


def is_past(
    period: Period,
    day: date,
    *,
    now: datetime | None = None,
    tz: tzinfo | None = None,
) -> bool:
    """A slot is past once its period has started, including earlier periods of today."""
    start, _ = period_window(period, day, tz)
    return starts_in_past(start, now=now)


def slot_view(
    resource: Resource,
    period: Period,
    day: date,
    reservations: Sequence[Reservation],
    *,
    actor: Actor | None = None,
    now: datetime | None = None,
    tz: tzinfo | None = None,
) -> SlotView:
    start, end = period_window(period, day, tz)
    active = overlapping_window(resource, start, end, reservations)
    entries = tuple(
        BookingEntry(
            reservation_id=r.id,
            booked_by=r.booked_by or r.user_name,
            booked_quantity=r.units,
            is_mine=actor is not None and actor.is_authenticated and r.user_id == actor.user_id,
            purpose=r.purpose,
            device_purposes=r.device_purposes,
            notes=r.notes,
        )
        for r in active
    )
    committed = sum(entry.booked_quantity for entry in entries)
    total = resource.capacity_units()
    remaining = total - committed
    past = starts_in_past(start, now=now)

    if past:
        state = SlotState.PAST_BOOKED if entries else SlotState.PAST_AVAILABLE
    elif remaining <= 0:
        state = SlotState.ALL_BOOKED
    elif entries:
        state = SlotState.BOOKED
    else:
        state = SlotState.AVAILABLE
    return SlotView(
        state=state,
        is_past=past,
        committed=committed,
        remaining=max(remaining, 0),
        total=total,
        entries=entries,
    )
