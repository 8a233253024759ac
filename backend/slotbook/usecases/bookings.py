import logging
from datetime import date, datetime
from typing import Optional, Sequence

from ..config import Settings, get_settings
from ..domain.availability import is_past, min_remaining, window_capacity
from ..domain.errors import BookingError, ResourceNotFound, SlotInPast
from ..domain.periods import period_window
from ..domain.repositories import ReservationStore, guarded
from ..domain.services import (
    ensure_authenticated,
    requested_units,
    validate_capacity,
    validate_details,
)
from ..models import ItemType, ReservationStatus
from ..schemas import (
    Actor,
    BatchResult,
    BookingDetails,
    NewReservation,
    Period,
    Reservation,
    Resource,
    SlotFailure,
)
from ..utils.audit_log import emit_audit_log
from ..utils.correlation import correlation_scope

logger = logging.getLogger(__name__)

Slot = tuple[Period, date]


def _ensure_offerable(resource: Optional[Resource]) -> Resource:
    if resource is None:
        raise ResourceNotFound("no resource selected")
    if not resource.is_offerable():
        raise ResourceNotFound(f"{resource.name} is not available for booking")
    return resource


def _new_reservation(
    actor: Actor,
    resource: Resource,
    *,
    start: datetime,
    end: datetime,
    units: int,
    details: BookingDetails,
    status: ReservationStatus,
) -> NewReservation:
    attribution = actor.attribution()
    fields = dict(
        user_id=actor.user_id,
        user_name=attribution,
        user_email=actor.email,
        booked_by=attribution,
        item_id=resource.id,
        item_name=resource.name,
        item_type=resource.item_type,
        start_time=start,
        end_time=end,
        status=status,
        booked_quantity=units,
    )
    if resource.item_type == ItemType.ROOM:
        fields["purpose"] = details.purpose
    else:
        fields["device_purposes"] = details.device_purposes
        fields["notes"] = details.notes or None
    return NewReservation(**fields)


async def book(
    store: ReservationStore,
    *,
    actor: Optional[Actor],
    resource: Optional[Resource],
    period: Period,
    day: date,
    details: BookingDetails,
    snapshot: Sequence[Reservation],
    now: datetime | None = None,
    settings: Settings | None = None,
) -> Reservation:
    """
    Validate one slot against ``snapshot`` and commit it.

    The capacity check is only as fresh as the snapshot; concurrent bookers are
    arbitrated by the store, not here.
    """
    settings = settings or get_settings()
    tz = settings.zone

    actor = ensure_authenticated(actor)
    if is_past(period, day, now=now, tz=tz):
        raise SlotInPast(f"{period.name} on {day.isoformat()} has already started")
    resource = _ensure_offerable(resource)

    start, end = period_window(period, day, tz)
    units = requested_units(resource, details.quantity)
    validate_capacity(units, window_capacity(resource, start, end, snapshot).remaining)
    validate_details(resource.item_type, details)

    data = _new_reservation(
        actor,
        resource,
        start=start,
        end=end,
        units=units,
        details=details,
        status=ReservationStatus(settings.initial_status),
    )
    reservation = await guarded(store.create(data))

    emit_audit_log(
        action="reservation.created",
        initiator="user",
        actor_id=actor.user_id,
        reservation_id=reservation.id,
        item_id=reservation.item_id,
        item_type=reservation.item_type,
        quantity=reservation.booked_quantity,
        status_from=None,
        status_to=reservation.status,
    )
    return reservation


async def book_many(
    store: ReservationStore,
    *,
    actor: Optional[Actor],
    resource: Optional[Resource],
    slots: Sequence[Slot],
    details: BookingDetails,
    snapshot: Sequence[Reservation],
    now: datetime | None = None,
    settings: Settings | None = None,
) -> BatchResult:
    """
    Book the same resource and details across several (period, day) slots.

    Slots are committed one at a time in the given order. Each slot fails or
    succeeds on its own, except that under the ``all_or_nothing`` policy a
    quantity above the smallest remaining capacity rejects the whole batch
    before anything is written.
    """
    settings = settings or get_settings()
    actor = ensure_authenticated(actor)
    resource = _ensure_offerable(resource)

    # Fixed for the whole batch; only this batch's own commits are added to it.
    working: list[Reservation] = list(snapshot)
    pending_slots = list(dict.fromkeys(slots))
    result = BatchResult(item_name=resource.name)
    if not pending_slots:
        return result

    with correlation_scope() as batch_id:
        if settings.batch_policy == "all_or_nothing":
            units = requested_units(resource, details.quantity)
            validate_capacity(units, min_remaining(resource, pending_slots, working, tz=settings.zone))

        for period, day in pending_slots:
            try:
                reservation = await book(
                    store,
                    actor=actor,
                    resource=resource,
                    period=period,
                    day=day,
                    details=details,
                    snapshot=working,
                    now=now,
                    settings=settings,
                )
            except BookingError as exc:
                logger.info("batch %s: %s on %s failed: %s", batch_id, period.name, day.isoformat(), exc.code)
                result.failed.append(SlotFailure(period=period, day=day, error=exc))
            else:
                working.append(reservation)
                result.succeeded.append(reservation)

        emit_audit_log(
            action="reservation.batch",
            initiator="user",
            actor_id=actor.user_id,
            reservation_id=None,
            item_id=resource.id,
            item_type=resource.item_type,
            quantity=details.quantity,
            message=result.summary(),
            extra={"success_count": result.success_count, "fail_count": result.fail_count},
        )
    return result
