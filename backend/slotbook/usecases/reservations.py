from datetime import datetime
from typing import Iterable, Optional, Sequence

from ..domain.availability import holds_capacity, starts_in_past, window_capacity
from ..domain.errors import InvalidState, ReservationNotFound, ResourceNotFound, SlotInPast
from ..domain.repositories import ReservationStore, ResourceCatalog, guarded
from ..domain.services import (
    LifecycleAction,
    ensure_admin,
    ensure_authenticated,
    ensure_can_manage,
    next_status,
    validate_capacity,
    validate_patch,
)
from ..models import ReservationStatus
from ..schemas import Actor, Reservation, ReservationPatch
from ..utils.audit_log import AuditInitiator, emit_audit_log

_REVIEW_ORDER = {
    ReservationStatus.PENDING: 0,
    ReservationStatus.APPROVED: 1,
    ReservationStatus.ACTIVE: 1,
    ReservationStatus.COMPLETED: 2,
    ReservationStatus.REJECTED: 3,
    ReservationStatus.CANCELLED: 4,
}


async def _load(store: ReservationStore, reservation_id: str) -> Reservation:
    reservation = await guarded(store.get(reservation_id))
    if reservation is None:
        raise ReservationNotFound(f"reservation {reservation_id} not found")
    return reservation


def _initiator(actor: Actor, reservation: Reservation) -> AuditInitiator:
    return "user" if actor.user_id == reservation.user_id else "admin"


def _ensure_not_past(reservation: Reservation, now: datetime | None) -> None:
    if starts_in_past(reservation.start_time, now=now):
        raise SlotInPast("past reservations cannot be changed")


async def update_reservation(
    store: ReservationStore,
    catalog: ResourceCatalog,
    *,
    actor: Optional[Actor],
    reservation_id: str,
    patch: ReservationPatch,
    snapshot: Sequence[Reservation],
    now: datetime | None = None,
) -> Reservation:
    actor = ensure_authenticated(actor)
    reservation = await _load(store, reservation_id)
    ensure_can_manage(actor, reservation)
    if not holds_capacity(reservation):
        raise InvalidState(f"cannot edit a reservation that is {reservation.status.value}")
    _ensure_not_past(reservation, now)

    changes = validate_patch(reservation.item_type, patch)
    quantity = changes.get("booked_quantity")
    if quantity is not None and quantity != reservation.booked_quantity:
        if isinstance(quantity, int) and quantity > reservation.units:
            resource = await guarded(catalog.get_resource(reservation.item_type, reservation.item_id))
            if resource is None:
                raise ResourceNotFound(f"{reservation.item_name or reservation.item_id} no longer exists")
            remaining = window_capacity(
                resource,
                reservation.start_time,
                reservation.end_time,
                snapshot,
                exclude_reservation_id=reservation.id,
            ).remaining
        else:
            # Shrinking only frees units; still reject non-positive values.
            remaining = reservation.units
        validate_capacity(quantity, remaining)
    else:
        changes.pop("booked_quantity", None)

    if not changes:
        return reservation

    updated = await guarded(store.update(reservation.id, changes))
    emit_audit_log(
        action="reservation.updated",
        initiator=_initiator(actor, reservation),
        actor_id=actor.user_id,
        reservation_id=reservation.id,
        item_id=reservation.item_id,
        item_type=reservation.item_type,
        quantity=updated.booked_quantity,
        extra={"fields": sorted(changes)},
    )
    return updated


async def delete_reservation(
    store: ReservationStore,
    *,
    actor: Optional[Actor],
    reservation_id: str,
    now: datetime | None = None,
) -> None:
    actor = ensure_authenticated(actor)
    reservation = await _load(store, reservation_id)
    ensure_can_manage(actor, reservation)
    _ensure_not_past(reservation, now)

    await guarded(store.delete(reservation.id))
    emit_audit_log(
        action="reservation.deleted",
        initiator=_initiator(actor, reservation),
        actor_id=actor.user_id,
        reservation_id=reservation.id,
        item_id=reservation.item_id,
        item_type=reservation.item_type,
        quantity=reservation.booked_quantity,
        status_from=reservation.status,
    )


async def _transition(
    store: ReservationStore,
    actor: Actor,
    reservation: Reservation,
    action: LifecycleAction,
) -> Reservation:
    target = next_status(action, reservation.status)
    updated = await guarded(store.update(reservation.id, {"status": target}))
    emit_audit_log(
        action=f"reservation.{target.value}",  # type: ignore[arg-type]
        initiator=_initiator(actor, reservation),
        actor_id=actor.user_id,
        reservation_id=reservation.id,
        item_id=reservation.item_id,
        item_type=reservation.item_type,
        quantity=reservation.booked_quantity,
        status_from=reservation.status,
        status_to=target,
    )
    return updated


async def approve_reservation(
    store: ReservationStore,
    *,
    actor: Optional[Actor],
    reservation_id: str,
) -> Reservation:
    actor = ensure_authenticated(actor)
    ensure_admin(actor)
    reservation = await _load(store, reservation_id)
    return await _transition(store, actor, reservation, "approve")


async def reject_reservation(
    store: ReservationStore,
    *,
    actor: Optional[Actor],
    reservation_id: str,
) -> Reservation:
    actor = ensure_authenticated(actor)
    ensure_admin(actor)
    reservation = await _load(store, reservation_id)
    return await _transition(store, actor, reservation, "reject")


async def cancel_reservation(
    store: ReservationStore,
    *,
    actor: Optional[Actor],
    reservation_id: str,
) -> Reservation:
    actor = ensure_authenticated(actor)
    reservation = await _load(store, reservation_id)
    ensure_can_manage(actor, reservation)
    # Idempotent: already cancelled returns as-is
    if reservation.status == ReservationStatus.CANCELLED:
        return reservation
    return await _transition(store, actor, reservation, "cancel")


async def get_reservation(store: ReservationStore, *, reservation_id: str) -> Reservation | None:
    return await guarded(store.get(reservation_id))


async def list_user_reservations(store: ReservationStore, *, user_id: str) -> list[Reservation]:
    rows = await guarded(store.list_reservations(user_id=user_id))
    return sorted(rows, key=lambda r: r.start_time)


def review_queue(reservations: Iterable[Reservation]) -> list[Reservation]:
    """Admin ordering: pending first, then live, completed, rejected, cancelled."""
    return sorted(reservations, key=lambda r: (_REVIEW_ORDER.get(r.status, 5), r.start_time))
