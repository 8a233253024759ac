from dataclasses import dataclass
from typing import Literal, Optional

from ..models import ItemType, ReservationStatus
from ..schemas import Actor, BookingDetails, ReservationPatch, Reservation, Resource
from .errors import InsufficientCapacity, InvalidState, MissingRequiredField, PermissionDenied, Unauthenticated

LifecycleAction = Literal["approve", "reject", "cancel"]


@dataclass(frozen=True)
class Transition:
    sources: frozenset[ReservationStatus]
    target: ReservationStatus


TRANSITIONS: dict[str, Transition] = {
    "approve": Transition(frozenset({ReservationStatus.PENDING}), ReservationStatus.APPROVED),
    "reject": Transition(frozenset({ReservationStatus.PENDING}), ReservationStatus.REJECTED),
    "cancel": Transition(
        frozenset({ReservationStatus.PENDING, ReservationStatus.APPROVED, ReservationStatus.ACTIVE}),
        ReservationStatus.CANCELLED,
    ),
}


def requested_units(resource: Resource, quantity: Optional[int]) -> Optional[int]:
    """Rooms are indivisible; devices default to a single unit."""
    if resource.item_type == ItemType.ROOM:
        return 1
    return 1 if quantity is None else quantity


def validate_capacity(requested: Optional[int], remaining: int) -> int:
    """
    Pure capacity check against an already computed remaining value.
    Returns remaining capacity after committing ``requested`` units.
    """
    if not isinstance(requested, int) or isinstance(requested, bool) or requested <= 0:
        raise InsufficientCapacity("quantity must be a positive integer", requested=requested, remaining=remaining)
    if requested > remaining:
        raise InsufficientCapacity("capacity exceeded", requested=requested, remaining=remaining)
    return remaining - requested


def validate_details(item_type: ItemType, details: BookingDetails) -> None:
    if item_type == ItemType.ROOM:
        if not details.purpose:
            raise MissingRequiredField("purpose")
    elif not details.device_purposes:
        raise MissingRequiredField("device_purposes")


def validate_patch(item_type: ItemType, patch: ReservationPatch) -> dict:
    """Reduce a patch to the fields that apply to ``item_type``."""
    changes = patch.changes()
    if item_type == ItemType.ROOM:
        changes = {k: v for k, v in changes.items() if k == "purpose"}
        if "purpose" in changes and not changes["purpose"]:
            raise MissingRequiredField("purpose")
        return changes
    changes.pop("purpose", None)
    if "device_purposes" in changes and not changes["device_purposes"]:
        raise MissingRequiredField("device_purposes")
    if "booked_quantity" in changes and changes["booked_quantity"] is None:
        del changes["booked_quantity"]
    return changes


def ensure_authenticated(actor: Optional[Actor]) -> Actor:
    if actor is None or not actor.is_authenticated:
        raise Unauthenticated()
    return actor


def can_manage(actor: Actor, reservation: Reservation) -> bool:
    return actor.is_admin or actor.user_id == reservation.user_id


def ensure_can_manage(actor: Actor, reservation: Reservation) -> None:
    if not can_manage(actor, reservation):
        raise PermissionDenied()


def ensure_admin(actor: Actor) -> None:
    if not actor.is_admin:
        raise PermissionDenied("only administrators can review reservations")


def next_status(action: LifecycleAction, current: ReservationStatus) -> ReservationStatus:
    transition = TRANSITIONS[action]
    if current not in transition.sources:
        raise InvalidState(f"cannot {action} a reservation that is {current.value}")
    return transition.target
