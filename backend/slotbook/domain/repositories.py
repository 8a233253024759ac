from __future__ import annotations

import logging
from typing import Any, AsyncIterator, Awaitable, Mapping, Protocol, Sequence, TypeVar

from ..models import ItemType
from ..schemas import NewReservation, Reservation, Resource
from .errors import BookingError, StoreFailure

logger = logging.getLogger(__name__)

T = TypeVar("T")


class ResourceCatalog(Protocol):
    async def get_resources(self, item_type: ItemType, *, bookable_only: bool = False) -> list[Resource]: ...

    async def get_resource(self, item_type: ItemType, item_id: str) -> Resource | None: ...


class ReservationStore(Protocol):
    async def create(self, data: NewReservation) -> Reservation: ...

    async def update(self, reservation_id: str, changes: Mapping[str, Any]) -> Reservation: ...

    async def delete(self, reservation_id: str) -> None: ...

    async def get(self, reservation_id: str) -> Reservation | None: ...

    async def list_reservations(
        self,
        *,
        item_type: ItemType | None = None,
        user_id: str | None = None,
    ) -> list[Reservation]: ...


class Subscription(Protocol):
    def current(self) -> Sequence[Reservation]: ...

    def unsubscribe(self) -> None: ...

    def __aiter__(self) -> AsyncIterator[Sequence[Reservation]]: ...


async def guarded(call: Awaitable[T]) -> T:
    """Await a collaborator call, surfacing any non-domain error as StoreFailure."""
    try:
        return await call
    except BookingError:
        raise
    except Exception as exc:
        logger.warning("reservation store call failed: %r", exc)
        raise StoreFailure(str(exc) or None) from exc
