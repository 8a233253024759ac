import itertools
from datetime import date, datetime, timedelta, timezone
from typing import Any, Callable, Iterable, Mapping, Optional

import pytest
from slotbook.config import Settings
from slotbook.domain.errors import ReservationNotFound
from slotbook.domain.periods import DEFAULT_PERIODS, period_window
from slotbook.models import ItemType, ReservationStatus, ResourceStatus
from slotbook.schemas import Actor, Device, NewReservation, Period, Reservation, Resource, Room

NOW = datetime(2024, 6, 10, 8, 0, tzinfo=timezone.utc)
TODAY = date(2024, 6, 10)


class FakeReservationStore:
    def __init__(self, reservations: Iterable[Reservation] = ()) -> None:
        self.rows: dict[str, Reservation] = {r.id: r for r in reservations}
        self.created: list[NewReservation] = []
        self.updates: list[tuple[str, dict[str, Any]]] = []
        self.deleted: list[str] = []
        self.fail_on_create: set[int] = set()
        self.create_calls = 0
        self._ids = itertools.count(1)

    def snapshot(self) -> list[Reservation]:
        return list(self.rows.values())

    async def create(self, data: NewReservation) -> Reservation:
        self.create_calls += 1
        if self.create_calls in self.fail_on_create:
            raise ConnectionError("network unreachable")
        self.created.append(data)
        reservation = Reservation(
            id=f"res-{next(self._ids)}",
            created_at=NOW,
            updated_at=NOW,
            **data.model_dump(),
        )
        self.rows[reservation.id] = reservation
        return reservation

    async def update(self, reservation_id: str, changes: Mapping[str, Any]) -> Reservation:
        if reservation_id not in self.rows:
            raise ReservationNotFound()
        self.updates.append((reservation_id, dict(changes)))
        updated = self.rows[reservation_id].model_copy(update={**changes, "updated_at": NOW + timedelta(minutes=1)})
        self.rows[reservation_id] = updated
        return updated

    async def delete(self, reservation_id: str) -> None:
        if reservation_id not in self.rows:
            raise ReservationNotFound()
        self.deleted.append(reservation_id)
        del self.rows[reservation_id]

    async def get(self, reservation_id: str) -> Optional[Reservation]:
        return self.rows.get(reservation_id)

    async def list_reservations(
        self,
        *,
        item_type: ItemType | None = None,
        user_id: str | None = None,
    ) -> list[Reservation]:
        return [
            r
            for r in self.rows.values()
            if (item_type is None or r.item_type == item_type) and (user_id is None or r.user_id == user_id)
        ]


class FakeCatalog:
    def __init__(self, resources: Iterable[Resource] = ()) -> None:
        self.resources = list(resources)

    async def get_resources(self, item_type: ItemType, *, bookable_only: bool = False) -> list[Resource]:
        return [
            r for r in self.resources if r.item_type == item_type and (not bookable_only or r.is_offerable())
        ]

    async def get_resource(self, item_type: ItemType, item_id: str) -> Optional[Resource]:
        for r in self.resources:
            if r.item_type == item_type and r.id == item_id:
                return r
        return None


@pytest.fixture
def settings() -> Settings:
    return Settings(timezone="UTC")


@pytest.fixture
def now() -> datetime:
    return NOW


@pytest.fixture
def today() -> date:
    return TODAY


@pytest.fixture
def first_period() -> Period:
    return DEFAULT_PERIODS[0]


@pytest.fixture
def second_period() -> Period:
    return DEFAULT_PERIODS[1]


@pytest.fixture
def alice() -> Actor:
    return Actor(user_id="u-alice", display_name="Alice Moreau", email="alice@example.org")


@pytest.fixture
def bob() -> Actor:
    return Actor(user_id="u-bob", email="bob@example.org")


@pytest.fixture
def admin() -> Actor:
    return Actor(user_id="u-admin", display_name="Admin", is_admin=True)


@pytest.fixture
def room_alpha() -> Room:
    return Room(id="room-alpha", name="Alpha", seats=30)


@pytest.fixture
def tablet() -> Device:
    return Device(id="dev-tablet", name="Tablet", quantity=5, device_type="Tablet")


@pytest.fixture
def broken_projector() -> Device:
    return Device(id="dev-proj", name="Projector", quantity=2, status=ResourceStatus.MAINTENANCE)


@pytest.fixture
def store() -> FakeReservationStore:
    return FakeReservationStore()


@pytest.fixture
def catalog(room_alpha: Room, tablet: Device, broken_projector: Device) -> FakeCatalog:
    return FakeCatalog([room_alpha, tablet, broken_projector])


@pytest.fixture
def make_reservation() -> Callable[..., Reservation]:
    counter = itertools.count(1)

    def _make(
        resource: Resource,
        period: Period,
        day: date,
        *,
        user_id: str = "u-other",
        quantity: int = 1,
        status: ReservationStatus = ReservationStatus.APPROVED,
        reservation_id: str | None = None,
    ) -> Reservation:
        start, end = period_window(period, day, timezone.utc)
        return Reservation(
            id=reservation_id or f"existing-{next(counter)}",
            user_id=user_id,
            user_name="Someone Else",
            booked_by="Someone Else",
            item_id=resource.id,
            item_name=resource.name,
            item_type=resource.item_type,
            start_time=start,
            end_time=end,
            status=status,
            booked_quantity=quantity,
            purpose="Existing" if resource.item_type == ItemType.ROOM else None,
            device_purposes=frozenset() if resource.item_type == ItemType.ROOM else frozenset({"Lesson"}),
            created_at=NOW,
            updated_at=NOW,
        )

    return _make
