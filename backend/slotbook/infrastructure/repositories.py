from __future__ import annotations

import logging
import uuid
from datetime import datetime, timezone, tzinfo
from typing import Any, List, Mapping, Optional, Union

from sqlalchemy import Select, delete, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from ..domain.errors import ReservationNotFound, StoreFailure
from ..domain.repositories import ReservationStore, ResourceCatalog
from ..models import DeviceRow, ItemType, ReservationRow, ResourceStatus, RoomRow
from ..schemas import Device, NewReservation, Reservation, Resource, Room
from ..utils.time import to_utc_naive
from .feed import ReservationFeed

logger = logging.getLogger(__name__)


def _utc_now_naive() -> datetime:
    return datetime.now(timezone.utc).replace(tzinfo=None)


def _column_value(name: str, value: Any) -> Any:
    if name == "device_purposes":
        return sorted(value) if value else []
    if name in ("start_time", "end_time"):
        return to_utc_naive(value)
    return value


def reservation_row(reservation_id: str, data: NewReservation, *, now: datetime) -> ReservationRow:
    values = {name: _column_value(name, value) for name, value in data.model_dump().items()}
    return ReservationRow(id=reservation_id, created_at=now, updated_at=now, **values)


class SqlAlchemyResourceCatalog(ResourceCatalog):
    def __init__(self, sessionmaker: async_sessionmaker[AsyncSession]) -> None:
        self.sessionmaker = sessionmaker

    async def get_resources(self, item_type: ItemType, *, bookable_only: bool = False) -> List[Resource]:
        if item_type == ItemType.ROOM:
            stmt: Select[Any] = select(RoomRow).order_by(RoomRow.name)
            if bookable_only:
                stmt = stmt.where(RoomRow.status == ResourceStatus.AVAILABLE)
        else:
            stmt = select(DeviceRow).order_by(DeviceRow.name)
            if bookable_only:
                stmt = stmt.where(DeviceRow.status == ResourceStatus.AVAILABLE, DeviceRow.quantity > 0)
        try:
            async with self.sessionmaker() as session:
                rows = (await session.scalars(stmt)).all()
        except SQLAlchemyError as exc:
            raise StoreFailure("failed to load resources") from exc
        return [_resource(row) for row in rows]

    async def get_resource(self, item_type: ItemType, item_id: str) -> Optional[Resource]:
        model = RoomRow if item_type == ItemType.ROOM else DeviceRow
        try:
            async with self.sessionmaker() as session:
                row = await session.get(model, item_id)
        except SQLAlchemyError as exc:
            raise StoreFailure("failed to load resource") from exc
        return _resource(row) if row is not None else None


def _resource(row: Union[RoomRow, DeviceRow]) -> Resource:
    if isinstance(row, RoomRow):
        return Room.from_db(row=row)
    return Device.from_db(row=row)


class SqlAlchemyReservationStore(ReservationStore):
    """
    Reservation documents in a SQL table. Each call is its own transaction,
    so writes are atomic per reservation and nothing more.
    """

    def __init__(
        self,
        sessionmaker: async_sessionmaker[AsyncSession],
        *,
        feed: ReservationFeed | None = None,
        tz: tzinfo | None = None,
    ) -> None:
        self.sessionmaker = sessionmaker
        self.feed = feed
        self.tz = tz

    async def create(self, data: NewReservation) -> Reservation:
        row = reservation_row(uuid.uuid4().hex, data, now=_utc_now_naive())
        try:
            async with self.sessionmaker() as session, session.begin():
                session.add(row)
        except SQLAlchemyError as exc:
            raise StoreFailure("failed to create reservation") from exc
        reservation = Reservation.from_db(row=row, tz=self.tz)
        await self._publish(reservation.item_type)
        return reservation

    async def update(self, reservation_id: str, changes: Mapping[str, Any]) -> Reservation:
        try:
            async with self.sessionmaker() as session, session.begin():
                row = await session.get(ReservationRow, reservation_id, with_for_update=True)
                if row is None:
                    raise ReservationNotFound(f"reservation {reservation_id} not found")
                for name, value in changes.items():
                    setattr(row, name, _column_value(name, value))
                row.updated_at = _utc_now_naive()
        except SQLAlchemyError as exc:
            raise StoreFailure("failed to update reservation") from exc
        reservation = Reservation.from_db(row=row, tz=self.tz)
        await self._publish(reservation.item_type)
        return reservation

    async def delete(self, reservation_id: str) -> None:
        try:
            async with self.sessionmaker() as session, session.begin():
                item_type = await session.scalar(
                    select(ReservationRow.item_type).where(ReservationRow.id == reservation_id)
                )
                if item_type is None:
                    raise ReservationNotFound(f"reservation {reservation_id} not found")
                await session.execute(delete(ReservationRow).where(ReservationRow.id == reservation_id))
        except SQLAlchemyError as exc:
            raise StoreFailure("failed to delete reservation") from exc
        await self._publish(ItemType(item_type))

    async def get(self, reservation_id: str) -> Optional[Reservation]:
        try:
            async with self.sessionmaker() as session:
                row = await session.get(ReservationRow, reservation_id)
        except SQLAlchemyError as exc:
            raise StoreFailure("failed to load reservation") from exc
        return Reservation.from_db(row=row, tz=self.tz) if row is not None else None

    async def list_reservations(
        self,
        *,
        item_type: ItemType | None = None,
        user_id: str | None = None,
    ) -> List[Reservation]:
        stmt: Select[Any] = select(ReservationRow).order_by(ReservationRow.start_time)
        if item_type is not None:
            stmt = stmt.where(ReservationRow.item_type == item_type)
        if user_id is not None:
            stmt = stmt.where(ReservationRow.user_id == user_id)
        try:
            async with self.sessionmaker() as session:
                rows = (await session.scalars(stmt)).all()
        except SQLAlchemyError as exc:
            raise StoreFailure("failed to list reservations") from exc
        return [Reservation.from_db(row=row, tz=self.tz) for row in rows]

    async def _publish(self, item_type: ItemType) -> None:
        # The write is already committed; a failed refresh only delays subscribers.
        if self.feed is None:
            return
        try:
            await self.feed.refresh(self, item_type)
        except StoreFailure as exc:
            logger.warning("could not refresh %s feed after write: %s", item_type.value, exc)
