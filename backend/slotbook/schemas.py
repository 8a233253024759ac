from __future__ import annotations

import re
from datetime import date, datetime, time, tzinfo
from enum import StrEnum
from typing import Annotated, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from .domain.errors import BookingError
from .models import DeviceRow, ItemType, ReservationRow, ReservationStatus, ResourceStatus, RoomRow
from .utils.time import utc_naive_to_local

_HHMM = re.compile(r"^([01]\d|2[0-3]):([0-5]\d)$")


def parse_hhmm(value: str) -> time:
    match = _HHMM.match(value)
    if match is None:
        raise ValueError(f"expected HH:MM, got {value!r}")
    return time(int(match.group(1)), int(match.group(2)))


class Period(BaseModel):
    model_config = ConfigDict(frozen=True)

    name: str
    label: str
    start: str
    end: str

    @model_validator(mode="after")
    def _check_bounds(self) -> "Period":
        if parse_hhmm(self.start) >= parse_hhmm(self.end):
            raise ValueError(f"period {self.name!r} must start before it ends")
        return self

    @property
    def start_time(self) -> time:
        return parse_hhmm(self.start)

    @property
    def end_time(self) -> time:
        return parse_hhmm(self.end)


class Room(BaseModel):
    model_config = ConfigDict(frozen=True)

    kind: Literal["room"] = "room"
    id: str
    name: str
    status: ResourceStatus = ResourceStatus.AVAILABLE
    seats: int = Field(default=0, ge=0)
    building_name: Optional[str] = None

    @property
    def item_type(self) -> ItemType:
        return ItemType.ROOM

    def capacity_units(self) -> int:
        return 1

    def is_offerable(self) -> bool:
        return self.status == ResourceStatus.AVAILABLE

    @classmethod
    def from_db(cls, *, row: RoomRow) -> "Room":
        return cls(
            id=row.id,
            name=row.name,
            status=row.status,
            seats=row.capacity,
            building_name=row.building_name,
        )


class Device(BaseModel):
    model_config = ConfigDict(frozen=True)

    kind: Literal["device"] = "device"
    id: str
    name: str
    status: ResourceStatus = ResourceStatus.AVAILABLE
    quantity: int = Field(ge=0)
    device_type: str = "Other"
    room_name: Optional[str] = None

    @property
    def item_type(self) -> ItemType:
        return ItemType.DEVICE

    def capacity_units(self) -> int:
        return self.quantity

    def is_offerable(self) -> bool:
        return self.status == ResourceStatus.AVAILABLE and self.quantity > 0

    @classmethod
    def from_db(cls, *, row: DeviceRow) -> "Device":
        return cls(
            id=row.id,
            name=row.name,
            status=row.status,
            quantity=row.quantity,
            device_type=row.device_type,
            room_name=row.room_name,
        )


Resource = Annotated[Union[Room, Device], Field(discriminator="kind")]


class Actor(BaseModel):
    """Identity and role of whoever calls a booking protocol."""

    model_config = ConfigDict(frozen=True)

    user_id: Optional[str] = None
    display_name: Optional[str] = None
    email: Optional[str] = None
    is_admin: bool = False

    @property
    def is_authenticated(self) -> bool:
        return bool(self.user_id)

    def attribution(self) -> str:
        return self.display_name or self.email or "User"


def _strip(value: Optional[str]) -> Optional[str]:
    return value.strip() if isinstance(value, str) else value


def _clean_purposes(value: Optional[frozenset[str]]) -> Optional[frozenset[str]]:
    if value is None:
        return None
    return frozenset(p.strip() for p in value if p and p.strip())


class BookingDetails(BaseModel):
    model_config = ConfigDict(frozen=True)

    quantity: Optional[int] = None
    purpose: Optional[str] = None
    device_purposes: frozenset[str] = frozenset()
    notes: Optional[str] = None

    @field_validator("purpose", "notes")
    @classmethod
    def _strip_text(cls, value: Optional[str]) -> Optional[str]:
        return _strip(value)

    @field_validator("device_purposes")
    @classmethod
    def _clean(cls, value):
        return _clean_purposes(value)


class ReservationPatch(BaseModel):
    """Mutable reservation fields. Time window, item and owner are immutable."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    purpose: Optional[str] = None
    device_purposes: Optional[frozenset[str]] = None
    notes: Optional[str] = None
    booked_quantity: Optional[int] = None

    @field_validator("purpose", "notes")
    @classmethod
    def _strip_text(cls, value: Optional[str]) -> Optional[str]:
        return _strip(value)

    @field_validator("device_purposes")
    @classmethod
    def _clean(cls, value):
        return _clean_purposes(value)

    def changes(self) -> dict:
        return self.model_dump(exclude_unset=True)


class NewReservation(BaseModel):
    model_config = ConfigDict(frozen=True)

    user_id: str = Field(min_length=1)
    user_name: Optional[str] = None
    user_email: Optional[str] = None
    booked_by: Optional[str] = None
    item_id: str
    item_name: Optional[str] = None
    item_type: ItemType
    start_time: datetime
    end_time: datetime
    status: ReservationStatus
    booked_quantity: int = Field(default=1, ge=1)
    purpose: Optional[str] = None
    device_purposes: frozenset[str] = frozenset()
    notes: Optional[str] = None

    @model_validator(mode="after")
    def _check_interval(self):
        if self.start_time >= self.end_time:
            raise ValueError("start_time must be earlier than end_time")
        return self


class Reservation(NewReservation):
    id: str
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @property
    def units(self) -> int:
        return self.booked_quantity or 1

    @classmethod
    def from_db(cls, *, row: ReservationRow, tz: tzinfo | None = None) -> "Reservation":
        return cls(
            id=row.id,
            user_id=row.user_id,
            user_name=row.user_name,
            user_email=row.user_email,
            booked_by=row.booked_by,
            item_id=row.item_id,
            item_name=row.item_name,
            item_type=row.item_type,
            start_time=utc_naive_to_local(row.start_time, tz),
            end_time=utc_naive_to_local(row.end_time, tz),
            status=row.status,
            booked_quantity=row.booked_quantity,
            purpose=row.purpose,
            device_purposes=frozenset(row.device_purposes or ()),
            notes=row.notes,
            created_at=utc_naive_to_local(row.created_at, tz),
            updated_at=utc_naive_to_local(row.updated_at, tz),
        )


class SlotCapacity(BaseModel):
    model_config = ConfigDict(frozen=True)

    committed: int
    remaining: int
    total: int


class RoomAggregate(BaseModel):
    model_config = ConfigDict(frozen=True)

    booked_rooms: int
    total_rooms: int

    @property
    def available_rooms(self) -> int:
        return self.total_rooms - self.booked_rooms


class DeviceAggregate(BaseModel):
    model_config = ConfigDict(frozen=True)

    total_potential_units: int
    total_booked_units: int
    total_available_units: int


class SlotState(StrEnum):
    AVAILABLE = "available"
    BOOKED = "booked"
    ALL_BOOKED = "all_booked"
    PAST_AVAILABLE = "past_available"
    PAST_BOOKED = "past_booked"


class BookingEntry(BaseModel):
    model_config = ConfigDict(frozen=True)

    reservation_id: str
    booked_by: Optional[str]
    booked_quantity: int
    is_mine: bool
    purpose: Optional[str] = None
    device_purposes: frozenset[str] = frozenset()
    notes: Optional[str] = None


class SlotView(BaseModel):
    model_config = ConfigDict(frozen=True)

    state: SlotState
    is_past: bool
    committed: int
    remaining: int
    total: int
    entries: tuple[BookingEntry, ...] = ()

    @property
    def is_bookable(self) -> bool:
        return not self.is_past and self.remaining > 0


class SlotFailure(BaseModel):
    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    period: Period
    day: date
    error: BookingError


class BatchResult(BaseModel):
    model_config = ConfigDict(arbitrary_types_allowed=True)

    item_name: str
    succeeded: list[Reservation] = Field(default_factory=list)
    failed: list[SlotFailure] = Field(default_factory=list)

    @property
    def success_count(self) -> int:
        return len(self.succeeded)

    @property
    def fail_count(self) -> int:
        return len(self.failed)

    def summary(self) -> str:
        if self.success_count:
            text = f"{self.success_count} period(s) for {self.item_name} booked successfully."
            if self.fail_count:
                text += f" {self.fail_count} failed."
            return text
        if self.fail_count:
            return f"All {self.fail_count} attempted bookings failed for {self.item_name}."
        return f"No periods were selected for {self.item_name}."
