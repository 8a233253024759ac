from __future__ import annotations

from datetime import datetime
from enum import StrEnum
from typing import Optional

from sqlalchemy import JSON, CheckConstraint, Enum, Index
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column
from sqlalchemy.sql.sqltypes import DateTime, Integer, String, Text


class Base(DeclarativeBase):
    pass


class ItemType(StrEnum):
    DEVICE = "device"
    ROOM = "room"


class ResourceStatus(StrEnum):
    AVAILABLE = "available"
    BOOKED = "booked"
    MAINTENANCE = "maintenance"


class ReservationStatus(StrEnum):
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"
    CANCELLED = "cancelled"
    COMPLETED = "completed"
    ACTIVE = "active"


def _str_enum(enum_cls: type[StrEnum]) -> Enum:
    return Enum(
        enum_cls,
        values_callable=lambda cls: [e.value for e in cls],
        native_enum=False,
    )


class RoomRow(Base):
    __tablename__ = "rooms"

    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    status: Mapped[ResourceStatus] = mapped_column(
        _str_enum(ResourceStatus), nullable=False, default=ResourceStatus.AVAILABLE
    )
    capacity: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    building_name: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)


class DeviceRow(Base):
    __tablename__ = "devices"
    __table_args__ = (CheckConstraint("quantity >= 0", name="chk_devices_quantity"),)

    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    device_type: Mapped[str] = mapped_column(String(50), nullable=False, default="Other")
    status: Mapped[ResourceStatus] = mapped_column(
        _str_enum(ResourceStatus), nullable=False, default=ResourceStatus.AVAILABLE
    )
    quantity: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    room_name: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)


class ReservationRow(Base):
    __tablename__ = "reservations"
    __table_args__ = (
        CheckConstraint("start_time < end_time", name="chk_res_time"),
        CheckConstraint("booked_quantity >= 1", name="chk_res_quantity"),
        Index("idx_res_item", "item_type", "item_id"),
        Index("idx_res_user", "user_id"),
    )

    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    user_id: Mapped[str] = mapped_column(String(128), nullable=False)
    user_name: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    user_email: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    booked_by: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    item_id: Mapped[str] = mapped_column(String(64), nullable=False)
    item_name: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    item_type: Mapped[ItemType] = mapped_column(_str_enum(ItemType), nullable=False)
    # UTC, naive
    start_time: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False)
    end_time: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False)
    status: Mapped[ReservationStatus] = mapped_column(
        _str_enum(ReservationStatus), nullable=False, default=ReservationStatus.APPROVED
    )
    booked_quantity: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    purpose: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    device_purposes: Mapped[Optional[list[str]]] = mapped_column(JSON, nullable=True)
    notes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False)
