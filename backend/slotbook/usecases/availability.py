from datetime import date, datetime
from typing import Iterable, Optional, Sequence, Union

from ..config import Settings, get_settings
from ..domain.availability import device_aggregate, room_aggregate, slot_view
from ..domain.errors import ResourceNotFound
from ..domain.periods import DEFAULT_PERIODS
from ..domain.repositories import ResourceCatalog, guarded
from ..models import ItemType
from ..schemas import Actor, DeviceAggregate, Period, Reservation, Resource, RoomAggregate, SlotView
from ..utils.time import school_week

Grid = dict[str, dict[str, SlotView]]


async def list_bookable(catalog: ResourceCatalog, *, item_type: ItemType) -> list[Resource]:
    resources = await guarded(catalog.get_resources(item_type, bookable_only=True))
    return [r for r in resources if r.is_offerable()]


async def daily_availability(
    catalog: ResourceCatalog,
    *,
    item_type: ItemType,
    day: date,
    snapshot: Sequence[Reservation],
    periods: Iterable[Period] = DEFAULT_PERIODS,
    actor: Optional[Actor] = None,
    now: datetime | None = None,
    settings: Settings | None = None,
) -> Grid:
    """resource id -> period name -> cell, for every bookable resource on one day."""
    tz = (settings or get_settings()).zone
    periods = list(periods)
    grid: Grid = {}
    for resource in await list_bookable(catalog, item_type=item_type):
        grid[resource.id] = {
            period.name: slot_view(resource, period, day, snapshot, actor=actor, now=now, tz=tz)
            for period in periods
        }
    return grid


async def weekly_availability(
    catalog: ResourceCatalog,
    *,
    item_type: ItemType,
    item_id: str,
    anchor: date,
    snapshot: Sequence[Reservation],
    periods: Iterable[Period] = DEFAULT_PERIODS,
    actor: Optional[Actor] = None,
    now: datetime | None = None,
    settings: Settings | None = None,
) -> dict[date, dict[str, SlotView]]:
    """Mon-Fri cells for one resource; each day is evaluated on its own."""
    tz = (settings or get_settings()).zone
    resource = await guarded(catalog.get_resource(item_type, item_id))
    if resource is None:
        raise ResourceNotFound()
    periods = list(periods)
    return {
        day: {
            period.name: slot_view(resource, period, day, snapshot, actor=actor, now=now, tz=tz)
            for period in periods
        }
        for day in school_week(anchor)
    }


async def all_resources_availability(
    catalog: ResourceCatalog,
    *,
    item_type: ItemType,
    days: Iterable[date],
    snapshot: Sequence[Reservation],
    periods: Iterable[Period] = DEFAULT_PERIODS,
    settings: Settings | None = None,
) -> dict[tuple[date, str], Union[RoomAggregate, DeviceAggregate]]:
    """Per (day, period name) totals across every bookable resource of one type."""
    tz = (settings or get_settings()).zone
    resources = await list_bookable(catalog, item_type=item_type)
    periods = list(periods)
    summary: dict[tuple[date, str], Union[RoomAggregate, DeviceAggregate]] = {}
    for day in days:
        for period in periods:
            if item_type == ItemType.ROOM:
                summary[(day, period.name)] = room_aggregate(resources, period, day, snapshot, tz=tz)
            else:
                summary[(day, period.name)] = device_aggregate(resources, period, day, snapshot, tz=tz)
    return summary
