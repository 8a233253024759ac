from __future__ import annotations

import asyncio
import logging
from typing import Sequence

from ..domain.repositories import ReservationStore, guarded
from ..models import ItemType
from ..schemas import Reservation

logger = logging.getLogger(__name__)

_CLOSED = object()


class FeedSubscription:
    """
    Push stream of reservation snapshots for one item type.

    Every pushed snapshot fully replaces the previous one, so at most the newest
    undelivered snapshot is kept. ``current()`` never waits; iterating waits for
    the next push and stops after ``unsubscribe()``.
    """

    def __init__(self, feed: "ReservationFeed", item_type: ItemType, initial: tuple[Reservation, ...]) -> None:
        self._feed = feed
        self.item_type = item_type
        self._current = initial
        self._queue: asyncio.Queue[object] = asyncio.Queue(maxsize=1)
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    def current(self) -> tuple[Reservation, ...]:
        return self._current

    def _push(self, snapshot: tuple[Reservation, ...]) -> None:
        self._current = snapshot
        if self._queue.full():
            self._queue.get_nowait()
        self._queue.put_nowait(snapshot)

    def unsubscribe(self) -> None:
        if self._closed:
            return
        self._closed = True
        self._feed._remove(self)
        # Leave an undelivered snapshot in place; only wake a waiting reader.
        if self._queue.empty():
            self._queue.put_nowait(_CLOSED)

    def __aiter__(self) -> "FeedSubscription":
        return self

    async def __anext__(self) -> tuple[Reservation, ...]:
        if self._closed and self._queue.empty():
            raise StopAsyncIteration
        item = await self._queue.get()
        if item is _CLOSED:
            raise StopAsyncIteration
        return item  # type: ignore[return-value]


class ReservationFeed:
    def __init__(self) -> None:
        self._subscribers: dict[ItemType, list[FeedSubscription]] = {t: [] for t in ItemType}
        self._latest: dict[ItemType, tuple[Reservation, ...]] = {t: () for t in ItemType}

    def subscribe(self, item_type: ItemType) -> FeedSubscription:
        subscription = FeedSubscription(self, item_type, self._latest[item_type])
        self._subscribers[item_type].append(subscription)
        return subscription

    def latest(self, item_type: ItemType) -> tuple[Reservation, ...]:
        return self._latest[item_type]

    def publish(self, item_type: ItemType, snapshot: Sequence[Reservation]) -> None:
        frozen = tuple(r for r in snapshot if r.item_type == item_type)
        self._latest[item_type] = frozen
        subscribers = self._subscribers[item_type]
        logger.debug("publishing %d %s reservations to %d subscribers", len(frozen), item_type.value, len(subscribers))
        for subscription in list(subscribers):
            subscription._push(frozen)

    async def refresh(self, store: ReservationStore, item_type: ItemType) -> tuple[Reservation, ...]:
        snapshot = await guarded(store.list_reservations(item_type=item_type))
        self.publish(item_type, snapshot)
        return self._latest[item_type]

    def _remove(self, subscription: FeedSubscription) -> None:
        subscribers = self._subscribers[subscription.item_type]
        if subscription in subscribers:
            subscribers.remove(subscription)
