"""Medication resolver.

Links medication orders to their administration history. Lookups go
through an AdministrationCache owned by the caller, keyed by order id, so
orders stay immutable and repeated chart rebuilds reuse earlier fetches.
"""

import asyncio
import logging
import time
from collections.abc import Callable, Iterable
from dataclasses import dataclass

from clinical_timeline.config import settings
from clinical_timeline.repositories.record_source import RecordSource
from clinical_timeline.schemas.medication import (
    MedicationAdministrationSet,
    MedicationOrder,
    MedicationOrderSet,
)

logger = logging.getLogger(__name__)

_UNSET = object()


@dataclass
class _CacheEntry:
    administrations: MedicationAdministrationSet
    stored_at: float


class AdministrationCache:
    """Memoizes administration sets by order id.

    Concurrent lookups for the same order share one in-flight fetch. Failed
    fetches are not cached. Entries expire after `ttl_seconds` when set; a
    TTL of zero or less disables caching.
    """

    def __init__(
        self,
        ttl_seconds: float | None | object = _UNSET,
        clock: Callable[[], float] = time.monotonic,
    ):
        """Initialize an empty cache.

        Args:
            ttl_seconds: Entry lifetime; defaults to the
                administration_cache_ttl_seconds setting. None never expires.
            clock: Monotonic time source, injectable for tests.
        """
        self.ttl_seconds = (
            settings.administration_cache_ttl_seconds if ttl_seconds is _UNSET else ttl_seconds
        )
        self._clock = clock
        self._entries: dict[str, _CacheEntry] = {}
        self._pending: dict[str, asyncio.Future[MedicationAdministrationSet]] = {}

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, order_id: str) -> bool:
        return self.get(order_id) is not None

    def _expired(self, entry: _CacheEntry) -> bool:
        if self.ttl_seconds is None:
            return False
        return self._clock() - entry.stored_at >= self.ttl_seconds

    def get(self, order_id: str) -> MedicationAdministrationSet | None:
        """Return the cached set for an order, dropping it if expired."""
        entry = self._entries.get(order_id)
        if entry is None:
            return None
        if self._expired(entry):
            del self._entries[order_id]
            return None
        return entry.administrations

    def put(self, order_id: str, administrations: MedicationAdministrationSet) -> None:
        if self.ttl_seconds is not None and self.ttl_seconds <= 0:
            return
        self._entries[order_id] = _CacheEntry(administrations, self._clock())

    def invalidate(self, order_id: str) -> None:
        self._entries.pop(order_id, None)

    def clear(self) -> None:
        self._entries.clear()

    async def get_or_fetch(self, order_id: str, source: RecordSource) -> MedicationAdministrationSet:
        """Return the administration set for an order, fetching it at most once."""
        cached = self.get(order_id)
        if cached is not None:
            logger.debug("Administration cache hit for order %s", order_id)
            return cached

        pending = self._pending.get(order_id)
        if pending is None:
            pending = asyncio.ensure_future(self._fetch(order_id, source))
            self._pending[order_id] = pending
            pending.add_done_callback(lambda done: self._forget_pending(order_id, done))
        # Shielded so one caller cancelling does not cancel the shared fetch
        return await asyncio.shield(pending)

    async def resolve(self, order: MedicationOrder, source: RecordSource) -> MedicationOrder:
        """Return a copy of the order carrying its administration history.

        Already-resolved orders are returned unchanged without a lookup.
        """
        if order.is_resolved:
            return order
        administrations = await self.get_or_fetch(order.id, source)
        return order.with_administrations(administrations)

    def _forget_pending(self, order_id: str, done: asyncio.Future) -> None:
        if self._pending.get(order_id) is done:
            del self._pending[order_id]

    async def _fetch(self, order_id: str, source: RecordSource) -> MedicationAdministrationSet:
        logger.debug("Fetching administrations for order %s", order_id)
        administrations = await source.fetch_medication_administrations(order_id)
        administration_set = MedicationAdministrationSet(administrations=tuple(administrations))
        self.put(order_id, administration_set)
        return administration_set


async def resolve_order(
    order: MedicationOrder,
    source: RecordSource,
    cache: AdministrationCache,
) -> MedicationOrder:
    return await cache.resolve(order, source)


async def resolve_orders(
    orders: Iterable[MedicationOrder],
    source: RecordSource,
    cache: AdministrationCache,
) -> list[MedicationOrder]:
    """Resolve every order concurrently as one joined wait, keeping input order."""
    return list(await asyncio.gather(*(resolve_order(o, source, cache) for o in orders)))


def build_order_set(orders: Iterable[MedicationOrder]) -> MedicationOrderSet:
    """Aggregate resolved orders.

    Raises:
        InconsistentUnitError: If member administrations disagree on unit.
    """
    return MedicationOrderSet(orders=tuple(orders))


def group_orders_by_medication(orders: Iterable[MedicationOrder]) -> list[MedicationOrderSet]:
    """One MedicationOrderSet per medication code, in first-seen order."""
    by_code: dict[str, list[MedicationOrder]] = {}
    for order in orders:
        by_code.setdefault(order.medication_code.code, []).append(order)
    return [build_order_set(members) for members in by_code.values()]
