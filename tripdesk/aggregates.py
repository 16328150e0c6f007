"""
Parallel aggregate collector.

A route asks for a fixed set of named statistics. Each one is an independent
count, sum or average; ``collect`` issues them all at once and returns only
after every one has finished, with empty results reported as zero.
"""

import asyncio
import logging
from dataclasses import dataclass
from typing import Any, Awaitable, Iterable, Optional, TypeVar

from sqlalchemy import and_

from .crud import Collection
from .exceptions import RequestTimeoutError

logger = logging.getLogger("tripdesk.aggregates")

T = TypeVar("T")


@dataclass(frozen=True)
class Count:
    collection: Collection
    predicate: Any = None

    empty = 0

    async def run(self):
        return await self.collection.count(self.predicate)

    def coerce(self, value) -> int:
        return self.empty if value is None else int(value)


@dataclass(frozen=True)
class Sum:
    collection: Collection
    column: Any
    predicate: Any = None

    empty = 0.0

    async def run(self):
        return await self.collection.aggregate(self.predicate, self.column, "sum")

    def coerce(self, value) -> float:
        return self.empty if value is None else float(value)


@dataclass(frozen=True)
class Avg(Sum):
    async def run(self):
        return await self.collection.aggregate(self.predicate, self.column, "avg")


async def gather_all(*aws):
    """
    ``asyncio.gather`` that cancels every sibling still running as soon as one
    awaitable fails, and waits for them to unwind before re-raising.
    """
    tasks = [asyncio.ensure_future(aw) for aw in aws]
    try:
        return await asyncio.gather(*tasks)
    except BaseException:
        pending = [task for task in tasks if not task.done()]
        for task in pending:
            task.cancel()
        if pending:
            logger.debug(f"Cancelled {len(pending)} outstanding queries after a failure")
            await asyncio.gather(*pending, return_exceptions=True)
        raise


async def within(aw: Awaitable[T], timeout: Optional[float]) -> T:
    """Await with an upper bound; on expiry the pending work is cancelled."""
    if timeout is None:
        return await aw
    try:
        return await asyncio.wait_for(aw, timeout)
    except asyncio.TimeoutError:
        logger.warning(f"Gave up after {timeout}s, outstanding queries cancelled")
        raise RequestTimeoutError()


async def collect(specs: dict[str, Any], timeout: Optional[float] = None) -> dict[str, int | float]:
    labels = list(specs)
    values = await within(gather_all(*(specs[label].run() for label in labels)), timeout)
    return {label: specs[label].coerce(value) for label, value in zip(labels, values)}


def status_count_specs(collection: Collection, column, values: Iterable, base=None) -> dict[str, Count]:
    """
    ``{value: Count, ..., "total": Count}`` with lower-cased labels. ``base``
    scopes every count, including the total.
    """
    specs = {}
    for value in values:
        predicate = column == value if base is None else and_(base, column == value)
        label = getattr(value, "value", value)
        specs[str(label).lower()] = Count(collection, predicate)
    specs["total"] = Count(collection, base)
    return specs


async def status_counts(collection: Collection, column, values: Iterable, base=None, timeout=None) -> dict[str, int]:
    return await collect(status_count_specs(collection, column, values, base), timeout)


def prefixed(prefix: str, specs: dict[str, Any]) -> dict[str, Any]:
    return {f"{prefix}{label}": spec for label, spec in specs.items()}


def unprefixed(prefix: str, values: dict[str, Any]) -> dict[str, Any]:
    return {label[len(prefix):]: value for label, value in values.items() if label.startswith(prefix)}
