"""
Last fetched order lists, partitioned by (source, status).

The cache is never patched with individual orders. A write drops the
partitions it affects and the lists are fetched again.
"""
import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Hashable, Iterable, Optional

logger = logging.getLogger(__name__)

Partition = tuple[str, Optional[str]]  # (source, status); status None is unfiltered


@dataclass
class CachedList:
    value: Any
    fetched_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))


class OrderListCache:
    """
    In-memory store of order lists keyed by partition and filter key.

    Each partition carries a generation that invalidate() bumps. A fetch
    records the generation it started under and passes it to put(); results
    from a fetch that started before the last invalidation are discarded.
    """

    def __init__(self):
        self._partitions: dict[Partition, dict[Hashable, CachedList]] = {}
        self._generations: dict[Partition, int] = {}

    def generation(self, source: str, status: Optional[str]) -> int:
        return self._generations.get((source, status), 0)

    def get(self, source: str, status: Optional[str], filter_key: Hashable) -> Optional[Any]:
        entry = self._partitions.get((source, status), {}).get(filter_key)
        return entry.value if entry else None

    def put(
        self,
        source: str,
        status: Optional[str],
        filter_key: Hashable,
        value: Any,
        generation: Optional[int] = None,
    ) -> bool:
        """Store a list. Returns False if `generation` is stale and nothing was stored."""
        if generation is not None and generation != self.generation(source, status):
            logger.debug("Discarding stale %s list (%s)", source, status or "all")
            return False
        self._partitions.setdefault((source, status), {})[filter_key] = CachedList(value)
        return True

    def invalidate(self, source: str, statuses: Iterable[Optional[str]]) -> list[Partition]:
        """Drop whole partitions and bump their generation. Returns the partitions that held data."""
        dropped = []
        for status in statuses:
            self._generations[(source, status)] = self.generation(source, status) + 1
            if self._partitions.pop((source, status), None) is not None:
                dropped.append((source, status))
        logger.debug("Dropped cached partitions: %s", dropped)
        return dropped

    def partitions(self) -> list[Partition]:
        return list(self._partitions)

    def clear(self) -> None:
        self._partitions.clear()
