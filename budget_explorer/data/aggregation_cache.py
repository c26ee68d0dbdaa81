"""
Tree Cache

Memoizes the per-year structures derived from a ledger snapshot (aggregated
tree, detail trees, element indexes, ancestor maps) so a render cycle that
asks for ten years and three views does not rebuild them every time.

Entries are keyed by (kind, year, section) and remember the exact
LedgerSnapshot object they were computed from. An entry whose snapshot is no
longer the current one is never returned.

The cache is an explicit object owned by its caller; nothing is process-wide.
"""
import logging
from collections import OrderedDict
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Callable, Dict, List, Optional, Tuple

from budget_explorer.data.ledger import LedgerSnapshot

logger = logging.getLogger(__name__)

CacheKey = Tuple[str, int, Optional[str]]


@dataclass
class CachedTree:
    """A memoized value with the snapshot it was derived from."""
    kind: str
    year: int
    rdfi: Optional[str]
    snapshot: LedgerSnapshot
    value: Any
    computed_at: datetime
    hits: int = 0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "kind": self.kind,
            "year": self.year,
            "rdfi": self.rdfi,
            "row_count": self.snapshot.row_count,
            "computed_at": self.computed_at.isoformat(),
            "hits": self.hits,
            "empty": self.value is None,
        }


class TreeCache:
    """
    In-memory LRU cache for derived per-year structures.

    Args:
        max_entries: Maximum number of entries kept (None = unbounded)
    """

    def __init__(self, max_entries: Optional[int] = None):
        self.max_entries = max_entries
        self._entries: "OrderedDict[CacheKey, CachedTree]" = OrderedDict()
        self.hits = 0
        self.misses = 0

    @staticmethod
    def _key(kind: str, year: int, rdfi: Optional[str] = None) -> CacheKey:
        return (kind, year, rdfi)

    def get(
        self,
        kind: str,
        year: int,
        snapshot: LedgerSnapshot,
        rdfi: Optional[str] = None,
    ) -> Optional[CachedTree]:
        """
        Get a cached entry computed from this exact snapshot.

        Returns:
            CachedTree if found and current, None otherwise
        """
        key = self._key(kind, year, rdfi)
        entry = self._entries.get(key)

        if entry is None:
            self.misses += 1
            logger.debug(f"Tree cache miss: {kind}_{year}_{rdfi}")
            return None

        if entry.snapshot is not snapshot:
            del self._entries[key]
            self.misses += 1
            logger.info(f"Tree cache entry superseded by a new ledger snapshot: {kind}_{year}_{rdfi}")
            return None

        self._entries.move_to_end(key)
        entry.hits += 1
        self.hits += 1
        logger.debug(f"Tree cache hit: {kind}_{year}_{rdfi}")
        return entry

    def set(
        self,
        kind: str,
        year: int,
        snapshot: LedgerSnapshot,
        value: Any,
        rdfi: Optional[str] = None,
    ) -> CachedTree:
        """Store a value; None is a valid value ("no tree for this year")."""
        key = self._key(kind, year, rdfi)
        entry = CachedTree(
            kind=kind,
            year=year,
            rdfi=rdfi,
            snapshot=snapshot,
            value=value,
            computed_at=datetime.now(),
        )
        self._entries[key] = entry
        self._entries.move_to_end(key)

        if self.max_entries is not None:
            while len(self._entries) > self.max_entries:
                evicted_key, _ = self._entries.popitem(last=False)
                logger.debug(f"Tree cache evicted: {evicted_key}")

        return entry

    def get_or_compute(
        self,
        kind: str,
        year: int,
        snapshot: LedgerSnapshot,
        compute: Callable[[], Any],
        rdfi: Optional[str] = None,
    ) -> Any:
        entry = self.get(kind, year, snapshot, rdfi)
        if entry is not None:
            return entry.value
        return self.set(kind, year, snapshot, compute(), rdfi).value

    def invalidate(self, year: int) -> int:
        """Drop every entry of a year. Returns the number of entries removed."""
        stale = [key for key in self._entries if key[1] == year]
        for key in stale:
            del self._entries[key]
        if stale:
            logger.info(f"Invalidated {len(stale)} tree cache entries for {year}")
        return len(stale)

    def clear_all(self) -> int:
        """Clear all cached entries."""
        count = len(self._entries)
        self._entries.clear()
        logger.info(f"Cleared {count} tree cache entries")
        return count

    def list_cached(self) -> List[Dict[str, Any]]:
        """List all cached entries with metadata, least recently used first."""
        return [entry.to_dict() for entry in self._entries.values()]

    def stats(self) -> Dict[str, Any]:
        total = self.hits + self.misses
        return {
            "entries": len(self._entries),
            "max_entries": self.max_entries,
            "hits": self.hits,
            "misses": self.misses,
            "hit_rate": self.hits / total if total else 0.0,
        }

    def __len__(self) -> int:
        return len(self._entries)
