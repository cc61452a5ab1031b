from __future__ import annotations
import logging

from cachetools import LRUCache

logger = logging.getLogger(__name__)


class _BlockLRU(LRUCache):
    def popitem(self):
        index, data = super().popitem()
        logger.debug("evicted block %d (%d bytes)", index, len(data))
        return index, data


class BlockCache:
    """Bounded block index -> block bytes mapping with LRU eviction."""

    def __init__(self, capacity: int) -> None:
        if capacity < 1:
            raise ValueError(f"cache capacity must be positive, got {capacity}")
        self._lru: LRUCache[int, bytes] = _BlockLRU(maxsize=capacity)

    @property
    def capacity(self) -> int:
        return int(self._lru.maxsize)

    def get(self, index: int) -> bytes | None:
        """Return the block and mark it most recently used, or None on a miss."""
        return self._lru.get(index)

    def set(self, index: int, data: bytes) -> None:
        """Insert (or replace) a block, evicting the least recently used one when full."""
        self._lru[index] = bytes(data)

    def clear(self) -> None:
        self._lru.clear()

    def __len__(self) -> int:
        return len(self._lru)

    # membership does not touch recency
    def __contains__(self, index: object) -> bool:
        return index in self._lru
