from __future__ import annotations

import logging
import threading
from collections import OrderedDict

from voxelgen.constants import ChunkPos
from voxelgen.errors import ConfigError
from voxelgen.world.chunk import Chunk

logger = logging.getLogger(__name__)


class ChunkCache:
    """Fixed-capacity LRU store of generated chunks.

    Iteration order of the underlying ``OrderedDict`` is the recency order:
    the first key is the next eviction victim.
    """

    def __init__(self, capacity: int) -> None:
        if isinstance(capacity, bool) or not isinstance(capacity, int) or capacity <= 0:
            raise ConfigError(f"chunk cache capacity must be a positive integer, got {capacity!r}")
        self._capacity = capacity
        self._entries: OrderedDict[ChunkPos, Chunk] = OrderedDict()
        self._lock = threading.Lock()
        self._hits = 0
        self._misses = 0
        self._evictions = 0

    @property
    def capacity(self) -> int:
        return self._capacity

    def get(self, pos: ChunkPos) -> Chunk | None:
        with self._lock:
            chunk = self._entries.get(pos)
            if chunk is None:
                self._misses += 1
                return None
            self._entries.move_to_end(pos)
            self._hits += 1
            return chunk

    def peek(self, pos: ChunkPos) -> Chunk | None:
        with self._lock:
            return self._entries.get(pos)

    def put(self, pos: ChunkPos, chunk: Chunk) -> ChunkPos | None:
        evicted: ChunkPos | None = None
        with self._lock:
            if pos in self._entries:
                self._entries.move_to_end(pos)
            elif len(self._entries) >= self._capacity:
                evicted, _ = self._entries.popitem(last=False)
                self._evictions += 1
            self._entries[pos] = chunk
        if evicted is not None:
            logger.debug("Evicted chunk %s from cache", evicted)
        return evicted

    def keys(self) -> list[ChunkPos]:
        with self._lock:
            return list(self._entries.keys())

    def stats(self) -> dict[str, int]:
        with self._lock:
            return {
                "entries": len(self._entries),
                "capacity": self._capacity,
                "hits": self._hits,
                "misses": self._misses,
                "evictions": self._evictions,
            }

    def __contains__(self, pos: object) -> bool:
        with self._lock:
            return pos in self._entries

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)
