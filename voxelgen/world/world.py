from __future__ import annotations

import asyncio
import enum
import logging
import math
import os
import threading
import time
from concurrent.futures import Future, ThreadPoolExecutor
from contextlib import nullcontext
from typing import TYPE_CHECKING, Callable

from voxelgen.config import ChunkRegion, WorldConfig, validate_seed
from voxelgen.constants import CHUNK_SIZE, DEFAULT_CHUNKS_CACHED, ChunkPos
from voxelgen.debug.profiler import GenerationProfiler
from voxelgen.errors import ChunkGenerationError, ConfigError
from voxelgen.world.cache import ChunkCache
from voxelgen.world.chunk import Chunk
from voxelgen.world.terrain import TerrainGenerator, TerrainSettings

if TYPE_CHECKING:
    from voxelgen.world.pregen import PregenReport

logger = logging.getLogger(__name__)


class ChunkStatus(enum.Enum):
    READY = "ready"
    GENERATING = "generating"
    MISSING = "missing"


def _completed(chunk: Chunk) -> Future[Chunk]:
    future: Future[Chunk] = Future()
    future.set_result(chunk)
    return future


class World:
    """Serves chunks for one seed: cache hits directly, misses through the worker pool.

    Every miss for a coordinate shares a single in-flight future, so a chunk is
    synthesized at most once at a time no matter how many callers ask for it.
    """

    def __init__(
        self,
        seed: int,
        cache_size: int = DEFAULT_CHUNKS_CACHED,
        workers: int | None = None,
        settings: TerrainSettings | None = None,
        generator: TerrainGenerator | None = None,
        profiler: GenerationProfiler | None = None,
    ) -> None:
        self.seed = validate_seed(seed)
        if workers is not None and workers <= 0:
            raise ConfigError(f"workers must be a positive integer, got {workers!r}")
        self.cache = ChunkCache(cache_size)
        self.terrain = generator or TerrainGenerator(self.seed, settings)
        self.profiler = profiler
        self._chunk_futures: dict[ChunkPos, Future[Chunk]] = {}
        self._futures_lock = threading.Lock()
        self._synthesized = 0
        self._failures = 0
        self.workers = workers or self.default_workers()
        self._executor = ThreadPoolExecutor(max_workers=self.workers, thread_name_prefix="chunkgen")

    @classmethod
    def from_config(
        cls,
        config: WorldConfig,
        seed: int | None = None,
        settings: TerrainSettings | None = None,
        profiler: GenerationProfiler | None = None,
    ) -> World:
        config.validate()
        return cls(
            seed if seed is not None else config.resolve_seed(),
            cache_size=config.chunks_cached,
            workers=config.workers,
            settings=settings,
            profiler=profiler,
        )

    def _profile(self, name: str, context: dict | None = None):
        if self.profiler is None:
            return nullcontext()
        return self.profiler.section(name, context)

    @staticmethod
    def default_workers() -> int:
        return max(1, (os.cpu_count() or 1) - 1)

    @staticmethod
    def chunk_coords(x: float, z: float) -> ChunkPos:
        return math.floor(x // CHUNK_SIZE), math.floor(z // CHUNK_SIZE)

    @property
    def synthesized_count(self) -> int:
        with self._futures_lock:
            return self._synthesized

    def _generate_chunk(self, pos: ChunkPos) -> Chunk:
        start = time.perf_counter()
        try:
            with self._profile("world.chunk.synthesize", {"pos": pos}):
                chunk = self.terrain.synthesize(pos)
        except Exception as exc:
            with self._futures_lock:
                self._chunk_futures.pop(pos, None)
                self._failures += 1
            logger.warning("Chunk %s failed to generate: %s", pos, exc)
            raise ChunkGenerationError(pos) from exc

        # Store before unregistering so a caller arriving in between sees a hit.
        self.cache.put(pos, chunk)
        with self._futures_lock:
            self._chunk_futures.pop(pos, None)
            self._synthesized += 1
        logger.debug("Generated chunk %s in %.1f ms", pos, (time.perf_counter() - start) * 1000.0)
        return chunk

    def try_get(self, pos: ChunkPos) -> Chunk | None:
        return self.cache.get(pos)

    def request_chunk(self, pos: ChunkPos) -> Future[Chunk]:
        cached = self.cache.get(pos)
        if cached is not None:
            return _completed(cached)

        with self._futures_lock:
            future = self._chunk_futures.get(pos)
            if future is not None:
                return future
            # The chunk may have been stored since the first lookup.
            cached = self.cache.peek(pos)
            if cached is not None:
                return _completed(cached)
            future = self._executor.submit(self._generate_chunk, pos)
            self._chunk_futures[pos] = future
            return future

    def request_view(self, center: ChunkPos, view_distance: int) -> dict[ChunkPos, Future[Chunk]]:
        """Request every chunk within ``view_distance`` of ``center``.

        Misses are submitted nearest to ``center`` first; cached and in-flight
        positions are returned as they are, without a new submission.
        """
        region = ChunkRegion.around(center, view_distance)
        return {pos: self.request_chunk(pos) for pos in region.nearest_first(center)}

    def ensure_generated(self, pos: ChunkPos, timeout: float | None = None) -> Chunk:
        return self.request_chunk(pos).result(timeout=timeout)

    async def fetch_chunk(self, pos: ChunkPos) -> Chunk:
        return await asyncio.wrap_future(self.request_chunk(pos))

    def get_or_request(self, pos: ChunkPos) -> Chunk | None:
        future = self.request_chunk(pos)
        if future.done() and not future.cancelled() and future.exception() is None:
            return future.result()
        return None

    def chunk_status(self, pos: ChunkPos) -> ChunkStatus:
        if pos in self.cache:
            return ChunkStatus.READY
        with self._futures_lock:
            if pos in self._chunk_futures:
                return ChunkStatus.GENERATING
        return ChunkStatus.MISSING

    def highest_block_at(self, x: int, z: int) -> int:
        chunk = self.ensure_generated(self.chunk_coords(x, z))
        return chunk.highest_block(x % CHUNK_SIZE, z % CHUNK_SIZE)

    def pregenerate(
        self,
        region: ChunkRegion,
        spawn_chunk: ChunkPos = (0, 0),
        progress: Callable[[int, int], None] | None = None,
    ) -> PregenReport:
        from voxelgen.world.pregen import pregenerate

        return pregenerate(self, region, spawn_chunk=spawn_chunk, progress=progress)

    def diagnostics_snapshot(self) -> dict[str, int]:
        cache_stats = self.cache.stats()
        with self._futures_lock:
            inflight = len(self._chunk_futures)
            synthesized = self._synthesized
            failures = self._failures
        return {
            "cached_chunks": cache_stats["entries"],
            "cache_capacity": cache_stats["capacity"],
            "cache_hits": cache_stats["hits"],
            "cache_misses": cache_stats["misses"],
            "cache_evictions": cache_stats["evictions"],
            "inflight_chunks": inflight,
            "synthesized_chunks": synthesized,
            "failed_chunks": failures,
            "workers": self.workers,
        }

    def shutdown(self, wait: bool = True) -> None:
        self._executor.shutdown(wait=wait, cancel_futures=not wait)
        # Cancelled futures never reach _generate_chunk, so nothing else unregisters them.
        with self._futures_lock:
            self._chunk_futures.clear()

    def __enter__(self) -> World:
        return self

    def __exit__(self, *exc_info) -> None:
        self.shutdown()
