from __future__ import annotations

import logging
import time
from concurrent.futures import as_completed
from dataclasses import dataclass, field
from typing import Callable

from voxelgen.config import ChunkRegion, WorldConfig
from voxelgen.constants import ChunkPos
from voxelgen.debug.profiler import GenerationProfiler
from voxelgen.errors import ChunkGenerationError, ConfigError, PregenerationError
from voxelgen.world.terrain import TerrainSettings
from voxelgen.world.world import World

logger = logging.getLogger(__name__)

ProgressCallback = Callable[[int, int], None]
SpawnPoint = tuple[float, float, float]


@dataclass
class PregenReport:
    total: int
    generated: int
    already_cached: int
    elapsed_seconds: float
    failed: list[ChunkPos] = field(default_factory=list)


def pregenerate(
    world: World,
    region: ChunkRegion,
    spawn_chunk: ChunkPos = (0, 0),
    progress: ProgressCallback | None = None,
) -> PregenReport:
    """Generate every chunk of ``region`` into the world's cache, nearest to spawn first.

    Blocks until all requests have finished. Failed chunks are collected and
    reported together with ``PregenerationError`` once the rest are done.
    """
    if spawn_chunk not in region:
        raise ConfigError(f"pregeneration region {region.start}..{region.end} does not contain the spawn chunk {spawn_chunk}")
    total = len(region)
    if total > world.cache.capacity:
        raise ConfigError(
            f"pregeneration region holds {total} chunks but the cache only holds {world.cache.capacity}"
        )

    logger.info("Pregenerating %d chunks from %s to %s with %d workers", total, region.start, region.end, world.workers)
    if world.profiler is not None:
        world.profiler.begin_batch("pregen", {"total": total, "start": region.start, "end": region.end})

    start = time.perf_counter()
    synthesized_before = world.synthesized_count
    already_cached = sum(1 for pos in region if pos in world.cache)
    failed: list[ChunkPos] = []
    try:
        futures = {world.request_chunk(pos): pos for pos in region.nearest_first(spawn_chunk)}
        completed = 0
        next_report = 10
        for future in as_completed(futures):
            pos = futures[future]
            try:
                future.result()
            except ChunkGenerationError:
                logger.exception("Pregeneration of chunk %s failed", pos)
                failed.append(pos)
            completed += 1
            if progress is not None:
                progress(completed, total)
            percent = completed * 100 // total
            if percent >= next_report:
                logger.info("Pregenerated %d/%d chunks (%d%%)", completed, total, percent)
                next_report = (percent // 10 + 1) * 10
        elapsed = time.perf_counter() - start
    finally:
        if world.profiler is not None:
            world.profiler.end_batch(extra_context=world.diagnostics_snapshot())

    report = PregenReport(
        total=total,
        generated=world.synthesized_count - synthesized_before,
        already_cached=already_cached,
        elapsed_seconds=elapsed,
        failed=failed,
    )
    if failed:
        raise PregenerationError(failed)
    logger.info("Pregenerated %d chunks in %.2fs", total, elapsed)
    return report


def resolve_spawn(world: World, spawn: SpawnPoint | None = None) -> SpawnPoint:
    if spawn is not None:
        x, y, z = spawn
        logger.debug("Spawn at %s %s %s", x, y, z)
        return float(x), float(y), float(z)
    y = world.highest_block_at(0, 0)
    logger.debug("Spawn height: %d", y)
    return 0.0, float(y), 0.0


def start_world(
    config: WorldConfig,
    progress: ProgressCallback | None = None,
    settings: TerrainSettings | None = None,
    profiler: GenerationProfiler | None = None,
) -> tuple[World, PregenReport, SpawnPoint]:
    """Validate ``config``, build the world, pregenerate its region and resolve spawn.

    The world is shut down again if pregeneration fails.
    """
    config.validate()
    seed = config.resolve_seed()
    logger.info("Starting world generation with seed %d", seed)

    world = World.from_config(config, seed=seed, settings=settings, profiler=profiler)
    try:
        report = pregenerate(world, config.region, spawn_chunk=config.spawn_chunk, progress=progress)
        spawn = resolve_spawn(world, config.spawn)
    except BaseException:
        world.shutdown(wait=False)
        raise
    logger.info("World ready, spawn at %.1f %.1f %.1f", *spawn)
    return world, report, spawn
