from __future__ import annotations

import math
import random
from dataclasses import dataclass
from typing import Iterator

from voxelgen.constants import (
    CHUNK_SIZE,
    DEFAULT_CHUNKS_CACHED,
    DEFAULT_PREGEN_END,
    DEFAULT_PREGEN_START,
    SEED_LIMIT,
    ChunkPos,
)
from voxelgen.errors import ConfigError


def validate_seed(seed: object) -> int:
    if isinstance(seed, bool) or not isinstance(seed, int):
        raise ConfigError(f"world seed must be an integer, got {seed!r}")
    if not (0 <= seed < SEED_LIMIT):
        raise ConfigError(f"world seed must be in 0..{SEED_LIMIT - 1}, got {seed}")
    return seed


def random_seed() -> int:
    return random.SystemRandom().randrange(SEED_LIMIT)


@dataclass(frozen=True)
class ChunkRegion:
    """Rectangle of chunk coordinates with inclusive bounds on both axes."""

    start: ChunkPos
    end: ChunkPos

    def __post_init__(self) -> None:
        for name, corner in (("start", self.start), ("end", self.end)):
            if len(corner) != 2 or any(isinstance(v, bool) or not isinstance(v, int) for v in corner):
                raise ConfigError(f"region {name} must be a pair of integers, got {corner!r}")
        if self.start[0] > self.end[0] or self.start[1] > self.end[1]:
            raise ConfigError(f"region start {self.start} must not exceed end {self.end}")

    @classmethod
    def around(cls, center: ChunkPos, radius: int) -> ChunkRegion:
        if radius < 0:
            raise ConfigError(f"region radius must not be negative, got {radius}")
        cx, cz = center
        return cls((cx - radius, cz - radius), (cx + radius, cz + radius))

    @property
    def width(self) -> int:
        return self.end[0] - self.start[0] + 1

    @property
    def depth(self) -> int:
        return self.end[1] - self.start[1] + 1

    def __len__(self) -> int:
        return self.width * self.depth

    def __contains__(self, pos: object) -> bool:
        if not isinstance(pos, tuple) or len(pos) != 2:
            return False
        x, z = pos
        return self.start[0] <= x <= self.end[0] and self.start[1] <= z <= self.end[1]

    def __iter__(self) -> Iterator[ChunkPos]:
        for z in range(self.start[1], self.end[1] + 1):
            for x in range(self.start[0], self.end[0] + 1):
                yield (x, z)

    def nearest_first(self, center: ChunkPos) -> list[ChunkPos]:
        """Every position of the region by squared distance from ``center``, ties by z then x."""
        cx, cz = center
        return sorted(self, key=lambda c: ((c[0] - cx) * (c[0] - cx) + (c[1] - cz) * (c[1] - cz), c[1], c[0]))


@dataclass
class WorldConfig:
    seed: int | None = None
    chunks_cached: int = DEFAULT_CHUNKS_CACHED
    pregen_start: ChunkPos = DEFAULT_PREGEN_START
    pregen_end: ChunkPos = DEFAULT_PREGEN_END
    spawn: tuple[float, float, float] | None = None
    workers: int | None = None

    @property
    def region(self) -> ChunkRegion:
        return ChunkRegion(tuple(self.pregen_start), tuple(self.pregen_end))

    @property
    def spawn_chunk(self) -> ChunkPos:
        if self.spawn is None:
            return (0, 0)
        x, _, z = self.spawn
        return (math.floor(x // CHUNK_SIZE), math.floor(z // CHUNK_SIZE))

    def validate(self) -> None:
        if self.seed is not None:
            validate_seed(self.seed)
        if isinstance(self.chunks_cached, bool) or not isinstance(self.chunks_cached, int) or self.chunks_cached <= 0:
            raise ConfigError(f"chunks_cached must be a positive integer, got {self.chunks_cached!r}")
        if self.workers is not None and (isinstance(self.workers, bool) or not isinstance(self.workers, int) or self.workers <= 0):
            raise ConfigError(f"workers must be a positive integer, got {self.workers!r}")
        if self.spawn is not None:
            if len(self.spawn) != 3 or not all(isinstance(v, (int, float)) and math.isfinite(v) for v in self.spawn):
                raise ConfigError(f"spawn must be three finite numbers, got {self.spawn!r}")

        region = self.region
        if self.spawn_chunk not in region:
            raise ConfigError(f"pregeneration region {region.start}..{region.end} does not contain the spawn chunk {self.spawn_chunk}")
        if len(region) > self.chunks_cached:
            raise ConfigError(
                f"pregeneration region holds {len(region)} chunks but the cache only holds {self.chunks_cached}; "
                "lower the pregeneration range or raise the cache size"
            )

    def resolve_seed(self) -> int:
        if self.seed is None:
            return random_seed()
        return validate_seed(self.seed)
