from __future__ import annotations

import random
from dataclasses import dataclass, field
from functools import lru_cache

import numpy as np

from voxelgen.constants import SEED_LIMIT

ArrayLike = float | np.ndarray


class GradientNoise:
    """Improved Perlin noise over a seeded permutation table.

    Inputs may be scalars or numpy arrays of any (matching) shape. Instances are
    read-only after construction and can be shared between threads.
    """

    def __init__(self, seed: int) -> None:
        self.seed = seed
        rng = random.Random(seed)
        permutation = list(range(256))
        rng.shuffle(permutation)
        self._perm = np.array(permutation + permutation, dtype=np.int64)
        self._perm.flags.writeable = False

    @staticmethod
    def _fade(t: np.ndarray) -> np.ndarray:
        return t * t * t * (t * (t * 6 - 15) + 10)

    @staticmethod
    def _lerp(a: np.ndarray, b: np.ndarray, t: np.ndarray) -> np.ndarray:
        return a + t * (b - a)

    @staticmethod
    def _grad2(hash_value: np.ndarray, x: np.ndarray, y: np.ndarray) -> np.ndarray:
        h = hash_value & 7
        u = np.where(h < 4, x, y)
        v = np.where(h < 4, y, x)
        return np.where(h & 1, -u, u) + np.where(h & 2, -v, v)

    @staticmethod
    def _grad3(hash_value: np.ndarray, x: np.ndarray, y: np.ndarray, z: np.ndarray) -> np.ndarray:
        h = hash_value & 15
        u = np.where(h < 8, x, y)
        v = np.where(h < 4, y, np.where((h == 12) | (h == 14), x, z))
        return np.where(h & 1, -u, u) + np.where(h & 2, -v, v)

    def noise2(self, x: ArrayLike, y: ArrayLike) -> np.ndarray:
        x = np.asarray(x, dtype=np.float64)
        y = np.asarray(y, dtype=np.float64)
        x_floor = np.floor(x)
        y_floor = np.floor(y)
        xi = x_floor.astype(np.int64) & 255
        yi = y_floor.astype(np.int64) & 255
        xf = x - x_floor
        yf = y - y_floor

        u = self._fade(xf)
        v = self._fade(yf)

        p = self._perm
        aa = p[p[xi] + yi]
        ab = p[p[xi] + yi + 1]
        ba = p[p[xi + 1] + yi]
        bb = p[p[xi + 1] + yi + 1]

        x1 = self._lerp(self._grad2(aa, xf, yf), self._grad2(ba, xf - 1.0, yf), u)
        x2 = self._lerp(self._grad2(ab, xf, yf - 1.0), self._grad2(bb, xf - 1.0, yf - 1.0), u)
        return self._lerp(x1, x2, v)

    def noise3(self, x: ArrayLike, y: ArrayLike, z: ArrayLike) -> np.ndarray:
        x = np.asarray(x, dtype=np.float64)
        y = np.asarray(y, dtype=np.float64)
        z = np.asarray(z, dtype=np.float64)
        x_floor = np.floor(x)
        y_floor = np.floor(y)
        z_floor = np.floor(z)
        xi = x_floor.astype(np.int64) & 255
        yi = y_floor.astype(np.int64) & 255
        zi = z_floor.astype(np.int64) & 255
        xf = x - x_floor
        yf = y - y_floor
        zf = z - z_floor

        u = self._fade(xf)
        v = self._fade(yf)
        w = self._fade(zf)

        p = self._perm
        a = p[xi] + yi
        aa = p[a] + zi
        ab = p[a + 1] + zi
        b = p[xi + 1] + yi
        ba = p[b] + zi
        bb = p[b + 1] + zi

        grad = self._grad3
        lerp = self._lerp
        near = lerp(
            lerp(grad(p[aa], xf, yf, zf), grad(p[ba], xf - 1.0, yf, zf), u),
            lerp(grad(p[ab], xf, yf - 1.0, zf), grad(p[bb], xf - 1.0, yf - 1.0, zf), u),
            v,
        )
        far = lerp(
            lerp(grad(p[aa + 1], xf, yf, zf - 1.0), grad(p[ba + 1], xf - 1.0, yf, zf - 1.0), u),
            lerp(grad(p[ab + 1], xf, yf - 1.0, zf - 1.0), grad(p[bb + 1], xf - 1.0, yf - 1.0, zf - 1.0), u),
            v,
        )
        return lerp(near, far, w)


def noise01(source: GradientNoise, points: tuple[np.ndarray, ...]) -> np.ndarray:
    if len(points) == 2:
        raw = source.noise2(*points)
    else:
        raw = source.noise3(*points)
    return np.clip((raw + 1.0) / 2.0, 0.0, 1.0)


def fbm(
    source: GradientNoise,
    points: tuple[np.ndarray, ...],
    octaves: int,
    lacunarity: float,
    persistence: float,
) -> np.ndarray:
    frequency = 1.0
    amplitude = 1.0
    amplitude_sum = 0.0
    total = np.zeros(np.broadcast(*points).shape, dtype=np.float64)

    for _ in range(octaves):
        total += noise01(source, tuple(p * frequency for p in points)) * amplitude
        amplitude_sum += amplitude
        frequency *= lacunarity
        amplitude *= persistence

    # Normalized by the amplitude sum so the result stays near [0, 1].
    return total / amplitude_sum if amplitude_sum else total


@dataclass(frozen=True)
class FBMSettings:
    point_scaling: float
    octaves: int
    lacunarity: float
    persistence: float

    def __call__(self, source: GradientNoise, points: tuple[np.ndarray, ...]) -> np.ndarray:
        scaled = tuple(np.asarray(p, dtype=np.float64) / self.point_scaling for p in points)
        return fbm(source, scaled, self.octaves, self.lacunarity, self.persistence)

    @classmethod
    def default_gravel(cls) -> FBMSettings:
        return cls(point_scaling=10.0, octaves=3, lacunarity=2.0, persistence=-1.5)

    @classmethod
    def default_sand(cls) -> FBMSettings:
        return cls(point_scaling=10.0, octaves=1, lacunarity=2.0, persistence=0.5)


@dataclass(frozen=True)
class NoiseSettings:
    hills_scale: float = 400.0
    density: FBMSettings = field(default_factory=lambda: FBMSettings(100.0, octaves=4, lacunarity=2.0, persistence=0.5))
    stone_scale: float = 15.0
    gravel: FBMSettings = field(default_factory=FBMSettings.default_gravel)
    sand: FBMSettings = field(default_factory=FBMSettings.default_sand)
    vegetation: FBMSettings = field(default_factory=lambda: FBMSettings(5.0, octaves=4, lacunarity=2.0, persistence=0.7))


@dataclass(frozen=True, eq=False)
class NoiseSample:
    hilliness: np.ndarray
    gravel: np.ndarray
    sand: np.ndarray
    stone: np.ndarray


class NoiseField:
    DENSITY_OFFSET = 0
    HILLY_OFFSET = 1
    STONE_OFFSET = 2
    GRAVEL_OFFSET = 3
    VEGETATION_OFFSET = 4

    def __init__(self, seed: int, settings: NoiseSettings | None = None) -> None:
        self.seed = seed
        self.settings = settings or NoiseSettings()
        self._density = GradientNoise(self._derive_seed(self.DENSITY_OFFSET))
        self._hilly = GradientNoise(self._derive_seed(self.HILLY_OFFSET))
        self._stone = GradientNoise(self._derive_seed(self.STONE_OFFSET))
        self._gravel = GradientNoise(self._derive_seed(self.GRAVEL_OFFSET))
        self._vegetation = GradientNoise(self._derive_seed(self.VEGETATION_OFFSET))

    def _derive_seed(self, offset: int) -> int:
        return (self.seed + offset) % SEED_LIMIT

    def sample(self, x: ArrayLike, z: ArrayLike) -> NoiseSample:
        x = np.asarray(x, dtype=np.float64)
        z = np.asarray(z, dtype=np.float64)
        s = self.settings
        hills = noise01(self._hilly, (x / s.hills_scale, z / s.hills_scale))
        stone = noise01(self._stone, (x / s.stone_scale, z / s.stone_scale))
        # Sand shares the gravel source, only the octave settings differ.
        gravel = s.gravel(self._gravel, (x, z))
        sand = s.sand(self._gravel, (x, z))
        return NoiseSample(hilliness=hills, gravel=gravel, sand=sand, stone=stone)

    def density(self, x: ArrayLike, y: ArrayLike, z: ArrayLike) -> np.ndarray:
        return self.settings.density(self._density, (x, y, z))

    def vegetation(self, x: ArrayLike, y: ArrayLike, z: ArrayLike) -> np.ndarray:
        return self.settings.vegetation(self._vegetation, (x, y, z))


@lru_cache(maxsize=8)
def _default_field(seed: int) -> NoiseField:
    return NoiseField(seed)


def sample(seed: int, x: ArrayLike, z: ArrayLike) -> NoiseSample:
    return _default_field(seed).sample(x, z)
