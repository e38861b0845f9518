from __future__ import annotations

from dataclasses import dataclass, field

import numpy as np

from voxelgen.blocks import AIR, block_id
from voxelgen.constants import BEDROCK_Y, CHUNK_SIZE, WATER_HEIGHT, WORLD_HEIGHT, ChunkPos
from voxelgen.world.chunk import BLOCK_DTYPE, Chunk
from voxelgen.world.noise import NoiseField, NoiseSample, NoiseSettings

BEDROCK = block_id("bedrock")
STONE = block_id("stone")
DIRT = block_id("dirt")
GRASS_BLOCK = block_id("grass_block")
GRAVEL = block_id("gravel")
SAND = block_id("sand")
WATER = block_id("water")
GRASS = block_id("grass")
TALL_GRASS_LOWER = block_id("tall_grass_lower")
TALL_GRASS_UPPER = block_id("tall_grass_upper")
SEAGRASS = block_id("seagrass")
TALL_SEAGRASS_LOWER = block_id("tall_seagrass_lower")
TALL_SEAGRASS_UPPER = block_id("tall_seagrass_upper")


@dataclass(frozen=True)
class TerrainSettings:
    base_height: float = 64.0
    hill_height: float = 100.0
    water_height: int = WATER_HEIGHT
    world_height: int = WORLD_HEIGHT
    sand_offset: int = 5
    surface_depth_scale: float = 5.0
    plant_threshold: float = 0.55
    tall_plant_threshold: float = 0.7
    enable_gravel: bool = True
    enable_sand: bool = True
    enable_stone: bool = True
    enable_grass: bool = True
    enable_water: bool = True
    noise: NoiseSettings = field(default_factory=NoiseSettings)


def _lerp(a: float, b: float, t: np.ndarray) -> np.ndarray:
    return a * (1.0 - t) + b * t


class TerrainGenerator:
    def __init__(self, seed: int, settings: TerrainSettings | None = None) -> None:
        self.seed = seed
        self.settings = settings or TerrainSettings()
        self.noise = NoiseField(seed, self.settings.noise)

    @staticmethod
    def _column_grid(pos: ChunkPos) -> tuple[np.ndarray, np.ndarray]:
        cx, cz = pos
        xs = np.arange(cx * CHUNK_SIZE, (cx + 1) * CHUNK_SIZE, dtype=np.float64)
        zs = np.arange(cz * CHUNK_SIZE, (cz + 1) * CHUNK_SIZE, dtype=np.float64)
        grid_z, grid_x = np.meshgrid(zs, xs, indexing="ij")
        return grid_x, grid_z

    def synthesize(self, pos: ChunkPos) -> Chunk:
        grid_x, grid_z = self._column_grid(pos)
        sample = self.noise.sample(grid_x, grid_z)

        solid = self._terrain_mask(sample, grid_x, grid_z)
        blocks = self._layer_blocks(solid, sample)
        blocks[BEDROCK_Y] = BEDROCK
        self._decorate(blocks, grid_x, grid_z)
        return Chunk.from_blocks(pos, blocks)

    def _terrain_mask(self, sample: NoiseSample, grid_x: np.ndarray, grid_z: np.ndarray) -> np.ndarray:
        s = self.settings
        hilly = _lerp(0.1, 1.0, sample.hilliness) ** 2
        lower = s.base_height + s.hill_height * hilly
        upper = lower + s.hill_height * hilly

        ys = np.arange(s.world_height, dtype=np.float64)[:, None, None]
        solid = np.broadcast_to(ys <= lower, (s.world_height, CHUNK_SIZE, CHUNK_SIZE)).copy()
        band = (ys > lower) & (ys < upper)
        if not band.any():
            return solid

        # Only the band between the two heights depends on 3-D density.
        y_idx, z_idx, x_idx = np.nonzero(band)
        py = y_idx.astype(np.float64)
        lo = lower[z_idx, x_idx]
        hi = upper[z_idx, x_idx]
        threshold = 1.0 - (py - lo) / (hi - lo)
        density = self.noise.density(grid_x[z_idx, x_idx], py, grid_z[z_idx, x_idx])
        solid[band] = density < threshold
        return solid

    def _layer_blocks(self, solid: np.ndarray, sample: NoiseSample) -> np.ndarray:
        s = self.settings
        height = solid.shape[0]
        blocks = np.full(solid.shape, AIR, dtype=BLOCK_DTYPE)

        gravel_height = s.water_height - 1 - np.floor(sample.gravel * 6.0).astype(np.int64)
        sand_height = gravel_height + s.sand_offset + np.floor(sample.sand * 6.0).astype(np.int64)
        surface_depth = np.round(sample.stone * s.surface_depth_scale).astype(np.int64)

        top_block = GRASS_BLOCK if s.enable_grass else AIR
        shallow_block = DIRT if s.enable_grass else AIR
        deep_block = STONE if s.enable_stone else AIR

        in_terrain = np.zeros((CHUNK_SIZE, CHUNK_SIZE), dtype=bool)
        depth = np.zeros((CHUNK_SIZE, CHUNK_SIZE), dtype=np.int64)

        # Columns are scanned top-down: a run of terrain starts with a surface
        # block, then surface_depth shallow blocks, then stone.
        for y in range(height - 1, -1, -1):
            column_solid = solid[y]
            layer = blocks[y]
            gravel_here = (y < gravel_height) & s.enable_gravel
            sand_here = (y >= gravel_height) & (y < sand_height) & s.enable_sand

            surface = column_solid & ~in_terrain
            inner = column_solid & in_terrain
            shallow = inner & (depth > 0)
            deep = inner & ~shallow

            surface_ids = np.where(gravel_here, GRAVEL, np.where(sand_here, SAND, top_block))
            shallow_ids = np.where(gravel_here, GRAVEL, shallow_block)
            layer[surface] = surface_ids[surface]
            layer[shallow] = shallow_ids[shallow]
            layer[deep] = deep_block
            if s.enable_water and y < s.water_height:
                layer[~column_solid] = WATER

            depth = np.where(surface, surface_depth, np.where(shallow, depth - 1, np.where(column_solid, depth, 0)))
            in_terrain = column_solid
        return blocks

    def _decorate(self, blocks: np.ndarray, grid_x: np.ndarray, grid_z: np.ndarray) -> None:
        s = self.settings
        if not ((s.enable_water and s.enable_gravel) or s.enable_grass):
            return

        # Candidates are taken from the undecorated volume; a plant never sits
        # on top of another candidate cell.
        resting = blocks[:-1]
        cell = blocks[1:]
        grass_spots = (cell == AIR) & (resting == GRASS_BLOCK)
        sea_spots = (cell == WATER) & (resting == GRAVEL) if (s.enable_water and s.enable_gravel) else None

        self._place_plants(blocks, grass_spots, AIR, (GRASS, TALL_GRASS_LOWER, TALL_GRASS_UPPER), grid_x, grid_z)
        if sea_spots is not None:
            self._place_plants(blocks, sea_spots, WATER, (SEAGRASS, TALL_SEAGRASS_LOWER, TALL_SEAGRASS_UPPER), grid_x, grid_z)

    def _place_plants(
        self,
        blocks: np.ndarray,
        spots: np.ndarray,
        open_block: int,
        plant_ids: tuple[int, int, int],
        grid_x: np.ndarray,
        grid_z: np.ndarray,
    ) -> None:
        if not spots.any():
            return
        s = self.settings
        short_id, lower_id, upper_id = plant_ids
        y_idx, z_idx, x_idx = np.nonzero(spots)
        y_idx = y_idx + 1
        density = self.noise.vegetation(grid_x[z_idx, x_idx], y_idx.astype(np.float64), grid_z[z_idx, x_idx])

        above = np.minimum(y_idx + 1, blocks.shape[0] - 1)
        room_above = (y_idx + 1 < blocks.shape[0]) & (blocks[above, z_idx, x_idx] == open_block)
        placed = density > s.plant_threshold
        tall = placed & (density > s.tall_plant_threshold) & room_above
        short = placed & ~tall

        blocks[y_idx[short], z_idx[short], x_idx[short]] = short_id
        blocks[y_idx[tall], z_idx[tall], x_idx[tall]] = lower_id
        blocks[y_idx[tall] + 1, z_idx[tall], x_idx[tall]] = upper_id


def synthesize(seed: int, pos: ChunkPos, settings: TerrainSettings | None = None) -> Chunk:
    return TerrainGenerator(seed, settings).synthesize(pos)
