from __future__ import annotations

import hashlib
from dataclasses import dataclass

import numpy as np

from voxelgen.blocks import AIR, get_block_name
from voxelgen.constants import CHUNK_SIZE, SECTION_HEIGHT, ChunkPos

BLOCK_DTYPE = np.uint16
HEIGHTMAP_DTYPE = np.int16


@dataclass(frozen=True, eq=False)
class Chunk:
    """One generated column of the world.

    ``blocks`` holds block ids indexed ``[y, z, x]`` with local x/z in
    ``0..CHUNK_SIZE``. ``heightmap`` holds the highest non-air y per column,
    indexed ``[z, x]``, or -1 for a column that is all air. Both arrays are
    read-only.
    """

    pos: ChunkPos
    blocks: np.ndarray
    heightmap: np.ndarray

    def __post_init__(self) -> None:
        if self.blocks.ndim != 3 or self.blocks.shape[1:] != (CHUNK_SIZE, CHUNK_SIZE):
            raise ValueError(f"block volume must be (height, {CHUNK_SIZE}, {CHUNK_SIZE}), got {self.blocks.shape}")
        if self.blocks.shape[0] % SECTION_HEIGHT:
            raise ValueError(f"chunk height must be a multiple of {SECTION_HEIGHT}")
        self.blocks.flags.writeable = False
        self.heightmap.flags.writeable = False

    @classmethod
    def from_blocks(cls, pos: ChunkPos, blocks: np.ndarray) -> Chunk:
        blocks = np.ascontiguousarray(blocks, dtype=BLOCK_DTYPE)
        return cls(pos=pos, blocks=blocks, heightmap=compute_heightmap(blocks))

    @property
    def height(self) -> int:
        return self.blocks.shape[0]

    @property
    def section_count(self) -> int:
        return self.height // SECTION_HEIGHT

    def block_state(self, x: int, y: int, z: int) -> int:
        if not (0 <= y < self.height):
            return AIR
        return int(self.blocks[y, z, x])

    def block_name(self, x: int, y: int, z: int) -> str:
        return get_block_name(self.block_state(x, y, z))

    def highest_block(self, x: int, z: int) -> int:
        return int(self.heightmap[z, x])

    def section(self, index: int) -> np.ndarray:
        if not (0 <= index < self.section_count):
            raise IndexError(f"section {index} out of range 0..{self.section_count - 1}")
        y0 = index * SECTION_HEIGHT
        return self.blocks[y0 : y0 + SECTION_HEIGHT]

    def to_bytes(self) -> bytes:
        return self.blocks.tobytes()

    def digest(self) -> str:
        return hashlib.sha256(self.to_bytes()).hexdigest()

    def __repr__(self) -> str:
        return f"Chunk(pos={self.pos}, height={self.height})"


def compute_heightmap(blocks: np.ndarray) -> np.ndarray:
    non_air = blocks != AIR
    has_block = non_air.any(axis=0)
    # argmax on the flipped volume finds the first non-air cell from the top.
    top = blocks.shape[0] - 1 - np.argmax(non_air[::-1], axis=0)
    return np.where(has_block, top, -1).astype(HEIGHTMAP_DTYPE)
