from __future__ import annotations

from voxelgen.constants import ChunkPos


class VoxelGenError(Exception):
    pass


class ConfigError(VoxelGenError, ValueError):
    """Inconsistent startup configuration. Fatal: raised before any generation work."""


class ChunkGenerationError(VoxelGenError):
    """Synthesis of one chunk failed. Nothing was cached, so the chunk may be requested again."""

    def __init__(self, pos: ChunkPos, message: str | None = None) -> None:
        self.pos = pos
        super().__init__(message or f"failed to generate chunk {pos}")


class PregenerationError(VoxelGenError):
    def __init__(self, failed: list[ChunkPos]) -> None:
        self.failed = sorted(failed)
        preview = ", ".join(str(pos) for pos in self.failed[:8])
        more = f" (+{len(self.failed) - 8} more)" if len(self.failed) > 8 else ""
        super().__init__(f"pregeneration failed for {len(self.failed)} chunk(s): {preview}{more}")
