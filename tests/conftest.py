import threading

import pytest

from voxelgen.world.terrain import TerrainGenerator
from voxelgen.world.world import World

SEED = 1234


class GatedGenerator:
    """Wraps a real generator; every synthesis blocks until ``gate`` is set."""

    def __init__(self, seed: int = SEED) -> None:
        self.inner = TerrainGenerator(seed)
        self.gate = threading.Event()
        self.started = threading.Event()
        self.calls = 0
        self.order = []
        self._lock = threading.Lock()

    def synthesize(self, pos):
        with self._lock:
            self.calls += 1
            self.order.append(pos)
        self.started.set()
        if not self.gate.wait(timeout=10):
            raise TimeoutError("gate was never opened")
        return self.inner.synthesize(pos)


class FlakyGenerator:
    """Fails the first ``failures`` syntheses, then behaves like the real generator."""

    def __init__(self, failures: int = 1, seed: int = SEED, gate: threading.Event | None = None) -> None:
        self.inner = TerrainGenerator(seed)
        self.failures = failures
        self.gate = gate
        self.calls = 0
        self._lock = threading.Lock()

    def synthesize(self, pos):
        if self.gate is not None:
            self.gate.wait(timeout=10)
        with self._lock:
            self.calls += 1
            fail = self.calls <= self.failures
        if fail:
            raise RuntimeError(f"synthetic failure for {pos}")
        return self.inner.synthesize(pos)


@pytest.fixture
def world():
    w = World(SEED, cache_size=64, workers=4)
    yield w
    w.shutdown()


@pytest.fixture
def gated_generator():
    generator = GatedGenerator()
    yield generator
    generator.gate.set()
