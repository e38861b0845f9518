import asyncio
import threading

import pytest

from conftest import SEED, FlakyGenerator
from voxelgen.config import ChunkRegion
from voxelgen.errors import ChunkGenerationError, ConfigError
from voxelgen.world.terrain import synthesize
from voxelgen.world.world import ChunkStatus, World


def test_request_returns_synthesized_chunk(world):
    chunk = world.request_chunk((2, -3)).result(timeout=30)
    assert chunk.pos == (2, -3)
    assert chunk.digest() == synthesize(SEED, (2, -3)).digest()
    assert world.try_get((2, -3)) is chunk
    assert world.chunk_status((2, -3)) is ChunkStatus.READY


def test_cached_chunk_is_returned_without_synthesis(world):
    first = world.ensure_generated((0, 0))
    second = world.ensure_generated((0, 0))
    assert first is second
    assert world.request_chunk((0, 0)).result() is first
    assert world.synthesized_count == 1


def test_concurrent_requests_share_one_synthesis(gated_generator):
    world = World(SEED, cache_size=8, workers=4, generator=gated_generator)
    try:
        futures = []
        lock = threading.Lock()
        barrier = threading.Barrier(8)

        def request():
            barrier.wait()
            future = world.request_chunk((1, 1))
            with lock:
                futures.append(future)

        threads = [threading.Thread(target=request) for _ in range(8)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert gated_generator.started.wait(timeout=10)
        assert world.chunk_status((1, 1)) is ChunkStatus.GENERATING
        assert len({id(f) for f in futures}) == 1

        gated_generator.gate.set()
        chunks = [f.result(timeout=30) for f in futures]
        assert all(c is chunks[0] for c in chunks)
        assert gated_generator.calls == 1
        assert world.synthesized_count == 1
        assert world.try_get((1, 1)) is chunks[0]
    finally:
        world.shutdown()


def test_distinct_positions_generate_independently(world):
    positions = [(x, z) for x in range(3) for z in range(3)]
    futures = [world.request_chunk(pos) for pos in positions]
    chunks = [f.result(timeout=60) for f in futures]
    assert [c.pos for c in chunks] == positions
    assert world.synthesized_count == len(positions)


def test_failure_reaches_every_waiter_and_caches_nothing():
    gate = threading.Event()
    generator = FlakyGenerator(failures=1, gate=gate)
    world = World(SEED, cache_size=8, workers=2, generator=generator)
    try:
        futures = [world.request_chunk((4, 4)) for _ in range(5)]
        assert all(f is futures[0] for f in futures)
        gate.set()
        for future in futures:
            with pytest.raises(ChunkGenerationError) as excinfo:
                future.result(timeout=30)
            assert excinfo.value.pos == (4, 4)
            assert isinstance(excinfo.value.__cause__, RuntimeError)

        assert world.try_get((4, 4)) is None
        assert len(world.cache) == 0
        assert world.chunk_status((4, 4)) is ChunkStatus.MISSING
        assert world.diagnostics_snapshot()["failed_chunks"] == 1

        chunk = world.request_chunk((4, 4)).result(timeout=30)
        assert chunk.pos == (4, 4)
        assert generator.calls == 2
        assert world.try_get((4, 4)) is chunk
    finally:
        world.shutdown()


def test_eviction_allows_regeneration():
    world = World(SEED, cache_size=2, workers=2)
    try:
        first = world.ensure_generated((0, 0))
        world.ensure_generated((1, 0))
        world.ensure_generated((2, 0))
        assert world.try_get((0, 0)) is None
        regenerated = world.ensure_generated((0, 0))
        assert regenerated is not first
        assert regenerated.digest() == first.digest()
        assert world.synthesized_count == 4
    finally:
        world.shutdown()


def test_get_or_request(gated_generator):
    world = World(SEED, cache_size=4, workers=1, generator=gated_generator)
    try:
        assert world.get_or_request((0, 0)) is None
        assert world.chunk_status((0, 0)) is ChunkStatus.GENERATING
        gated_generator.gate.set()
        chunk = world.request_chunk((0, 0)).result(timeout=30)
        assert world.get_or_request((0, 0)) is chunk
    finally:
        world.shutdown()


def test_fetch_chunk_from_asyncio(world):
    async def fetch_all():
        return await asyncio.gather(world.fetch_chunk((0, 1)), world.fetch_chunk((0, 1)), world.fetch_chunk((1, 0)))

    a, b, c = asyncio.run(fetch_all())
    assert a is b
    assert c.pos == (1, 0)
    assert world.synthesized_count == 2


def test_unknown_chunk_is_missing(world):
    assert world.chunk_status((100, 100)) is ChunkStatus.MISSING


def test_highest_block_at_uses_world_coordinates(world):
    expected = synthesize(SEED, (-1, 0)).highest_block(15, 3)
    assert world.highest_block_at(-1, 3) == expected
    assert world.highest_block_at(0, 0) == synthesize(SEED, (0, 0)).highest_block(0, 0)


def test_chunk_coords():
    assert World.chunk_coords(0, 0) == (0, 0)
    assert World.chunk_coords(15.9, -0.1) == (0, -1)
    assert World.chunk_coords(-16, 32) == (-1, 2)


@pytest.mark.parametrize("seed", [-1, 2**32, True, 1.5])
def test_invalid_seed(seed):
    with pytest.raises(ConfigError):
        World(seed, cache_size=4, workers=1)


def test_invalid_workers():
    with pytest.raises(ConfigError):
        World(SEED, cache_size=4, workers=0)


def test_diagnostics_snapshot(world):
    world.ensure_generated((0, 0))
    world.ensure_generated((0, 0))
    snapshot = world.diagnostics_snapshot()
    assert snapshot["cached_chunks"] == 1
    assert snapshot["synthesized_chunks"] == 1
    assert snapshot["inflight_chunks"] == 0
    assert snapshot["cache_hits"] >= 1
    assert snapshot["workers"] == 4


def test_context_manager_shuts_down():
    with World(SEED, cache_size=4, workers=1) as world:
        world.ensure_generated((0, 0))
    with pytest.raises(RuntimeError):
        world.request_chunk((5, 5))


def test_request_view_submits_nearest_first(gated_generator):
    world = World(SEED, cache_size=16, workers=1, generator=gated_generator)
    try:
        pending = world.request_chunk((1, 1))
        assert gated_generator.started.wait(timeout=10)
        view = world.request_view((0, 0), 1)
        assert view[(1, 1)] is pending

        gated_generator.gate.set()
        for future in view.values():
            future.result(timeout=60)
        expected = [pos for pos in ChunkRegion.around((0, 0), 1).nearest_first((0, 0)) if pos != (1, 1)]
        assert gated_generator.order == [(1, 1)] + expected
        assert gated_generator.calls == 9
    finally:
        world.shutdown()


def test_request_view_reuses_cached_chunks(world):
    cached = world.ensure_generated((1, 0))
    view = world.request_view((0, 0), 1)
    assert len(view) == 9
    assert view[(1, 0)].result() is cached
    for pos, future in view.items():
        assert future.result(timeout=60).pos == pos
    assert world.synthesized_count == 9


def test_request_view_rejects_negative_distance(world):
    with pytest.raises(ConfigError):
        world.request_view((0, 0), -1)


def test_cold_request_counts_one_miss(world):
    world.ensure_generated((0, 0))
    assert world.cache.stats()["misses"] == 1
    world.ensure_generated((0, 0))
    stats = world.cache.stats()
    assert stats["misses"] == 1
    assert stats["hits"] == 1


def test_shutdown_without_wait_unregisters_queued_chunks(gated_generator):
    world = World(SEED, cache_size=8, workers=1, generator=gated_generator)
    positions = [(x, 0) for x in range(6)]
    futures = [world.request_chunk(pos) for pos in positions]
    assert gated_generator.started.wait(timeout=10)

    world.shutdown(wait=False)
    assert all(f.cancelled() for f in futures[1:])
    assert world.diagnostics_snapshot()["inflight_chunks"] == 0
    for pos in positions[1:]:
        assert world.chunk_status(pos) is ChunkStatus.MISSING
    with pytest.raises(RuntimeError):
        world.request_chunk((1, 0))


def test_chunk_coords_exact_for_large_integers():
    big = 2**60 - 1
    assert World.chunk_coords(big, -big - 2) == (big // 16, (-big - 2) // 16)
    assert World.chunk_coords(big, 0) == (2**56 - 1, 0)
