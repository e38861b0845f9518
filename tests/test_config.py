import pytest

from voxelgen.config import ChunkRegion, WorldConfig, random_seed, validate_seed
from voxelgen.errors import ConfigError, PregenerationError


@pytest.mark.parametrize("seed", [0, 1, 2**32 - 1])
def test_valid_seeds(seed):
    assert validate_seed(seed) == seed


@pytest.mark.parametrize("seed", [-1, 2**32, True, 3.0, "42", None])
def test_invalid_seeds(seed):
    with pytest.raises(ConfigError):
        validate_seed(seed)


def test_random_seed_in_range():
    for _ in range(50):
        assert 0 <= random_seed() < 2**32


def test_region_iteration_and_size():
    region = ChunkRegion((-1, 2), (1, 3))
    assert len(region) == 6
    assert list(region) == [(-1, 2), (0, 2), (1, 2), (-1, 3), (0, 3), (1, 3)]
    assert (0, 3) in region
    assert (2, 3) not in region
    assert "x" not in region


def test_region_around():
    region = ChunkRegion.around((0, 0), 12)
    assert region.start == (-12, -12)
    assert region.end == (12, 12)
    assert len(region) == 625
    assert len(ChunkRegion.around((5, -5), 0)) == 1


@pytest.mark.parametrize(
    "start, end",
    [((1, 0), (0, 0)), ((0, 1), (0, 0)), ((0, 0, 0), (1, 1)), ((0.5, 0), (1, 1))],
)
def test_invalid_region(start, end):
    with pytest.raises(ConfigError):
        ChunkRegion(start, end)


def test_negative_radius():
    with pytest.raises(ConfigError):
        ChunkRegion.around((0, 0), -1)


def test_default_config_is_valid():
    config = WorldConfig()
    config.validate()
    assert config.chunks_cached == 4000
    assert len(config.region) == 625
    assert config.spawn_chunk == (0, 0)


def test_region_must_fit_in_cache():
    with pytest.raises(ConfigError, match="cache"):
        WorldConfig(chunks_cached=100).validate()


def test_spawn_chunk_from_position():
    config = WorldConfig(spawn=(40.0, 100.0, -20.5))
    assert config.spawn_chunk == (2, -2)
    config.validate()


def test_spawn_outside_region():
    config = WorldConfig(pregen_start=(0, 0), pregen_end=(3, 3), spawn=(-1.0, 64.0, 5.0))
    with pytest.raises(ConfigError, match="spawn"):
        config.validate()


@pytest.mark.parametrize(
    "kwargs",
    [
        {"chunks_cached": 0},
        {"chunks_cached": -5},
        {"workers": 0},
        {"seed": 2**32},
        {"spawn": (0.0, float("nan"), 0.0)},
        {"spawn": (0.0, 64.0)},
    ],
)
def test_invalid_config_values(kwargs):
    with pytest.raises(ConfigError):
        WorldConfig(**kwargs).validate()


def test_resolve_seed():
    assert WorldConfig(seed=77).resolve_seed() == 77
    assert 0 <= WorldConfig().resolve_seed() < 2**32


def test_config_error_is_value_error():
    assert issubclass(ConfigError, ValueError)


def test_pregeneration_error_message():
    error = PregenerationError([(x, 0) for x in range(10, 0, -1)])
    assert error.failed[0] == (1, 0)
    assert "10 chunk(s)" in str(error)
    assert "(+2 more)" in str(error)
