import pytest

from voxelgen.blocks import AIR, BLOCKS, BLOCKS_BY_ID, block_id, get_block_definition, get_block_name


def test_air_is_zero():
    assert AIR == 0
    assert get_block_name(AIR) == "air"


def test_ids_are_unique():
    assert len(BLOCKS_BY_ID) == len(BLOCKS)


def test_lookup():
    assert get_block_definition("water").liquid
    assert get_block_definition("stone").solid
    assert get_block_definition("missing") is None
    assert get_block_name(block_id("tall_seagrass_upper")) == "tall_seagrass_upper"
    assert get_block_name(9999) == "unknown"


def test_unknown_block_id():
    with pytest.raises(KeyError):
        block_id("diamond_ore")
