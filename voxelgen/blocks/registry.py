from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True)
class BlockDefinition:
    name: str
    id: int
    solid: bool
    liquid: bool = False


# Ids are the values stored in a chunk's block volume, so they must stay stable.
_DEFINITIONS = (
    BlockDefinition("air", 0, solid=False),
    BlockDefinition("bedrock", 1, solid=True),
    BlockDefinition("stone", 2, solid=True),
    BlockDefinition("dirt", 3, solid=True),
    BlockDefinition("grass_block", 4, solid=True),
    BlockDefinition("gravel", 5, solid=True),
    BlockDefinition("sand", 6, solid=True),
    BlockDefinition("water", 7, solid=False, liquid=True),
    BlockDefinition("grass", 8, solid=False),
    BlockDefinition("tall_grass_lower", 9, solid=False),
    BlockDefinition("tall_grass_upper", 10, solid=False),
    BlockDefinition("seagrass", 11, solid=False, liquid=True),
    BlockDefinition("tall_seagrass_lower", 12, solid=False, liquid=True),
    BlockDefinition("tall_seagrass_upper", 13, solid=False, liquid=True),
)


def _load_block_definitions() -> dict[str, BlockDefinition]:
    definitions: dict[str, BlockDefinition] = {}
    seen_ids: set[int] = set()
    for block in _DEFINITIONS:
        if block.name in definitions or block.id in seen_ids:
            raise ValueError(f"duplicate block definition: {block.name} ({block.id})")
        definitions[block.name] = block
        seen_ids.add(block.id)
    return definitions


BLOCKS = _load_block_definitions()
BLOCKS_BY_ID = {block.id: block for block in BLOCKS.values()}
AIR = BLOCKS["air"].id


def get_block_definition(name: str) -> BlockDefinition | None:
    return BLOCKS.get(name)


def block_id(name: str) -> int:
    block = BLOCKS.get(name)
    if block is None:
        raise KeyError(f"unknown block: {name}")
    return block.id


def get_block_name(value: int) -> str:
    block = BLOCKS_BY_ID.get(int(value))
    if block is None:
        return "unknown"
    return block.name
