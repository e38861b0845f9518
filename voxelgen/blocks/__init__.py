from voxelgen.blocks.registry import AIR, BLOCKS, BLOCKS_BY_ID, BlockDefinition, block_id, get_block_definition, get_block_name

__all__ = ["AIR", "BlockDefinition", "BLOCKS", "BLOCKS_BY_ID", "block_id", "get_block_definition", "get_block_name"]
