ChunkPos = tuple[int, int]

CHUNK_SIZE = 16
SECTION_HEIGHT = 16
SECTION_COUNT = 24
WORLD_HEIGHT = SECTION_COUNT * SECTION_HEIGHT
BEDROCK_Y = 0
WATER_HEIGHT = 120

SEED_LIMIT = 2**32
DEFAULT_CHUNKS_CACHED = 4000
DEFAULT_PREGEN_START: ChunkPos = (-12, -12)
DEFAULT_PREGEN_END: ChunkPos = (12, 12)
