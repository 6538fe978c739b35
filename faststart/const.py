BOX_FTYP = "ftyp"
BOX_MOOV = "moov"
BOX_MDAT = "mdat"
BOX_FREE = "free"

# Offset tables inside moov: 32-bit and 64-bit chunk offsets
BOX_STCO = "stco"
BOX_CO64 = "co64"

OFFSET_TABLE_TYPES = frozenset({BOX_STCO, BOX_CO64})

# Containers between moov and the offset tables
OFFSET_TABLE_ANCESTORS = frozenset({"trak", "mdia", "minf", "stbl"})

# Kinds that are never copied through verbatim when rebuilding the file
SKIPPED_KINDS = frozenset({BOX_FTYP, BOX_MOOV, BOX_FREE})

BOX_HEADER_SIZE = 8
EXTENDED_BOX_HEADER_SIZE = 16

# version(1) + flags(3)
FULL_BOX_HEADER_SIZE = 4

DEFAULT_CHUNK_SIZE = 8192
