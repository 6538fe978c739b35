"""
ISO base media file format (MP4/QuickTime) handling for fast start.

- box_scanner: box header reader (32-bit and 64-bit sizes)
- indexer: top-level box index and layout facts
- offset_tables: stco/co64 discovery and chunk offset patching
- errors: exceptions raised while rewriting
"""
