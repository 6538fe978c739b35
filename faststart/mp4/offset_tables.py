"""
Chunk offset tables (stco/co64) inside a moov box.

- locate_offset_tables: find every offset table by descending only through
  trak/mdia/minf/stbl
- patch_offsets: add a signed bias to every entry, producing a copy of the
  moov bytes with exactly the same length
"""

import logging
from collections.abc import Iterable, Iterator
from dataclasses import dataclass

from faststart.const import (
    BOX_CO64,
    FULL_BOX_HEADER_SIZE,
    OFFSET_TABLE_ANCESTORS,
    OFFSET_TABLE_TYPES,
)
from faststart.mp4.box_scanner import Box, parse_box_header
from faststart.mp4.errors import MalformedTableError
from faststart.utils.byte_codec import pack_uint32, pack_uint64, unpack_uint32, unpack_uint64
from faststart.utils.notify import Reporter

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class OffsetTable:
    """A located stco/co64 box and where its entry array starts."""

    box: Box
    entry_count: int
    entries_start: int

    @property
    def entry_size(self) -> int:
        return 8 if self.box.tag == BOX_CO64 else 4

    @property
    def entries_end(self) -> int:
        return self.entries_start + self.entry_count * self.entry_size


def locate_offset_tables(buffer: bytes, reporter: Reporter | None = None) -> Iterator[OffsetTable]:
    """
    Lazily yield every chunk offset table in a moov box.

    Args:
        buffer: Raw bytes of the complete moov box (header + body).
        reporter: Diagnostic channel.

    Raises:
        MalformedTableError: If a table's count or entries lie outside the
            table or the buffer.
    """
    moov = parse_box_header(buffer, 0, reporter)
    if moov is None:
        return
    offset = moov.header_size

    while True:
        box = parse_box_header(buffer, offset, reporter)
        if box is None:
            break

        if box.tag in OFFSET_TABLE_TYPES:
            count_offset = box.body_start + FULL_BOX_HEADER_SIZE
            entry_count = unpack_uint32(buffer, count_offset)
            if entry_count is None or count_offset + 4 > box.end:
                raise MalformedTableError(f"Cannot read entry count of {box.type} at {box.start}")
            table = OffsetTable(box, entry_count, count_offset + 4)
            if table.entries_end > box.end or table.entries_end > len(buffer):
                raise MalformedTableError(
                    f"{box.type} at {box.start} declares {entry_count} entries beyond its size {box.size}"
                )
            yield table
            offset = box.end
        elif box.tag in OFFSET_TABLE_ANCESTORS:
            offset = box.body_start
        else:
            offset = box.end


def patch_offsets(buffer: bytes, tables: Iterable[OffsetTable], bias: int, reporter: Reporter | None = None) -> bytes:
    """
    Add ``bias`` to every entry of every table.

    Entries keep their width and wrap modulo 2**32 (stco) or 2**64 (co64).
    Tables are processed in the order given, which must be file order.

    Returns:
        Patched copy of ``buffer`` with the same length.
    """
    out = bytearray()
    cursor = 0
    for table in tables:
        if table.entries_start < cursor:
            raise MalformedTableError(f"{table.box.type} at {table.box.start} overlaps a previous table")
        if reporter is not None:
            reporter.verbose(f"Patching {table.box.type} with {table.entry_count} entries.")

        out += buffer[cursor : table.entries_start]
        pos = table.entries_start
        if table.entry_size == 8:
            for _ in range(table.entry_count):
                out += pack_uint64(unpack_uint64(buffer, pos) + bias)
                pos += 8
        else:
            for _ in range(table.entry_count):
                out += pack_uint32(unpack_uint32(buffer, pos) + bias)
                pos += 4
        cursor = pos

    out += buffer[cursor:]

    if len(out) != len(buffer):
        raise MalformedTableError(f"Patched moov is {len(out)} bytes, expected {len(buffer)}")
    return bytes(out)


def rewrite_moov_offsets(moov_data: bytes, bias: int, reporter: Reporter | None = None) -> bytes:
    """Locate and patch all chunk offset tables of a moov box in one pass."""
    tables = locate_offset_tables(moov_data, reporter)
    patched = patch_offsets(moov_data, tables, bias, reporter)
    logger.debug("Rewrote chunk offsets of %d-byte moov (bias=%+d)", len(moov_data), bias)
    return patched
