"""
Box header reader shared by the top-level and nested scans.

A header is a 32-bit size and a 4-character type, followed by a 64-bit
extended size when the 32-bit size is 1. A size of 0 ("extends to the end") is
not expanded: it ends the scan of its container.
"""

import logging
from dataclasses import dataclass

from faststart.const import BOX_HEADER_SIZE, EXTENDED_BOX_HEADER_SIZE
from faststart.utils.byte_codec import read_tag, read_uint32, read_uint64, unpack_tag, unpack_uint32, unpack_uint64
from faststart.utils.notify import Reporter
from faststart.utils.streams import AsyncByteStream

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Box:
    """One box as seen at any scan depth."""

    type: str
    size: int
    start: int
    header_size: int = BOX_HEADER_SIZE

    @property
    def tag(self) -> str:
        """Lowercase type used for classification."""
        return self.type.lower()

    @property
    def end(self) -> int:
        return self.start + self.size

    @property
    def body_start(self) -> int:
        return self.start + self.header_size

    def __str__(self) -> str:
        return f"[{self.type}, start={self.start}, size={self.size}]"


def _check_size(box_type: str, size: int, header_size: int, start: int, reporter: Reporter | None) -> bool:
    if size == 0:
        _report_error(reporter, f"Zero size box at {start} -- {box_type}")
        return False
    if size < header_size:
        _report_error(reporter, f"Box at {start} -- {box_type} declares size {size} smaller than its header")
        return False
    return True


def _report_error(reporter: Reporter | None, text: str) -> None:
    if reporter is not None:
        reporter.error(text)
    else:
        logger.error(text)


async def read_box_header(stream: AsyncByteStream, reporter: Reporter | None = None) -> Box | None:
    """
    Read one box header at the stream's current position.

    Returns:
        The box, or None when there are no more boxes (end of stream, zero
        size, malformed size or any stream error).
    """
    try:
        start = await stream.tell()
        size = await read_uint32(stream)
        if size is None:
            return None
        box_type = await read_tag(stream)
        if box_type is None:
            return None

        header_size = BOX_HEADER_SIZE
        if size == 1:
            size = await read_uint64(stream)
            if size is None:
                return None
            header_size = EXTENDED_BOX_HEADER_SIZE

        if not _check_size(box_type, size, header_size, start, reporter):
            return None
        return Box(box_type, size, start, header_size)
    except (OSError, ValueError):
        return None


def parse_box_header(data: bytes, offset: int, reporter: Reporter | None = None) -> Box | None:
    """Same contract as ``read_box_header`` over an in-memory buffer."""
    size = unpack_uint32(data, offset)
    if size is None:
        return None
    box_type = unpack_tag(data, offset + 4)
    if box_type is None:
        return None

    header_size = BOX_HEADER_SIZE
    if size == 1:
        size = unpack_uint64(data, offset + 8)
        if size is None:
            return None
        header_size = EXTENDED_BOX_HEADER_SIZE

    if not _check_size(box_type, size, header_size, offset, reporter):
        return None
    return Box(box_type, size, offset, header_size)
