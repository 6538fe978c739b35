"""
Top-level box index of an MP4 file.

Walks the top-level boxes once and produces:
- the ordered list of boxes, each with a kind derived from scan context
- the layout facts needed to decide on and perform a fast-start rewrite
"""

import logging
import os
from dataclasses import dataclass

from faststart.const import BOX_FREE, BOX_FTYP, BOX_MDAT, BOX_MOOV
from faststart.mp4.box_scanner import Box, read_box_header
from faststart.utils.notify import Reporter
from faststart.utils.streams import AsyncByteStream, stream_size

logger = logging.getLogger(__name__)

KIND_OTHER = "other"


@dataclass(frozen=True)
class IndexedBox:
    """A top-level box and the kind it was classified as."""

    box: Box
    kind: str

    @property
    def type(self) -> str:
        return self.box.type

    @property
    def start(self) -> int:
        return self.box.start

    @property
    def size(self) -> int:
        return self.box.size


@dataclass(frozen=True)
class BoxLayout:
    """Aggregates computed while indexing the top-level boxes."""

    ftyp: Box | None = None
    moov: Box | None = None
    mdat: Box | None = None
    moov_first: bool = False
    has_free_atoms: bool = False
    has_redundant_tail: bool = False
    free_size_before_data: int = 0
    truncated: bool = False

    @property
    def is_valid(self) -> bool:
        return self.ftyp is not None and self.moov is not None and self.mdat is not None

    @property
    def offset_bias(self) -> int:
        """
        Amount to add to every chunk offset after the rewrite.

        Moving moov in front of the data shifts the data by moov's size; free
        boxes dropped from before the data shift it back by their size. The
        rewrite never changes moov's length, so its original size applies.
        """
        moov_shift = 0 if self.moov_first or self.moov is None else self.moov.size
        return moov_shift - self.free_size_before_data


@dataclass(frozen=True)
class BoxIndex:
    boxes: tuple[IndexedBox, ...]
    layout: BoxLayout

    def __iter__(self):
        return iter(self.boxes)

    def __len__(self) -> int:
        return len(self.boxes)


def classify(box: Box, seen_moov: bool) -> str:
    """Kind of a top-level box. A repeated moov is leftover padding."""
    tag = box.tag
    if tag == BOX_MOOV:
        return BOX_FREE if seen_moov else BOX_MOOV
    if tag in (BOX_FTYP, BOX_MDAT, BOX_FREE):
        return tag
    return KIND_OTHER


async def scan_top_level(stream: AsyncByteStream, remove_free_atoms: bool = True, reporter: Reporter | None = None) -> BoxIndex:
    """
    Index the top-level boxes of ``stream`` starting at its current position.

    Args:
        stream: Seekable async byte stream.
        remove_free_atoms: When False and moov already precedes the data, the
            scan ends at the first mdat since nothing after it matters.
        reporter: Diagnostic channel.

    Returns:
        BoxIndex with a best-effort layout; truncation is flagged, not raised.
    """
    reporter = reporter or Reporter()
    boxes: list[IndexedBox] = []
    ftyp = moov = mdat = None
    moov_first = False
    has_free_atoms = False
    has_redundant_tail = False
    free_size = 0
    truncated = False

    try:
        total_size = await stream_size(stream)
        while True:
            box = await read_box_header(stream, reporter)
            if box is None:
                break
            reporter.verbose(str(box))

            kind = classify(box, seen_moov=moov is not None)
            boxes.append(IndexedBox(box, kind))

            if kind == BOX_FTYP:
                if ftyp is None:
                    ftyp = box
            elif kind == BOX_MOOV:
                moov = box
                if mdat is None:
                    moov_first = True
            elif kind == BOX_MDAT:
                if mdat is None:
                    mdat = box
                if moov_first and not remove_free_atoms:
                    break
            elif kind == BOX_FREE:
                has_free_atoms = True
                if box.tag == BOX_MOOV:
                    reporter.warning("Multiple moov atoms found.")
                    if mdat is not None:
                        has_redundant_tail = True
                if mdat is None:
                    free_size += box.size

            if box.end > total_size:
                reporter.error("Cannot seek to next atom, maybe truncated.")
                truncated = True
                break
            try:
                await stream.seek(box.end, os.SEEK_SET)
            except OSError:
                reporter.error("Cannot seek to next atom, maybe truncated.")
                truncated = True
                break
    except Exception as e:
        reporter.exception(e)

    layout = BoxLayout(
        ftyp=ftyp,
        moov=moov,
        mdat=mdat,
        moov_first=moov_first,
        has_free_atoms=has_free_atoms,
        has_redundant_tail=has_redundant_tail,
        free_size_before_data=free_size,
        truncated=truncated,
    )
    logger.debug(
        f"Indexed {len(boxes)} top-level boxes: moov_first={moov_first} free={has_free_atoms} truncated={truncated}"
    )
    return BoxIndex(tuple(boxes), layout)
