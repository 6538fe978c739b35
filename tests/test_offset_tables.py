import struct

import pytest

from faststart.mp4.errors import MalformedTableError
from faststart.mp4.offset_tables import (
    OffsetTable,
    locate_offset_tables,
    patch_offsets,
    rewrite_moov_offsets,
)
from mp4_samples import box, chunk_offsets, co64, moov, stco, trak


def test_locates_tables_in_every_track():
    moov_data = moov(trak(stco([10, 20, 30])), trak(co64([2**33, 5])))
    tables = list(locate_offset_tables(moov_data))

    assert [t.box.type for t in tables] == ["stco", "co64"]
    assert [t.entry_count for t in tables] == [3, 2]
    assert [t.entry_size for t in tables] == [4, 8]

    first = tables[0]
    assert first.entries_start == first.box.start + 16
    assert struct.unpack_from(">I", moov_data, first.entries_start)[0] == 10
    assert struct.unpack_from(">Q", moov_data, tables[1].entries_start)[0] == 2**33


def test_does_not_descend_into_unknown_containers():
    hidden = box("udta", stco([1, 2]))
    moov_data = moov(trak(stco([7])), box("edts", box("elst", b"\x00" * 8)) + hidden)
    tables = list(locate_offset_tables(moov_data))

    assert len(tables) == 1
    assert tables[0].entry_count == 1


def test_moov_without_tables():
    assert list(locate_offset_tables(moov())) == []
    assert list(locate_offset_tables(b"")) == []


def test_extended_moov_header_is_skipped():
    moov_data = moov(trak(stco([42])), size=200, extended=True)
    tables = list(locate_offset_tables(moov_data))

    assert len(tables) == 1
    assert chunk_offsets(box("ftyp", b"\x00" * 12) + moov_data) == [42]


def test_table_with_too_many_entries_is_malformed():
    bad = box("stco", struct.pack(">II", 0, 100) + struct.pack(">II", 1, 2))
    with pytest.raises(MalformedTableError):
        list(locate_offset_tables(moov(trak(bad))))


def test_table_without_entry_count_is_malformed():
    bad = box("co64", b"\x00\x00\x00\x00")
    with pytest.raises(MalformedTableError):
        list(locate_offset_tables(moov(trak(bad))))


def test_patch_adds_bias_and_keeps_everything_else():
    moov_data = moov(trak(stco([100, 200])), trak(co64([300])), size=300)
    patched = patch_offsets(moov_data, locate_offset_tables(moov_data), -16)

    assert len(patched) == len(moov_data)
    assert chunk_offsets(box("ftyp") + patched) == [84, 184, 284]

    tables = list(locate_offset_tables(moov_data))
    assert patched[: tables[0].entries_start] == moov_data[: tables[0].entries_start]
    assert patched[tables[1].entries_end :] == moov_data[tables[1].entries_end :]


def test_stco_entries_wrap_at_32_bits():
    moov_data = moov(trak(stco([0xFFFFFFF0, 5])))
    patched = patch_offsets(moov_data, locate_offset_tables(moov_data), 0x20)
    assert chunk_offsets(box("ftyp") + patched) == [0x10, 0x25]

    patched = patch_offsets(moov_data, locate_offset_tables(moov_data), -16)
    assert chunk_offsets(box("ftyp") + patched) == [0xFFFFFFE0, 2**32 - 11]


def test_co64_entries_wrap_at_64_bits():
    moov_data = moov(trak(co64([2**64 - 1])))
    patched = patch_offsets(moov_data, locate_offset_tables(moov_data), 2)
    assert chunk_offsets(box("ftyp") + patched) == [1]


def test_zero_bias_is_identity():
    moov_data = moov(trak(stco([1, 2, 3])), trak(co64([4])))
    assert patch_offsets(moov_data, locate_offset_tables(moov_data), 0) == moov_data


def test_overlapping_tables_are_rejected():
    moov_data = moov(trak(stco([1, 2])))
    table = next(locate_offset_tables(moov_data))
    with pytest.raises(MalformedTableError):
        patch_offsets(moov_data, [table, OffsetTable(table.box, 1, table.entries_start)], 1)


def test_rewrite_moov_offsets_reports_each_table(reporter, notify):
    moov_data = moov(trak(stco([50])), trak(stco([60, 70])))
    patched = rewrite_moov_offsets(moov_data, 200, reporter)

    assert chunk_offsets(box("ftyp") + patched) == [250, 260, 270]
    assert notify.verbose_lines == ["Patching stco with 1 entries.", "Patching stco with 2 entries."]


def test_co64_before_stco_in_same_track():
    moov_data = moov(trak(co64([2**33, 40]), stco([50, 60])), trak(stco([70])))
    tables = list(locate_offset_tables(moov_data))
    assert [t.box.type for t in tables] == ["co64", "stco", "stco"]

    patched = patch_offsets(moov_data, tables, 8)
    assert len(patched) == len(moov_data)
    assert chunk_offsets(box("ftyp") + patched) == [2**33 + 8, 48, 58, 68, 78]
