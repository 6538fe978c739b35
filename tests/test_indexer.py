import logging

import pytest

from faststart.mp4.indexer import scan_top_level
from faststart.utils.streams import MemoryStream
from mp4_samples import box, fast_start_file, ftyp, mdat, moov, scenario_a, scenario_b, sized_box, stco, trak


async def index_of(data: bytes, **kwargs):
    return await scan_top_level(MemoryStream(data), **kwargs)


@pytest.mark.asyncio
async def test_scenario_a_free_before_moov():
    data, _ = scenario_a()
    index = await index_of(data)
    layout = index.layout

    assert [(entry.type, entry.kind) for entry in index] == [
        ("ftyp", "ftyp"),
        ("free", "free"),
        ("moov", "moov"),
        ("mdat", "mdat"),
    ]
    assert [entry.start for entry in index] == [0, 20, 36, 236]
    assert layout.is_valid
    assert layout.moov_first
    assert layout.has_free_atoms
    assert not layout.has_redundant_tail
    assert layout.free_size_before_data == 16
    assert layout.offset_bias == -16
    assert not layout.truncated


@pytest.mark.asyncio
async def test_scenario_b_moov_after_data():
    data, _ = scenario_b()
    layout = (await index_of(data)).layout

    assert layout.is_valid
    assert not layout.moov_first
    assert not layout.has_free_atoms
    assert layout.moov.start == 1020
    assert layout.moov.size == 200
    assert layout.offset_bias == 200


@pytest.mark.asyncio
async def test_scenario_c_missing_mdat_is_invalid():
    index = await index_of(ftyp() + moov(trak(stco([]))))
    assert index.layout.mdat is None
    assert not index.layout.is_valid


@pytest.mark.asyncio
async def test_second_moov_before_data_counts_as_free(notify, reporter):
    second = moov(size=48)
    data = ftyp() + moov(trak(stco([100])), size=200) + second + mdat(100)
    index = await scan_top_level(MemoryStream(data), reporter=reporter)
    layout = index.layout

    assert [entry.kind for entry in index] == ["ftyp", "moov", "free", "mdat"]
    assert index.boxes[2].type == "moov"
    assert layout.moov.start == 20
    assert layout.has_free_atoms
    assert not layout.has_redundant_tail
    assert layout.free_size_before_data == 48
    assert layout.offset_bias == -48
    assert notify.warnings == ["Multiple moov atoms found."]


@pytest.mark.asyncio
async def test_second_moov_after_data_is_redundant_tail():
    data = ftyp() + moov(size=100) + mdat(100) + moov(size=60)
    layout = (await index_of(data)).layout

    assert layout.has_free_atoms
    assert layout.has_redundant_tail
    assert layout.free_size_before_data == 0


@pytest.mark.asyncio
async def test_free_after_data_does_not_shift_offsets():
    data = ftyp() + sized_box("free", 32) + moov(size=100) + mdat(100) + sized_box("free", 64)
    layout = (await index_of(data)).layout

    assert layout.has_free_atoms
    assert not layout.has_redundant_tail
    assert layout.free_size_before_data == 32


@pytest.mark.asyncio
async def test_types_are_case_insensitive():
    data = box("FTYP", b"\x00" * 12) + box("Free") + moov(size=100) + mdat(50)
    layout = (await index_of(data)).layout

    assert layout.ftyp is not None
    assert layout.has_free_atoms
    assert layout.free_size_before_data == 8


@pytest.mark.asyncio
async def test_extended_size_mdat():
    data = ftyp() + moov(size=100) + mdat(64, extended=True) + sized_box("free", 8)
    index = await index_of(data)

    assert index.layout.mdat.size == 64
    assert index.layout.mdat.header_size == 16
    assert index.boxes[-1].start == 184


@pytest.mark.asyncio
async def test_truncated_file_stops_with_best_effort_index(notify, reporter):
    data = ftyp() + moov(size=100) + mdat(1000)[:400]
    index = await scan_top_level(MemoryStream(data), reporter=reporter)

    assert index.layout.truncated
    assert index.layout.is_valid
    assert len(index) == 3
    assert any("truncated" in text for text in notify.errors)


@pytest.mark.asyncio
async def test_keeping_free_atoms_stops_after_data():
    data = ftyp() + moov(size=100) + mdat(100) + sized_box("free", 16) + moov(size=60)
    index = await index_of(data, remove_free_atoms=False)

    assert [entry.type for entry in index] == ["ftyp", "moov", "mdat"]
    assert index.layout.is_valid
    assert index.layout.moov_first
    assert not index.layout.has_free_atoms
    assert not index.layout.has_redundant_tail


@pytest.mark.asyncio
async def test_other_boxes_are_listed_for_copy_through():
    data = ftyp() + sized_box("uuid", 24) + mdat(100) + sized_box("wide", 8) + mdat(40) + fast_start_file()[20:220]
    index = await index_of(data)

    assert [entry.kind for entry in index] == ["ftyp", "other", "mdat", "other", "mdat", "moov"]
    assert index.layout.mdat.start == 44
    assert not index.layout.moov_first


@pytest.mark.asyncio
async def test_scan_summary_is_logged(caplog):
    data, _ = scenario_b()
    with caplog.at_level(logging.DEBUG, logger="faststart.mp4.indexer"):
        await index_of(data)

    assert "Indexed 3 top-level boxes: moov_first=False free=False truncated=False" in caplog.text
