"""
Fixed-width big-endian integer and box-tag codec.

Stream readers are coroutines over an ``AsyncByteStream`` and return ``None``
when fewer bytes than requested are available, so that the end of a file ends
a scan without raising. Buffer readers provide the same contract for bytes
already held in memory.
"""

import struct

_UINT32 = struct.Struct(">I")
_UINT64 = struct.Struct(">Q")

UINT32_MASK = 0xFFFFFFFF
UINT64_MASK = 0xFFFFFFFFFFFFFFFF


def decode_tag(raw: bytes) -> str:
    """Decode a 4-byte box type. latin-1 maps every byte to one code unit."""
    return raw.decode("latin-1")


# =============================================================================
# Stream readers
# =============================================================================


async def _read_exact(stream, length: int) -> bytes | None:
    data = await stream.read(length)
    if data is None or len(data) != length:
        return None
    return data


async def read_uint32(stream) -> int | None:
    """Read a 32-bit big-endian unsigned integer, or None at end of stream."""
    data = await _read_exact(stream, 4)
    if data is None:
        return None
    return _UINT32.unpack(data)[0]


async def read_uint64(stream) -> int | None:
    """Read a 64-bit big-endian unsigned integer, or None at end of stream."""
    data = await _read_exact(stream, 8)
    if data is None:
        return None
    return _UINT64.unpack(data)[0]


async def read_tag(stream) -> str | None:
    """Read a 4-character box type, or None at end of stream."""
    data = await _read_exact(stream, 4)
    if data is None:
        return None
    return decode_tag(data)


# =============================================================================
# Buffer readers
# =============================================================================


def unpack_uint32(data: bytes, offset: int) -> int | None:
    if offset < 0 or offset + 4 > len(data):
        return None
    return _UINT32.unpack_from(data, offset)[0]


def unpack_uint64(data: bytes, offset: int) -> int | None:
    if offset < 0 or offset + 8 > len(data):
        return None
    return _UINT64.unpack_from(data, offset)[0]


def unpack_tag(data: bytes, offset: int) -> str | None:
    if offset < 0 or offset + 4 > len(data):
        return None
    return decode_tag(bytes(data[offset : offset + 4]))


# =============================================================================
# Writers
# =============================================================================


def pack_uint32(value: int) -> bytes:
    """Encode exactly 4 bytes big-endian. Values wrap modulo 2**32."""
    return _UINT32.pack(value & UINT32_MASK)


def pack_uint64(value: int) -> bytes:
    """Encode exactly 8 bytes big-endian. Values wrap modulo 2**64."""
    return _UINT64.pack(value & UINT64_MASK)


async def write_uint32(stream, value: int) -> None:
    await stream.write(pack_uint32(value))


async def write_uint64(stream, value: int) -> None:
    await stream.write(pack_uint64(value))
