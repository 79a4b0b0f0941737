"""Little-endian integer readers and writers over a byte buffer."""

from __future__ import annotations

import struct

from .errors import FieldDecodeError

_U8 = struct.Struct("<B")
_I8 = struct.Struct("<b")
_U16 = struct.Struct("<H")
_I16 = struct.Struct("<h")
_U32 = struct.Struct("<I")
_I32 = struct.Struct("<i")


class ByteCursor:
    """Sequential reader over ``buffer[offset:offset + length]``.

    The cursor never reads outside its window; running off the end raises
    :class:`FieldDecodeError` so that only the record being decoded is lost.
    """

    def __init__(self, buffer: bytes, offset: int = 0, length: int | None = None):
        if length is None:
            length = len(buffer) - offset
        self._buffer = memoryview(buffer)
        self._start = offset
        self._end = min(offset + length, len(buffer))
        self._pos = offset

    @property
    def position(self) -> int:
        """Offset relative to the start of the window."""
        return self._pos - self._start

    @property
    def remaining(self) -> int:
        return self._end - self._pos

    def _take(self, fmt: struct.Struct) -> int:
        if self._pos + fmt.size > self._end:
            raise FieldDecodeError(
                f"buffer exhausted at offset {self.position} reading {fmt.size} bytes"
            )
        (value,) = fmt.unpack_from(self._buffer, self._pos)
        self._pos += fmt.size
        return value

    def read_uint8(self) -> int:
        return self._take(_U8)

    def read_int8(self) -> int:
        return self._take(_I8)

    def read_uint16(self) -> int:
        return self._take(_U16)

    def read_int16(self) -> int:
        return self._take(_I16)

    def read_uint32(self) -> int:
        return self._take(_U32)

    def read_int32(self) -> int:
        return self._take(_I32)

    def read_bytes(self, count: int) -> bytes:
        if self._pos + count > self._end:
            raise FieldDecodeError(
                f"buffer exhausted at offset {self.position} reading {count} bytes"
            )
        chunk = bytes(self._buffer[self._pos:self._pos + count])
        self._pos += count
        return chunk

    def skip(self, count: int) -> None:
        self.read_bytes(count)


class ByteWriter:
    """Counterpart of :class:`ByteCursor` used to build record images."""

    def __init__(self):
        self._chunks = bytearray()

    def __len__(self) -> int:
        return len(self._chunks)

    def write_uint8(self, value: int) -> None:
        self._chunks += _U8.pack(value)

    def write_int8(self, value: int) -> None:
        self._chunks += _I8.pack(value)

    def write_uint16(self, value: int) -> None:
        self._chunks += _U16.pack(value)

    def write_int16(self, value: int) -> None:
        self._chunks += _I16.pack(value)

    def write_uint32(self, value: int) -> None:
        self._chunks += _U32.pack(value)

    def write_int32(self, value: int) -> None:
        self._chunks += _I32.pack(value)

    def write_bytes(self, data: bytes) -> None:
        self._chunks += data

    def pad(self, count: int) -> None:
        self._chunks += bytes(count)

    def getvalue(self) -> bytes:
        return bytes(self._chunks)
