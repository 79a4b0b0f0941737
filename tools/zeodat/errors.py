"""Exceptions raised while framing and decoding Zeo data records."""

from __future__ import annotations


class DecodeError(ValueError):
    """Base class for every record or stream decoding problem."""


class StructuralError(DecodeError):
    """Not enough bytes left for a header or for the declared record size."""


class UnknownVersion(DecodeError):
    """A record identifier was found but its version tag is not supported."""

    def __init__(self, version: int):
        super().__init__(f"unable to handle Zeo record version {version}")
        self.version = version


class ChecksumMismatch(DecodeError):
    """The stored CRC does not match the one computed over the record."""

    def __init__(self, expected: int, found: int):
        super().__init__(f"bad CRC: expected 0x{expected:04X}, found 0x{found:04X}")
        self.expected = expected
        self.found = found


class FieldDecodeError(DecodeError):
    """A field could not be decoded (short buffer, bad enum ordinal, ...)."""


class NoRecordFound(DecodeError):
    """No record identifier could be found within the search span."""
