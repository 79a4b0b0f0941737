"""Locate, validate and decode the records inside a ``ZEOSLEEP.DAT`` image."""

from __future__ import annotations

import dataclasses
import enum
import struct

from .crc import CRC_OFFSET, record_crc
from .errors import (
    ChecksumMismatch,
    DecodeError,
    FieldDecodeError,
    NoRecordFound,
    StructuralError,
    UnknownVersion,
)
from .models import HEADER_SIZE, IDENTIFIER, IDENTIFIER_SIZE, RECORD_SIZES, SleepRecord
from .record import decode_record

# No valid record starts further than this past the previous one.
MAX_SEARCH_SPAN = 2000

_VERSION = struct.Struct("<H")
_STORED_CRC = struct.Struct("<I")


class State(enum.Enum):
    SEARCHING = "searching"
    FRAMING = "framing"
    DONE = "done"


@dataclasses.dataclass(frozen=True)
class Diagnostic:
    """A warning produced while scanning; ``str()`` gives the message."""

    kind: type[DecodeError]
    offset: int
    after_record: int
    message: str

    def __str__(self) -> str:
        return self.message


@dataclasses.dataclass
class ScanResult:
    records: list[SleepRecord] = dataclasses.field(default_factory=list)
    diagnostics: list[Diagnostic] = dataclasses.field(default_factory=list)


def find_next_record(data: bytes, start: int) -> int:
    """Offset of the next record identifier at or after ``start``, or -1.

    At most ``MAX_SEARCH_SPAN`` candidate positions are examined.
    """
    end = min(len(data), start + MAX_SEARCH_SPAN + IDENTIFIER_SIZE - 1)
    return data.find(IDENTIFIER, start, end)


def frame_record(data: bytes, offset: int) -> tuple[SleepRecord, int]:
    """Validate and decode the record at ``offset``; return it and its size."""
    if data[offset:offset + IDENTIFIER_SIZE] != IDENTIFIER:
        raise StructuralError("invalid record identifier")
    (version,) = _VERSION.unpack_from(data, offset + IDENTIFIER_SIZE)
    size = RECORD_SIZES.get(version)
    if size is None:
        raise UnknownVersion(version)
    if len(data) - offset < size:
        raise StructuralError("file ended with incomplete record")

    span = data[offset:offset + size]
    (stored,) = _STORED_CRC.unpack_from(span, CRC_OFFSET)
    computed = record_crc(span)
    if computed != stored:
        raise ChecksumMismatch(computed, stored)
    return decode_record(span, version), size


_REJECTION_TEXT = {
    StructuralError: "Skipping malformed data",
    UnknownVersion: "Skipping unsupported record",
    ChecksumMismatch: "Skipping the record",
    FieldDecodeError: "Exception parsing the record",
}


def scan(data: bytes) -> ScanResult:
    """Decode every record that can be recovered from ``data``.

    Corrupt or unknown records are skipped and reported; the search for the
    next record restarts one byte after the rejected header so that shifted
    identifiers are still found.
    """
    data = bytes(data)
    result = ScanResult()

    def warn(kind, offset, message):
        result.diagnostics.append(Diagnostic(kind, offset, len(result.records), message))

    cursor = find_next_record(data, 0)
    if cursor == -1:
        warn(NoRecordFound, 0, "File may be encrypted or is not a Zeo data file: no record identifier found.")
        return result

    # Leading bytes before the first identifier are framed (and rejected) like
    # any other corruption.
    cursor = 0
    state = State.FRAMING
    while state is not State.DONE:
        if state is State.SEARCHING:
            found = find_next_record(data, cursor)
            if found == -1:
                warn(NoRecordFound, cursor, "Valid records stopped before file ended.")
                state = State.DONE
            else:
                cursor = found
                state = State.FRAMING
            continue

        if cursor >= len(data):
            state = State.DONE
            continue
        if len(data) - cursor < HEADER_SIZE:
            warn(StructuralError, cursor, "File ended with incomplete record.")
            state = State.DONE
            continue

        try:
            record, size = frame_record(data, cursor)
        except DecodeError as exc:
            kind = type(exc)
            prefix = _REJECTION_TEXT.get(kind, "Skipping the record")
            warn(kind, cursor, f"{prefix} after record {len(result.records)}: {exc}.")
            cursor += 1
            state = State.SEARCHING
            continue

        result.records.append(record)
        cursor += size

    return result
