"""Decoder for Zeo sleep manager ``ZEOSLEEP.DAT`` card images."""

from .decoder import decode, decode_file
from .errors import (
    ChecksumMismatch,
    DecodeError,
    FieldDecodeError,
    NoRecordFound,
    StructuralError,
    UnknownVersion,
)
from .models import SleepRecord, SleepStage
from .scanner import Diagnostic

__all__ = [
    "ChecksumMismatch",
    "DecodeError",
    "Diagnostic",
    "FieldDecodeError",
    "NoRecordFound",
    "SleepRecord",
    "SleepStage",
    "StructuralError",
    "UnknownVersion",
    "decode",
    "decode_file",
]
