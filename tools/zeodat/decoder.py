"""Entry points turning raw ``ZEOSLEEP.DAT`` bytes into sleep episodes."""

from __future__ import annotations

from pathlib import Path

from .errors import NoRecordFound
from .models import SleepRecord
from .reduce import keep_resets, label_naps, reduce_records
from .scanner import Diagnostic, scan


def decode(
    data: bytes,
    *,
    reduce: bool = True,
    resets_only: bool = False,
) -> tuple[list[SleepRecord], list[Diagnostic]]:
    """Decode ``data`` and return ``(records, diagnostics)``.

    By default duplicate records are reduced to one per sleep episode and
    naps are labelled. ``reduce=False`` keeps every decoded record;
    ``resets_only`` keeps just the records written after watchdog resets.
    Diagnostics are returned in the order they were produced.
    """
    result = scan(data)
    records = result.records
    diagnostics = list(result.diagnostics)

    if resets_only:
        records = keep_resets(records)
    elif reduce and records:
        records = reduce_records(records)
        if not records:
            diagnostics.append(
                Diagnostic(
                    NoRecordFound,
                    len(data),
                    len(result.records),
                    "Records reduced down to 0 records. Try again without reduction (--expand).",
                )
            )

    label_naps(records)
    return records, diagnostics


def decode_file(path, **options) -> tuple[list[SleepRecord], list[Diagnostic]]:
    """Convenience wrapper reading a whole file before decoding it."""
    return decode(Path(path).read_bytes(), **options)
