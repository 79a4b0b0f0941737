"""Collapse duplicate records into sleep episodes and label naps."""

from __future__ import annotations

from datetime import datetime, timedelta
from typing import Iterable, Optional

from .models import SleepRecord

SLEEP_DAY_START_HOUR = 6


def compare_length(first: SleepRecord, second: SleepRecord) -> int:
    """Three-way comparison of how much sleep two records cover.

    Incomplete records sort lowest. Otherwise the night length decides, then
    the number of populated base hypnogram samples.
    """
    first_length = first.night_length
    second_length = second.night_length
    if first_length is None and second_length is None:
        return 0
    if first_length is None:
        return -1
    if second_length is None:
        return 1

    if first_length != second_length:
        return -1 if first_length < second_length else 1
    if first.base_hypnogram_count != second.base_hypnogram_count:
        return -1 if first.base_hypnogram_count < second.base_hypnogram_count else 1
    return 0


def _start_key(record: SleepRecord) -> tuple[int, Optional[datetime]]:
    # Unset sorts before any set time and equal to other unset ones.
    if record.start_of_night is None:
        return (0, None)
    return (1, record.start_of_night)


def _same_start(first: SleepRecord, second: SleepRecord) -> bool:
    return first.start_of_night is not None and first.start_of_night == second.start_of_night


def _merge_pass(records: Iterable[SleepRecord]) -> list[SleepRecord]:
    kept = []
    largest = None
    for record in records:
        if not record.is_complete:
            continue
        if largest is None:
            largest = record
        elif not _same_start(largest, record):
            kept.append(largest)
            largest = record
        else:
            order = compare_length(largest, record)
            if order < 0:
                largest = record
            elif order == 0 and record.is_sleep_rating_record():
                # Sleep-rated rewrites of a night appear in file order, so the
                # last one is the most recent.
                largest = record
    if largest is not None:
        kept.append(largest)
    return kept


def reduce_records(records: Iterable[SleepRecord]) -> list[SleepRecord]:
    """Keep one record per ``start_of_night``, ordered by start time.

    A first pass over file order discards incomplete records and merges runs
    of duplicates; after a stable sort a second pass merges the duplicates
    that were not adjacent in the file.
    """
    first_pass = _merge_pass(records)
    return _merge_pass(sorted(first_pass, key=_start_key))


def sleep_day(start_of_night: Optional[datetime]) -> Optional[datetime]:
    """6am-to-6am day a night belongs to, as 06:00 on its first date."""
    if start_of_night is None:
        return None
    shifted = start_of_night - timedelta(hours=SLEEP_DAY_START_HOUR)
    return shifted.replace(hour=SLEEP_DAY_START_HOUR, minute=0, second=0, microsecond=0)


def label_naps(records: list[SleepRecord]) -> list[SleepRecord]:
    """Set ``sleep_date`` and ``is_nap`` on chronologically ordered records.

    For each sleep day the last of the longest records is the night; every
    other record of that day is a nap.
    """
    largest = None
    for record in records:
        record.sleep_date = sleep_day(record.start_of_night)
        if largest is None:
            largest = record
        elif largest.sleep_date is not None and largest.sleep_date == record.sleep_date:
            if compare_length(largest, record) > 0:
                record.is_nap = True
            else:
                largest.is_nap = True
                largest = record
        else:
            largest.is_nap = False
            largest = record
    if largest is not None:
        largest.is_nap = False
    return records


def keep_resets(records: Iterable[SleepRecord]) -> list[SleepRecord]:
    """Only the first records written after a watchdog reset."""
    return [record for record in records if record.is_reset_record()]
