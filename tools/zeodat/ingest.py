"""Tabular views over decoded sleep episodes."""

from __future__ import annotations

import dataclasses
from datetime import timedelta
from pathlib import Path
from typing import Iterable

import pandas as pd

from .decoder import decode_file
from .models import SleepRecord

# Averaged columns reported by :func:`night_summary`.
SUMMARY_COLUMNS = (
    "zq_score",
    "total_z_min",
    "time_to_z_min",
    "time_in_wake_min",
    "time_in_rem_min",
    "time_in_light_min",
    "time_in_deep_min",
    "duration_min",
    "onset_min",
)


@dataclasses.dataclass
class RegularNightConfig:
    """Bounds (exclusive, in minutes) of an ordinary night of sleep.

    Onset (start of night plus time to Z) is measured from midnight at the
    start of the sleep day, so 30:00 means 6am the following morning.
    """

    min_onset: int = 20 * 60
    max_onset: int = 30 * 60
    min_duration: int = 4 * 60
    max_duration: int = 10 * 60


@dataclasses.dataclass
class IngestConfig:
    """Configuration for a single decoding run."""

    log_path: Path
    reduce: bool = True
    resets_only: bool = False


def epochs_to_minutes(epochs: int) -> int:
    """Convert a count of 30 second epochs to minutes, rounding halves up."""
    return (epochs + 1) // 2


def _minutes_between(start, end):
    if start is None or end is None:
        return None
    return int((end - start).total_seconds() // 60)


def to_dataframe(records: Iterable[SleepRecord]) -> pd.DataFrame:
    """Convert an iterable of :class:`SleepRecord` objects into a DataFrame."""
    rows = []
    for record in records:
        midnight = None
        if record.sleep_date is not None:
            midnight = record.sleep_date.replace(hour=0)
        onset = None
        if record.start_of_night is not None:
            onset = record.start_of_night + timedelta(minutes=epochs_to_minutes(record.time_to_z))
        rows.append(
            {
                "sleep_date": record.sleep_date,
                "start_of_night": record.start_of_night,
                "end_of_night": record.end_of_night,
                "rise_time": record.rise_time,
                "alarm_set_time": record.alarm_set_time,
                "is_nap": record.is_nap,
                "zq_score": record.zq_score,
                "total_z_min": epochs_to_minutes(record.total_z),
                "time_to_z_min": epochs_to_minutes(record.time_to_z),
                "time_in_wake_min": epochs_to_minutes(record.time_in_wake),
                "time_in_rem_min": epochs_to_minutes(record.time_in_rem),
                "time_in_light_min": epochs_to_minutes(record.time_in_light),
                "time_in_deep_min": epochs_to_minutes(record.time_in_deep),
                "awakenings": record.awakenings,
                "duration_min": _minutes_between(onset, record.rise_time or record.end_of_night),
                "onset_min": _minutes_between(midnight, onset),
                "alarm_reason": record.alarm_reason.name,
                "write_reason": record.write_reason.name,
                "sleep_rating": record.sleep_rating,
                "display_hypnogram": "".join(str(int(stage)) for stage in record.display_hypnogram),
            }
        )
    return pd.DataFrame(rows, columns=None if rows else ["sleep_date", "is_nap", *SUMMARY_COLUMNS])


def regular_mask(frame: pd.DataFrame, config: RegularNightConfig | None = None) -> pd.Series:
    """Boolean mask of rows that look like an ordinary night."""
    config = config or RegularNightConfig()
    onset = pd.to_numeric(frame["onset_min"], errors="coerce")
    duration = pd.to_numeric(frame["duration_min"], errors="coerce")
    return (
        (onset > config.min_onset)
        & (onset < config.max_onset)
        & (duration > config.min_duration)
        & (duration < config.max_duration)
    )


def night_summary(
    frame: pd.DataFrame,
    *,
    regular_only: bool = False,
    config: RegularNightConfig | None = None,
) -> dict[str, int]:
    """Average metrics over the nights (not naps) in ``frame``.

    Averages are floored to whole numbers; ``-1`` marks a column with no
    nights to average.
    """
    nights = frame[~frame["is_nap"].astype(bool)] if len(frame) else frame
    if regular_only and len(nights):
        nights = nights[regular_mask(nights, config)]

    summary = {"nights": int(len(nights))}
    for column in SUMMARY_COLUMNS:
        values = pd.to_numeric(nights[column], errors="coerce").dropna() if len(nights) else pd.Series(dtype=float)
        summary[column] = int(values.sum() // len(values)) if len(values) else -1
    return summary


def ingest(config: IngestConfig) -> pd.DataFrame:
    """Decode the configured file and return its episodes as a DataFrame."""
    records, _ = decode_file(config.log_path, reduce=config.reduce, resets_only=config.resets_only)
    return to_dataframe(records)


def batch_ingest(configs: Iterable[IngestConfig]) -> pd.DataFrame:
    """Decode several files and concatenate their episodes in order."""
    frames = [ingest(config) for config in configs]
    if not frames:
        return to_dataframe([])
    return pd.concat(frames, ignore_index=True)
