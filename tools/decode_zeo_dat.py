#!/usr/bin/env python3
"""Decode a Zeo ZEOSLEEP.DAT file into sleep episodes."""

from __future__ import annotations

import argparse
import sys
from pathlib import Path

# Ensure the sibling zeodat package is importable when running from the repo root
sys.path.append(str(Path(__file__).parent))

from zeodat.decoder import decode_file  # type: ignore  # noqa: E402
from zeodat.ingest import night_summary, to_dataframe  # type: ignore  # noqa: E402

DECODER_VERSION = 10

EPISODE_COLUMNS = [
    "sleep_date",
    "start_of_night",
    "rise_time",
    "alarm_set_time",
    "is_nap",
    "zq_score",
    "total_z_min",
    "awakenings",
    "write_reason",
]


def summarize(frame, regular_only: bool) -> None:
    """Print averages over the decoded nights."""
    if frame.empty:
        print("[no sleep episodes]")
        return

    summary = night_summary(frame, regular_only=regular_only)
    print(f"episodes      : {len(frame)}")
    print(f"nights        : {summary['nights']}")
    print(f"naps          : {int(frame['is_nap'].sum())}")
    print(f"first night   : {frame['start_of_night'].min()}")
    print(f"last night    : {frame['start_of_night'].max()}")
    print(f"avg ZQ        : {summary['zq_score']}")
    print(f"avg total Z   : {summary['total_z_min']} min")
    print(f"avg time to Z : {summary['time_to_z_min']} min")
    print(f"avg wake/rem/light/deep: {summary['time_in_wake_min']}/{summary['time_in_rem_min']}/"
          f"{summary['time_in_light_min']}/{summary['time_in_deep_min']} min")


def main() -> int:
    parser = argparse.ArgumentParser(description=__doc__)
    parser.add_argument("path", type=Path, nargs="?", help="ZEOSLEEP.DAT file to decode")
    parser.add_argument("-e", "--expand", action="store_true", help="keep every record instead of one per night")
    parser.add_argument("-r", "--resets", action="store_true", help="only show watchdog reset records")
    parser.add_argument("--summary", action="store_true", help="only display aggregate statistics")
    parser.add_argument("--regular-only", action="store_true", help="restrict the summary to regular nights")
    parser.add_argument("--limit", type=int, default=0, help="print at most N episodes")
    parser.add_argument("-V", "--version", action="store_true", help="display decoder version and exit")
    args = parser.parse_args()

    if args.version:
        print(f"zeodat decoder version {DECODER_VERSION}.")
        return 0
    if args.path is None:
        parser.error("the path of a ZEOSLEEP.DAT file is required")

    try:
        records, diagnostics = decode_file(args.path, reduce=not args.expand, resets_only=args.resets)
    except FileNotFoundError:
        print(f"ERROR: Zeo sleep file {args.path} not found.", file=sys.stderr)
        return 1

    for diagnostic in diagnostics:
        print(f"WARNING: {diagnostic}", file=sys.stderr)

    frame = to_dataframe(records)
    if args.summary:
        summarize(frame, args.regular_only)
        return 0

    if args.limit:
        frame = frame.head(args.limit)
    if frame.empty:
        print("[no sleep episodes]")
    else:
        print(frame[EPISODE_COLUMNS].to_string(index=False))
    return 0


if __name__ == "__main__":
    sys.exit(main())
