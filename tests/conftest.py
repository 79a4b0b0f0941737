import dataclasses
import sys
from datetime import datetime, timedelta, timezone
from pathlib import Path

import pytest

# Make the zeodat package (and the CLI scripts) under tools/ importable
TOOLS = Path(__file__).resolve().parents[1] / "tools"
if str(TOOLS) not in sys.path:
    sys.path.insert(0, str(TOOLS))

from zeodat.models import (  # noqa: E402
    HYP_BASE_LENGTH,
    V22,
    AlarmReason,
    ClockMode,
    SleepRecord,
    TimeChange,
    WakeTone,
    WriteReason,
)
from zeodat.record import decode_record, encode_record  # noqa: E402


def utc(*args):
    return datetime(*args, tzinfo=timezone.utc)


def ts(value):
    return int(value.timestamp())


def hypnogram(stages):
    """Pad a list of stage ordinals out to a full base hypnogram."""
    stages = [int(s) for s in stages]
    return tuple(stages + [0] * (HYP_BASE_LENGTH - len(stages)))


def blank_record():
    return SleepRecord(
        format_version=V22,
        current_time=None,
        crc=0,
        airplane_mode=False,
        alarm_reason=AlarmReason.NO_ALARM,
        backlight=0,
        clock_mode=ClockMode.TWENTY_FOUR_HOUR,
        sleep_valid=False,
        snooze_time=0,
        wake_tone=WakeTone.NEUTRAL,
        wake_window=0,
        write_reason=WriteReason.NIGHT_END,
        zeo_wake_on=False,
        wdt_reset=False,
        airplane_off=None,
        airplane_on=None,
        alarm_change=(TimeChange(0, 0),) * 4,
        assert_function_name=bytes(20),
        assert_line_number=0,
        factory_reset=None,
        headband_id=0,
        headband_impedance=(0,) * 144,
        headband_packets=(0,) * 144,
        headband_rssi=(0,) * 144,
        headband_status=(0,) * 36,
        id_hw=0,
        id_sw=0,
        rtc_change=(TimeChange(0, 0),) * 4,
        sensor_life_reset=None,
        sleep_stat_reset=None,
        alarm_ring=(None, None),
        alarm_snooze=(None,) * 9,
        alarm_off=None,
        awakenings=0,
        awakenings_average=0,
        end_of_night=None,
        start_of_night=None,
        time_in_deep=0,
        time_in_deep_average=0,
        time_in_deep_best=0,
        time_in_light=0,
        time_in_light_average=0,
        time_in_rem=0,
        time_in_rem_average=0,
        time_in_rem_best=0,
        time_in_wake=0,
        time_in_wake_average=0,
        time_to_z=0,
        time_to_z_average=0,
        total_z=0,
        total_z_average=0,
        total_z_best=0,
        zq_score=0,
        zq_score_average=0,
        zq_score_best=0,
        display_hypnogram_forced_index=0,
        display_hypnogram_forced_stage=0,
        hypnogram_start_time=None,
        sleep_rating=0,
        base_hypnogram=hypnogram([]),
        base_hypnogram_count=0,
    )


@pytest.fixture
def make_record():
    """Factory building a record in memory from keyword overrides."""

    def factory(**overrides):
        return dataclasses.replace(blank_record(), **overrides)

    return factory


@pytest.fixture
def make_image(make_record):
    """Factory building the on-card bytes of a record."""

    def factory(**overrides):
        return encode_record(make_record(**overrides))

    return factory


@pytest.fixture
def make_decoded(make_image):
    """Factory returning a record as the decoder would produce it."""

    def factory(**overrides):
        return decode_record(make_image(**overrides))

    return factory


@pytest.fixture
def night(make_decoded):
    """Factory for a complete night starting at ``start`` lasting ``minutes``."""

    def factory(start, minutes, **overrides):
        overrides.setdefault("base_hypnogram_count", min(minutes * 2, HYP_BASE_LENGTH))
        return make_decoded(
            start_of_night=start,
            end_of_night=start + timedelta(minutes=minutes),
            **overrides,
        )

    return factory
