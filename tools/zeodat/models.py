"""In-memory representation of decoded Zeo sleep records."""

from __future__ import annotations

import dataclasses
import enum
from datetime import datetime, timedelta, timezone
from typing import Optional

from .errors import FieldDecodeError

# Record geometry
IDENTIFIER = b"SLEEP\x00"
IDENTIFIER_SIZE = len(IDENTIFIER)
VERSION_SIZE = 2
HEADER_SIZE = IDENTIFIER_SIZE + VERSION_SIZE

V22 = 22
V22_SIZE = 1680

# version tag -> total record size (header included)
RECORD_SIZES = {V22: V22_SIZE}

ALARM_EVENTS_SAVED = 2
ASSERT_NAME_MAX = 20
EVENTS_SAVED = 4
HEADBAND_IMPEDANCE_SIZE = 144
HEADBAND_PACKETS_SIZE = 144
HEADBAND_RSSI_SIZE = 144
HEADBAND_STATUS_SIZE = 36
SNOOZE_EVENTS_SAVED = 9

# Hypnogram geometry
SECONDS_PER_EPOCH = 30
HYP_BASE_STEP = SECONDS_PER_EPOCH
HYP_DISPLAY_STEP = 5 * 60
HYP_SECONDS_MAX = 16 * 60 * 60
HYP_BASE_LENGTH = HYP_SECONDS_MAX // HYP_BASE_STEP
HYP_BASE_PER_DISPLAY = HYP_DISPLAY_STEP // HYP_BASE_STEP
HYP_DISPLAY_LENGTH = HYP_SECONDS_MAX // HYP_DISPLAY_STEP

# Seconds allowed between power up and the first record of a reset.
FIRST_RECORD_TIMEOUT = 10


class _Ordinal(enum.IntEnum):
    """Enumeration decoded from a small integer field of a record."""

    @classmethod
    def convert(cls, value: int):
        try:
            return cls(value)
        except ValueError:
            raise FieldDecodeError(f"invalid {cls.__name__} ordinal {value}") from None


class SleepStage(_Ordinal):
    UNDEFINED = 0
    WAKE = 1
    REM = 2
    LIGHT = 3
    DEEP = 4
    UNUSED = 5
    DEEP_2 = 6

    @property
    def is_sleep(self) -> bool:
        return self in (SleepStage.REM, SleepStage.LIGHT, SleepStage.DEEP, SleepStage.DEEP_2)


class AlarmReason(_Ordinal):
    REM_TO_NREM_TRANSITION = 0
    NREM_TO_REM_TRANSITION = 1
    WAKE_ON_WAKE = 2
    DEEP_RISING = 3
    END_OF_WAKE_WINDOW = 4
    NO_ALARM = 5


class WriteReason(_Ordinal):
    """Why the firmware flushed a record to the card."""

    TENTATIVE_NIGHT_END = 0
    NIGHT_END = 1
    ALARM_OFF = 2
    CARD_INSERT = 3
    DAILY_UPDATE = 4
    SLEEP_RATED = 5


class ClockMode(_Ordinal):
    TWENTY_FOUR_HOUR = 0
    TWELVE_HOUR = 1


class WakeTone(_Ordinal):
    NEUTRAL = 0
    GENTLE = 1
    INVIGORATING = 2


def timestamp_to_datetime(value: int) -> Optional[datetime]:
    """Convert a device timestamp to UTC; ``0`` means the value was never set."""
    if value == 0:
        return None
    return datetime.fromtimestamp(value, tz=timezone.utc)


def datetime_to_timestamp(value: Optional[datetime]) -> int:
    if value is None:
        return 0
    return int(value.timestamp())


@dataclasses.dataclass(frozen=True)
class TimeChange:
    """A clock or alarm change: when it happened and the value it was set to."""

    time_raw: int
    value_raw: int

    @property
    def time(self) -> Optional[datetime]:
        return timestamp_to_datetime(self.time_raw)

    @property
    def value(self) -> Optional[datetime]:
        return timestamp_to_datetime(self.value_raw)


@dataclasses.dataclass
class SleepRecord:
    """One decoded ``ZEOSLEEP.DAT`` record.

    Duration metrics (``time_in_*``, ``time_to_z``, ``total_z``) are counts of
    30 second epochs. Timestamps are UTC datetimes or ``None`` when unset.
    Only ``is_nap`` and ``sleep_date`` change after decoding.
    """

    format_version: int
    current_time: Optional[datetime]
    crc: int

    # device state bit fields
    airplane_mode: bool
    alarm_reason: AlarmReason
    backlight: int
    clock_mode: ClockMode
    sleep_valid: bool
    snooze_time: int
    wake_tone: WakeTone
    wake_window: int
    write_reason: WriteReason
    zeo_wake_on: bool
    wdt_reset: bool

    # device history
    airplane_off: Optional[datetime]
    airplane_on: Optional[datetime]
    alarm_change: tuple[TimeChange, ...]
    assert_function_name: bytes
    assert_line_number: int
    factory_reset: Optional[datetime]
    headband_id: int
    headband_impedance: tuple[int, ...]
    headband_packets: tuple[int, ...]
    headband_rssi: tuple[int, ...]
    headband_status: tuple[int, ...]
    id_hw: int
    id_sw: int
    rtc_change: tuple[TimeChange, ...]
    sensor_life_reset: Optional[datetime]
    sleep_stat_reset: Optional[datetime]

    # sleep information
    alarm_ring: tuple[Optional[datetime], ...]
    alarm_snooze: tuple[Optional[datetime], ...]
    alarm_off: Optional[datetime]
    awakenings: int
    awakenings_average: int
    end_of_night: Optional[datetime]
    start_of_night: Optional[datetime]
    time_in_deep: int
    time_in_deep_average: int
    time_in_deep_best: int
    time_in_light: int
    time_in_light_average: int
    time_in_rem: int
    time_in_rem_average: int
    time_in_rem_best: int
    time_in_wake: int
    time_in_wake_average: int
    time_to_z: int
    time_to_z_average: int
    total_z: int
    total_z_average: int
    total_z_best: int
    zq_score: int
    zq_score_average: int
    zq_score_best: int
    display_hypnogram_forced_index: int
    display_hypnogram_forced_stage: int
    hypnogram_start_time: Optional[datetime]
    sleep_rating: int

    # hypnograms
    base_hypnogram: tuple[int, ...]
    base_hypnogram_count: int
    display_hypnogram: tuple[SleepStage, ...] = ()

    # derived
    rise_time: Optional[datetime] = None
    alarm_set_time: Optional[datetime] = None

    # assigned by the nap classifier
    is_nap: bool = False
    sleep_date: Optional[datetime] = None

    @property
    def display_hypnogram_count(self) -> int:
        return len(self.display_hypnogram)

    @property
    def is_complete(self) -> bool:
        return self.start_of_night is not None and self.end_of_night is not None

    @property
    def night_length(self) -> Optional[timedelta]:
        if not self.is_complete:
            return None
        return self.end_of_night - self.start_of_night

    def is_sleep_rating_record(self) -> bool:
        return self.write_reason is WriteReason.SLEEP_RATED

    def is_reset_record(self) -> bool:
        """True for the first record written after a watchdog reset.

        The record must flag the reset, be written for a card insert (the
        power-up write), carry the startup RTC entry first, and have been
        written less than ``FIRST_RECORD_TIMEOUT`` seconds after power up.
        """
        startup = self.rtc_change[0]
        now = datetime_to_timestamp(self.current_time)
        return (
            self.wdt_reset
            and self.write_reason is WriteReason.CARD_INSERT
            and startup.time_raw == 0
            and 0 < now - startup.value_raw < FIRST_RECORD_TIMEOUT
        )

    def effective_alarm_changes(self) -> list[TimeChange]:
        """Alarm changes with trailing padding entries removed.

        Only the first entry may have an unset change time (the value at
        startup); an unset change time later on marks the end of the list.
        """
        return _effective_changes(self.alarm_change)


def _effective_changes(changes) -> list[TimeChange]:
    kept = []
    for index, change in enumerate(changes):
        if index > 0 and change.time_raw == 0:
            break
        kept.append(change)
    return kept
