"""Decode (and re-encode) a single fixed-size Zeo data record."""

from __future__ import annotations

from collections import Counter
from datetime import datetime, timedelta
from typing import Optional, Sequence

from .crc import CRC_OFFSET, CRC_SIZE, record_crc
from .cursor import ByteCursor, ByteWriter
from .errors import FieldDecodeError, StructuralError, UnknownVersion
from .models import (
    ALARM_EVENTS_SAVED,
    ASSERT_NAME_MAX,
    EVENTS_SAVED,
    HEADBAND_IMPEDANCE_SIZE,
    HEADBAND_PACKETS_SIZE,
    HEADBAND_RSSI_SIZE,
    HEADBAND_STATUS_SIZE,
    HYP_BASE_LENGTH,
    HYP_BASE_PER_DISPLAY,
    HYP_DISPLAY_LENGTH,
    HYP_DISPLAY_STEP,
    IDENTIFIER,
    IDENTIFIER_SIZE,
    RECORD_SIZES,
    SNOOZE_EVENTS_SAVED,
    V22,
    AlarmReason,
    ClockMode,
    SleepRecord,
    SleepStage,
    TimeChange,
    WakeTone,
    WriteReason,
    datetime_to_timestamp,
    timestamp_to_datetime,
)

# (attribute, bit offset, width, converter) for the packed device state word
_STATE_FIELDS = (
    ("airplane_mode", 0, 1, bool),
    ("alarm_reason", 1, 3, AlarmReason.convert),
    ("backlight", 4, 4, int),
    ("clock_mode", 8, 1, ClockMode.convert),
    ("sleep_valid", 9, 1, bool),
    ("snooze_time", 10, 5, int),
    ("wake_tone", 15, 3, WakeTone.convert),
    ("wake_window", 18, 6, int),
    ("write_reason", 24, 3, WriteReason.convert),
    ("zeo_wake_on", 27, 1, bool),
    ("wdt_reset", 28, 1, bool),
)

# Night metrics stored as consecutive u16 values, in wire order.
_NIGHT_METRICS = (
    "time_in_deep",
    "time_in_deep_average",
    "time_in_deep_best",
    "time_in_light",
    "time_in_light_average",
    "time_in_rem",
    "time_in_rem_average",
    "time_in_rem_best",
    "time_in_wake",
    "time_in_wake_average",
    "time_to_z",
    "time_to_z_average",
    "total_z",
    "total_z_average",
    "total_z_best",
    "zq_score",
    "zq_score_average",
    "zq_score_best",
)

_SLEEP_RATING_PADDING = 7

# Display bin candidates after wake, in tie-break order.
_VOTING_STAGES = (SleepStage.REM, SleepStage.LIGHT, SleepStage.DEEP, SleepStage.UNUSED)


def decode_record(data: bytes, version: int = V22) -> SleepRecord:
    """Decode one complete record span (header included).

    Raises :class:`StructuralError` when ``data`` does not have the size the
    version calls for, :class:`UnknownVersion` for unsupported versions and
    :class:`FieldDecodeError` for anything wrong inside the record body.
    """
    size = RECORD_SIZES.get(version)
    if size is None:
        raise UnknownVersion(version)
    if len(data) != size:
        raise StructuralError(f"record of version {version} needs {size} bytes, got {len(data)}")

    cursor = ByteCursor(data)
    if cursor.read_bytes(IDENTIFIER_SIZE) != IDENTIFIER:
        raise StructuralError("record does not start with the SLEEP identifier")
    tag = cursor.read_uint16()
    if tag != version:
        raise UnknownVersion(tag)

    fields: dict = {"format_version": version}
    fields["current_time"] = _read_time(cursor)
    fields["crc"] = cursor.read_uint32()
    fields.update(_unpack_state(cursor.read_uint32()))

    # device history
    fields["airplane_off"] = _read_time(cursor)
    fields["airplane_on"] = _read_time(cursor)
    fields["alarm_change"] = _read_changes(cursor)
    fields["assert_function_name"] = cursor.read_bytes(ASSERT_NAME_MAX)
    fields["assert_line_number"] = cursor.read_int32()
    fields["factory_reset"] = _read_time(cursor)
    fields["headband_id"] = cursor.read_uint32()
    fields["headband_impedance"] = tuple(cursor.read_uint8() for _ in range(HEADBAND_IMPEDANCE_SIZE))
    fields["headband_packets"] = tuple(cursor.read_uint8() for _ in range(HEADBAND_PACKETS_SIZE))
    fields["headband_rssi"] = tuple(cursor.read_int8() for _ in range(HEADBAND_RSSI_SIZE))
    fields["headband_status"] = tuple(cursor.read_uint8() for _ in range(HEADBAND_STATUS_SIZE))
    fields["id_hw"] = cursor.read_uint16()
    fields["id_sw"] = cursor.read_uint16()
    fields["rtc_change"] = _read_changes(cursor)
    fields["sensor_life_reset"] = _read_time(cursor)
    fields["sleep_stat_reset"] = _read_time(cursor)

    # sleep information
    fields["alarm_ring"] = _read_alarm_ring(cursor)
    fields["alarm_snooze"] = tuple(_read_time(cursor) for _ in range(SNOOZE_EVENTS_SAVED))
    fields["alarm_off"] = _read_time(cursor)
    fields["awakenings"] = cursor.read_uint16()
    fields["awakenings_average"] = cursor.read_uint16()
    fields["end_of_night"] = _read_time(cursor)
    fields["start_of_night"] = _read_time(cursor)
    for name in _NIGHT_METRICS:
        fields[name] = cursor.read_uint16()
    fields["display_hypnogram_forced_index"] = cursor.read_uint16()
    fields["display_hypnogram_forced_stage"] = cursor.read_uint16()
    fields["hypnogram_start_time"] = _read_time(cursor)
    fields["sleep_rating"] = cursor.read_uint8()
    cursor.skip(_SLEEP_RATING_PADDING)

    count = cursor.read_uint32()
    if count > HYP_BASE_LENGTH:
        raise FieldDecodeError(f"base hypnogram count {count} exceeds {HYP_BASE_LENGTH}")
    fields["base_hypnogram_count"] = count
    fields["base_hypnogram"] = _read_base_hypnogram(cursor)

    if cursor.remaining:
        raise FieldDecodeError(f"{cursor.remaining} unread bytes at end of record")

    record = SleepRecord(**fields)
    record.display_hypnogram = make_display_hypnogram(
        record.base_hypnogram,
        record.base_hypnogram_count,
        record.display_hypnogram_forced_index,
        record.display_hypnogram_forced_stage,
    )
    record.rise_time = compute_rise_time(record.display_hypnogram, record.hypnogram_start_time)
    record.alarm_set_time = compute_alarm_set_time(record)
    return record


def _read_time(cursor: ByteCursor) -> Optional[datetime]:
    return timestamp_to_datetime(cursor.read_uint32())


def _read_changes(cursor: ByteCursor) -> tuple[TimeChange, ...]:
    times = [cursor.read_uint32() for _ in range(EVENTS_SAVED)]
    values = [cursor.read_uint32() for _ in range(EVENTS_SAVED)]
    return tuple(TimeChange(t, v) for t, v in zip(times, values))


def _read_alarm_ring(cursor: ByteCursor) -> tuple[Optional[datetime], ...]:
    # Keep the first ring and the latest non-zero one after it.
    values = [cursor.read_uint32() for _ in range(ALARM_EVENTS_SAVED)]
    latest = 0
    for value in values[1:]:
        if value != 0:
            latest = value
    return timestamp_to_datetime(values[0]), timestamp_to_datetime(latest)


def _read_base_hypnogram(cursor: ByteCursor) -> tuple[int, ...]:
    samples = []
    for byte in cursor.read_bytes(HYP_BASE_LENGTH // 2):
        samples.append(byte & 0xF)
        samples.append(byte >> 4)
    return tuple(samples)


def _unpack_state(word: int) -> dict:
    state = {}
    for name, offset, width, convert in _STATE_FIELDS:
        state[name] = convert((word >> offset) & ((1 << width) - 1))
    return state


def _pack_state(record: SleepRecord) -> int:
    word = 0
    for name, offset, width, _ in _STATE_FIELDS:
        word |= (int(getattr(record, name)) & ((1 << width) - 1)) << offset
    return word


def display_bin_value(window: Sequence[SleepStage]) -> SleepStage:
    """Mode of one display window of base hypnogram samples.

    All undefined gives undefined; any wake gives wake; otherwise the most
    frequent of REM, light, deep and unused, ties going to the earlier stage.
    """
    counts = Counter(SleepStage.DEEP if stage is SleepStage.DEEP_2 else stage for stage in window)
    if counts[SleepStage.UNDEFINED] == len(window):
        return SleepStage.UNDEFINED
    if counts[SleepStage.WAKE]:
        return SleepStage.WAKE
    return max(_VOTING_STAGES, key=lambda stage: counts[stage])


def make_display_hypnogram(
    base: Sequence[int],
    base_count: int,
    forced_index: int = 0,
    forced_stage: int = 0,
) -> tuple[SleepStage, ...]:
    """Build the 5 minute display hypnogram from the 30 second base one.

    Only windows whose ten base samples are all populated produce a value.
    """
    display = []
    for start in range(0, (base_count // HYP_BASE_PER_DISPLAY) * HYP_BASE_PER_DISPLAY, HYP_BASE_PER_DISPLAY):
        window = [SleepStage.convert(value) for value in base[start:start + HYP_BASE_PER_DISPLAY]]
        display.append(display_bin_value(window))

    if forced_index > 0:
        if forced_index >= HYP_DISPLAY_LENGTH:
            raise FieldDecodeError(f"forced display index {forced_index} out of range")
        stage = SleepStage.convert(forced_stage)
        if forced_index < len(display):
            display[forced_index] = stage
    return tuple(display)


def compute_rise_time(
    display: Sequence[SleepStage],
    hypnogram_start_time: Optional[datetime],
) -> Optional[datetime]:
    """End of the last display bin that shows sleep, or ``None``."""
    if hypnogram_start_time is None:
        return None
    for index in range(len(display) - 1, -1, -1):
        if display[index].is_sleep:
            return hypnogram_start_time + timedelta(seconds=HYP_DISPLAY_STEP * (index + 1))
    return None


def compute_alarm_set_time(record: SleepRecord) -> Optional[datetime]:
    """Time the alarm was set for during the night described by ``record``.

    Uses the most recent alarm change made before the alarm first rang (or
    before the night ended when it never rang). The stored value only carries
    a time of day, so it is moved onto the night's date, and onto the next
    day when that would fall before the night started.
    """
    start = record.start_of_night
    if start is None or record.end_of_night is None:
        return None

    cutoff = record.alarm_ring[0] if record.alarm_ring[0] is not None else record.end_of_night

    latest: Optional[TimeChange] = None
    for change in record.effective_alarm_changes():
        changed_at = change.time
        if changed_at is not None and changed_at >= cutoff:
            continue
        if latest is None or latest.time is None or (changed_at is not None and changed_at > latest.time):
            latest = change

    if latest is None or latest.value is None:
        return None

    alarm = latest.value.replace(year=start.year, month=start.month, day=start.day)
    if alarm < start:
        alarm += timedelta(days=1)
    return alarm


def encode_record(record: SleepRecord, *, keep_crc: bool = False) -> bytes:
    """Write ``record`` back out in its wire layout.

    Padding is written as zeros. The checksum field is recomputed unless
    ``keep_crc`` asks for the stored value to be written as is.
    """
    out = ByteWriter()
    out.write_bytes(IDENTIFIER)
    out.write_uint16(record.format_version)
    out.write_uint32(datetime_to_timestamp(record.current_time))
    out.write_uint32(record.crc if keep_crc else 0)
    out.write_uint32(_pack_state(record))

    out.write_uint32(datetime_to_timestamp(record.airplane_off))
    out.write_uint32(datetime_to_timestamp(record.airplane_on))
    _write_changes(out, record.alarm_change)
    name = bytes(record.assert_function_name)[:ASSERT_NAME_MAX]
    out.write_bytes(name.ljust(ASSERT_NAME_MAX, b"\x00"))
    out.write_int32(record.assert_line_number)
    out.write_uint32(datetime_to_timestamp(record.factory_reset))
    out.write_uint32(record.headband_id)
    for value in record.headband_impedance:
        out.write_uint8(value)
    for value in record.headband_packets:
        out.write_uint8(value)
    for value in record.headband_rssi:
        out.write_int8(value)
    for value in record.headband_status:
        out.write_uint8(value)
    out.write_uint16(record.id_hw)
    out.write_uint16(record.id_sw)
    _write_changes(out, record.rtc_change)
    out.write_uint32(datetime_to_timestamp(record.sensor_life_reset))
    out.write_uint32(datetime_to_timestamp(record.sleep_stat_reset))

    for ring in record.alarm_ring:
        out.write_uint32(datetime_to_timestamp(ring))
    for snooze in record.alarm_snooze:
        out.write_uint32(datetime_to_timestamp(snooze))
    out.write_uint32(datetime_to_timestamp(record.alarm_off))
    out.write_uint16(record.awakenings)
    out.write_uint16(record.awakenings_average)
    out.write_uint32(datetime_to_timestamp(record.end_of_night))
    out.write_uint32(datetime_to_timestamp(record.start_of_night))
    for name in _NIGHT_METRICS:
        out.write_uint16(getattr(record, name))
    out.write_uint16(record.display_hypnogram_forced_index)
    out.write_uint16(record.display_hypnogram_forced_stage)
    out.write_uint32(datetime_to_timestamp(record.hypnogram_start_time))
    out.write_uint8(record.sleep_rating)
    out.pad(_SLEEP_RATING_PADDING)

    out.write_uint32(record.base_hypnogram_count)
    base = list(record.base_hypnogram) + [0] * (HYP_BASE_LENGTH - len(record.base_hypnogram))
    for low, high in zip(base[0::2], base[1::2]):
        out.write_uint8((int(low) & 0xF) | ((int(high) & 0xF) << 4))

    image = bytearray(out.getvalue())
    if not keep_crc:
        image[CRC_OFFSET:CRC_OFFSET + CRC_SIZE] = record_crc(image).to_bytes(CRC_SIZE, "little")
    return bytes(image)


def _write_changes(out: ByteWriter, changes: Sequence[TimeChange]) -> None:
    for change in changes:
        out.write_uint32(change.time_raw)
    for change in changes:
        out.write_uint32(change.value_raw)
