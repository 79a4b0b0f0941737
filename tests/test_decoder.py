from datetime import timedelta

import pytest

from conftest import ts, utc
from zeodat.decoder import decode, decode_file
from zeodat.errors import NoRecordFound
from zeodat.models import TimeChange, WriteReason

START = utc(2011, 3, 14, 23, 0)


@pytest.fixture
def week(make_image):
    """A night written three times, an afternoon nap and a second night."""

    def image(start, minutes, **overrides):
        overrides.setdefault("base_hypnogram_count", minutes * 2)
        return make_image(start_of_night=start, end_of_night=start + timedelta(minutes=minutes), **overrides)

    return [
        image(START, 60, write_reason=WriteReason.TENTATIVE_NIGHT_END),
        image(START, 420),
        image(START, 420, write_reason=WriteReason.SLEEP_RATED, sleep_rating=4),
        image(utc(2011, 3, 15, 14, 0), 30),
        image(utc(2011, 3, 15, 23, 0), 400),
    ]


def test_decode_reduces_to_episodes(week):
    records, diagnostics = decode(b"".join(week))
    assert diagnostics == []
    assert [r.start_of_night for r in records] == [START, utc(2011, 3, 15, 14, 0), utc(2011, 3, 15, 23, 0)]
    assert records[0].write_reason is WriteReason.SLEEP_RATED
    assert records[0].sleep_rating == 4
    assert [r.is_nap for r in records] == [False, True, False]
    assert [r.sleep_date for r in records] == [utc(2011, 3, 14, 6), utc(2011, 3, 15, 6), utc(2011, 3, 15, 6)]


def test_decode_without_reduction_keeps_file_order(week):
    records, _ = decode(b"".join(week), reduce=False)
    assert len(records) == 5
    assert [r.write_reason for r in records[:3]] == [
        WriteReason.TENTATIVE_NIGHT_END,
        WriteReason.NIGHT_END,
        WriteReason.SLEEP_RATED,
    ]


def test_decode_keeps_partial_results_with_diagnostics(week):
    data = week[0] + week[1] + b"\xff\xff" + week[2] + week[3][:500]
    records, diagnostics = decode(data)
    assert [r.write_reason for r in records] == [WriteReason.SLEEP_RATED]
    assert "after record 2" in str(diagnostics[0])
    assert "after record 3" in str(diagnostics[1])
    assert diagnostics[-1].kind is NoRecordFound


def test_reduced_to_nothing_is_reported(make_image):
    data = make_image() + make_image(start_of_night=START)
    records, diagnostics = decode(data)
    assert records == []
    assert len(diagnostics) == 1
    assert "--expand" in str(diagnostics[0])

    records, diagnostics = decode(data, reduce=False)
    assert len(records) == 2
    assert diagnostics == []


def test_resets_only(make_image):
    now = utc(2011, 3, 20, 9, 30)
    reset = make_image(
        current_time=now,
        wdt_reset=True,
        write_reason=WriteReason.CARD_INSERT,
        rtc_change=(TimeChange(0, ts(now) - 2),) + (TimeChange(0, 0),) * 3,
    )
    night = make_image(start_of_night=START, end_of_night=START + timedelta(hours=7))
    records, _ = decode(night + reset + night, resets_only=True)
    assert len(records) == 1
    assert records[0].wdt_reset is True


def test_decode_file(tmp_path, week):
    path = tmp_path / "ZEOSLEEP.DAT"
    path.write_bytes(b"".join(week))
    records, diagnostics = decode_file(path)
    assert len(records) == 3
    assert diagnostics == []

    records, _ = decode_file(str(path), reduce=False)
    assert len(records) == 5


def test_decode_file_missing(tmp_path):
    with pytest.raises(FileNotFoundError):
        decode_file(tmp_path / "missing.dat")


def test_decode_garbage_file():
    records, diagnostics = decode(b"\x13\x37" * 4096)
    assert records == []
    assert [d.kind for d in diagnostics] == [NoRecordFound]
