import sys
from datetime import timedelta

import pytest

import decode_zeo_dat
from conftest import utc


@pytest.fixture
def dat_file(tmp_path, make_image):
    start = utc(2011, 3, 14, 23, 0)
    images = [
        make_image(
            start_of_night=start + timedelta(days=day),
            end_of_night=start + timedelta(days=day, hours=7),
            base_hypnogram_count=840,
            zq_score=70 + day,
        )
        for day in range(3)
    ]
    path = tmp_path / "ZEOSLEEP.DAT"
    path.write_bytes(images[0] + b"\x00" + images[1] + images[2])
    return path


def run(monkeypatch, *args):
    monkeypatch.setattr(sys, "argv", ["decode_zeo_dat.py", *map(str, args)])
    return decode_zeo_dat.main()


def test_prints_episodes_and_warnings(monkeypatch, capsys, dat_file):
    assert run(monkeypatch, dat_file) == 0
    captured = capsys.readouterr()
    assert "zq_score" in captured.out
    assert captured.out.count("2011-03-1") >= 3
    assert captured.err.startswith("WARNING: ")
    assert "after record 1" in captured.err


def test_limit(monkeypatch, capsys, dat_file):
    assert run(monkeypatch, dat_file, "--limit", 1) == 0
    lines = capsys.readouterr().out.strip().splitlines()
    assert len(lines) == 2


def test_summary(monkeypatch, capsys, dat_file):
    assert run(monkeypatch, dat_file, "--summary") == 0
    out = capsys.readouterr().out
    assert "nights        : 3" in out
    assert "avg ZQ        : 71" in out


def test_resets_without_matches(monkeypatch, capsys, dat_file):
    assert run(monkeypatch, dat_file, "--resets") == 0
    assert "[no sleep episodes]" in capsys.readouterr().out


def test_missing_file(monkeypatch, capsys, tmp_path):
    assert run(monkeypatch, tmp_path / "nope.dat") == 1
    assert "not found" in capsys.readouterr().err


def test_version(monkeypatch, capsys):
    assert run(monkeypatch, "--version") == 0
    assert str(decode_zeo_dat.DECODER_VERSION) in capsys.readouterr().out
