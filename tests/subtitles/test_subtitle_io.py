from __future__ import annotations

from pathlib import Path

import pytest

from subtitle_translator.subtitles import (
    SubtitleProcessingError,
    SubtitleRow,
    load_subtitle_rows,
    write_srt,
)
from subtitle_translator.subtitles.io import rows_as_tuples, timestamp_to_ms

pytestmark = pytest.mark.subtitles


SAMPLE_SRT = """1
00:00:01,000 --> 00:00:02,500
Hello there.

2
00:00:03,000 --> 00:00:05,000
<i>Two lines</i>
of dialogue

"""

SAMPLE_VTT = """WEBVTT

NOTE produced for tests

intro
00:01.000 --> 00:02.000 align:start
First cue

00:00:03.500 --> 00:00:04.000
Second cue
"""


def _write(tmp_path: Path, name: str, content: str, encoding: str = "utf-8") -> Path:
    path = tmp_path / name
    path.write_bytes(content.encode(encoding))
    return path


class TestTimestamps:
    """Tests for timestamp_to_ms."""

    @pytest.mark.parametrize(
        "value, expected",
        [
            ("00:00:01,000", 1000),
            ("01:02:03.004", 3_723_004),
            ("02:03.5", 123_500),
        ],
    )
    def test_formats(self, value, expected):
        assert timestamp_to_ms(value) == expected

    def test_invalid(self):
        with pytest.raises(SubtitleProcessingError):
            timestamp_to_ms("abc")


class TestLoadSubtitleRows:
    """Tests for load_subtitle_rows."""

    def test_srt(self, tmp_path):
        rows = load_subtitle_rows(_write(tmp_path, "sample.srt", SAMPLE_SRT))
        assert [row.as_tuple() for row in rows] == [
            (1, 1000, 2500, "Hello there."),
            (2, 3000, 5000, "<i>Two lines</i>\nof dialogue"),
        ]

    def test_crlf_and_bom(self, tmp_path):
        content = "\ufeff" + SAMPLE_SRT.replace("\n", "\r\n")
        rows = load_subtitle_rows(_write(tmp_path, "windows.srt", content))
        assert [row.seq for row in rows] == [1, 2]

    def test_latin1_fallback(self, tmp_path):
        content = "1\n00:00:01,000 --> 00:00:02,000\nCafé crème\n"
        rows = load_subtitle_rows(_write(tmp_path, "latin.srt", content, encoding="latin-1"))
        assert rows[0].text == "Café crème"

    def test_missing_index_is_renumbered(self, tmp_path):
        content = "00:00:01,000 --> 00:00:02,000\nNo number\n"
        rows = load_subtitle_rows(_write(tmp_path, "bare.srt", content))
        assert rows[0].seq == 1

    def test_reversed_timing_is_repaired(self, tmp_path):
        content = "1\n00:00:05,000 --> 00:00:04,000\nBackwards\n"
        rows = load_subtitle_rows(_write(tmp_path, "reversed.srt", content))
        assert (rows[0].start_ms, rows[0].end_ms) == (5000, 5001)

    def test_webvtt(self, tmp_path):
        rows = load_subtitle_rows(_write(tmp_path, "sample.vtt", SAMPLE_VTT))
        assert [row.as_tuple() for row in rows] == [
            (1, 1000, 2000, "First cue"),
            (2, 3500, 4000, "Second cue"),
        ]

    def test_empty_file_rejected(self, tmp_path):
        with pytest.raises(SubtitleProcessingError):
            load_subtitle_rows(_write(tmp_path, "empty.srt", "\n\n"))

    def test_missing_file_rejected(self, tmp_path):
        with pytest.raises(SubtitleProcessingError):
            load_subtitle_rows(tmp_path / "absent.srt")


class TestWriteSrt:
    """Tests for write_srt."""

    def test_round_trip_keeps_numbering_and_timing(self, tmp_path):
        source = load_subtitle_rows(_write(tmp_path, "sample.srt", SAMPLE_SRT))
        target = write_srt(tmp_path / "out" / "sample.fr.srt", rows_as_tuples(source))
        assert load_subtitle_rows(target) == source

    def test_accepts_rows_and_tuples(self, tmp_path):
        target = write_srt(
            tmp_path / "mixed.srt",
            [SubtitleRow(7, 0, 1000, ["Hi"]), (9, 61_000, 62_000, "Bye")],
        )
        assert target.read_text(encoding="utf-8") == (
            "7\n00:00:00,000 --> 00:00:01,000\nHi\n\n"
            "9\n00:01:01,000 --> 00:01:02,000\nBye\n"
        )

    def test_row_helpers(self):
        row = SubtitleRow(1, 1000, 2500, ["a", "b"])
        assert row.text == "a\nb"
        assert row.duration_ms == 1500
