"""Subtitle file parsing and serialization helpers."""

from __future__ import annotations

import re
from pathlib import Path
from typing import Iterable, List, Sequence, Tuple, Union

from subtitle_translator import logging_manager as log_mgr
from subtitle_translator.document import OutputRow, format_srt_timestamp

from .errors import SubtitleProcessingError
from .models import SubtitleRow

logger = log_mgr.get_logger().getChild("subtitles.io")

_TIMESTAMP = r"(?:\d{1,2}:)?\d{1,2}:\d{2}[,.]\d{3}"
TIMING_LINE_PATTERN = re.compile(
    rf"^\s*(?P<start>{_TIMESTAMP})\s*-->\s*(?P<end>{_TIMESTAMP})"
)
WEBVTT_HEADER = re.compile(r"^\ufeff?WEBVTT", re.IGNORECASE)
_DECODINGS = ("utf-8", "utf-8-sig", "latin-1")

PathLike = Union[str, Path]


def load_subtitle_rows(path: PathLike) -> List[SubtitleRow]:
    """Parse ``path`` as an SRT/VTT file and return its rows in file order."""

    path = Path(path)
    payload = _read_subtitle_text(path)
    first_line = payload.splitlines()[0] if payload else ""
    if WEBVTT_HEADER.match(first_line) or path.suffix.lower() == ".vtt":
        rows = _parse_webvtt(payload)
    else:
        rows = _parse_srt(payload)
    if not rows:
        raise SubtitleProcessingError(f"No subtitle entries found in '{path}'")
    logger.debug(
        "Loaded %d subtitle rows from %s",
        len(rows),
        path,
        extra={"event": "subtitles.loaded", "attributes": {"path": str(path)}},
    )
    return rows


def _read_subtitle_text(path: Path) -> str:
    """Return subtitle text, trying UTF-8 before falling back to Latin-1."""

    try:
        raw = path.read_bytes()
    except OSError as exc:
        raise SubtitleProcessingError(f"Unable to read subtitle file '{path}': {exc}") from exc

    for encoding in _DECODINGS:
        try:
            return raw.decode(encoding).lstrip("\ufeff")
        except UnicodeDecodeError:
            continue

    raise SubtitleProcessingError(  # pragma: no cover - latin-1 decodes any byte string
        f"Unable to decode subtitle file '{path}'. Please provide a UTF-8/Latin-1 encoded file."
    )


def _parse_srt(payload: str) -> List[SubtitleRow]:
    rows: List[SubtitleRow] = []
    for raw_block in _split_blocks(payload):
        lines = [line.rstrip() for line in raw_block.splitlines() if line.strip() != ""]
        if len(lines) < 2:
            continue
        try:
            seq = int(lines[0].strip())
            time_line_index = 1
        except ValueError:
            seq = len(rows) + 1
            time_line_index = 0
        match = TIMING_LINE_PATTERN.match(lines[time_line_index])
        if not match:
            continue
        start_ms, end_ms = _checked_span(seq, match.group("start"), match.group("end"))
        rows.append(
            SubtitleRow(
                seq=seq,
                start_ms=start_ms,
                end_ms=end_ms,
                lines=[line.strip() for line in lines[time_line_index + 1 :]],
            )
        )
    return rows


def _parse_webvtt(payload: str) -> List[SubtitleRow]:
    rows: List[SubtitleRow] = []
    for raw_block in _split_blocks(payload):
        lines = [line.strip() for line in raw_block.splitlines() if line.strip()]
        timing_index = next(
            (index for index, line in enumerate(lines) if TIMING_LINE_PATTERN.match(line)),
            None,
        )
        if timing_index is None:
            # Header, NOTE, STYLE and REGION blocks carry no timing line.
            continue
        match = TIMING_LINE_PATTERN.match(lines[timing_index])
        assert match is not None
        seq = len(rows) + 1
        start_ms, end_ms = _checked_span(seq, match.group("start"), match.group("end"))
        rows.append(
            SubtitleRow(
                seq=seq,
                start_ms=start_ms,
                end_ms=end_ms,
                lines=lines[timing_index + 1 :],
            )
        )
    return rows


def _checked_span(seq: int, start: str, end: str) -> Tuple[int, int]:
    start_ms = timestamp_to_ms(start)
    end_ms = timestamp_to_ms(end)
    if end_ms <= start_ms:
        logger.warning(
            "Entry %d ends at or before its start; extending it to 1 ms",
            seq,
            extra={
                "event": "subtitles.timing_repaired",
                "attributes": {"seq": seq, "start_ms": start_ms, "end_ms": end_ms},
            },
        )
        end_ms = start_ms + 1
    return start_ms, end_ms


def timestamp_to_ms(value: str) -> int:
    """Return milliseconds for ``HH:MM:SS,mmm``, ``HH:MM:SS.mmm`` or ``MM:SS.mmm``."""

    sanitized = value.strip().replace(",", ".")
    parts = sanitized.split(":")
    if len(parts) == 2:
        parts.insert(0, "0")
    if len(parts) != 3:
        raise SubtitleProcessingError(f"Invalid timestamp: {value!r}")
    hours, minutes, seconds = parts
    try:
        whole, _, fraction = seconds.partition(".")
        millis = int((fraction + "000")[:3])
        return ((int(hours) * 60 + int(minutes)) * 60 + int(whole)) * 1000 + millis
    except ValueError as exc:
        raise SubtitleProcessingError(f"Invalid timestamp: {value!r}") from exc


def _split_blocks(payload: str) -> List[str]:
    sanitized = payload.replace("\r\n", "\n").replace("\r", "\n").strip()
    if not sanitized:
        return []
    return re.split(r"\n\s*\n", sanitized)


def _row_fields(row: Union[SubtitleRow, Sequence[object]]) -> Tuple[int, int, int, str]:
    if isinstance(row, SubtitleRow):
        return row.as_tuple()
    seq, start_ms, end_ms, text = row
    return int(seq), int(start_ms), int(end_ms), str(text)


def write_srt(path: PathLike, rows: Iterable[Union[SubtitleRow, OutputRow]]) -> Path:
    """Serialize ``rows`` to ``path`` in SRT format, keeping their numbering and timing."""

    path = Path(path)
    fragments: List[str] = []
    count = 0
    for row in rows:
        seq, start_ms, end_ms, text = _row_fields(row)
        fragments.append(str(seq))
        fragments.append(f"{format_srt_timestamp(start_ms)} --> {format_srt_timestamp(end_ms)}")
        fragments.extend(text.splitlines() or [""])
        fragments.append("")
        count += 1
    payload = "\n".join(fragments).strip() + "\n"
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(payload, encoding="utf-8")
    except OSError as exc:
        raise SubtitleProcessingError(f"Unable to write subtitle file '{path}': {exc}") from exc
    logger.debug(
        "Wrote %d subtitle rows to %s",
        count,
        path,
        extra={"event": "subtitles.written", "attributes": {"path": str(path)}},
    )
    return path


def rows_as_tuples(rows: Iterable[SubtitleRow]) -> List[OutputRow]:
    return [row.as_tuple() for row in rows]


__all__ = [
    "TIMING_LINE_PATTERN",
    "WEBVTT_HEADER",
    "load_subtitle_rows",
    "rows_as_tuples",
    "timestamp_to_ms",
    "write_srt",
]
