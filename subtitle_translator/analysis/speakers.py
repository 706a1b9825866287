"""Speaker label detection and continuity propagation."""

from __future__ import annotations

from collections import Counter, defaultdict
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Sequence, Tuple

import regex

from subtitle_translator import logging_manager as log_mgr
from subtitle_translator.document import DocumentEntry, SubtitleDocument

logger = log_mgr.get_logger().getChild("analysis.speakers")

SPEAKER_PATTERN = regex.compile(r"^(?:\[)?([A-Z][A-Za-z\s\.]+?)(?:\])?:\s*")
SOUND_EFFECT_PATTERN = regex.compile(r"^\[.+\]$|^\(.+\)$", regex.DOTALL)


@dataclass(frozen=True)
class SpeakerConfig:
    min_occurrences: int = 2
    detect_implicit_changes: bool = False
    continuity_gap: int = 3

    @classmethod
    def strict(cls) -> "SpeakerConfig":
        return cls(min_occurrences=3, detect_implicit_changes=False, continuity_gap=1)

    @classmethod
    def lenient(cls) -> "SpeakerConfig":
        return cls(min_occurrences=1, detect_implicit_changes=True, continuity_gap=5)


@dataclass(slots=True)
class DetectedSpeaker:
    name: str
    entry_ids: List[int] = field(default_factory=list)

    @property
    def occurrence_count(self) -> int:
        return len(self.entry_ids)


@dataclass(slots=True)
class SpeakerStats:
    entries_analyzed: int = 0
    entries_with_speakers: int = 0
    unique_speakers: int = 0
    sound_effects_found: int = 0


def extract_speaker(text: str) -> Optional[str]:
    """Return the leading ``NAME:`` label of ``text`` if present."""

    match = SPEAKER_PATTERN.match(text)
    if not match:
        return None
    name = match.group(1).strip()
    return name or None


def is_sound_effect(text: str) -> bool:
    return bool(SOUND_EFFECT_PATTERN.match(text.strip()))


def looks_like_dialogue(text: str) -> bool:
    trimmed = text.strip()
    if not trimmed:
        return False
    if is_sound_effect(trimmed):
        return False
    # Short all-caps tokens such as "END" or "SCENE5" are captions, not speech.
    if len(trimmed) < 20 and trimmed == trimmed.upper() and " " not in trimmed:
        return False
    return True


class SpeakerTracker:
    """Assign recurring speaker labels to entries and optionally carry them forward."""

    def __init__(self, config: Optional[SpeakerConfig] = None) -> None:
        self.config = config or SpeakerConfig()

    def detect_speakers(
        self, entries: Sequence[DocumentEntry]
    ) -> Tuple[Dict[int, str], SpeakerStats]:
        """Return ``{entry_id: speaker}`` for labelled entries plus detection statistics.

        Entries are not modified; :meth:`detect_and_update` writes the result.
        """

        stats = SpeakerStats(entries_analyzed=len(entries))

        counts: Counter[str] = Counter()
        for entry in entries:
            if is_sound_effect(entry.original_text):
                stats.sound_effects_found += 1
                continue
            speaker = extract_speaker(entry.original_text)
            if speaker is not None:
                counts[speaker] += 1

        recognized = {
            name for name, count in counts.items() if count >= self.config.min_occurrences
        }
        stats.unique_speakers = len(recognized)

        assigned: Dict[int, str] = {}
        for entry in entries:
            if is_sound_effect(entry.original_text):
                continue
            speaker = extract_speaker(entry.original_text)
            if speaker in recognized:
                assigned[entry.id] = speaker

        if self.config.detect_implicit_changes:
            self._propagate(entries, assigned)

        stats.entries_with_speakers = len(assigned)
        return assigned, stats

    def _propagate(self, entries: Sequence[DocumentEntry], assigned: Dict[int, str]) -> None:
        last_speaker: Optional[str] = None
        gap_count = 0
        for entry in entries:
            if entry.id in assigned:
                last_speaker = assigned[entry.id]
                gap_count = 0
            elif last_speaker is not None and gap_count < self.config.continuity_gap:
                if looks_like_dialogue(entry.original_text):
                    assigned[entry.id] = last_speaker
                gap_count += 1
            else:
                last_speaker = None
                gap_count = 0

    def detect_and_update(self, document: SubtitleDocument) -> SpeakerStats:
        """Detect speakers and write ``entry.speaker`` on every entry of ``document``."""

        assigned, stats = self.detect_speakers(document.entries)
        for entry in document.entries:
            entry.speaker = assigned.get(entry.id)
        logger.debug(
            "Detected %d speakers on %d entries",
            stats.unique_speakers,
            stats.entries_with_speakers,
            extra={"event": "analysis.speakers.detected"},
        )
        return stats

    def get_speakers(self, entries: Sequence[DocumentEntry]) -> List[DetectedSpeaker]:
        """Group entries by their assigned speaker, in first-appearance order."""

        grouped: Dict[str, List[int]] = defaultdict(list)
        for entry in entries:
            if entry.speaker is not None:
                grouped[entry.speaker].append(entry.id)
        return [DetectedSpeaker(name=name, entry_ids=ids) for name, ids in grouped.items()]

    def extract_speaker_names(self, entries: Sequence[DocumentEntry]) -> List[str]:
        """Return labels that recur at least ``min_occurrences`` times, sorted."""

        counts: Counter[str] = Counter()
        for entry in entries:
            speaker = extract_speaker(entry.original_text)
            if speaker is not None:
                counts[speaker] += 1
        return sorted(name for name, count in counts.items() if count >= self.config.min_occurrences)


__all__ = [
    "DetectedSpeaker",
    "SOUND_EFFECT_PATTERN",
    "SPEAKER_PATTERN",
    "SpeakerConfig",
    "SpeakerStats",
    "SpeakerTracker",
    "extract_speaker",
    "is_sound_effect",
    "looks_like_dialogue",
]
