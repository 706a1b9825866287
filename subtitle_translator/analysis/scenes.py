"""Scene boundary detection from timing gaps, scene length and speaker changes."""

from __future__ import annotations

from dataclasses import dataclass
from typing import List, Mapping, Optional, Sequence, Tuple

from subtitle_translator import logging_manager as log_mgr
from subtitle_translator.document import DocumentEntry, Scene, SubtitleDocument

logger = log_mgr.get_logger().getChild("analysis.scenes")


@dataclass(frozen=True)
class SceneDetectionConfig:
    """Thresholds that decide where one scene ends and the next begins."""

    min_gap_ms: int = 3000
    max_entries_per_scene: int = 50
    detect_speaker_changes: bool = True

    @classmethod
    def short_form(cls) -> "SceneDetectionConfig":
        return cls(min_gap_ms=5000, max_entries_per_scene=100, detect_speaker_changes=False)

    @classmethod
    def detailed(cls) -> "SceneDetectionConfig":
        return cls(min_gap_ms=2000, max_entries_per_scene=30, detect_speaker_changes=True)


def gap_between(first: DocumentEntry, second: DocumentEntry) -> int:
    """Return the silent gap between two entries, floored at zero."""

    return max(0, second.timecode.start_ms - first.timecode.end_ms)


class SceneDetector:
    """Partition entries into contiguous, non-overlapping scenes."""

    def __init__(self, config: SceneDetectionConfig | None = None) -> None:
        self.config = config or SceneDetectionConfig()

    def detect_scenes(
        self,
        entries: Sequence[DocumentEntry],
        speakers: Optional[Mapping[int, str]] = None,
    ) -> List[Scene]:
        """Split ``entries`` into scenes.

        ``speakers`` maps entry ids to speaker labels; when omitted the labels
        already stored on the entries are used.
        """

        if not entries:
            return []

        scenes: List[Scene] = []
        scene_start = 0
        for current in range(1, len(entries)):
            if self._should_break(entries, scene_start, current, speakers):
                scenes.append(
                    Scene(
                        id=len(scenes) + 1,
                        start_entry_id=entries[scene_start].id,
                        end_entry_id=entries[current - 1].id,
                    )
                )
                scene_start = current
        scenes.append(
            Scene(
                id=len(scenes) + 1,
                start_entry_id=entries[scene_start].id,
                end_entry_id=entries[-1].id,
            )
        )
        return scenes

    def _should_break(
        self,
        entries: Sequence[DocumentEntry],
        scene_start: int,
        current: int,
        speakers: Optional[Mapping[int, str]] = None,
    ) -> bool:
        previous = entries[current - 1]
        entry = entries[current]

        if gap_between(previous, entry) >= self.config.min_gap_ms:
            return True
        if current - scene_start >= self.config.max_entries_per_scene:
            return True
        if not self.config.detect_speaker_changes:
            return False
        if speakers is not None:
            before, after = speakers.get(previous.id), speakers.get(entry.id)
        else:
            before, after = previous.speaker, entry.speaker
        return before is not None and after is not None and before != after

    def detect_and_update(self, document: SubtitleDocument) -> List[Scene]:
        """Detect scenes and write them, plus per-entry ``scene_id``, onto ``document``."""

        scenes = self.detect_scenes(document.entries)
        document.apply_scenes(scenes)
        logger.debug(
            "Detected %d scenes across %d entries",
            len(scenes),
            len(document.entries),
            extra={"event": "analysis.scenes.detected", "scene_count": len(scenes)},
        )
        return scenes

    def find_largest_gaps(
        self, entries: Sequence[DocumentEntry], count: int
    ) -> List[Tuple[int, int]]:
        """Return up to ``count`` ``(entry_id, gap_ms)`` pairs, largest gap first.

        ``entry_id`` is the entry that follows the gap.
        """

        if len(entries) < 2:
            return []
        gaps = [
            (entries[index].id, gap_between(entries[index - 1], entries[index]))
            for index in range(1, len(entries))
        ]
        gaps.sort(key=lambda item: item[1], reverse=True)
        return gaps[:count]


__all__ = ["SceneDetectionConfig", "SceneDetector", "gap_between"]
