"""Document analysis run once before translation.

The pass gathers what later batches need as shared context: character names
and recurring terms for the glossary, scene boundaries, speaker labels and a
short extractive summary of the whole document.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, List, Optional

from subtitle_translator import logging_manager as log_mgr
from subtitle_translator.analysis import (
    ExtractionConfig,
    GlossaryExtractor,
    HistorySummarizer,
    SceneDetectionConfig,
    SceneDetector,
    SpeakerConfig,
    SpeakerTracker,
    SummarizationConfig,
)
from subtitle_translator.document import Glossary, Scene, SubtitleDocument

logger = log_mgr.get_logger().getChild("pipeline.analysis")


@dataclass(frozen=True)
class AnalysisConfig:
    extraction: ExtractionConfig = field(default_factory=ExtractionConfig)
    scenes: SceneDetectionConfig = field(default_factory=SceneDetectionConfig)
    speakers: SpeakerConfig = field(default_factory=SpeakerConfig)
    summarization: SummarizationConfig = field(default_factory=SummarizationConfig)
    extract_glossary: bool = True
    detect_scenes: bool = True
    detect_speakers: bool = True
    generate_summary: bool = True

    @classmethod
    def minimal(cls) -> "AnalysisConfig":
        return cls(
            extraction=ExtractionConfig.minimal(),
            detect_scenes=False,
            generate_summary=False,
        )

    @classmethod
    def thorough(cls) -> "AnalysisConfig":
        return cls(extraction=ExtractionConfig.aggressive())


@dataclass(slots=True)
class AnalysisResult:
    glossary: Glossary = field(default_factory=Glossary)
    scenes: List[Scene] = field(default_factory=list)
    speakers: Dict[int, str] = field(default_factory=dict)
    summary: Optional[str] = None
    character_count: int = 0
    term_count: int = 0
    scene_count: int = 0
    speaker_count: int = 0

    def has_data(self) -> bool:
        return (
            not self.glossary.is_empty()
            or bool(self.scenes)
            or bool(self.speakers)
            or self.summary is not None
        )

    def description(self) -> str:
        parts: List[str] = []
        if self.character_count:
            parts.append(f"{self.character_count} characters")
        if self.term_count:
            parts.append(f"{self.term_count} terms")
        if self.scene_count:
            parts.append(f"{self.scene_count} scenes")
        if self.speaker_count:
            parts.append(f"{self.speaker_count} speakers")
        if self.summary is not None:
            parts.append("summary generated")
        return ", ".join(parts) if parts else "no analysis data"


class AnalysisPass:
    """Run the configured analysers over a document."""

    def __init__(self, config: Optional[AnalysisConfig] = None) -> None:
        self.config = config or AnalysisConfig()
        self._extractor = GlossaryExtractor(self.config.extraction)
        self._scene_detector = SceneDetector(self.config.scenes)
        self._speaker_tracker = SpeakerTracker(self.config.speakers)
        self._summarizer = HistorySummarizer(self.config.summarization)

    def analyze(self, document: SubtitleDocument) -> AnalysisResult:
        """Return analysis results without modifying ``document``."""

        result = AnalysisResult()
        entries = document.entries

        if self.config.extract_glossary:
            result.glossary = self._extractor.extract(entries)
            result.character_count = len(result.glossary.character_names)
            result.term_count = len(result.glossary.terms) + len(result.glossary.technical_terms)

        if self.config.detect_speakers:
            result.speakers, stats = self._speaker_tracker.detect_speakers(entries)
            result.speaker_count = stats.unique_speakers

        if self.config.detect_scenes:
            result.scenes = self._scene_detector.detect_scenes(
                entries, result.speakers if self.config.detect_speakers else None
            )
            result.scene_count = len(result.scenes)

        if self.config.generate_summary and entries:
            summary = self._summarizer.summarize_extractive(entries)
            if summary.text:
                result.summary = summary.text

        logger.debug(
            "Analysis finished: %s",
            result.description(),
            extra={
                "event": "pipeline.analysis.completed",
                "attributes": {"entries": len(entries)},
            },
        )
        return result

    def analyze_and_update(self, document: SubtitleDocument) -> AnalysisResult:
        """Analyse ``document`` and write glossary, speakers, scenes and summary onto it."""

        result = self.analyze(document)
        if self.config.detect_speakers:
            for entry in document.entries:
                entry.speaker = result.speakers.get(entry.id)
        if self.config.extract_glossary:
            document.glossary.merge(result.glossary)
        if self.config.detect_scenes:
            document.apply_scenes(result.scenes)
        if result.summary is not None:
            document.context_summary = result.summary
        return result


__all__ = ["AnalysisConfig", "AnalysisPass", "AnalysisResult"]
