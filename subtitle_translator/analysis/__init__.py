"""Document analysis utilities run once before translation."""

from __future__ import annotations

from .glossary import (
    ConsistencyIssue,
    ConsistencyKind,
    ExtractionConfig,
    GlossaryEnforcer,
    GlossaryExtractor,
)
from .scenes import SceneDetectionConfig, SceneDetector
from .speakers import SpeakerConfig, SpeakerStats, SpeakerTracker
from .summary import HistorySummarizer, HistorySummary, SummarizationConfig

__all__ = [
    "ConsistencyIssue",
    "ConsistencyKind",
    "ExtractionConfig",
    "GlossaryEnforcer",
    "GlossaryExtractor",
    "HistorySummarizer",
    "HistorySummary",
    "SceneDetectionConfig",
    "SceneDetector",
    "SpeakerConfig",
    "SpeakerStats",
    "SpeakerTracker",
    "SummarizationConfig",
]
