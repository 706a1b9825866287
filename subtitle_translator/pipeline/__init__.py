"""Analysis, translation and validation passes and the orchestrator that runs them."""

from __future__ import annotations

from .analysis_pass import AnalysisConfig, AnalysisPass, AnalysisResult
from .errors import PipelineCancelled
from .orchestrator import (
    PipelineConfig,
    PipelinePhase,
    PipelineProgress,
    PipelineResult,
    TranslationPipeline,
    translate_entries,
)
from .translation_pass import BatchResult, TranslationPass, TranslationPassConfig, TranslationStats
from .validation_pass import (
    IssueKind,
    ValidationConfig,
    ValidationIssue,
    ValidationPass,
    ValidationReport,
)

__all__ = [
    "AnalysisConfig",
    "AnalysisPass",
    "AnalysisResult",
    "BatchResult",
    "IssueKind",
    "PipelineCancelled",
    "PipelineConfig",
    "PipelinePhase",
    "PipelineProgress",
    "PipelineResult",
    "TranslationPass",
    "TranslationPassConfig",
    "TranslationPipeline",
    "TranslationStats",
    "ValidationConfig",
    "ValidationIssue",
    "ValidationPass",
    "ValidationReport",
    "translate_entries",
]
