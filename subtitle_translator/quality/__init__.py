"""Error recovery, quality scoring and language-pair calibration."""

from __future__ import annotations

from .errors import (
    Abort,
    ContinuePartial,
    ErrorKind,
    ErrorRecoveryHandler,
    RecoveryAction,
    RecoveryStrategy,
    ReduceBatchSize,
    Retry,
    Skip,
    SwitchProvider,
    TranslationError,
    UseFallback,
    allows_continuation,
    classify_exception,
)
from .language_pairs import LanguagePairThresholds, get_defaults
from .metrics import (
    DimensionScore,
    MetricsData,
    QualityMetrics,
    QualityScore,
    QualityThresholds,
    collect_metrics_data,
)

__all__ = [
    "Abort",
    "ContinuePartial",
    "DimensionScore",
    "ErrorKind",
    "ErrorRecoveryHandler",
    "LanguagePairThresholds",
    "MetricsData",
    "QualityMetrics",
    "QualityScore",
    "QualityThresholds",
    "RecoveryAction",
    "RecoveryStrategy",
    "ReduceBatchSize",
    "Retry",
    "Skip",
    "SwitchProvider",
    "TranslationError",
    "UseFallback",
    "allows_continuation",
    "classify_exception",
    "collect_metrics_data",
    "get_defaults",
]
