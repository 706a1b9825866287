"""Weighted quality scoring for a translated document.

Five dimensions are scored between 0 and 1 and combined with fixed weights:
completeness (0.30), accuracy (0.25), consistency (0.20), formatting (0.15)
and readability (0.10).
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, List, Optional, Sequence

from subtitle_translator.analysis.glossary import GlossaryEnforcer
from subtitle_translator.document import SubtitleDocument

COMPLETENESS_WEIGHT = 0.30
ACCURACY_WEIGHT = 0.25
CONSISTENCY_WEIGHT = 0.20
FORMATTING_WEIGHT = 0.15
READABILITY_WEIGHT = 0.10


@dataclass(frozen=True)
class DimensionScore:
    score: float
    weight: float
    issues: int = 0

    def __post_init__(self) -> None:
        object.__setattr__(self, "score", min(max(float(self.score), 0.0), 1.0))

    @classmethod
    def perfect(cls, weight: float) -> "DimensionScore":
        return cls(1.0, weight, 0)

    def weighted(self) -> float:
        return self.score * self.weight


@dataclass(frozen=True)
class QualityScore:
    completeness: DimensionScore = field(
        default_factory=lambda: DimensionScore.perfect(COMPLETENESS_WEIGHT)
    )
    accuracy: DimensionScore = field(default_factory=lambda: DimensionScore.perfect(ACCURACY_WEIGHT))
    consistency: DimensionScore = field(
        default_factory=lambda: DimensionScore.perfect(CONSISTENCY_WEIGHT)
    )
    formatting: DimensionScore = field(
        default_factory=lambda: DimensionScore.perfect(FORMATTING_WEIGHT)
    )
    readability: DimensionScore = field(
        default_factory=lambda: DimensionScore.perfect(READABILITY_WEIGHT)
    )
    entries_evaluated: int = 0
    entries_with_issues: int = 0

    def dimensions(self) -> Dict[str, DimensionScore]:
        return {
            "completeness": self.completeness,
            "accuracy": self.accuracy,
            "consistency": self.consistency,
            "formatting": self.formatting,
            "readability": self.readability,
        }

    @property
    def overall(self) -> float:
        dimensions = self.dimensions().values()
        total_weight = sum(dimension.weight for dimension in dimensions)
        if total_weight <= 0:
            return 1.0
        return sum(dimension.weighted() for dimension in dimensions) / total_weight

    def meets_threshold(self, threshold: float) -> bool:
        return self.overall >= threshold

    def weakest_dimension(self) -> str:
        # min() keeps the first of equal scores, in declaration order.
        return min(self.dimensions().items(), key=lambda item: item[1].score)[0]

    def grade(self) -> str:
        overall = self.overall
        if overall >= 0.9:
            return "A"
        if overall >= 0.8:
            return "B"
        if overall >= 0.7:
            return "C"
        if overall >= 0.6:
            return "D"
        return "F"

    def summary(self) -> str:
        return (
            f"Quality: {self.overall * 100:.1f}% (Grade: {self.grade()}) - "
            f"{self.entries_evaluated} entries, {self.entries_with_issues} with issues"
        )


@dataclass(frozen=True)
class QualityThresholds:
    min_overall: float = 0.7
    max_length_ratio: float = 1.5
    min_length_ratio: float = 0.3
    max_chars_per_second: float = 25.0
    max_chars_per_line: int = 42
    min_confidence: float = 0.5

    @classmethod
    def strict(cls) -> "QualityThresholds":
        return cls(
            min_overall=0.85,
            max_length_ratio=1.3,
            min_length_ratio=0.5,
            max_chars_per_second=20.0,
            max_chars_per_line=37,
            min_confidence=0.7,
        )

    @classmethod
    def lenient(cls) -> "QualityThresholds":
        return cls(
            min_overall=0.5,
            max_length_ratio=2.0,
            min_length_ratio=0.2,
            max_chars_per_second=30.0,
            max_chars_per_line=50,
            min_confidence=0.3,
        )


@dataclass(slots=True)
class EntryMetrics:
    is_translated: bool = False
    is_empty: bool = False
    has_issues: bool = False
    length_ratio: Optional[float] = None
    chars_per_second: Optional[float] = None
    line_lengths: List[int] = field(default_factory=list)
    expected_tags: int = 0
    missing_tags: int = 0
    confidence: Optional[float] = None


@dataclass(slots=True)
class MetricsData:
    """Raw counts collected from a document, the input of :class:`QualityMetrics`."""

    total_entries: int = 0
    translated_entries: int = 0
    empty_entries: int = 0
    entries_with_issues: int = 0
    length_ratios: List[float] = field(default_factory=list)
    total_terms: int = 0
    inconsistent_terms: int = 0
    total_tags: int = 0
    missing_tags: int = 0
    cps_values: List[float] = field(default_factory=list)
    line_lengths: List[int] = field(default_factory=list)
    entry_details: Dict[int, EntryMetrics] = field(default_factory=dict)

    def add_entry(self, entry_id: int, metrics: EntryMetrics) -> None:
        self.total_entries += 1
        if metrics.is_translated:
            self.translated_entries += 1
        if metrics.is_empty:
            self.empty_entries += 1
        if metrics.has_issues:
            self.entries_with_issues += 1
        if metrics.length_ratio is not None:
            self.length_ratios.append(metrics.length_ratio)
        if metrics.chars_per_second is not None:
            self.cps_values.append(metrics.chars_per_second)
        self.line_lengths.extend(metrics.line_lengths)
        self.total_tags += metrics.expected_tags
        self.missing_tags += metrics.missing_tags
        self.entry_details[entry_id] = metrics


class QualityMetrics:
    """Turn :class:`MetricsData` into a :class:`QualityScore`."""

    def __init__(self, thresholds: Optional[QualityThresholds] = None) -> None:
        self.thresholds = thresholds or QualityThresholds()

    def calculate_completeness(self, total: int, translated: int, empty: int) -> DimensionScore:
        if total == 0:
            return DimensionScore.perfect(COMPLETENESS_WEIGHT)
        missing = max(0, total - translated)
        successful = max(0, translated - empty)
        return DimensionScore(successful / total, COMPLETENESS_WEIGHT, missing + empty)

    def calculate_accuracy(self, ratios: Sequence[float]) -> DimensionScore:
        if not ratios:
            return DimensionScore.perfect(ACCURACY_WEIGHT)
        upper = self.thresholds.max_length_ratio
        lower = self.thresholds.min_length_ratio
        issues = 0
        penalty = 0.0
        for ratio in ratios:
            if ratio > upper:
                issues += 1
                penalty += min((ratio - upper) / upper, 1.0)
            elif ratio < lower:
                issues += 1
                penalty += min((lower - ratio) / lower, 1.0)
        return DimensionScore(max(0.0, 1.0 - penalty / len(ratios)), ACCURACY_WEIGHT, issues)

    def calculate_consistency(self, total_terms: int, inconsistent_terms: int) -> DimensionScore:
        if total_terms == 0:
            return DimensionScore.perfect(CONSISTENCY_WEIGHT)
        score = max(0, total_terms - inconsistent_terms) / total_terms
        return DimensionScore(score, CONSISTENCY_WEIGHT, inconsistent_terms)

    def calculate_formatting(self, total_tags: int, missing_tags: int) -> DimensionScore:
        if total_tags == 0:
            return DimensionScore.perfect(FORMATTING_WEIGHT)
        score = max(0, total_tags - missing_tags) / total_tags
        return DimensionScore(score, FORMATTING_WEIGHT, missing_tags)

    def calculate_readability(
        self, cps_values: Sequence[float], line_lengths: Sequence[int]
    ) -> DimensionScore:
        max_cps = self.thresholds.max_chars_per_second
        max_line = self.thresholds.max_chars_per_line
        issues = 0
        penalty = 0.0
        for cps in cps_values:
            if cps > max_cps:
                issues += 1
                penalty += min((cps - max_cps) / max_cps, 1.0) * 0.5
        for length in line_lengths:
            if length > max_line:
                issues += 1
                penalty += min((length - max_line) / max_line, 1.0) * 0.5
        checks = len(cps_values) + len(line_lengths)
        if checks == 0:
            return DimensionScore(1.0, READABILITY_WEIGHT, issues)
        return DimensionScore(max(0.0, 1.0 - penalty / checks), READABILITY_WEIGHT, issues)

    def calculate_score(self, data: MetricsData) -> QualityScore:
        return QualityScore(
            completeness=self.calculate_completeness(
                data.total_entries, data.translated_entries, data.empty_entries
            ),
            accuracy=self.calculate_accuracy(data.length_ratios),
            consistency=self.calculate_consistency(data.total_terms, data.inconsistent_terms),
            formatting=self.calculate_formatting(data.total_tags, data.missing_tags),
            readability=self.calculate_readability(data.cps_values, data.line_lengths),
            entries_evaluated=data.total_entries,
            entries_with_issues=data.entries_with_issues,
        )

    def score_document(self, document: SubtitleDocument) -> QualityScore:
        return self.calculate_score(collect_metrics_data(document, self.thresholds))


def _glossary_term_count(enforcer: GlossaryEnforcer, original: str) -> int:
    glossary = enforcer.glossary
    names = sum(1 for name in glossary.character_names if name in original)
    terms = sum(1 for source, _target in enforcer.mapped_terms() if source in original)
    return names + terms


def collect_metrics_data(
    document: SubtitleDocument, thresholds: Optional[QualityThresholds] = None
) -> MetricsData:
    """Measure every entry of ``document`` for :meth:`QualityMetrics.calculate_score`."""

    thresholds = thresholds or QualityThresholds()
    enforcer = GlossaryEnforcer(document.glossary)
    data = MetricsData()

    for entry in document.entries:
        metrics = EntryMetrics(
            is_translated=entry.is_translated,
            confidence=entry.confidence,
            expected_tags=len(entry.formatting),
        )
        translated = entry.translated_text
        issues = 0

        if translated is None:
            issues += 1
            metrics.missing_tags = metrics.expected_tags
        elif not translated.strip() and entry.original_text.strip():
            metrics.is_empty = True
            metrics.missing_tags = metrics.expected_tags
            issues += 1
        else:
            if entry.original_text:
                metrics.length_ratio = len(translated) / len(entry.original_text)
                if not (
                    thresholds.min_length_ratio
                    <= metrics.length_ratio
                    <= thresholds.max_length_ratio
                ):
                    issues += 1

            seconds = entry.timecode.duration_ms / 1000.0
            visible = translated.replace("\n", "")
            metrics.chars_per_second = len(visible) / seconds
            if metrics.chars_per_second > thresholds.max_chars_per_second:
                issues += 1

            metrics.line_lengths = [len(line) for line in translated.splitlines()]
            if any(length > thresholds.max_chars_per_line for length in metrics.line_lengths):
                issues += 1

            metrics.missing_tags = sum(
                1 for tag in entry.formatting if not tag.is_present(translated)
            )
            issues += metrics.missing_tags

            data.total_terms += _glossary_term_count(enforcer, entry.original_text)
            inconsistent = len(enforcer.check_consistency(entry.original_text, translated))
            data.inconsistent_terms += inconsistent
            issues += inconsistent

            if entry.confidence is not None and entry.confidence < thresholds.min_confidence:
                issues += 1

        metrics.has_issues = issues > 0
        data.add_entry(entry.id, metrics)

    return data


__all__ = [
    "ACCURACY_WEIGHT",
    "COMPLETENESS_WEIGHT",
    "CONSISTENCY_WEIGHT",
    "DimensionScore",
    "EntryMetrics",
    "FORMATTING_WEIGHT",
    "MetricsData",
    "QualityMetrics",
    "QualityScore",
    "QualityThresholds",
    "READABILITY_WEIGHT",
    "collect_metrics_data",
]
