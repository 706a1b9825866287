"""Unit tests for quality scoring and language-pair thresholds."""

from __future__ import annotations

import pytest

from subtitle_translator.quality import (
    DimensionScore,
    LanguagePairThresholds,
    MetricsData,
    QualityMetrics,
    QualityScore,
    QualityThresholds,
    collect_metrics_data,
    get_defaults,
)
from subtitle_translator.quality.metrics import COMPLETENESS_WEIGHT, FORMATTING_WEIGHT

pytestmark = pytest.mark.quality


class TestQualityScore:
    """Tests for QualityScore aggregation."""

    def test_default_is_perfect(self):
        score = QualityScore()
        assert score.overall == pytest.approx(1.0)
        assert score.grade() == "A"
        assert score.meets_threshold(0.99)

    def test_weighted_overall(self):
        score = QualityScore(completeness=DimensionScore(0.5, COMPLETENESS_WEIGHT, 5))
        assert score.overall == pytest.approx(0.85)
        assert score.grade() == "B"
        assert score.weakest_dimension() == "completeness"

    def test_dimension_scores_are_clamped(self):
        assert DimensionScore(1.5, 0.1).score == 1.0
        assert DimensionScore(-0.2, 0.1).score == 0.0

    def test_summary(self):
        score = QualityScore(entries_evaluated=4, entries_with_issues=1)
        assert score.summary() == "Quality: 100.0% (Grade: A) - 4 entries, 1 with issues"


class TestQualityMetrics:
    """Tests for the per-dimension calculations."""

    def test_completeness_counts_missing_and_empty(self):
        dimension = QualityMetrics().calculate_completeness(10, 8, 1)
        assert dimension.score == pytest.approx(0.7)
        assert dimension.issues == 3

    def test_accuracy_penalises_out_of_range_ratios(self):
        dimension = QualityMetrics().calculate_accuracy([1.0, 3.0])
        assert dimension.score == pytest.approx(0.5)
        assert dimension.issues == 1

    def test_formatting(self):
        dimension = QualityMetrics().calculate_formatting(4, 1)
        assert dimension.score == pytest.approx(0.75)
        assert dimension.weight == FORMATTING_WEIGHT

    def test_readability_without_checks(self):
        assert QualityMetrics().calculate_readability([], []).score == 1.0

    def test_readability_penalises_long_lines(self):
        dimension = QualityMetrics().calculate_readability([10.0], [84])
        assert dimension.issues == 1
        assert dimension.score == pytest.approx(0.75)

    def test_empty_data_scores_perfect(self):
        assert QualityMetrics().calculate_score(MetricsData()).overall == pytest.approx(1.0)


class TestCollectMetricsData:
    """Tests for collect_metrics_data and score_document."""

    def test_translated_document(self, make_document):
        document = make_document(["Hello there", "<i>Good night</i>"])
        document.entries[0].set_translation("Bonjour toi", 0.9)
        document.entries[1].set_translation("<i>Bonne nuit</i>", 0.9)
        data = collect_metrics_data(document)
        assert data.translated_entries == 2
        assert data.total_tags == 1
        assert data.missing_tags == 0
        assert data.entries_with_issues == 0

        score = QualityMetrics().score_document(document)
        assert score.grade() == "A"

    def test_untranslated_and_empty_entries(self, make_document):
        document = make_document(["Hello", "<i>Bye</i>", "Again"])
        document.entries[1].set_translation("  ")
        data = collect_metrics_data(document)
        assert data.translated_entries == 1
        assert data.empty_entries == 1
        assert data.entries_with_issues == 3
        assert data.missing_tags == 1

        score = QualityMetrics().calculate_score(data)
        assert score.completeness.score == 0.0

    def test_glossary_inconsistency_counted(self, make_document):
        document = make_document(["Alice is here."])
        document.glossary.add_character("Alice")
        document.entries[0].set_translation("Elle est ici.")
        data = collect_metrics_data(document)
        assert data.total_terms == 1
        assert data.inconsistent_terms == 1

    def test_low_confidence_is_an_issue(self, make_document):
        document = make_document(["Hello there"])
        document.entries[0].set_translation("Bonjour toi", 0.1)
        assert collect_metrics_data(document).entries_with_issues == 1
        relaxed = QualityThresholds(min_confidence=0.05)
        assert collect_metrics_data(document, relaxed).entries_with_issues == 0


class TestLanguagePairs:
    """Tests for language-pair length calibration."""

    def test_known_pair_is_normalised(self):
        thresholds = get_defaults("EN", "fr ")
        assert thresholds.expected_ratio == pytest.approx(1.1)

    def test_unknown_pair_uses_generic_bounds(self):
        assert get_defaults("xx", "yy") == LanguagePairThresholds()

    def test_ratio_acceptance(self):
        thresholds = get_defaults("en", "ja")
        assert thresholds.is_ratio_acceptable(0.6)
        assert not thresholds.is_ratio_acceptable(1.2)

    def test_deviation_from_expected(self):
        thresholds = LanguagePairThresholds(0.9, 1.3, 1.1)
        assert thresholds.deviation_from_expected(1.1) == 0.0
        assert thresholds.deviation_from_expected(1.2) == pytest.approx(0.5)
        assert thresholds.deviation_from_expected(0.5) == 1.0
