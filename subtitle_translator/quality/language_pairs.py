"""Expected translated/original length ratios per language pair.

Languages expand or contract differently when translated (Japanese into
English roughly doubles, English into Chinese roughly halves), so the length
checks use calibrated bounds when a pair is known.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Dict


@dataclass(frozen=True)
class LanguagePairThresholds:
    min_length_ratio: float = 0.3
    max_length_ratio: float = 3.0
    expected_ratio: float = 1.0

    def is_ratio_acceptable(self, ratio: float) -> bool:
        return self.min_length_ratio <= ratio <= self.max_length_ratio

    def deviation_from_expected(self, ratio: float) -> float:
        """Return 0.0 at the expected ratio rising to 1.0 at (or beyond) either bound."""

        if ratio < self.expected_ratio:
            span = self.expected_ratio - self.min_length_ratio
            if span <= 0:
                return 0.0
            return min((self.expected_ratio - ratio) / span, 1.0)
        span = self.max_length_ratio - self.expected_ratio
        if span <= 0:
            return 0.0
        return min((ratio - self.expected_ratio) / span, 1.0)


_PAIR_TABLE: Dict[str, LanguagePairThresholds] = {
    "en_de": LanguagePairThresholds(0.9, 1.4, 1.15),
    "en_fr": LanguagePairThresholds(0.9, 1.3, 1.1),
    "en_es": LanguagePairThresholds(0.9, 1.3, 1.1),
    "en_it": LanguagePairThresholds(0.9, 1.3, 1.1),
    "en_pt": LanguagePairThresholds(0.9, 1.3, 1.1),
    "en_nl": LanguagePairThresholds(0.9, 1.3, 1.05),
    "en_ru": LanguagePairThresholds(0.8, 1.3, 1.0),
    "en_ja": LanguagePairThresholds(0.4, 0.9, 0.6),
    "en_zh": LanguagePairThresholds(0.4, 0.8, 0.55),
    "en_ko": LanguagePairThresholds(0.5, 1.0, 0.7),
    "en_ar": LanguagePairThresholds(0.8, 1.4, 1.1),
    "en_hi": LanguagePairThresholds(0.9, 1.5, 1.2),
    "en_pl": LanguagePairThresholds(0.9, 1.4, 1.15),
    "en_tr": LanguagePairThresholds(0.9, 1.4, 1.1),
    "en_vi": LanguagePairThresholds(0.9, 1.5, 1.2),
    "ja_en": LanguagePairThresholds(1.3, 2.5, 1.8),
    "ja_zh": LanguagePairThresholds(0.7, 1.3, 0.95),
    "ja_ko": LanguagePairThresholds(0.8, 1.4, 1.1),
    "zh_en": LanguagePairThresholds(1.5, 3.0, 2.0),
    "zh_ja": LanguagePairThresholds(0.9, 1.4, 1.1),
    "de_en": LanguagePairThresholds(0.7, 1.1, 0.85),
    "de_fr": LanguagePairThresholds(0.85, 1.2, 1.0),
    "fr_en": LanguagePairThresholds(0.75, 1.1, 0.9),
    "es_en": LanguagePairThresholds(0.75, 1.1, 0.9),
    "ko_en": LanguagePairThresholds(1.2, 2.0, 1.5),
}


def pair_key(source_language: str, target_language: str) -> str:
    return f"{source_language.strip().lower()}_{target_language.strip().lower()}"


def get_defaults(source_language: str, target_language: str) -> LanguagePairThresholds:
    """Return the calibrated thresholds for a pair, or generic bounds when unknown."""

    return _PAIR_TABLE.get(pair_key(source_language, target_language), LanguagePairThresholds())


def known_pairs() -> Dict[str, LanguagePairThresholds]:
    return dict(_PAIR_TABLE)


__all__ = ["LanguagePairThresholds", "get_defaults", "known_pairs", "pair_key"]
