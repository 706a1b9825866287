"""Glossary extraction from source text and enforcement on translations."""

from __future__ import annotations

import enum
from collections import Counter
from dataclasses import dataclass, field
from typing import FrozenSet, Iterator, List, Sequence, Tuple

import regex

from subtitle_translator import logging_manager as log_mgr
from subtitle_translator.document import DocumentEntry, Glossary, SubtitleDocument

logger = log_mgr.get_logger().getChild("analysis.glossary")

NAME_PATTERN = regex.compile(r"\b([A-Z][a-z]+(?:\s+[A-Z][a-z]+)?)\b")
QUOTED_PATTERN = regex.compile(r'"([^"]+)"')

DEFAULT_EXCLUDE_WORDS: FrozenSet[str] = frozenset(
    {
        "I", "The", "A", "An", "This", "That", "These", "Those", "It", "He",
        "She", "They", "We", "You", "My", "Your", "His", "Her", "Our", "Their",
        "What", "Who", "Where", "When", "Why", "How", "Yes", "No", "Oh", "Ah",
        "Hey", "Well", "Now", "Then", "Here", "There", "Please", "Thank",
        "Thanks", "Sorry", "Hello", "Hi", "Goodbye", "Bye", "Mr", "Mrs", "Ms",
        "Dr", "Sir", "Ma'am", "OK", "Okay",
    }
)

_COMMON_ADVERBS: FrozenSet[str] = frozenset(
    {
        "just", "really", "actually", "probably", "definitely", "certainly",
        "maybe", "perhaps", "finally", "suddenly", "quickly", "slowly",
    }
)


@dataclass(frozen=True)
class ExtractionConfig:
    min_occurrences: int = 2
    extract_names: bool = True
    extract_quoted_terms: bool = True
    exclude_words: FrozenSet[str] = field(default=DEFAULT_EXCLUDE_WORDS)

    @classmethod
    def minimal(cls) -> "ExtractionConfig":
        return cls(min_occurrences=3, extract_names=True, extract_quoted_terms=False)

    @classmethod
    def aggressive(cls) -> "ExtractionConfig":
        return cls(min_occurrences=1, exclude_words=frozenset())


class GlossaryExtractor:
    """Collect recurring capitalized names and quoted phrases into a :class:`Glossary`."""

    def __init__(self, config: ExtractionConfig | None = None) -> None:
        self.config = config or ExtractionConfig()

    def _is_common_word(self, word: str) -> bool:
        if len(word) <= 2:
            return True
        return word.lower() in _COMMON_ADVERBS

    def extract(self, entries: Sequence[DocumentEntry]) -> Glossary:
        names: Counter[str] = Counter()
        phrases: Counter[str] = Counter()

        for entry in entries:
            text = entry.original_text
            if self.config.extract_names:
                for match in NAME_PATTERN.finditer(text):
                    candidate = match.group(1)
                    if candidate in self.config.exclude_words or self._is_common_word(candidate):
                        continue
                    names[candidate] += 1
            if self.config.extract_quoted_terms:
                for match in QUOTED_PATTERN.finditer(text):
                    phrase = match.group(1)
                    if len(phrase) >= 2:
                        phrases[phrase] += 1

        glossary = Glossary()
        for name, count in names.items():
            if count >= self.config.min_occurrences:
                glossary.add_character(name)
        for phrase, count in phrases.items():
            if count >= self.config.min_occurrences:
                glossary.add_term(phrase, phrase, "quoted phrase")
        return glossary

    def extract_and_update(self, document: SubtitleDocument) -> Glossary:
        extracted = self.extract(document.entries)
        document.glossary.merge(extracted)
        logger.debug(
            "Extracted %d names and %d terms",
            len(extracted.character_names),
            len(extracted.terms),
            extra={"event": "analysis.glossary.extracted"},
        )
        return extracted


class ConsistencyKind(str, enum.Enum):
    MISSING_NAME = "missing_name"
    INCONSISTENT_TERM = "inconsistent_term"


@dataclass(frozen=True)
class ConsistencyIssue:
    """A glossary rule broken by one translation."""

    kind: ConsistencyKind
    source: str
    expected: str
    translated: str

    def description(self) -> str:
        if self.kind is ConsistencyKind.MISSING_NAME:
            return f"Character name '{self.source}' is missing from translation"
        return f"Term '{self.source}' should be translated as '{self.expected}' for consistency"


class GlossaryEnforcer:
    """Check and apply glossary rules on a single original/translation pair."""

    def __init__(self, glossary: Glossary) -> None:
        self.glossary = glossary

    def mapped_terms(self) -> Iterator[Tuple[str, str]]:
        """Yield (source, target) pairs; character names are never mapped."""

        names = self.glossary.character_names
        for source in sorted(self.glossary.terms):
            if source not in names:
                yield source, self.glossary.terms[source].target
        for source in sorted(self.glossary.technical_terms):
            if source not in self.glossary.terms and source not in names:
                yield source, self.glossary.technical_terms[source]

    def check_consistency(self, original: str, translated: str) -> List[ConsistencyIssue]:
        issues: List[ConsistencyIssue] = []
        for name in sorted(self.glossary.character_names):
            if name in original and name not in translated:
                issues.append(
                    ConsistencyIssue(ConsistencyKind.MISSING_NAME, name, name, translated)
                )
        for source, target in self.mapped_terms():
            if source in original and target not in translated:
                issues.append(
                    ConsistencyIssue(ConsistencyKind.INCONSISTENT_TERM, source, target, translated)
                )
        return issues

    def enforce(self, original: str, translated: str) -> str:
        """Replace source terms left untranslated in ``translated`` with their targets."""

        result = translated
        for source, target in self.mapped_terms():
            if source in original and source in result:
                result = result.replace(source, target)
        return result


__all__ = [
    "ConsistencyIssue",
    "ConsistencyKind",
    "DEFAULT_EXCLUDE_WORDS",
    "ExtractionConfig",
    "GlossaryEnforcer",
    "GlossaryExtractor",
]
