"""Cross-entry terminology memory shared by the translation passes."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, Optional, Set


@dataclass(frozen=True)
class GlossaryTerm:
    """A source term with its required rendering in the target language."""

    source: str
    target: str
    context: Optional[str] = None


@dataclass(slots=True)
class Glossary:
    """Character names, mapped terms and technical vocabulary for a document.

    Character names are never translated. ``merge`` is a map union in which the
    incoming glossary wins on key collisions.
    """

    terms: Dict[str, GlossaryTerm] = field(default_factory=dict)
    character_names: Set[str] = field(default_factory=set)
    technical_terms: Dict[str, str] = field(default_factory=dict)

    def add_term(self, source: str, target: str, context: Optional[str] = None) -> None:
        self.terms[source] = GlossaryTerm(source=source, target=target, context=context)

    def add_character(self, name: str) -> None:
        self.character_names.add(name)

    def add_technical_term(self, source: str, target: str) -> None:
        self.technical_terms[source] = target

    def has_term(self, source: str) -> bool:
        return source in self.terms or source in self.technical_terms

    def get_translation(self, source: str) -> Optional[str]:
        """Return the mapped target for ``source``, checking terms before technical terms."""

        term = self.terms.get(source)
        if term is not None:
            return term.target
        return self.technical_terms.get(source)

    def is_character_name(self, name: str) -> bool:
        return name in self.character_names

    def merge(self, other: "Glossary") -> None:
        self.terms.update(other.terms)
        self.character_names.update(other.character_names)
        self.technical_terms.update(other.technical_terms)

    def is_empty(self) -> bool:
        return not (self.terms or self.character_names or self.technical_terms)

    def copy(self) -> "Glossary":
        return Glossary(
            terms=dict(self.terms),
            character_names=set(self.character_names),
            technical_terms=dict(self.technical_terms),
        )

    def to_dict(self) -> Dict[str, object]:
        return {
            "character_names": sorted(self.character_names),
            "terms": {
                source: {"target": term.target, "context": term.context}
                for source, term in sorted(self.terms.items())
            },
            "technical_terms": dict(sorted(self.technical_terms.items())),
        }


__all__ = ["Glossary", "GlossaryTerm"]
