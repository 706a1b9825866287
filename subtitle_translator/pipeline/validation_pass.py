"""Validation and auto-repair of translated documents.

Every translated entry is checked independently for length ratio, preserved
formatting tags, glossary consistency, model confidence and an optional
externally supplied semantic-divergence signal. Formatting and glossary
issues can be repaired in place; everything else is reported, and any issue
can be turned into a corrective instruction for a follow-up request.
"""

from __future__ import annotations

import enum
from dataclasses import dataclass, field
from typing import Dict, List, Mapping, Optional, Set

from subtitle_translator import logging_manager as log_mgr
from subtitle_translator.analysis.glossary import ConsistencyIssue, ConsistencyKind, GlossaryEnforcer
from subtitle_translator.document import DocumentEntry, FormattingTag, SubtitleDocument
from subtitle_translator.quality.language_pairs import get_defaults

logger = log_mgr.get_logger().getChild("pipeline.validation")

CRITICAL_SEVERITY = 0.8

_WRAPPING_TAGS: Dict[FormattingTag, tuple[str, str]] = {
    FormattingTag.ITALIC: ("<i>", "</i>"),
    FormattingTag.BOLD: ("<b>", "</b>"),
    FormattingTag.UNDERLINE: ("<u>", "</u>"),
}


@dataclass(frozen=True)
class ValidationConfig:
    max_length_ratio: float = 1.5
    min_length_ratio: float = 0.3
    check_formatting: bool = True
    check_glossary_consistency: bool = True
    enable_auto_repair: bool = True
    min_confidence_threshold: float = 0.5

    @classmethod
    def strict(cls) -> "ValidationConfig":
        return cls(
            max_length_ratio=1.2,
            min_length_ratio=0.5,
            check_formatting=True,
            check_glossary_consistency=True,
            enable_auto_repair=True,
            min_confidence_threshold=0.7,
        )

    @classmethod
    def lenient(cls) -> "ValidationConfig":
        return cls(
            max_length_ratio=2.0,
            min_length_ratio=0.2,
            check_formatting=True,
            check_glossary_consistency=False,
            enable_auto_repair=True,
            min_confidence_threshold=0.3,
        )

    @classmethod
    def for_language_pair(
        cls, source_language: str, target_language: str, **overrides: object
    ) -> "ValidationConfig":
        """Return a config whose length bounds come from the language-pair table."""

        thresholds = get_defaults(source_language, target_language)
        values: Dict[str, object] = {
            "max_length_ratio": thresholds.max_length_ratio,
            "min_length_ratio": thresholds.min_length_ratio,
        }
        values.update(overrides)
        return cls(**values)  # type: ignore[arg-type]


class IssueKind(str, enum.Enum):
    MISSING_TRANSLATION = "missing_translation"
    EMPTY_TRANSLATION = "empty_translation"
    LENGTH_TOO_LONG = "length_too_long"
    LENGTH_TOO_SHORT = "length_too_short"
    MISSING_FORMATTING = "missing_formatting"
    GLOSSARY_INCONSISTENCY = "glossary_inconsistency"
    LOW_CONFIDENCE = "low_confidence"
    SEMANTIC_DIVERGENCE = "semantic_divergence"


@dataclass(frozen=True)
class ValidationIssue:
    """One problem found on one entry; fields beyond ``kind`` depend on the kind."""

    entry_id: int
    kind: IssueKind
    ratio: Optional[float] = None
    bound: Optional[float] = None
    original_length: int = 0
    translated_length: int = 0
    tag: Optional[FormattingTag] = None
    consistency: Optional[ConsistencyIssue] = None
    confidence: Optional[float] = None
    divergence: Optional[float] = None

    @property
    def severity(self) -> float:
        kind = self.kind
        if kind in (IssueKind.MISSING_TRANSLATION, IssueKind.EMPTY_TRANSLATION):
            return 1.0
        if kind is IssueKind.LENGTH_TOO_LONG:
            return min(max((self.ratio or 0.0) - (self.bound or 0.0), 0.3), 1.0)
        if kind is IssueKind.LENGTH_TOO_SHORT:
            return min(max((self.bound or 0.0) - (self.ratio or 0.0), 0.3), 1.0)
        if kind is IssueKind.MISSING_FORMATTING:
            return 0.5
        if kind is IssueKind.GLOSSARY_INCONSISTENCY:
            return 0.4
        if kind is IssueKind.LOW_CONFIDENCE:
            return 1.0 - (self.confidence or 0.0)
        return max(CRITICAL_SEVERITY, min(self.divergence or 0.0, 1.0))

    @property
    def is_repairable(self) -> bool:
        return self.kind in (IssueKind.MISSING_FORMATTING, IssueKind.GLOSSARY_INCONSISTENCY)

    def description(self) -> str:
        entry_id = self.entry_id
        kind = self.kind
        if kind is IssueKind.MISSING_TRANSLATION:
            return f"Entry {entry_id} is missing translation"
        if kind is IssueKind.EMPTY_TRANSLATION:
            return f"Entry {entry_id} has empty translation"
        if kind is IssueKind.LENGTH_TOO_LONG:
            return f"Entry {entry_id} translation too long (ratio: {self.ratio:.2f})"
        if kind is IssueKind.LENGTH_TOO_SHORT:
            return f"Entry {entry_id} translation too short (ratio: {self.ratio:.2f})"
        if kind is IssueKind.MISSING_FORMATTING:
            return f"Entry {entry_id} missing {self.tag.value} formatting"
        if kind is IssueKind.GLOSSARY_INCONSISTENCY:
            return f"Entry {entry_id}: {self.consistency.description()}"
        if kind is IssueKind.LOW_CONFIDENCE:
            return f"Entry {entry_id} has low confidence ({self.confidence:.2f})"
        return f"Entry {entry_id} may diverge from the original meaning ({self.divergence:.2f})"


# ----------------------------------------------------------------------
# Repair bookkeeping
# ----------------------------------------------------------------------
class RepairKind(str, enum.Enum):
    ADDED_FORMATTING = "added_formatting"
    GLOSSARY_CORRECTION = "glossary_correction"
    NO_REPAIR_POSSIBLE = "no_repair_possible"


@dataclass(frozen=True)
class RepairAction:
    entry_id: int
    kind: RepairKind
    tag: Optional[FormattingTag] = None
    before: Optional[str] = None
    after: Optional[str] = None
    reason: Optional[str] = None

    def description(self) -> str:
        if self.kind is RepairKind.ADDED_FORMATTING:
            return f"Added {self.tag.value} formatting to entry {self.entry_id}"
        if self.kind is RepairKind.GLOSSARY_CORRECTION:
            return f"Entry {self.entry_id}: '{self.before}' -> '{self.after}'"
        return f"Entry {self.entry_id}: {self.reason}"


@dataclass(slots=True)
class RepairResult:
    actions: List[RepairAction] = field(default_factory=list)
    unresolved_issues: List[ValidationIssue] = field(default_factory=list)

    @property
    def success(self) -> bool:
        return not self.unresolved_issues

    def add_action(self, action: RepairAction) -> None:
        self.actions.append(action)

    def add_unresolved(self, issue: ValidationIssue) -> None:
        self.unresolved_issues.append(issue)


@dataclass(slots=True)
class ValidationReport:
    issues: List[ValidationIssue] = field(default_factory=list)
    entries_validated: int = 0
    entries_with_issues: int = 0
    quality_score: float = 1.0
    repair_result: Optional[RepairResult] = None

    def calculate_score(self) -> None:
        self.entries_with_issues = len({issue.entry_id for issue in self.issues})
        if self.entries_validated == 0:
            self.quality_score = 1.0
            return
        total = sum(issue.severity for issue in self.issues)
        self.quality_score = max(0.0, 1.0 - total / self.entries_validated)

    def critical_issues(self) -> List[ValidationIssue]:
        return [issue for issue in self.issues if issue.severity >= CRITICAL_SEVERITY]

    def passed(self) -> bool:
        return not self.critical_issues()

    def summary(self) -> str:
        return (
            f"Validated {self.entries_validated} entries: {len(self.issues)} issues found, "
            f"{self.entries_with_issues} entries affected, "
            f"quality score: {self.quality_score * 100:.2f}%"
        )


# ----------------------------------------------------------------------
# Feedback for corrective retries
# ----------------------------------------------------------------------
@dataclass(frozen=True)
class FeedbackInstruction:
    entry_id: int
    kind: IssueKind
    instruction: str

    def as_prompt_line(self) -> str:
        return f"Entry {self.entry_id}: {self.instruction}"


def feedback_instruction(issue: ValidationIssue, document: SubtitleDocument) -> FeedbackInstruction:
    """Describe how a follow-up request should fix ``issue``."""

    kind = issue.kind
    if kind is IssueKind.MISSING_TRANSLATION:
        text = "The entry was not translated; provide a complete translation."
    elif kind is IssueKind.EMPTY_TRANSLATION:
        text = "The translation is empty; translate the full line."
    elif kind is IssueKind.LENGTH_TOO_LONG:
        longer = round(((issue.ratio or 0.0) - 1.0) * 100)
        limit = round((issue.bound or 0.0) * 100)
        text = (
            f"Translation is {longer}% longer than the original; "
            f"shorten it to under {limit}% of the original length."
        )
    elif kind is IssueKind.LENGTH_TOO_SHORT:
        share = round((issue.ratio or 0.0) * 100)
        floor = round((issue.bound or 0.0) * 100)
        text = (
            f"Translation is only {share}% of the original length; "
            f"restore the omitted content so it reaches at least {floor}%."
        )
    elif kind is IssueKind.MISSING_FORMATTING:
        entry = document.get_entry(issue.entry_id)
        markup = _markup_hint(issue.tag, entry)
        text = f"Keep the {issue.tag.value} formatting of the original{markup}."
    elif kind is IssueKind.GLOSSARY_INCONSISTENCY:
        consistency = issue.consistency
        if consistency.kind is ConsistencyKind.MISSING_NAME:
            text = f"Keep the character name '{consistency.source}' unchanged in the translation."
        else:
            text = f"Translate '{consistency.source}' as '{consistency.expected}'."
    elif kind is IssueKind.LOW_CONFIDENCE:
        text = (
            f"Confidence was {issue.confidence:.2f}; re-check the meaning against "
            "the original and translate it again."
        )
    else:
        text = "The translation may not preserve the original meaning; translate it again faithfully."
    return FeedbackInstruction(entry_id=issue.entry_id, kind=kind, instruction=text)


def _markup_hint(tag: Optional[FormattingTag], entry: Optional[DocumentEntry]) -> str:
    if tag in _WRAPPING_TAGS:
        opening, closing = _WRAPPING_TAGS[tag]
        return f" ({opening}...{closing})"
    if tag is FormattingTag.POSITION and entry is not None:
        position_tag = _position_tag(entry.original_text)
        if position_tag:
            return f" ({position_tag})"
    return ""


def build_feedback(report: ValidationReport, document: SubtitleDocument) -> List[FeedbackInstruction]:
    return [feedback_instruction(issue, document) for issue in report.issues]


def format_feedback(instructions: List[FeedbackInstruction]) -> str:
    """Join feedback lines into a custom instruction block for a retry request."""

    return "\n".join(instruction.as_prompt_line() for instruction in instructions)


# ----------------------------------------------------------------------
# Pass
# ----------------------------------------------------------------------
def _position_tag(text: str) -> Optional[str]:
    start = text.find("{\\an")
    if start == -1:
        return None
    end = text.find("}", start)
    if end == -1:
        return None
    return text[start : end + 1]


class ValidationPass:
    """Check every entry of a document and optionally repair what can be repaired."""

    def __init__(self, config: Optional[ValidationConfig] = None) -> None:
        self.config = config or ValidationConfig()

    def validate(
        self,
        document: SubtitleDocument,
        semantic_signals: Optional[Mapping[int, float]] = None,
    ) -> ValidationReport:
        report = ValidationReport(entries_validated=len(document.entries))
        enforcer = GlossaryEnforcer(document.glossary)
        signals = semantic_signals or {}
        for entry in document.entries:
            report.issues.extend(self._validate_entry(entry, enforcer, signals.get(entry.id)))
        report.calculate_score()
        return report

    def validate_and_repair(
        self,
        document: SubtitleDocument,
        semantic_signals: Optional[Mapping[int, float]] = None,
    ) -> ValidationReport:
        report = self.validate(document, semantic_signals)
        if not self.config.enable_auto_repair or not report.issues:
            return report

        repair_result = self.auto_repair(document, report.issues)
        revalidated = self.validate(document, semantic_signals)
        revalidated.repair_result = repair_result
        logger.info(
            "Auto-repair applied %d actions, %d issues unresolved",
            len(repair_result.actions),
            len(repair_result.unresolved_issues),
            extra={
                "event": "pipeline.validation.repaired",
                "attributes": {
                    "issues_before": len(report.issues),
                    "issues_after": len(revalidated.issues),
                },
            },
        )
        return revalidated

    # ------------------------------------------------------------------
    # Checks
    # ------------------------------------------------------------------
    def _validate_entry(
        self,
        entry: DocumentEntry,
        enforcer: GlossaryEnforcer,
        divergence: Optional[float],
    ) -> List[ValidationIssue]:
        translated = entry.translated_text
        original = entry.original_text
        if translated is None:
            return [ValidationIssue(entry.id, IssueKind.MISSING_TRANSLATION)]
        if not translated.strip() and original.strip():
            return [ValidationIssue(entry.id, IssueKind.EMPTY_TRANSLATION)]

        issues: List[ValidationIssue] = []
        if original:
            ratio = len(translated) / len(original)
            lengths = {"original_length": len(original), "translated_length": len(translated)}
            if ratio > self.config.max_length_ratio:
                issues.append(
                    ValidationIssue(
                        entry.id,
                        IssueKind.LENGTH_TOO_LONG,
                        ratio=ratio,
                        bound=self.config.max_length_ratio,
                        **lengths,
                    )
                )
            elif ratio < self.config.min_length_ratio:
                issues.append(
                    ValidationIssue(
                        entry.id,
                        IssueKind.LENGTH_TOO_SHORT,
                        ratio=ratio,
                        bound=self.config.min_length_ratio,
                        **lengths,
                    )
                )

        if self.config.check_formatting:
            for tag in entry.formatting:
                if not tag.is_present(translated):
                    issues.append(ValidationIssue(entry.id, IssueKind.MISSING_FORMATTING, tag=tag))

        if self.config.check_glossary_consistency:
            for consistency in enforcer.check_consistency(original, translated):
                issues.append(
                    ValidationIssue(
                        entry.id, IssueKind.GLOSSARY_INCONSISTENCY, consistency=consistency
                    )
                )

        if entry.confidence is not None and entry.confidence < self.config.min_confidence_threshold:
            issues.append(
                ValidationIssue(entry.id, IssueKind.LOW_CONFIDENCE, confidence=entry.confidence)
            )

        if divergence is not None:
            issues.append(
                ValidationIssue(entry.id, IssueKind.SEMANTIC_DIVERGENCE, divergence=divergence)
            )
        return issues

    # ------------------------------------------------------------------
    # Repair
    # ------------------------------------------------------------------
    def auto_repair(
        self, document: SubtitleDocument, issues: List[ValidationIssue]
    ) -> RepairResult:
        result = RepairResult()
        enforcer = GlossaryEnforcer(document.glossary)
        glossary_repaired: Set[int] = set()

        for issue in issues:
            entry = document.get_entry(issue.entry_id)
            if entry is None or entry.translated_text is None or not issue.is_repairable:
                result.add_unresolved(issue)
                continue

            current = entry.translated_text
            if issue.kind is IssueKind.MISSING_FORMATTING:
                repaired = self.repair_formatting(current, issue.tag, entry.original_text)
                if repaired != current:
                    entry.set_translation(repaired, entry.confidence)
                    result.add_action(
                        RepairAction(entry.id, RepairKind.ADDED_FORMATTING, tag=issue.tag)
                    )
                else:
                    result.add_action(
                        RepairAction(
                            entry.id,
                            RepairKind.NO_REPAIR_POSSIBLE,
                            tag=issue.tag,
                            reason="Could not determine formatting placement",
                        )
                    )
                continue

            if entry.id in glossary_repaired:
                continue
            glossary_repaired.add(entry.id)
            repaired = enforcer.enforce(entry.original_text, current)
            if repaired != current:
                entry.set_translation(repaired, entry.confidence)
                result.add_action(
                    RepairAction(
                        entry.id, RepairKind.GLOSSARY_CORRECTION, before=current, after=repaired
                    )
                )
            else:
                result.add_action(
                    RepairAction(
                        entry.id,
                        RepairKind.NO_REPAIR_POSSIBLE,
                        reason="No untranslated glossary term to substitute",
                    )
                )
        return result

    @staticmethod
    def repair_formatting(translated: str, tag: FormattingTag, original: str) -> str:
        """Restore ``tag`` only where its placement is unambiguous; colour is never guessed."""

        if tag in _WRAPPING_TAGS:
            opening, closing = _WRAPPING_TAGS[tag]
            if original.startswith(opening) and original.endswith(closing):
                return f"{opening}{translated}{closing}"
            return translated
        if tag is FormattingTag.POSITION:
            position_tag = _position_tag(original)
            if position_tag and position_tag not in translated:
                return f"{position_tag}{translated}"
        return translated


__all__ = [
    "CRITICAL_SEVERITY",
    "FeedbackInstruction",
    "IssueKind",
    "RepairAction",
    "RepairKind",
    "RepairResult",
    "ValidationConfig",
    "ValidationIssue",
    "ValidationPass",
    "ValidationReport",
    "build_feedback",
    "feedback_instruction",
    "format_feedback",
]
