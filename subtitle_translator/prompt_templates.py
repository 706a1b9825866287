"""Prompt templates and JSON schemas used for communicating with the LLM."""

from __future__ import annotations

from typing import Dict, List, Optional

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator

from subtitle_translator import config_manager as cfg
from subtitle_translator.context import ContextWindow
from subtitle_translator.document import Glossary

SUBTITLE_TRANSLATOR_TEMPLATE = """You are an expert subtitle translator specializing in {source_language} to {target_language} translation.

## Your Role
- Translate dialogue naturally while preserving meaning and emotion
- Maintain consistency with provided terminology/glossary
- Preserve formatting tags, sound effects, and speaker indicators
- Keep translations concise (subtitles have limited display time)

## Context Understanding
- Review the history summary to understand the narrative flow
- Reference recent translations for style and terminology consistency
- Use lookahead entries to anticipate context when helpful
- Follow the glossary strictly for names and key terms

## Output Requirements
- Return ONLY valid JSON matching the requested schema
- Include a confidence score (0.0-1.0) for each translation
- Do not include any text outside the JSON structure

## Quality Standards
- Natural, idiomatic {target_language}
- Appropriate register (formal/informal) based on dialogue context
- Length should be similar to original (within 120% where possible)
- Preserve [sound effects] and (parentheticals) exactly as formatted
- Never translate character names unless specifically instructed"""

RESPONSE_SCHEMA_HINT = (
    'Respond with JSON of the form {"translations": [{"id": <id>, '
    '"translated": "<text>", "confidence": <0.0-1.0>}], '
    '"notes": {"glossary_updates": {"<source>": "<target>"}, "scene_context": "<optional>"}}'
)

MAX_LENGTH_RATIO = 1.2


class PromptTemplate:
    """A system prompt with ``{source_language}``/``{target_language}`` placeholders."""

    def __init__(self, template: str = SUBTITLE_TRANSLATOR_TEMPLATE) -> None:
        self.template = template

    def render(self, source_language: str, target_language: str) -> str:
        return self.template.replace("{source_language}", source_language).replace(
            "{target_language}", target_language
        )


def build_system_prompt(source_language: str, target_language: str) -> str:
    return PromptTemplate().render(source_language, target_language)


# ----------------------------------------------------------------------
# Request schema
# ----------------------------------------------------------------------
class RecentTranslation(BaseModel):
    id: int
    original: str
    translated: str


class LookaheadEntry(BaseModel):
    id: int
    text: str


class GlossaryContext(BaseModel):
    character_names: List[str] = Field(default_factory=list)
    terms: Dict[str, str] = Field(default_factory=dict)

    @classmethod
    def from_glossary(cls, glossary: Glossary) -> Optional["GlossaryContext"]:
        if glossary.is_empty():
            return None
        terms = dict(sorted(glossary.technical_terms.items()))
        terms.update({source: term.target for source, term in sorted(glossary.terms.items())})
        return cls(character_names=sorted(glossary.character_names), terms=terms)


class ContextData(BaseModel):
    history_summary: Optional[str] = None
    recent_translations: Optional[List[RecentTranslation]] = None
    lookahead: Optional[List[LookaheadEntry]] = None
    glossary: Optional[GlossaryContext] = None


class EntryToTranslate(BaseModel):
    id: int
    text: str
    timecode: str


class TranslationInstructions(BaseModel):
    preserve_formatting: bool = True
    preserve_sound_effects: bool = True
    max_length_ratio: float = MAX_LENGTH_RATIO
    custom: Optional[str] = None


class TranslationRequest(BaseModel):
    """Structured user message for one context window."""

    task: str = "translate_subtitles"
    source_language: str
    target_language: str
    context: ContextData = Field(default_factory=ContextData)
    entries_to_translate: List[EntryToTranslate] = Field(default_factory=list)
    instructions: TranslationInstructions = Field(default_factory=TranslationInstructions)

    @classmethod
    def from_window(
        cls, window: ContextWindow, custom_instructions: Optional[str] = None
    ) -> "TranslationRequest":
        context = ContextData(
            history_summary=window.history_summary or None,
            recent_translations=[
                RecentTranslation(id=item.id, original=item.original, translated=item.translated)
                for item in window.recent_entries
            ]
            or None,
            lookahead=[LookaheadEntry(id=item.id, text=item.text) for item in window.lookahead]
            or None,
            glossary=GlossaryContext.from_glossary(window.glossary),
        )
        return cls(
            source_language=window.source_language,
            target_language=window.target_language,
            context=context,
            entries_to_translate=[
                EntryToTranslate(id=item.id, text=item.text, timecode=item.timecode)
                for item in window.current_batch
            ],
            instructions=TranslationInstructions(custom=custom_instructions),
        )

    def to_json(self) -> str:
        return self.model_dump_json(exclude_none=True, indent=2)


# ----------------------------------------------------------------------
# Response schema
# ----------------------------------------------------------------------
class TranslatedEntry(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    id: int
    translated: str = Field(validation_alias=AliasChoices("translated", "translated_text"))
    confidence: Optional[float] = None

    @field_validator("confidence")
    @classmethod
    def _clamp_confidence(cls, value: Optional[float]) -> Optional[float]:
        if value is None:
            return None
        return min(max(value, 0.0), 1.0)


class ResponseNotes(BaseModel):
    model_config = ConfigDict(extra="ignore")

    glossary_updates: Dict[str, str] = Field(default_factory=dict)
    scene_context: Optional[str] = None


class TranslationResponse(BaseModel):
    model_config = ConfigDict(extra="ignore")

    translations: List[TranslatedEntry] = Field(default_factory=list)
    notes: Optional[ResponseNotes] = None


def build_user_prompt(window: ContextWindow, custom_instructions: Optional[str] = None) -> str:
    """Return the JSON user message for ``window``."""

    request = TranslationRequest.from_window(window, custom_instructions)
    return f"{request.to_json()}\n\n{RESPONSE_SCHEMA_HINT}"


def make_chat_payload(
    user_prompt: str,
    *,
    model: Optional[str] = None,
    stream: bool = False,
    system_prompt: Optional[str] = None,
    additional_messages: Optional[List[Dict[str, str]]] = None,
) -> Dict[str, object]:
    """Build a chat payload using the configured defaults."""

    if model is None:
        model = cfg.DEFAULT_MODEL

    messages: List[Dict[str, str]] = []
    if system_prompt:
        messages.append({"role": "system", "content": system_prompt})
    if additional_messages:
        messages.extend(additional_messages)
    messages.append({"role": "user", "content": user_prompt})

    return {"model": model, "messages": messages, "stream": stream, "format": "json"}


__all__ = [
    "ContextData",
    "EntryToTranslate",
    "GlossaryContext",
    "LookaheadEntry",
    "MAX_LENGTH_RATIO",
    "PromptTemplate",
    "RecentTranslation",
    "ResponseNotes",
    "SUBTITLE_TRANSLATOR_TEMPLATE",
    "TranslatedEntry",
    "TranslationInstructions",
    "TranslationRequest",
    "TranslationResponse",
    "build_system_prompt",
    "build_user_prompt",
    "make_chat_payload",
]
