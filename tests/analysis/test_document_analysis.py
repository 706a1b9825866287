"""Unit tests for glossary extraction, scene detection, speakers and summaries."""

from __future__ import annotations

import pytest

from subtitle_translator.analysis import (
    ConsistencyKind,
    ExtractionConfig,
    GlossaryEnforcer,
    GlossaryExtractor,
    HistorySummarizer,
    HistorySummary,
    SceneDetectionConfig,
    SceneDetector,
    SpeakerConfig,
    SpeakerTracker,
    SummarizationConfig,
)
from subtitle_translator.analysis.speakers import extract_speaker, looks_like_dialogue
from subtitle_translator.document import Glossary

pytestmark = pytest.mark.analysis


class TestGlossaryExtractor:
    """Tests for GlossaryExtractor.extract."""

    def test_recurring_names_become_characters(self, make_document):
        document = make_document(
            ["Alice, come here.", "Where is Alice?", "Bob left early.", "The door is open."]
        )
        glossary = GlossaryExtractor().extract(document.entries)
        assert glossary.character_names == {"Alice"}

    def test_excluded_words_are_skipped(self, make_document):
        document = make_document(["The end.", "The start."])
        assert GlossaryExtractor().extract(document.entries).is_empty()

    def test_quoted_phrases_become_terms(self, make_document):
        document = make_document(['We call it "the Vault".', 'Open "the Vault" now.'])
        glossary = GlossaryExtractor().extract(document.entries)
        assert glossary.has_term("the Vault")

    def test_minimal_config_ignores_quotes(self, make_document):
        document = make_document(['"x-ray"', '"x-ray"', '"x-ray"'])
        glossary = GlossaryExtractor(ExtractionConfig.minimal()).extract(document.entries)
        assert not glossary.terms

    def test_extract_and_update_merges_into_document(self, make_document):
        document = make_document(["Alice runs.", "Alice stops."])
        document.glossary.add_character("Bob")
        GlossaryExtractor().extract_and_update(document)
        assert document.glossary.character_names == {"Alice", "Bob"}


class TestGlossaryEnforcer:
    """Tests for consistency checks and term enforcement."""

    def _glossary(self) -> Glossary:
        glossary = Glossary()
        glossary.add_character("Alice")
        glossary.add_term("spaceship", "vaisseau")
        return glossary

    def test_missing_name_reported(self):
        issues = GlossaryEnforcer(self._glossary()).check_consistency("Alice waits.", "Elle attend.")
        assert [issue.kind for issue in issues] == [ConsistencyKind.MISSING_NAME]

    def test_inconsistent_term_reported(self):
        issues = GlossaryEnforcer(self._glossary()).check_consistency(
            "The spaceship lands.", "Le navire atterrit."
        )
        assert issues[0].kind is ConsistencyKind.INCONSISTENT_TERM
        assert issues[0].expected == "vaisseau"

    def test_enforce_replaces_untranslated_source_term(self):
        repaired = GlossaryEnforcer(self._glossary()).enforce(
            "The spaceship lands.", "Le spaceship atterrit."
        )
        assert repaired == "Le vaisseau atterrit."

    def test_character_names_are_never_mapped(self):
        glossary = self._glossary()
        glossary.add_term("Alice", "Alicia")
        glossary.add_technical_term("Alice", "Alicia")
        enforcer = GlossaryEnforcer(glossary)

        assert [source for source, _target in enforcer.mapped_terms()] == ["spaceship"]
        assert enforcer.check_consistency("Alice waits.", "Alice attend.") == []
        assert enforcer.enforce("Alice waits.", "Alice attend.") == "Alice attend."


class TestSceneDetector:
    """Tests for SceneDetector.detect_scenes."""

    def test_gap_splits_scenes(self, make_document):
        document = make_document(["a", "b", "c", "d", "e"], gaps=[100, 100, 5000, 100])
        scenes = SceneDetector().detect_scenes(document.entries)
        assert len(scenes) == 2
        assert (scenes[0].start_entry_id, scenes[0].end_entry_id) == (1, 3)
        assert (scenes[1].start_entry_id, scenes[1].end_entry_id) == (4, 5)

    def test_scenes_cover_every_entry_once(self, make_document):
        document = make_document([str(index) for index in range(12)])
        config = SceneDetectionConfig(max_entries_per_scene=5)
        scenes = SceneDetector(config).detect_scenes(document.entries)
        covered = [entry_id for scene in scenes for entry_id in range(scene.start_entry_id, scene.end_entry_id + 1)]
        assert covered == list(range(1, 13))
        assert all(scene.entry_count <= 5 for scene in scenes)

    def test_speaker_change_splits_with_mapping(self, make_document):
        document = make_document(["a", "b", "c"], gaps=[100, 100])
        scenes = SceneDetector().detect_scenes(document.entries, {1: "ALICE", 2: "ALICE", 3: "BOB"})
        assert len(scenes) == 2
        assert all(entry.speaker is None for entry in document.entries)

    def test_empty_input(self):
        assert SceneDetector().detect_scenes([]) == []

    def test_detect_and_update_assigns_scene_ids(self, make_document):
        document = make_document(["a", "b", "c"], gaps=[100, 4000])
        SceneDetector().detect_and_update(document)
        assert [entry.scene_id for entry in document.entries] == [1, 1, 2]

    def test_find_largest_gaps(self, make_document):
        document = make_document(["a", "b", "c", "d"], gaps=[100, 9000, 300])
        assert SceneDetector().find_largest_gaps(document.entries, 1) == [(3, 9000)]

    @pytest.mark.parametrize("lower, higher", [(500, 1000), (1000, 3000), (3000, 8000), (100, 20000)])
    def test_raising_gap_threshold_never_adds_scenes(self, make_document, lower, higher):
        gaps = [200, 4000, 700, 1200, 9000, 300, 2500, 600, 5000]
        document = make_document([f"line {index}" for index in range(10)], gaps=gaps)

        def scene_count(min_gap_ms: int) -> int:
            config = SceneDetectionConfig(min_gap_ms=min_gap_ms)
            return len(SceneDetector(config).detect_scenes(document.entries))

        assert scene_count(higher) <= scene_count(lower)

    def test_config_presets(self):
        short = SceneDetectionConfig.short_form()
        assert (short.min_gap_ms, short.max_entries_per_scene) == (5000, 100)
        assert not short.detect_speaker_changes
        detailed = SceneDetectionConfig.detailed()
        assert (detailed.min_gap_ms, detailed.max_entries_per_scene) == (2000, 30)
        assert detailed.detect_speaker_changes


class TestSpeakerTracker:
    """Tests for speaker label detection."""

    def test_extract_speaker(self):
        assert extract_speaker("JOHN: Hello") == "JOHN"
        assert extract_speaker("[Mary]: Hi") == "Mary"
        assert extract_speaker("no label here") is None

    def test_detect_speakers_does_not_modify_entries(self, make_document):
        document = make_document(["JOHN: Hi", "JOHN: Bye", "MARY: Hello"])
        assigned, stats = SpeakerTracker().detect_speakers(document.entries)
        assert assigned == {1: "JOHN", 2: "JOHN"}
        assert stats.unique_speakers == 1
        assert all(entry.speaker is None for entry in document.entries)

    def test_detect_and_update_writes_speakers(self, make_document):
        document = make_document(["JOHN: Hi", "JOHN: Bye"])
        SpeakerTracker().detect_and_update(document)
        assert [entry.speaker for entry in document.entries] == ["JOHN", "JOHN"]

    def test_implicit_continuation(self, make_document):
        document = make_document(["JOHN: Hi", "and another thing", "[door closes]"])
        assigned, stats = SpeakerTracker(SpeakerConfig.lenient()).detect_speakers(document.entries)
        assert assigned == {1: "JOHN", 2: "JOHN"}
        assert stats.sound_effects_found == 1

    def test_caption_is_not_dialogue(self):
        assert not looks_like_dialogue("END")
        assert looks_like_dialogue("Where are you going?")

    def test_extract_speaker_names_requires_recurrence(self, make_document):
        document = make_document(["MARY: Hi", "JOHN: Hello", "MARY: Bye", "JOHN: Later", "TOM: Once"])
        assert SpeakerTracker().extract_speaker_names(document.entries) == ["JOHN", "MARY"]
        assert SpeakerTracker(SpeakerConfig.lenient()).extract_speaker_names(document.entries) == [
            "JOHN",
            "MARY",
            "TOM",
        ]

    def test_get_speakers_groups_in_first_appearance_order(self, make_document):
        document = make_document(["MARY: Hi", "JOHN: Hello", "MARY: Bye", "JOHN: Later"])
        tracker = SpeakerTracker()
        tracker.detect_and_update(document)
        speakers = tracker.get_speakers(document.entries)
        assert [(speaker.name, speaker.entry_ids) for speaker in speakers] == [
            ("MARY", [1, 3]),
            ("JOHN", [2, 4]),
        ]
        assert speakers[0].occurrence_count == 2


class TestHistorySummarizer:
    """Tests for the extractive summarizer."""

    def test_summary_mentions_recurring_names(self, make_document):
        document = make_document(["Alice is here.", "Alice left.", "Tom stayed."])
        summary = HistorySummarizer().summarize_extractive(document.entries)
        assert summary.text.startswith("Characters: Alice")
        assert summary.entry_count == 3
        assert summary.end_entry_id == 3

    def test_summary_respects_limit(self, make_document):
        document = make_document(["word " * 40 for _ in range(10)])
        summarizer = HistorySummarizer(SummarizationConfig(max_summary_chars=80))
        assert len(summarizer.summarize_history(document.entries).text) <= 80

    def test_empty_history(self):
        assert HistorySummarizer().summarize_history([]).text == ""

    def test_long_history_is_chunked(self, make_document):
        document = make_document([f"line {index}" for index in range(120)])
        summary = HistorySummarizer().summarize_history(document.entries)
        assert summary.entry_count == 120
        assert summary.start_entry_id == 1

    def test_summarization_prompt_lists_dialogue(self, make_document):
        document = make_document(["Alice is here.", "Tom stayed."])
        prompt = HistorySummarizer().build_summarization_prompt(document.entries)
        assert prompt.startswith("Summarize the following dialogue")
        assert "Alice is here.\nTom stayed.\n" in prompt
        assert prompt.endswith("Summary:")

    def test_combine_summaries_spans_all_parts(self):
        combined = HistorySummarizer().combine_summaries(
            [HistorySummary("First part.", 1, 50, 50), HistorySummary("Second part.", 51, 80, 30)]
        )
        assert combined.text == "First part. Second part."
        assert (combined.start_entry_id, combined.end_entry_id) == (1, 80)
        assert combined.entry_count == 80
        assert HistorySummarizer().combine_summaries([]).text == ""
