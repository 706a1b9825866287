"""Unit tests for the subtitle document model."""

from __future__ import annotations

import pytest

from subtitle_translator.document import (
    DocumentEntry,
    FormattingTag,
    Glossary,
    Scene,
    SubtitleDocument,
    Timecode,
    detect_formatting,
    parse_srt_timestamp,
)

pytestmark = pytest.mark.document


class TestTimecode:
    """Tests for Timecode construction and formatting."""

    def test_duration(self):
        assert Timecode(1000, 3500).duration_ms == 2500

    def test_zero_length_span_rejected(self):
        with pytest.raises(ValueError):
            Timecode(1000, 1000)

    def test_reversed_span_rejected(self):
        with pytest.raises(ValueError):
            Timecode(2000, 1000)

    def test_format_srt(self):
        assert Timecode(3_723_004, 3_725_000).format_srt() == "01:02:03,004 --> 01:02:05,000"

    def test_parse_srt_timestamp_accepts_both_separators(self):
        assert parse_srt_timestamp("00:01:02,500") == 62_500
        assert parse_srt_timestamp("00:01:02.500") == 62_500

    def test_parse_srt_timestamp_rejects_garbage(self):
        with pytest.raises(ValueError):
            parse_srt_timestamp("1:2")


class TestDocumentEntry:
    """Tests for DocumentEntry state and read-only fields."""

    def _entry(self, text: str = "Hello") -> DocumentEntry:
        return DocumentEntry(id=1, timecode=Timecode(0, 1000), original_text=text)

    def test_timecode_is_read_only(self):
        entry = self._entry()
        with pytest.raises(AttributeError):
            entry.timecode = Timecode(5, 10)

    def test_original_text_is_read_only(self):
        entry = self._entry()
        with pytest.raises(AttributeError):
            entry.original_text = "changed"

    def test_set_translation_keeps_timecode(self):
        entry = self._entry()
        entry.set_translation("Bonjour", 0.9)
        entry.set_translation("Salut", 0.8)
        assert entry.translated_text == "Salut"
        assert entry.confidence == 0.8
        assert entry.timecode == Timecode(0, 1000)

    def test_output_text_falls_back_to_original(self):
        entry = self._entry()
        assert not entry.is_translated
        assert entry.output_text == "Hello"
        entry.set_translation("Bonjour")
        assert entry.output_text == "Bonjour"

    @pytest.mark.parametrize("text", ["[door slams]", "(laughs)", "  [music]  "])
    def test_sound_effects(self, text):
        assert self._entry(text).is_sound_effect

    def test_dialogue_is_not_sound_effect(self):
        assert not self._entry("[note] Hello there").is_sound_effect

    def test_to_dict(self):
        entry = DocumentEntry(
            id=4,
            timecode=Timecode(0, 1000),
            original_text="<i>Hello</i>",
            formatting=(FormattingTag.ITALIC,),
        )
        entry.set_translation("<i>Bonjour</i>", 0.75)
        assert entry.to_dict() == {
            "id": 4,
            "start_ms": 0,
            "end_ms": 1000,
            "original_text": "<i>Hello</i>",
            "translated_text": "<i>Bonjour</i>",
            "speaker": None,
            "scene_id": None,
            "formatting": ["italic"],
            "confidence": 0.75,
        }


class TestFormatting:
    """Tests for formatting tag detection."""

    def test_detects_tags_in_declaration_order(self):
        text = "{\\an8}<b><i>Hi</i></b>"
        assert detect_formatting(text) == (
            FormattingTag.ITALIC,
            FormattingTag.BOLD,
            FormattingTag.POSITION,
        )

    def test_detects_color(self):
        assert FormattingTag.COLOR.is_present('<font color="red">x</font>')

    def test_plain_text_has_no_tags(self):
        assert detect_formatting("plain") == ()


class TestGlossary:
    """Tests for Glossary lookups and merging."""

    def test_terms_take_precedence_over_technical_terms(self):
        glossary = Glossary()
        glossary.add_technical_term("core", "noyau")
        glossary.add_term("core", "coeur")
        assert glossary.get_translation("core") == "coeur"

    def test_merge_is_right_biased(self):
        left = Glossary()
        left.add_term("ship", "navire")
        left.add_character("Alice")
        right = Glossary()
        right.add_term("ship", "vaisseau")
        right.add_character("Bob")
        left.merge(right)
        assert left.get_translation("ship") == "vaisseau"
        assert left.character_names == {"Alice", "Bob"}

    @pytest.mark.parametrize(
        "left_terms, right_terms",
        [
            ({"ship": "navire"}, {"vault": "coffre"}),
            ({"ship": "navire", "door": "porte"}, {}),
            ({}, {"warp drive": "propulsion"}),
        ],
    )
    def test_merge_is_commutative_on_disjoint_keys(self, left_terms, right_terms):
        def build(terms, name, technical):
            glossary = Glossary()
            for source, target in terms.items():
                glossary.add_term(source, target)
            glossary.add_character(name)
            glossary.add_technical_term(technical, technical.upper())
            return glossary

        left = build(left_terms, "Alice", "core")
        right = build(right_terms, "Bob", "hull")

        left_first = left.copy()
        left_first.merge(right)
        right_first = right.copy()
        right_first.merge(left)

        assert left_first == right_first

    def test_copy_is_independent(self):
        glossary = Glossary()
        glossary.add_character("Alice")
        clone = glossary.copy()
        clone.add_character("Bob")
        assert not glossary.is_character_name("Bob")

    def test_empty(self):
        assert Glossary().is_empty()

    def test_to_dict_is_sorted(self):
        glossary = Glossary()
        glossary.add_character("Zoe")
        glossary.add_character("Alice")
        glossary.add_term("ship", "navire", "vessel")
        glossary.add_technical_term("warp", "distorsion")
        assert glossary.to_dict() == {
            "character_names": ["Alice", "Zoe"],
            "terms": {"ship": {"target": "navire", "context": "vessel"}},
            "technical_terms": {"warp": "distorsion"},
        }


class TestSubtitleDocument:
    """Tests for SubtitleDocument construction, lookups and progress."""

    def test_from_entries_sorts_by_id(self):
        document = SubtitleDocument.from_entries(
            [(2, 2000, 3000, "b"), (1, 0, 1000, "a")], "en", "fr"
        )
        assert [entry.id for entry in document.entries] == [1, 2]

    def test_from_entries_accepts_objects(self):
        class Row:
            def __init__(self, seq, start_ms, end_ms, text):
                self.seq = seq
                self.start_ms = start_ms
                self.end_ms = end_ms
                self.text = text

        document = SubtitleDocument.from_entries([Row(7, 0, 900, "<i>Hi</i>")], "en")
        entry = document.get_entry(7)
        assert entry is not None
        assert entry.formatting == (FormattingTag.ITALIC,)

    def test_duplicate_ids_rejected(self):
        with pytest.raises(ValueError):
            SubtitleDocument.from_entries([(1, 0, 10, "a"), (1, 20, 30, "b")], "en")

    def test_get_entry_unknown_id(self, make_document):
        assert make_document(["a", "b"]).get_entry(99) is None

    def test_progress(self, make_document):
        document = make_document(["a", "b", "c", "d"])
        document.entries[0].set_translation("A")
        assert document.translation_progress() == 25.0
        assert [entry.id for entry in document.pending_entries()] == [2, 3, 4]
        assert not document.is_fully_translated()

    def test_empty_document_progress(self):
        assert SubtitleDocument.from_entries([], "en").translation_progress() == 100.0

    def test_apply_scenes_sets_scene_ids(self, make_document):
        document = make_document(["a", "b", "c"])
        document.apply_scenes([Scene(1, 1, 2), Scene(2, 3, 3)])
        assert [entry.scene_id for entry in document.entries] == [1, 1, 2]
        assert document.scene_for_entry(3).id == 2

    def test_output_rows_preserve_timing(self, make_document):
        document = make_document(["Hello", "World"])
        document.entries[1].set_translation("Monde")
        rows = document.to_output_entries()
        assert rows[0] == (1, document.entries[0].timecode.start_ms, document.entries[0].timecode.end_ms, "Hello")
        assert rows[1][3] == "Monde"
