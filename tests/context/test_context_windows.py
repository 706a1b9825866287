"""Unit tests for context window construction and dynamic batch sizing."""

from __future__ import annotations

import pytest

from subtitle_translator.context import (
    DynamicWindowConfig,
    DynamicWindowSizer,
    WindowConfig,
    build_window,
    count_windows,
    estimate_tokens,
    iter_windows,
)
from subtitle_translator.document import Glossary, Scene

pytestmark = pytest.mark.translation


def _texts(count: int, text: str = "Line") -> list:
    return [f"{text} {index + 1}" for index in range(count)]


class TestWindowConfig:
    """Tests for WindowConfig validation and presets."""

    def test_batch_size_must_be_positive(self):
        with pytest.raises(ValueError):
            WindowConfig(batch_size=0)

    def test_presets(self):
        assert WindowConfig.minimal().batch_size == 5
        assert WindowConfig.large_context().recent_entries_count == 20


class TestBuildWindow:
    """Tests for build_window."""

    def test_first_window_layout(self, make_document):
        document = make_document(_texts(20))
        window = build_window(document, 0, WindowConfig())
        assert window.batch_ids() == list(range(1, 16))
        assert [entry.id for entry in window.lookahead] == [16, 17, 18, 19, 20]
        assert window.recent_entries == []
        assert window.source_language == "en"
        assert window.target_language == "fr"

    def test_recent_entries_only_include_translations(self, make_document):
        document = make_document(_texts(20))
        for entry in document.entries[2:5]:
            entry.set_translation(f"T{entry.id}")
        window = build_window(document, 5, WindowConfig())
        assert [recent.id for recent in window.recent_entries] == [3, 4, 5]
        assert window.recent_entries[0].translated == "T3"

    def test_ranges_are_clipped_at_document_end(self, make_document):
        document = make_document(_texts(20))
        window = build_window(document, 18, WindowConfig())
        assert window.batch_ids() == [19, 20]
        assert window.lookahead == []
        assert window.remaining_entries() == 2

    def test_position_past_end_gives_empty_batch(self, make_document):
        window = build_window(make_document(_texts(3)), 10, WindowConfig())
        assert window.is_at_end()
        assert window.progress_percent() == 100.0

    def test_glossary_is_a_snapshot(self, make_document):
        document = make_document(_texts(3))
        document.glossary.add_character("Alice")
        window = build_window(document, 0, WindowConfig())
        window.glossary.add_character("Bob")
        assert not document.glossary.is_character_name("Bob")
        assert window.glossary.is_character_name("Alice")

    def test_document_summary_is_not_history(self, make_document):
        document = make_document(_texts(20))
        document.context_summary = "Characters: Zorg. [20 lines of dialogue]"
        assert build_window(document, 0, WindowConfig()).history_summary is None
        assert build_window(document, 15, WindowConfig()).history_summary is None

    def test_update_glossary_merges_into_snapshot(self, make_document):
        document = make_document(_texts(3))
        window = build_window(document, 0, WindowConfig())
        learned = Glossary()
        learned.add_term("ship", "navire")
        window.update_glossary(learned)
        assert window.glossary.get_translation("ship") == "navire"
        assert document.glossary.get_translation("ship") is None

    def test_entry_snapshot_fields(self, make_document):
        document = make_document(["[door opens]", "Hello"])
        window = build_window(document, 0, WindowConfig())
        first = window.current_batch[0]
        assert first.is_sound_effect
        assert first.timecode == document.entries[0].timecode.format_srt()

    def test_needs_summarization(self, make_document):
        document = make_document(_texts(60))
        config = WindowConfig()
        assert not build_window(document, 10, config).needs_summarization(config)
        window = build_window(document, 50, config)
        assert window.needs_summarization(config)
        assert not window.with_history_summary("so far").needs_summarization(config)

    def test_with_batch_keeps_context(self, make_document):
        document = make_document(_texts(20))
        window = build_window(document, 0, WindowConfig())
        narrowed = window.with_batch(window.current_batch[:2])
        assert narrowed.batch_ids() == [1, 2]
        assert narrowed.lookahead == window.lookahead


class TestIterWindows:
    """Tests for iter_windows and count_windows."""

    def test_windows_partition_document(self, make_document):
        document = make_document(_texts(23))
        config = WindowConfig.minimal()
        ids = [entry_id for window in iter_windows(document, config) for entry_id in window.batch_ids()]
        assert ids == list(range(1, 24))
        assert count_windows(document, config) == 5

    def test_windows_observe_applied_translations(self, make_document):
        document = make_document(_texts(10))
        config = WindowConfig.minimal()
        seen_recent = []
        for window in iter_windows(document, config):
            seen_recent.append([recent.id for recent in window.recent_entries])
            for entry_id in window.batch_ids():
                document.get_entry(entry_id).set_translation(f"T{entry_id}")
        assert seen_recent == [[], [3, 4, 5]]

    @pytest.mark.parametrize("count", [1, 5, 7, 15, 16, 33, 60])
    @pytest.mark.parametrize(
        "config", [WindowConfig(), WindowConfig.minimal(), WindowConfig.large_context()]
    )
    @pytest.mark.parametrize("sized", [False, True])
    def test_every_window_stays_within_document(self, make_document, count, config, sized):
        document = make_document(_texts(count))
        sizer = DynamicWindowSizer(DynamicWindowConfig(min_batch_size=3)) if sized else None

        windows = list(iter_windows(document, config, sizer=sizer))

        for window in windows:
            assert window.total_entries == count
            assert window.position + len(window.current_batch) <= window.total_entries
            assert window.current_batch
        assert windows[-1].lookahead == []
        assert [entry_id for window in windows for entry_id in window.batch_ids()] == list(
            range(1, count + 1)
        )

    def test_empty_document_has_no_windows(self, make_document):
        document = make_document([])
        assert list(iter_windows(document, WindowConfig())) == []
        assert count_windows(document, WindowConfig()) == 0

    def test_sizer_windows_cover_every_entry(self, make_document):
        document = make_document(_texts(57))
        document.apply_scenes([Scene(1, 1, 12), Scene(2, 13, 40), Scene(3, 41, 57)])
        config = WindowConfig()
        sizer = DynamicWindowSizer()
        windows = list(iter_windows(document, config, sizer=sizer))
        ids = [entry_id for window in windows for entry_id in window.batch_ids()]
        assert ids == list(range(1, 58))
        assert len(windows) == count_windows(document, config, sizer=sizer)


class TestDynamicWindowSizer:
    """Tests for DynamicWindowSizer."""

    def test_estimate_tokens_rounds_up(self):
        assert estimate_tokens("abcde") == 2
        assert estimate_tokens("") == 0

    def test_config_validation(self):
        with pytest.raises(ValueError):
            DynamicWindowConfig(min_batch_size=0)
        with pytest.raises(ValueError):
            DynamicWindowConfig(min_batch_size=10, max_batch_size=5)

    def test_short_entries_fill_max_batch(self, make_document):
        document = make_document(_texts(40, "Hi"))
        assert DynamicWindowSizer().calculate_batch_size(document, 0) == 25

    def test_long_entries_stop_at_token_budget(self, make_document):
        document = make_document(["x" * 4000 for _ in range(40)])
        assert DynamicWindowSizer().calculate_batch_size(document, 0) == 5

    def test_batch_aligns_with_scene_end(self, make_document):
        document = make_document(_texts(30))
        document.apply_scenes([Scene(1, 1, 8), Scene(2, 9, 30)])
        sizer = DynamicWindowSizer()
        assert sizer.calculate_batch_size(document, 0) == 8
        assert sizer.calculate_batch_size(document, 8) == 22

    def test_scene_alignment_can_be_disabled(self, make_document):
        document = make_document(_texts(40))
        document.apply_scenes([Scene(1, 1, 8), Scene(2, 9, 40)])
        assert DynamicWindowSizer(DynamicWindowConfig.fast()).calculate_batch_size(document, 0) == 30

    def test_size_clipped_to_remaining(self, make_document):
        document = make_document(_texts(40))
        sizer = DynamicWindowSizer()
        assert sizer.calculate_batch_size(document, 38) == 2
        assert sizer.calculate_batch_size(document, 40) == 0

    def test_lookahead_stops_at_scene_end(self, make_document):
        document = make_document(_texts(30))
        document.apply_scenes([Scene(1, 1, 10), Scene(2, 11, 13), Scene(3, 14, 30)])
        sizer = DynamicWindowSizer()
        assert sizer.calculate_lookahead(document, 10, 5) == 3
        assert sizer.calculate_lookahead(document, 30, 5) == 0

    def test_lookahead_without_scenes(self, make_document):
        document = make_document(_texts(30))
        assert DynamicWindowSizer().calculate_lookahead(document, 27, 5) == 3
