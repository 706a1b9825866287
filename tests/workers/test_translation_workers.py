"""Tests for concurrent document translation."""

from __future__ import annotations

import pytest

from subtitle_translator.pipeline import PipelineConfig, TranslationPipeline
from subtitle_translator.providers import MockProvider
from subtitle_translator.quality import ErrorKind
from subtitle_translator.translation_workers import (
    DocumentTranslationRunner,
    ThreadWorkerPool,
    assemble_chunks,
    split_rows,
)

pytestmark = pytest.mark.workers


def _factory():
    return TranslationPipeline(PipelineConfig.fast("en", "fr"))


class TestSplitAndAssemble:
    """Tests for chunk helpers."""

    def test_split_rows(self):
        assert split_rows([1, 2, 3, 4, 5], 2) == [[1, 2], [3, 4], [5]]
        assert split_rows([], 3) == []

    def test_split_rows_rejects_non_positive_size(self):
        with pytest.raises(ValueError):
            split_rows([1], 0)

    def test_assemble_orders_and_renumbers(self):
        chunks = [
            [(12, 3000, 4000, "c"), (10, 0, 1000, "a")],
            [(11, 1500, 2500, "b")],
        ]
        assert assemble_chunks(chunks) == [
            (1, 0, 1000, "a"),
            (2, 1500, 2500, "b"),
            (3, 3000, 4000, "c"),
        ]


class TestThreadWorkerPool:
    """Tests for ThreadWorkerPool."""

    def test_runs_tasks(self):
        pool = ThreadWorkerPool(max_workers=2)
        futures = [pool.submit(pow, value, 2) for value in range(4)]
        assert sorted(future.result() for future in pool.iter_completed(futures)) == [0, 1, 4, 9]
        pool.shutdown()

    def test_default_size_comes_from_settings(self, monkeypatch):
        monkeypatch.setenv("SUBTITLE_TRANSLATOR_MAX_CONCURRENCY", "3")
        pool = ThreadWorkerPool()
        assert pool.max_workers == 3
        pool.shutdown()

    def test_submit_after_shutdown(self):
        pool = ThreadWorkerPool(max_workers=1)
        pool.shutdown()
        with pytest.raises(RuntimeError):
            pool.submit(print)


class TestDocumentTranslationRunner:
    """Tests for DocumentTranslationRunner."""

    def test_outcomes_follow_submission_order(self, make_document):
        documents = [
            make_document(["One", "Two"]),
            make_document(["Three"]),
            make_document(["Four", "Five", "Six"]),
        ]
        progress = []
        runner = DocumentTranslationRunner(_factory, MockProvider.working("fr:"), max_concurrency=3)

        outcomes = runner.run(documents, progress_callback=lambda done, total: progress.append((done, total)))

        assert [outcome.index for outcome in outcomes] == [0, 1, 2]
        assert all(outcome.result.success for outcome in outcomes)
        assert [row[3] for row in outcomes[2].output_rows] == ["fr:Four", "fr:Five", "fr:Six"]
        assert sorted(progress) == [(1, 3), (2, 3), (3, 3)]

    def test_concurrency_defaults_to_provider_limit(self):
        provider = MockProvider(max_concurrent_requests=5)
        assert DocumentTranslationRunner(_factory, provider).max_concurrency == 5
        assert DocumentTranslationRunner(_factory, provider, max_concurrency=2).max_concurrency == 2

    def test_dispatches_are_spaced(self, make_document):
        sleeps = []
        runner = DocumentTranslationRunner(
            _factory,
            MockProvider.working(),
            max_concurrency=1,
            dispatch_delay=1.0,
            clock=lambda: 0.0,
            sleep=sleeps.append,
        )
        runner.run([make_document(["a"]), make_document(["b"]), make_document(["c"])])
        assert sleeps == [1.0, 1.0]

    def test_failures_are_reported_per_document(self, make_document):
        runner = DocumentTranslationRunner(
            _factory, MockProvider.failing(ErrorKind.CONFIG_ERROR), max_concurrency=2
        )
        outcomes = runner.run([make_document(["a"]), make_document(["b"])])
        assert [outcome.result.success for outcome in outcomes] == [False, False]

    def test_empty_input(self):
        runner = DocumentTranslationRunner(_factory, MockProvider.working())
        assert runner.run([]) == []

    def test_translate_chunks(self, make_rows):
        rows = make_rows(["a", "b", "c", "d", "e"])
        runner = DocumentTranslationRunner(_factory, MockProvider.working("x-"), max_concurrency=2)

        output = runner.translate_chunks(split_rows(rows, 2), "en", "fr")

        assert [row[0] for row in output] == [1, 2, 3, 4, 5]
        assert [row[1:3] for row in output] == [row[1:3] for row in rows]
        assert [row[3] for row in output] == ["x-a", "x-b", "x-c", "x-d", "x-e"]
