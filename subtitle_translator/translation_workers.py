"""Worker pool used to translate independent documents in parallel.

Batches inside one document are always translated in order; parallelism only
applies across documents (or across chunks of a long file that are translated
as separate documents and reassembled with :func:`assemble_chunks`).
"""

from __future__ import annotations

import concurrent.futures
import threading
import time
from concurrent.futures import Future
from dataclasses import dataclass
from typing import Callable, Iterable, Iterator, List, Optional, Sequence

from subtitle_translator import config_manager as cfg
from subtitle_translator import logging_manager as log_mgr
from subtitle_translator import observability
from subtitle_translator.document import OutputRow, SubtitleDocument
from subtitle_translator.pipeline import PipelineResult, TranslationPipeline
from subtitle_translator.providers.base import TranslationProvider

logger = log_mgr.get_logger().getChild("translation_workers")

PipelineFactory = Callable[[], TranslationPipeline]
RunnerProgress = Callable[[int, int], None]


class ThreadWorkerPool:
    """Threaded worker pool for translation tasks."""

    mode = "thread"

    def __init__(self, *, max_workers: Optional[int] = None) -> None:
        self.max_workers = max(1, max_workers or cfg.get_max_concurrency())
        self._executor: Optional[concurrent.futures.ThreadPoolExecutor] = None
        self._shutdown = False
        observability.worker_pool_event("created", mode=self.mode, max_workers=self.max_workers)

    def _ensure_executor(self) -> concurrent.futures.ThreadPoolExecutor:
        if self._executor is None:
            self._executor = concurrent.futures.ThreadPoolExecutor(
                max_workers=self.max_workers, thread_name_prefix="subtitle-translator"
            )
            observability.worker_pool_event(
                "executor_initialized", mode=self.mode, max_workers=self.max_workers
            )
        return self._executor

    def submit(self, func, *args, **kwargs) -> Future:
        if self._shutdown:
            raise RuntimeError("Worker pool has been shut down")
        observability.record_metric(
            "worker_pool.tasks_submitted",
            1.0,
            {"mode": self.mode, "max_workers": self.max_workers},
        )
        return self._ensure_executor().submit(func, *args, **kwargs)

    def iter_completed(self, futures: Iterable[Future]) -> Iterator[Future]:
        return concurrent.futures.as_completed(futures)

    def shutdown(self, wait: bool = True) -> None:
        if self._shutdown:
            return
        if self._executor is not None:
            self._executor.shutdown(wait=wait, cancel_futures=not wait)
        self._shutdown = True
        observability.worker_pool_event("shutdown", mode=self.mode, max_workers=self.max_workers)

    def __enter__(self) -> "ThreadWorkerPool":  # pragma: no cover - trivial
        return self

    def __exit__(self, exc_type, exc, tb) -> None:  # pragma: no cover - trivial
        self.shutdown(wait=exc_type is None)


@dataclass(slots=True)
class DocumentOutcome:
    index: int
    document: SubtitleDocument
    result: PipelineResult

    @property
    def output_rows(self) -> List[OutputRow]:
        return self.document.to_output_entries()


class DocumentTranslationRunner:
    """Translate several documents concurrently against one provider.

    Admission is bounded by a semaphore sized from ``max_concurrency`` (by
    default the provider's ``max_concurrent_requests``). Consecutive dispatches
    are spaced by at least ``dispatch_delay`` seconds across all workers.
    """

    def __init__(
        self,
        pipeline_factory: PipelineFactory,
        provider: TranslationProvider,
        max_concurrency: Optional[int] = None,
        dispatch_delay: float = 0.0,
        *,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        limit = max_concurrency or getattr(provider, "max_concurrent_requests", 0) or 1
        self.pipeline_factory = pipeline_factory
        self.provider = provider
        self.max_concurrency = max(1, int(limit))
        self.dispatch_delay = max(0.0, float(dispatch_delay))
        self._semaphore = threading.BoundedSemaphore(self.max_concurrency)
        self._dispatch_lock = threading.Lock()
        self._results_lock = threading.Lock()
        self._last_dispatch: Optional[float] = None
        self._completed = 0
        self._clock = clock
        self._sleep = sleep

    def _wait_for_dispatch_slot(self) -> None:
        with self._dispatch_lock:
            now = self._clock()
            if self._last_dispatch is not None and self.dispatch_delay:
                remaining = self.dispatch_delay - (now - self._last_dispatch)
                if remaining > 0:
                    self._sleep(remaining)
                    now = self._clock()
            self._last_dispatch = now

    def _translate_one(
        self,
        index: int,
        document: SubtitleDocument,
        total: int,
        outcomes: List[DocumentOutcome],
        progress_callback: Optional[RunnerProgress],
    ) -> None:
        with self._semaphore:
            self._wait_for_dispatch_slot()
            with log_mgr.log_context(document=index):
                result = self.pipeline_factory().translate(self.provider, document)

        with self._results_lock:
            outcomes.append(DocumentOutcome(index=index, document=document, result=result))
            self._completed += 1
            completed = self._completed
        if progress_callback is not None:
            progress_callback(completed, total)

    def run(
        self,
        documents: Sequence[SubtitleDocument],
        progress_callback: Optional[RunnerProgress] = None,
    ) -> List[DocumentOutcome]:
        """Translate ``documents`` and return their outcomes in submission order."""

        total = len(documents)
        outcomes: List[DocumentOutcome] = []
        if not total:
            return outcomes
        self._completed = 0

        logger.info(
            "Translating %d documents with concurrency %d",
            total,
            self.max_concurrency,
            extra={
                "event": "workers.run.start",
                "attributes": {"dispatch_delay": self.dispatch_delay},
            },
        )
        with ThreadWorkerPool(max_workers=min(self.max_concurrency, total)) as pool:
            futures = [
                pool.submit(self._translate_one, index, document, total, outcomes, progress_callback)
                for index, document in enumerate(documents)
            ]
            for future in pool.iter_completed(futures):
                future.result()

        outcomes.sort(key=lambda outcome: outcome.index)
        return outcomes

    def translate_chunks(
        self,
        chunks: Sequence[Sequence[object]],
        source_language: str,
        target_language: str,
        progress_callback: Optional[RunnerProgress] = None,
    ) -> List[OutputRow]:
        """Translate row chunks as separate documents and reassemble the output."""

        documents = [
            SubtitleDocument.from_entries(list(chunk), source_language, target_language)
            for chunk in chunks
        ]
        outcomes = self.run(documents, progress_callback)
        return assemble_chunks(outcome.output_rows for outcome in outcomes)


def split_rows(rows: Sequence[object], chunk_size: int) -> List[List[object]]:
    """Split ``rows`` into consecutive chunks of at most ``chunk_size`` rows."""

    if chunk_size <= 0:
        raise ValueError("chunk_size must be positive")
    return [list(rows[start : start + chunk_size]) for start in range(0, len(rows), chunk_size)]


def assemble_chunks(chunks: Iterable[Sequence[OutputRow]]) -> List[OutputRow]:
    """Concatenate chunk outputs, order them by id and renumber them ``1..N``."""

    combined: List[OutputRow] = [row for chunk in chunks for row in chunk]
    combined.sort(key=lambda row: row[0])
    return [
        (number, start_ms, end_ms, text)
        for number, (_old_id, start_ms, end_ms, text) in enumerate(combined, start=1)
    ]


__all__ = [
    "DocumentOutcome",
    "DocumentTranslationRunner",
    "ThreadWorkerPool",
    "assemble_chunks",
    "split_rows",
]
