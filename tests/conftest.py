from __future__ import annotations

from typing import Callable, Iterator, List, Optional, Sequence, Tuple

import pytest

from subtitle_translator import config_manager as cfg
from subtitle_translator.document import SubtitleDocument

Row = Tuple[int, int, int, str]

_ENVIRONMENT_KEYS = (
    "ANTHROPIC_API_KEY",
    "DATABASE_URL",
    "LLM_PROVIDER",
    "OLLAMA_API_KEY",
    "OLLAMA_MODEL",
    "OLLAMA_URL",
    "SUBTITLE_TRANSLATOR_ANTHROPIC_URL",
    "SUBTITLE_TRANSLATOR_API_KEY",
    "SUBTITLE_TRANSLATOR_API_URL",
    "SUBTITLE_TRANSLATOR_CACHE",
    "SUBTITLE_TRANSLATOR_CONFIG",
    "SUBTITLE_TRANSLATOR_DATABASE_URL",
    "SUBTITLE_TRANSLATOR_DEBUG",
    "SUBTITLE_TRANSLATOR_DISPATCH_DELAY",
    "SUBTITLE_TRANSLATOR_LOG_DIR",
    "SUBTITLE_TRANSLATOR_MAX_CONCURRENCY",
    "SUBTITLE_TRANSLATOR_MODEL",
    "SUBTITLE_TRANSLATOR_PROFILE",
    "SUBTITLE_TRANSLATOR_PROVIDER",
    "SUBTITLE_TRANSLATOR_SOURCE_LANGUAGE",
    "SUBTITLE_TRANSLATOR_TARGET_LANGUAGE",
    "SUBTITLE_TRANSLATOR_TIMEOUT",
)


@pytest.fixture(autouse=True)
def isolated_settings(monkeypatch, tmp_path) -> Iterator[None]:
    """Keep tests independent of the caller's environment and config files."""

    for key in _ENVIRONMENT_KEYS:
        monkeypatch.delenv(key, raising=False)
    monkeypatch.setenv("SUBTITLE_TRANSLATOR_CONFIG", str(tmp_path / "missing-config.json"))
    cfg.reset_settings()
    yield
    cfg.reset_settings()


def build_rows(
    texts: Sequence[str],
    *,
    gaps: Optional[Sequence[int]] = None,
    duration_ms: int = 1500,
) -> List[Row]:
    """Return consecutive rows; ``gaps[i]`` is the silence before row ``i + 1``."""

    rows: List[Row] = []
    start = 0
    for index, text in enumerate(texts):
        if index:
            start += duration_ms + (gaps[index - 1] if gaps else 500)
        rows.append((index + 1, start, start + duration_ms, text))
    return rows


@pytest.fixture
def make_document() -> Callable[..., SubtitleDocument]:
    def _make(
        texts: Sequence[str],
        *,
        source_language: str = "en",
        target_language: Optional[str] = "fr",
        gaps: Optional[Sequence[int]] = None,
    ) -> SubtitleDocument:
        return SubtitleDocument.from_entries(
            build_rows(texts, gaps=gaps), source_language, target_language
        )

    return _make


@pytest.fixture
def make_rows() -> Callable[..., List[Row]]:
    return build_rows
