"""Offline provider used for dry runs and tests.

``MockProvider`` either replays a script of canned replies (strings are
returned, exceptions are raised) or echoes every requested entry back as its
own translation.
"""

from __future__ import annotations

import json
import threading
import time
from typing import Callable, Iterable, List, Optional, Tuple, Union

from subtitle_translator.quality.errors import ErrorKind, TranslationError

ScriptItem = Union[str, BaseException]
Responder = Callable[[str, str], str]


def _decode_request(payload: str) -> dict:
    # The payload is a JSON object followed by a plain-text schema hint.
    decoded, _end = json.JSONDecoder().raw_decode(payload.lstrip())
    return decoded


def echo_response(payload: str, *, prefix: str = "", confidence: float = 1.0) -> str:
    """Return a well-formed reply translating every requested entry to itself."""

    request = _decode_request(payload)
    translations = [
        {"id": item["id"], "translated": f"{prefix}{item['text']}", "confidence": confidence}
        for item in request.get("entries_to_translate", [])
    ]
    return json.dumps({"translations": translations}, ensure_ascii=False)


class MockProvider:
    """In-process provider with deterministic behaviour."""

    name = "mock"

    def __init__(
        self,
        script: Optional[Iterable[ScriptItem]] = None,
        *,
        responder: Optional[Responder] = None,
        echo_prefix: str = "",
        fail_every: int = 0,
        failure_kind: ErrorKind = ErrorKind.PROVIDER_ERROR,
        delay_seconds: float = 0.0,
        model: str = "mock-model",
        max_concurrent_requests: int = 4,
    ) -> None:
        self._script: List[ScriptItem] = list(script or [])
        self._responder = responder
        self.echo_prefix = echo_prefix
        self.fail_every = fail_every
        self.failure_kind = failure_kind
        self.delay_seconds = delay_seconds
        self.model = model
        self.max_concurrent_requests = max_concurrent_requests
        self.calls: List[Tuple[str, str]] = []
        self._lock = threading.Lock()

    @classmethod
    def working(cls, prefix: str = "") -> "MockProvider":
        return cls(echo_prefix=prefix)

    @classmethod
    def failing(cls, kind: ErrorKind = ErrorKind.PROVIDER_ERROR) -> "MockProvider":
        return cls(fail_every=1, failure_kind=kind)

    @classmethod
    def intermittent(cls, fail_every: int) -> "MockProvider":
        return cls(fail_every=fail_every)

    @property
    def request_count(self) -> int:
        with self._lock:
            return len(self.calls)

    def complete(self, system_prompt: str, payload: str) -> str:
        with self._lock:
            self.calls.append((system_prompt, payload))
            call_number = len(self.calls)
            scripted = self._script.pop(0) if self._script else None

        if self.delay_seconds:
            time.sleep(self.delay_seconds)

        if isinstance(scripted, BaseException):
            raise scripted
        if scripted is not None:
            return scripted

        if self.fail_every and call_number % self.fail_every == 0:
            raise TranslationError(
                self.failure_kind, f"Mock failure on request {call_number}"
            )
        if self._responder is not None:
            return self._responder(system_prompt, payload)
        return echo_response(payload, prefix=self.echo_prefix)


__all__ = ["MockProvider", "echo_response"]
