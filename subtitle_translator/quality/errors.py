"""Error taxonomy and recovery decisions for translation requests.

Every failure while translating a batch is turned into a
:class:`TranslationError` with an :class:`ErrorKind`. The
:class:`ErrorRecoveryHandler` then decides, from the error and the retries
already spent, what the caller should do next.
"""

from __future__ import annotations

import enum
import json
from collections import Counter
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Sequence, Union

import pydantic
import requests


class ErrorKind(str, enum.Enum):
    NETWORK = "network"
    RATE_LIMIT = "rate_limit"
    TIMEOUT = "timeout"
    INVALID_RESPONSE = "invalid_response"
    PARSE_ERROR = "parse_error"
    VALIDATION_FAILED = "validation_failed"
    PROVIDER_ERROR = "provider_error"
    CONFIG_ERROR = "config_error"
    RESOURCE_EXHAUSTED = "resource_exhausted"
    UNKNOWN = "unknown"

    @property
    def is_retryable(self) -> bool:
        return self in _RETRYABLE_KINDS

    @property
    def base_delay(self) -> float:
        """Seconds to wait before the first retry of this kind."""

        return _BASE_DELAYS.get(self, 1.0)

    @property
    def max_retries(self) -> int:
        return _MAX_RETRIES.get(self, 1)


_RETRYABLE_KINDS = frozenset(
    {
        ErrorKind.NETWORK,
        ErrorKind.RATE_LIMIT,
        ErrorKind.TIMEOUT,
        ErrorKind.INVALID_RESPONSE,
    }
)

_BASE_DELAYS: Dict[ErrorKind, float] = {
    ErrorKind.RATE_LIMIT: 60.0,
    ErrorKind.TIMEOUT: 5.0,
    ErrorKind.NETWORK: 10.0,
    ErrorKind.INVALID_RESPONSE: 2.0,
}

_MAX_RETRIES: Dict[ErrorKind, int] = {
    ErrorKind.RATE_LIMIT: 5,
    ErrorKind.NETWORK: 3,
    ErrorKind.TIMEOUT: 3,
    ErrorKind.INVALID_RESPONSE: 2,
}

_USER_MESSAGES: Dict[ErrorKind, str] = {
    ErrorKind.NETWORK: "Network connection error. Please check your internet connection.",
    ErrorKind.RATE_LIMIT: "API rate limit reached. Please wait before retrying.",
    ErrorKind.TIMEOUT: "Request timed out. The server may be overloaded.",
    ErrorKind.INVALID_RESPONSE: "Received invalid response from translation service.",
    ErrorKind.PARSE_ERROR: "Failed to parse translation response.",
    ErrorKind.VALIDATION_FAILED: "Translation validation failed: {message}",
    ErrorKind.PROVIDER_ERROR: "Translation provider error: {message}",
    ErrorKind.CONFIG_ERROR: "Configuration error: {message}",
    ErrorKind.RESOURCE_EXHAUSTED: (
        "System resources exhausted. Please free up memory or disk space."
    ),
    ErrorKind.UNKNOWN: "Unexpected error: {message}",
}


class TranslationError(RuntimeError):
    """Typed failure raised by providers, parsers and the translation pass."""

    def __init__(
        self,
        kind: ErrorKind,
        message: str,
        *,
        source: Optional[str] = None,
        affected_entries: Optional[Sequence[int]] = None,
        retry_count: int = 0,
    ) -> None:
        super().__init__(message)
        self.kind = kind
        self.message = message
        self.source = source
        self.affected_entries: List[int] = list(affected_entries or [])
        self.retry_count = retry_count
        self.recovery_attempted = False

    def __str__(self) -> str:
        text = f"{self.kind.value}: {self.message}"
        if self.source:
            text = f"{text} (caused by: {self.source})"
        return text

    def with_entries(self, entries: Sequence[int]) -> "TranslationError":
        self.affected_entries = list(entries)
        return self

    def should_retry(self) -> bool:
        return self.kind.is_retryable and self.retry_count < self.kind.max_retries

    def retry_delay(self) -> float:
        """Return the exponential backoff delay in seconds for the current attempt."""

        return self.kind.base_delay * (2**self.retry_count)

    def user_message(self) -> str:
        return _USER_MESSAGES[self.kind].format(message=self.message)


def classify_exception(
    exc: BaseException, *, affected_entries: Optional[Sequence[int]] = None
) -> TranslationError:
    """Map an arbitrary exception raised during a request onto the error taxonomy."""

    if isinstance(exc, TranslationError):
        if affected_entries is not None and not exc.affected_entries:
            exc.with_entries(affected_entries)
        return exc

    kind = ErrorKind.UNKNOWN
    message = "Unexpected failure during translation request"
    if isinstance(exc, requests.exceptions.Timeout):
        kind, message = ErrorKind.TIMEOUT, "Request timed out"
    elif isinstance(exc, requests.exceptions.ConnectionError):
        kind, message = ErrorKind.NETWORK, "Could not reach translation service"
    elif isinstance(exc, requests.exceptions.RequestException):
        kind, message = ErrorKind.NETWORK, "Request to translation service failed"
    elif isinstance(exc, json.JSONDecodeError):
        kind, message = ErrorKind.PARSE_ERROR, "Response is not valid JSON"
    elif isinstance(exc, pydantic.ValidationError):
        kind, message = ErrorKind.INVALID_RESPONSE, "Response does not match the expected schema"
    elif isinstance(exc, MemoryError):
        kind, message = ErrorKind.RESOURCE_EXHAUSTED, "Out of memory"

    return TranslationError(
        kind,
        message,
        source=str(exc) or exc.__class__.__name__,
        affected_entries=affected_entries,
    )


# ----------------------------------------------------------------------
# Recovery actions
# ----------------------------------------------------------------------
@dataclass(frozen=True)
class Retry:
    delay: float
    modified_params: bool = False

    def description(self) -> str:
        if self.modified_params:
            return f"Retry with modified parameters after {self.delay:g}s"
        return f"Retry after {self.delay:g}s"


@dataclass(frozen=True)
class Skip:
    entries: List[int] = field(default_factory=list)

    def description(self) -> str:
        return f"Skip {len(self.entries)} entries"


@dataclass(frozen=True)
class UseFallback:
    entries: List[int] = field(default_factory=list)

    def description(self) -> str:
        return f"Use original text for {len(self.entries)} entries"


@dataclass(frozen=True)
class ReduceBatchSize:
    new_size: int

    def description(self) -> str:
        return f"Reduce batch size to {self.new_size}"


@dataclass(frozen=True)
class SwitchProvider:
    reason: str

    def description(self) -> str:
        return f"Switch provider: {self.reason}"


@dataclass(frozen=True)
class Abort:
    reason: str

    def description(self) -> str:
        return f"Abort: {self.reason}"


@dataclass(frozen=True)
class ContinuePartial:
    completed: List[int] = field(default_factory=list)
    failed: List[int] = field(default_factory=list)

    def description(self) -> str:
        return f"Continue with {len(self.completed)} completed, {len(self.failed)} failed"


RecoveryAction = Union[
    Retry, Skip, UseFallback, ReduceBatchSize, SwitchProvider, Abort, ContinuePartial
]


def allows_continuation(action: RecoveryAction) -> bool:
    return not isinstance(action, Abort)


# ----------------------------------------------------------------------
# Strategy and handler
# ----------------------------------------------------------------------
@dataclass(frozen=True)
class RecoveryStrategy:
    max_retries: int = 3
    max_total_delay: float = 300.0
    use_fallback: bool = True
    allow_partial: bool = True
    min_batch_size: int = 1
    allow_provider_switch: bool = False

    @classmethod
    def default(cls) -> "RecoveryStrategy":
        return cls()

    @classmethod
    def aggressive(cls) -> "RecoveryStrategy":
        return cls(
            max_retries=5,
            max_total_delay=600.0,
            use_fallback=True,
            allow_partial=True,
            min_batch_size=1,
            allow_provider_switch=True,
        )

    @classmethod
    def fast_fail(cls) -> "RecoveryStrategy":
        return cls(
            max_retries=1,
            max_total_delay=30.0,
            use_fallback=False,
            allow_partial=False,
            min_batch_size=10,
            allow_provider_switch=False,
        )

    @classmethod
    def from_name(cls, name: str) -> "RecoveryStrategy":
        presets = {
            "default": cls.default,
            "aggressive": cls.aggressive,
            "fast_fail": cls.fast_fail,
            "fast-fail": cls.fast_fail,
        }
        try:
            return presets[name.strip().lower()]()
        except KeyError:
            raise ValueError(f"Unknown recovery strategy: {name!r}") from None


class ErrorRecoveryHandler:
    """Decide the next step after a failed request.

    The decision depends only on the error and on the retries already granted
    by this handler. Retries are counted per error kind, so consecutive rate
    limit errors back off as base, 2 x base, 4 x base.
    """

    def __init__(
        self,
        strategy: Optional[RecoveryStrategy] = None,
        current_batch_size: Optional[int] = None,
    ) -> None:
        self.strategy = strategy or RecoveryStrategy.default()
        self.current_batch_size = current_batch_size
        self._errors: List[TranslationError] = []
        self._retries_by_kind: Counter[ErrorKind] = Counter()
        self._total_retries = 0
        self._total_delay = 0.0

    @property
    def errors(self) -> List[TranslationError]:
        return list(self._errors)

    @property
    def retry_count(self) -> int:
        return self._total_retries

    def has_errors(self) -> bool:
        return bool(self._errors)

    def reset(self) -> None:
        self._errors.clear()
        self._retries_by_kind.clear()
        self._total_retries = 0
        self._total_delay = 0.0

    def handle_error(self, error: TranslationError) -> RecoveryAction:
        self._errors.append(error)
        error.recovery_attempted = True
        error.retry_count = self._retries_by_kind[error.kind]

        if error.kind is ErrorKind.CONFIG_ERROR:
            return Abort(f"Configuration error: {error.message}")
        if error.kind is ErrorKind.RESOURCE_EXHAUSTED:
            return Abort("System resources exhausted")

        if self._total_retries >= self.strategy.max_retries:
            return self._final_action(error)

        kind = error.kind
        if kind is ErrorKind.RATE_LIMIT:
            return self._retry(error)

        if kind in (ErrorKind.NETWORK, ErrorKind.TIMEOUT):
            if error.should_retry():
                return self._retry(error)
            if self.strategy.use_fallback:
                return UseFallback(list(error.affected_entries))
            return Abort(error.message)

        if kind in (ErrorKind.INVALID_RESPONSE, ErrorKind.PARSE_ERROR):
            batch_size = len(error.affected_entries) or (self.current_batch_size or 0)
            if self.strategy.min_batch_size < batch_size:
                new_size = max(batch_size // 2, self.strategy.min_batch_size)
                self._count_retry(kind)
                self.current_batch_size = new_size
                return ReduceBatchSize(new_size)
            if error.should_retry():
                return self._retry(error, modified_params=True)
            return self._final_action(error)

        if kind is ErrorKind.VALIDATION_FAILED:
            if self.strategy.allow_partial and error.affected_entries:
                return ContinuePartial(completed=[], failed=list(error.affected_entries))
            if self.strategy.use_fallback:
                return UseFallback(list(error.affected_entries))
            return Abort(error.message)

        if kind is ErrorKind.PROVIDER_ERROR and self.strategy.allow_provider_switch:
            return SwitchProvider(error.message)

        if error.should_retry():
            return self._retry(error)
        return self._final_action(error)

    def _count_retry(self, kind: ErrorKind) -> None:
        self._retries_by_kind[kind] += 1
        self._total_retries += 1

    def _retry(self, error: TranslationError, *, modified_params: bool = False) -> RecoveryAction:
        if self._total_delay >= self.strategy.max_total_delay:
            return self._final_action(error)
        delay = error.retry_delay()
        self._count_retry(error.kind)
        self._total_delay += delay
        return Retry(delay=delay, modified_params=modified_params)

    def _final_action(self, error: TranslationError) -> RecoveryAction:
        if self.strategy.use_fallback and error.affected_entries:
            return UseFallback(list(error.affected_entries))
        if self.strategy.allow_partial:
            return Skip(list(error.affected_entries))
        return Abort(f"Max retries exceeded: {error.message}")

    def error_summary(self) -> str:
        if not self._errors:
            return "No errors"
        by_kind = Counter(error.kind.value for error in self._errors)
        parts = ", ".join(f"{kind}: {count}" for kind, count in sorted(by_kind.items()))
        return f"{len(self._errors)} errors ({self._total_retries} retries): {parts}"


__all__ = [
    "Abort",
    "ContinuePartial",
    "ErrorKind",
    "ErrorRecoveryHandler",
    "RecoveryAction",
    "RecoveryStrategy",
    "ReduceBatchSize",
    "Retry",
    "Skip",
    "SwitchProvider",
    "TranslationError",
    "UseFallback",
    "allows_continuation",
    "classify_exception",
]
