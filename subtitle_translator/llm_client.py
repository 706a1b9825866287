"""HTTP transport for Ollama-compatible ``/api/chat`` endpoints.

One call is one HTTP request. The client never retries: each failure becomes a
:class:`~subtitle_translator.quality.errors.TranslationError` whose kind tells
the translation pass which recovery to apply.
"""

from __future__ import annotations

import json
from dataclasses import dataclass, field, replace
from typing import Any, Dict, Iterable, List, Optional

import requests

from subtitle_translator import config_manager as cfg
from subtitle_translator import logging_manager as log_mgr
from subtitle_translator.quality.errors import ErrorKind, TranslationError

logger = log_mgr.get_logger().getChild("llm_client")

TokenUsage = Dict[str, int]

_USAGE_KEYS = ("prompt_eval_count", "eval_count")
_STATUS_KINDS = {
    401: ErrorKind.CONFIG_ERROR,
    403: ErrorKind.CONFIG_ERROR,
    404: ErrorKind.CONFIG_ERROR,
    408: ErrorKind.TIMEOUT,
    429: ErrorKind.RATE_LIMIT,
}
_ERROR_BODY_PREVIEW = 300


@dataclass(frozen=True)
class ClientSettings:
    """Connection parameters for one model endpoint."""

    model: str = cfg.DEFAULT_MODEL
    api_url: Optional[str] = None
    debug: bool = False
    api_key: Optional[str] = None
    timeout_seconds: float = cfg.DEFAULT_REQUEST_TIMEOUT_SECONDS

    def resolve_api_url(self) -> str:
        return self.api_url or cfg.get_ollama_url()

    def with_updates(self, **updates: Any) -> "ClientSettings":
        return replace(self, **updates)


@dataclass
class LLMResponse:
    text: str
    status_code: int
    token_usage: TokenUsage = field(default_factory=dict)
    raw: Optional[Any] = None


def error_kind_for_status(status_code: int) -> ErrorKind:
    """Map a non-200 HTTP status to the error taxonomy."""

    if status_code in _STATUS_KINDS:
        return _STATUS_KINDS[status_code]
    if status_code >= 500:
        return ErrorKind.PROVIDER_ERROR
    return ErrorKind.INVALID_RESPONSE


def post_json(
    session: requests.Session,
    url: str,
    payload: Dict[str, Any],
    *,
    headers: Optional[Dict[str, str]] = None,
    stream: bool = False,
    timeout: float = cfg.DEFAULT_REQUEST_TIMEOUT_SECONDS,
) -> requests.Response:
    """POST ``payload`` to ``url``; transport failures become ``TIMEOUT`` or ``NETWORK``."""

    try:
        return session.post(url, json=payload, headers=headers, stream=stream, timeout=timeout)
    except requests.exceptions.Timeout as exc:
        raise TranslationError(
            ErrorKind.TIMEOUT, f"Request to {url} timed out", source=str(exc)
        ) from exc
    except requests.exceptions.RequestException as exc:
        raise TranslationError(ErrorKind.NETWORK, f"Could not reach {url}", source=str(exc)) from exc


def check_status(response: requests.Response) -> None:
    """Raise a :class:`TranslationError` for any non-200 reply."""

    if response.status_code == 200:
        return
    preview = (response.text or "")[:_ERROR_BODY_PREVIEW]
    message = f"HTTP {response.status_code}"
    if preview:
        message = f"{message}: {preview}"
    raise TranslationError(error_kind_for_status(response.status_code), message)


def _chunk_text(chunk: Dict[str, Any]) -> Optional[str]:
    message = chunk.get("message")
    if isinstance(message, dict) and isinstance(message.get("content"), str):
        return message["content"]
    # /api/generate replies carry the text under "response".
    if isinstance(chunk.get("response"), str):
        return chunk["response"]
    return None


def _chunk_usage(chunk: Dict[str, Any]) -> TokenUsage:
    return {key: chunk[key] for key in _USAGE_KEYS if isinstance(chunk.get(key), int)}


class LLMClient:
    """Send chat payloads through a shared :class:`requests.Session`."""

    def __init__(
        self,
        settings: Optional[ClientSettings] = None,
        *,
        session: Optional[requests.Session] = None,
    ) -> None:
        self._settings = settings or ClientSettings()
        self._session = session or requests.Session()

    @property
    def settings(self) -> ClientSettings:
        return self._settings

    @property
    def model(self) -> str:
        return self._settings.model

    @property
    def api_url(self) -> str:
        return self._settings.resolve_api_url()

    def _headers(self) -> Optional[Dict[str, str]]:
        if not self._settings.api_key:
            return None
        return {"Authorization": f"Bearer {self._settings.api_key}"}

    def _post(self, payload: Dict[str, Any], stream: bool, timeout: float) -> requests.Response:
        return post_json(
            self._session,
            self.api_url,
            payload,
            headers=self._headers(),
            stream=stream,
            timeout=timeout,
        )

    def _decode_body(self, response: requests.Response) -> List[Dict[str, Any]]:
        try:
            data = response.json()
        except ValueError as exc:
            raise TranslationError(
                ErrorKind.INVALID_RESPONSE, "Response body is not valid JSON", source=str(exc)
            ) from exc
        if not isinstance(data, dict):
            raise TranslationError(ErrorKind.INVALID_RESPONSE, "Response body is not an object")
        return [data]

    def _decode_stream(self, lines: Iterable[Any]) -> List[Dict[str, Any]]:
        chunks: List[Dict[str, Any]] = []
        for line in lines:
            if not line:
                continue
            try:
                chunk = json.loads(line)
            except json.JSONDecodeError:
                logger.debug("Skipping non-JSON stream line: %.80s", line)
                continue
            if isinstance(chunk, dict):
                chunks.append(chunk)
        if not chunks:
            raise TranslationError(ErrorKind.INVALID_RESPONSE, "Stream contained no JSON chunks")
        return chunks

    def send_chat_request(
        self, payload: Dict[str, Any], *, timeout: Optional[float] = None
    ) -> LLMResponse:
        """Send one chat request and return the decoded reply.

        Streaming replies (``"stream": true``) are concatenated. Status codes map
        through :func:`error_kind_for_status`; timeouts and connection failures
        become ``TIMEOUT`` and ``NETWORK``; bodies without message content are
        ``INVALID_RESPONSE``.
        """

        request = {"model": self.model, **payload}
        stream = bool(request.get("stream", False))
        if self._settings.debug:
            logger.debug(
                "POST %s",
                self.api_url,
                extra={"event": "llm.request", "attributes": {"payload": request}},
            )

        response = self._post(request, stream, timeout or self._settings.timeout_seconds)
        check_status(response)

        if stream:
            chunks = self._decode_stream(response.iter_lines(decode_unicode=True))
        else:
            chunks = self._decode_body(response)

        pieces = [text for text in map(_chunk_text, chunks) if text is not None]
        if not stream and not pieces:
            raise TranslationError(
                ErrorKind.INVALID_RESPONSE, "Response body does not contain message content"
            )
        usage: TokenUsage = {}
        for chunk in chunks:
            usage.update(_chunk_usage(chunk))
        if usage:
            logger.debug(
                "Token usage: prompt=%s completion=%s",
                usage.get("prompt_eval_count", 0),
                usage.get("eval_count", 0),
                extra={"event": "llm.usage", "attributes": usage},
            )
        return LLMResponse(
            text="".join(pieces),
            status_code=response.status_code,
            token_usage=usage,
            raw=chunks if stream else chunks[0],
        )

    def close(self) -> None:
        self._session.close()

    def __enter__(self) -> "LLMClient":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:  # pragma: no cover - trivial
        self.close()


def create_client(
    *,
    model: Optional[str] = None,
    api_url: Optional[str] = None,
    debug: bool = False,
    api_key: Optional[str] = None,
    timeout_seconds: Optional[float] = None,
    session: Optional[requests.Session] = None,
) -> LLMClient:
    """Return an :class:`LLMClient`; unset values fall back to the active settings."""

    settings = ClientSettings(
        model=model or cfg.DEFAULT_MODEL,
        api_url=api_url,
        debug=debug,
        api_key=api_key,
        timeout_seconds=timeout_seconds or cfg.DEFAULT_REQUEST_TIMEOUT_SECONDS,
    )
    return LLMClient(settings=settings, session=session)


__all__ = [
    "ClientSettings",
    "LLMClient",
    "LLMResponse",
    "TokenUsage",
    "check_status",
    "create_client",
    "error_kind_for_status",
    "post_json",
]
