"""Translation provider for the Anthropic Messages API."""

from __future__ import annotations

from typing import Any, Dict, List, Optional

import requests

from subtitle_translator import config_manager as cfg
from subtitle_translator import logging_manager as log_mgr
from subtitle_translator.llm_client import check_status, post_json
from subtitle_translator.quality.errors import ErrorKind, TranslationError

logger = log_mgr.get_logger().getChild("providers.anthropic")

DEFAULT_MAX_TOKENS = 4096


class AnthropicProvider:
    """Send one ``/v1/messages`` request per translation batch."""

    name = "anthropic"

    def __init__(
        self,
        api_key: Optional[str],
        *,
        model: str = cfg.DEFAULT_ANTHROPIC_MODEL,
        api_url: str = cfg.DEFAULT_ANTHROPIC_URL,
        max_concurrent_requests: int = cfg.DEFAULT_MAX_CONCURRENCY,
        timeout_seconds: float = cfg.DEFAULT_REQUEST_TIMEOUT_SECONDS,
        max_tokens: int = DEFAULT_MAX_TOKENS,
        temperature: Optional[float] = 0.3,
        session: Optional[requests.Session] = None,
    ) -> None:
        self._api_key = api_key
        self.model = model
        self.api_url = api_url
        self.max_concurrent_requests = max(1, int(max_concurrent_requests))
        self.timeout_seconds = timeout_seconds
        self.max_tokens = max_tokens
        self.temperature = temperature
        self._session = session or requests.Session()

    def _headers(self) -> Dict[str, str]:
        return {
            "x-api-key": self._api_key or "",
            "anthropic-version": cfg.ANTHROPIC_API_VERSION,
            "content-type": "application/json",
        }

    def build_request(self, system_prompt: str, payload: str) -> Dict[str, Any]:
        request: Dict[str, Any] = {
            "model": self.model,
            "max_tokens": self.max_tokens,
            "system": system_prompt,
            "messages": [{"role": "user", "content": payload}],
        }
        if self.temperature is not None:
            request["temperature"] = self.temperature
        return request

    def complete(self, system_prompt: str, payload: str) -> str:
        if not self._api_key:
            raise TranslationError(
                ErrorKind.CONFIG_ERROR, "ANTHROPIC_API_KEY is required for the anthropic provider"
            )
        response = post_json(
            self._session,
            self.api_url,
            self.build_request(system_prompt, payload),
            headers=self._headers(),
            timeout=self.timeout_seconds,
        )
        check_status(response)
        try:
            data = response.json()
        except ValueError as exc:
            raise TranslationError(
                ErrorKind.INVALID_RESPONSE, "Response body is not valid JSON", source=str(exc)
            ) from exc

        text = _message_text(data)
        if text is None:
            raise TranslationError(
                ErrorKind.INVALID_RESPONSE, "Response body does not contain text content"
            )
        usage = data.get("usage") if isinstance(data.get("usage"), dict) else {}
        logger.debug(
            "Anthropic request completed",
            extra={
                "event": "provider.anthropic.complete",
                "attributes": {"model": self.model, "tokens": usage},
            },
        )
        return text

    def close(self) -> None:
        self._session.close()


def _message_text(data: Any) -> Optional[str]:
    if not isinstance(data, dict) or not isinstance(data.get("content"), list):
        return None
    pieces: List[str] = [
        block["text"]
        for block in data["content"]
        if isinstance(block, dict) and block.get("type") == "text" and isinstance(block.get("text"), str)
    ]
    if not pieces:
        return None
    return "".join(pieces)


__all__ = ["AnthropicProvider"]
