"""Translation provider backed by an Ollama chat endpoint."""

from __future__ import annotations

from typing import Optional

from subtitle_translator import config_manager as cfg
from subtitle_translator import logging_manager as log_mgr
from subtitle_translator import prompt_templates
from subtitle_translator.llm_client import LLMClient, create_client

logger = log_mgr.get_logger().getChild("providers.ollama")


class OllamaProvider:
    """Send translation requests through :class:`~subtitle_translator.llm_client.LLMClient`."""

    name = "ollama"

    def __init__(
        self,
        client: Optional[LLMClient] = None,
        *,
        max_concurrent_requests: int = cfg.DEFAULT_MAX_CONCURRENCY,
        temperature: Optional[float] = 0.3,
    ) -> None:
        self._client = client or create_client()
        self.max_concurrent_requests = max(1, int(max_concurrent_requests))
        self.temperature = temperature

    @property
    def model(self) -> str:
        return self._client.model

    @property
    def client(self) -> LLMClient:
        return self._client

    def complete(self, system_prompt: str, payload: str) -> str:
        request = prompt_templates.make_chat_payload(
            payload,
            model=self.model,
            stream=False,
            system_prompt=system_prompt,
        )
        if self.temperature is not None:
            request["options"] = {"temperature": self.temperature}
        response = self._client.send_chat_request(request)
        logger.debug(
            "Ollama request completed",
            extra={
                "event": "provider.ollama.complete",
                "attributes": {"model": self.model, "tokens": response.token_usage},
            },
        )
        return response.text

    def close(self) -> None:
        self._client.close()


__all__ = ["OllamaProvider"]
