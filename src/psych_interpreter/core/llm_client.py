"""
LLM client for a local Ollama service.

Privacy-preserving: prompts and data stay on-device, no external API calls.
"""

from dataclasses import dataclass
from typing import Any

import requests
import structlog

from psych_interpreter.core.errors import LLMRequestError

logger = structlog.get_logger()

__all__ = ["OllamaClient", "ChatReply"]


@dataclass(frozen=True)
class ChatReply:
    """Assistant reply plus the token counts Ollama reports (0 when absent)."""

    content: str
    prompt_tokens: int = 0
    completion_tokens: int = 0


class OllamaClient:
    """
    Client for a local Ollama LLM service.

    Provides connection checks, model availability and non-streaming chat.
    Chat failures raise LLMRequestError chained to the underlying cause.
    """

    def __init__(
        self,
        model: str = "llama3.1:8b",
        base_url: str = "http://localhost:11434",
        timeout: float = 120.0,
    ):
        """
        Initialize Ollama client.

        Args:
            model: Model name (default: llama3.1:8b)
            base_url: Ollama service URL (default: http://localhost:11434)
            timeout: Request timeout in seconds (default: 120.0)
        """
        self.model = model
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self._connection_checked = False
        self._is_available = False

    def is_available(self) -> bool:
        """
        Check if Ollama service is running (cached after the first check).

        Returns:
            True if Ollama is available, False otherwise
        """
        if self._connection_checked:
            return self._is_available

        self._is_available = self._check_connection()
        self._connection_checked = True
        return self._is_available

    def _check_connection(self) -> bool:
        try:
            response = requests.get(f"{self.base_url}/api/tags", timeout=self.timeout)
            return response.status_code == 200
        except requests.RequestException as e:
            logger.warning(
                "ollama_connection_failed",
                error=str(e),
                base_url=self.base_url,
            )
            return False

    def is_model_available(self, model: str | None = None) -> bool:
        """
        Check if a model is downloaded and available.

        Args:
            model: Model name to check (default: the client's model)

        Returns:
            True if model is available, False otherwise
        """
        model = model or self.model
        if not self.is_available():
            return False

        try:
            response = requests.get(f"{self.base_url}/api/tags", timeout=self.timeout)
            if response.status_code != 200:
                return False

            models_data = response.json()
            available_models = [m["name"] for m in models_data.get("models", [])]
            return model in available_models

        except (requests.RequestException, ValueError, KeyError) as e:
            logger.warning(
                "ollama_model_check_failed",
                error=str(e),
                model=model,
            )
            return False

    def chat(
        self,
        messages: list[dict[str, str]],
        system_prompt: str | None = None,
        json_mode: bool = True,
    ) -> ChatReply:
        """
        Send a conversation to /api/chat and return the assistant reply.

        Args:
            messages: Prior turns plus the new user message ({"role", "content"})
            system_prompt: Optional system prompt, sent as the first message
            json_mode: Ask Ollama to constrain output to JSON (default: True)

        Returns:
            ChatReply with content and token counts

        Raises:
            LLMRequestError: On connection errors, timeouts, non-200 status or a
                malformed response body
        """
        payload: dict[str, Any] = {
            "model": self.model,
            "messages": ([{"role": "system", "content": system_prompt}] if system_prompt else []) + list(messages),
            "stream": False,
        }
        if json_mode:
            payload["format"] = "json"

        try:
            response = requests.post(f"{self.base_url}/api/chat", json=payload, timeout=self.timeout)
        except requests.Timeout as e:
            logger.warning("ollama_timeout", timeout_seconds=self.timeout, model=self.model)
            raise LLMRequestError(f"Ollama request timed out after {self.timeout}s (model {self.model})") from e
        except requests.RequestException as e:
            logger.warning("ollama_chat_error", error=str(e), model=self.model)
            raise LLMRequestError(f"Ollama request failed: {e}") from e

        if response.status_code != 200:
            logger.warning("ollama_chat_failed", status_code=response.status_code, model=self.model)
            raise LLMRequestError(
                f"Ollama returned HTTP {response.status_code} for model {self.model}: {response.text[:200]}"
            )

        try:
            body = response.json()
            content = body["message"]["content"]
        except (ValueError, KeyError, TypeError) as e:
            raise LLMRequestError(f"Malformed Ollama chat response: {e}") from e

        return ChatReply(
            content=content or "",
            prompt_tokens=int(body.get("prompt_eval_count") or 0),
            completion_tokens=int(body.get("eval_count") or 0),
        )
