"""
Chat session contract and the Ollama-backed implementation.

The pipeline depends only on the ChatSession protocol: send a prompt, get the
reply text, read token counts, and fork an isolated copy. Interpretations
always run on a fork, so a caller's session history is never touched.
"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Literal, Protocol, runtime_checkable

import structlog

from psych_interpreter.core.analysis_kind import AnalysisKind, coerce_kind
from psych_interpreter.core.config_loader import get_interpret_config
from psych_interpreter.core.errors import ConfigurationError, LLMRequestError
from psych_interpreter.core.llm_client import OllamaClient
from psych_interpreter.core.parameters import validate_parameter

logger = structlog.get_logger()

__all__ = [
    "ChatSession",
    "ChatTurn",
    "OllamaChatSession",
    "InterpretationSession",
    "create_chat_session",
    "SUPPORTED_PROVIDERS",
]

SUPPORTED_PROVIDERS = ("ollama",)


@runtime_checkable
class ChatSession(Protocol):
    """Narrow contract the orchestrator relies on."""

    def send(self, prompt: str, echo: str = "none") -> str: ...

    def get_token_counts(self) -> dict[str, int]: ...

    def get_provider_name(self) -> str: ...

    def get_model_name(self) -> str | None: ...

    def fork(self) -> "ChatSession": ...


@dataclass
class ChatTurn:
    """One message in a chat session's history."""

    role: Literal["user", "assistant"]
    content: str
    tokens: int = 0
    timestamp: datetime = field(default_factory=datetime.now)


class OllamaChatSession:
    """
    Multi-turn chat with a local Ollama model.

    History is kept in memory; ``fork()`` returns an independent session with
    the same model and system prompt and no turns.
    """

    def __init__(self, client: OllamaClient, system_prompt: str | None = None) -> None:
        self.client = client
        self.system_prompt = system_prompt
        self._turns: list[ChatTurn] = []

    def send(self, prompt: str, echo: str = "none") -> str:
        """
        Send a user prompt and return the assistant reply.

        Args:
            prompt: User message
            echo: "none", "output" (print reply) or "all" (print prompt and reply)

        Raises:
            LLMRequestError: If the client call fails; history is left unchanged
        """
        echo = validate_parameter("echo", echo)
        if echo == "all":
            print(prompt)

        messages = [{"role": t.role, "content": t.content} for t in self._turns]
        messages.append({"role": "user", "content": prompt})

        try:
            reply = self.client.chat(messages, system_prompt=self.system_prompt)
        except LLMRequestError:
            logger.warning("chat_send_failed", provider=self.get_provider_name(), model=self.get_model_name())
            raise

        self._turns.append(ChatTurn(role="user", content=prompt, tokens=reply.prompt_tokens))
        self._turns.append(ChatTurn(role="assistant", content=reply.content, tokens=reply.completion_tokens))

        if echo in ("output", "all"):
            print(reply.content)
        return reply.content

    def get_token_counts(self) -> dict[str, int]:
        """Tokens summed per role across the session history (0 = not reported)."""
        counts = {"user": 0, "assistant": 0}
        for turn in self._turns:
            counts[turn.role] += turn.tokens
        return counts

    def get_turns(self) -> list[ChatTurn]:
        """Copy of the history."""
        return list(self._turns)

    def get_provider_name(self) -> str:
        return "ollama"

    def get_model_name(self) -> str | None:
        return self.client.model

    def fork(self) -> "OllamaChatSession":
        client = OllamaClient(model=self.client.model, base_url=self.client.base_url, timeout=self.client.timeout)
        return OllamaChatSession(client, system_prompt=self.system_prompt)

    def clear(self) -> None:
        self._turns.clear()


@dataclass
class InterpretationSession:
    """
    A chat session pinned to one analysis kind, reusable across interpretations.

    Each interpret() call forks ``chat``; the wrapped session itself is never
    sent to directly by the pipeline. Completed interpretations are counted
    here together with their cumulative token usage. ``word_limit`` is the
    default for interpret() calls that do not pass one.
    """

    kind: AnalysisKind
    chat: ChatSession
    word_limit: int | None = None
    n_interpretations: int = field(default=0, init=False)
    total_input_tokens: int = field(default=0, init=False)
    total_output_tokens: int = field(default=0, init=False)

    def __post_init__(self) -> None:
        resolved = coerce_kind(self.kind)
        if resolved is None:
            raise ConfigurationError(f"Unknown analysis kind {self.kind!r}")
        self.kind = resolved
        if self.word_limit is not None:
            self.word_limit = validate_parameter("word_limit", self.word_limit)

    @property
    def system_prompt(self) -> str | None:
        return getattr(self.chat, "system_prompt", None)

    def record_usage(self, input_tokens: int | None, output_tokens: int | None) -> None:
        """Count one completed interpretation; unknown token counts add nothing."""
        self.n_interpretations += 1
        self.total_input_tokens += input_tokens or 0
        self.total_output_tokens += output_tokens or 0

    def __str__(self) -> str:
        return (
            f"{self.kind.display_name} chat session "
            f"({self.chat.get_provider_name()}/{self.chat.get_model_name() or 'default'})\n"
            f"Interpretations: {self.n_interpretations}\n"
            f"Tokens: input {self.total_input_tokens}, output {self.total_output_tokens}"
        )


def create_chat_session(
    kind: AnalysisKind | str | None = None,
    provider: str | None = None,
    model: str | None = None,
    system_prompt: str | None = None,
    word_limit: int | None = None,
    base_url: str | None = None,
    timeout: float | None = None,
) -> ChatSession:
    """
    Create a chat session for a provider.

    When ``kind`` is given and ``system_prompt`` is not, the kind's default
    system prompt is used.

    Args:
        kind: Analysis kind used to build the default system prompt
        provider: LLM provider (default from config; only "ollama" is supported)
        model: Model name (default from config)
        system_prompt: Custom system prompt
        word_limit: Word limit used in the default system prompt
        base_url: Provider URL override
        timeout: Request timeout override, in seconds

    Raises:
        ConfigurationError: For unsupported providers or invalid options
    """
    config = get_interpret_config()
    provider = (provider or config["llm_provider"]).lower()
    if provider not in SUPPORTED_PROVIDERS:
        raise ConfigurationError(
            f"Unsupported llm_provider '{provider}'. Supported providers: {', '.join(SUPPORTED_PROVIDERS)}"
        )

    word_limit = validate_parameter("word_limit", word_limit if word_limit is not None else config["word_limit"])
    if system_prompt is None and kind is not None:
        from psych_interpreter.core.registry import AnalysisRegistry

        system_prompt = AnalysisRegistry.get_handlers(kind).build_system_prompt(word_limit)

    client = OllamaClient(
        model=model or config["llm_model"],
        base_url=base_url or config["ollama_base_url"],
        timeout=timeout if timeout is not None else config["ollama_timeout_seconds"],
    )
    logger.debug("chat_session_created", provider=provider, model=client.model)
    return OllamaChatSession(client, system_prompt=system_prompt)
