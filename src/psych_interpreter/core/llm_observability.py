"""
LLM observability events for interpretation requests.

Key principles:
- NEVER log raw prompt or reply text (may contain study details)
- Log only prompt_hash (SHA256) and sizes
- Every interpretation call emits one event with the same required fields

Required fields for all interpretation events:
- event: str (event name)
- timestamp: datetime
- analysis_type: str (fa|gm|...)
- prompt_hash: str (SHA256 of system + main prompt, never raw text)
- provider / model: str
- parsing_tier: int | None (1-4, None if the call failed)
- latency_ms: float
- input_tokens / output_tokens: int | None (None = not reported)
- success: bool
- error_type / error_message: str | None
"""

import hashlib
from dataclasses import dataclass
from datetime import datetime

import structlog

logger = structlog.get_logger()

__all__ = ["InterpretationEvent", "hash_prompt", "log_interpretation_event"]


@dataclass
class InterpretationEvent:
    """Structured event for one interpretation LLM exchange."""

    event: str
    timestamp: datetime
    analysis_type: str
    prompt_hash: str
    provider: str
    model: str | None
    parsing_tier: int | None
    latency_ms: float
    input_tokens: int | None
    output_tokens: int | None
    success: bool
    error_type: str | None
    error_message: str | None


def hash_prompt(*parts: str) -> str:
    """
    SHA256 over the prompt parts, joined by a NUL separator.

    Examples:
        >>> len(hash_prompt("system", "main"))
        64
        >>> hash_prompt("a", "b") == hash_prompt("a", "b")
        True
    """
    return hashlib.sha256("\x00".join(parts).encode()).hexdigest()


def log_interpretation_event(
    event: str,
    analysis_type: str,
    system_prompt: str,
    main_prompt: str,
    provider: str,
    model: str | None,
    latency_ms: float,
    success: bool,
    parsing_tier: int | None = None,
    input_tokens: int | None = None,
    output_tokens: int | None = None,
    error_type: str | None = None,
    error_message: str | None = None,
) -> InterpretationEvent:
    """
    Log an interpretation event with the required observability schema.

    Prompts are hashed, never logged.

    Returns:
        InterpretationEvent instance
    """
    event_obj = InterpretationEvent(
        event=event,
        timestamp=datetime.now(),
        analysis_type=analysis_type,
        prompt_hash=hash_prompt(system_prompt, main_prompt),
        provider=provider,
        model=model,
        parsing_tier=parsing_tier,
        latency_ms=latency_ms,
        input_tokens=input_tokens,
        output_tokens=output_tokens,
        success=success,
        error_type=error_type,
        error_message=error_message,
    )

    log = logger.info if success else logger.warning
    log(
        event,
        timestamp=event_obj.timestamp.isoformat(),
        analysis_type=analysis_type,
        prompt_hash=event_obj.prompt_hash,
        prompt_chars=len(system_prompt) + len(main_prompt),
        provider=provider,
        model=model,
        parsing_tier=parsing_tier,
        latency_ms=latency_ms,
        input_tokens=input_tokens,
        output_tokens=output_tokens,
        success=success,
        error_type=error_type,
        error_message=error_message,
    )

    return event_obj
