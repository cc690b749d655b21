"""
InterpretationResult - the record returned by interpret().

Created once per request and never mutated after it is returned.
"""

from collections.abc import Mapping
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

from psych_interpreter.core.analysis_data import AnalysisData, FitSummary
from psych_interpreter.core.analysis_kind import AnalysisKind
from psych_interpreter.core.options import LLMOptions, OutputOptions
from psych_interpreter.core.response_parser import ParsedComponentResult, ParsingTier

__all__ = ["TokenUsage", "LLMInfo", "InterpretationResult"]

_INPUT_ROLES = ("user", "input", "prompt")
_OUTPUT_ROLES = ("assistant", "output", "completion")


def _known(value: Any) -> int | None:
    """Providers that do not report usage return 0 or nothing: both mean unknown."""
    if value is None or isinstance(value, bool):
        return None
    try:
        count = int(value)
    except (TypeError, ValueError):
        return None
    return count if count > 0 else None


@dataclass(frozen=True)
class TokenUsage:
    """Token counts for one exchange; None means the provider did not report it."""

    input_tokens: int | None = None
    output_tokens: int | None = None

    @classmethod
    def from_counts(cls, counts: Mapping[str, Any] | None) -> "TokenUsage":
        """
        Build from a chat session's ``{role: count}`` mapping.

        Examples:
            >>> TokenUsage.from_counts({"user": 120, "assistant": 0})
            TokenUsage(input_tokens=120, output_tokens=None)
        """
        if not counts:
            return cls()

        def _first(roles: tuple[str, ...]) -> int | None:
            for role in roles:
                if role in counts:
                    return _known(counts[role])
            return None

        return cls(input_tokens=_first(_INPUT_ROLES), output_tokens=_first(_OUTPUT_ROLES))

    @property
    def total(self) -> int | None:
        if self.input_tokens is None and self.output_tokens is None:
            return None
        return (self.input_tokens or 0) + (self.output_tokens or 0)

    def describe(self) -> str:
        def _fmt(value: int | None) -> str:
            return "unknown" if value is None else str(value)

        return f"input {_fmt(self.input_tokens)}, output {_fmt(self.output_tokens)}"


@dataclass(frozen=True)
class LLMInfo:
    provider: str
    model: str | None
    system_prompt: str
    main_prompt: str


@dataclass(frozen=True)
class InterpretationResult:
    """
    Everything produced by one interpretation request.

    Attributes:
        kind: Analysis family
        analysis_data: Normalized inputs the prompt was built from
        parsed: Component names/summaries plus parsing provenance
        fit_summary: Diagnostics computed from analysis_data
        tokens: Token usage for the exchange (None fields = unknown)
        elapsed_seconds: Wall time for the whole request
        timestamp: When the request started
        llm_info: Provider, model and the exact prompts sent
        raw_response: Unmodified reply text
        llm_options: Resolved LLM options
        output_options: Resolved output options
        analysis_args: Resolved kind-specific builder arguments
        report: Rendered report (empty until built)
    """

    kind: AnalysisKind
    analysis_data: AnalysisData
    parsed: ParsedComponentResult
    fit_summary: FitSummary
    tokens: TokenUsage
    elapsed_seconds: float
    timestamp: datetime
    llm_info: LLMInfo
    raw_response: str
    llm_options: LLMOptions
    output_options: OutputOptions
    analysis_args: dict[str, Any] = field(default_factory=dict)
    report: str = ""

    @property
    def component_summaries(self) -> dict[str, str]:
        return dict(self.parsed.component_summaries)

    @property
    def suggested_names(self) -> dict[str, str]:
        return dict(self.parsed.suggested_names)

    @property
    def parsing_tier(self) -> ParsingTier:
        return self.parsed.parsing_tier

    @property
    def is_placeholder(self) -> bool:
        return self.parsed.is_placeholder

    def to_dict(self) -> dict[str, Any]:
        """JSON-safe view (prompts and reply included for auditing)."""
        return {
            "analysis_type": self.kind.value,
            "component_names": list(self.analysis_data.component_names),
            "suggested_names": self.suggested_names,
            "component_summaries": self.component_summaries,
            "parsing_tier": int(self.parsing_tier),
            "parsing_attempts": [dict(a) for a in self.parsed.parsing_attempts],
            "fit_summary": self.fit_summary.to_dict(),
            "tokens": {"input": self.tokens.input_tokens, "output": self.tokens.output_tokens},
            "elapsed_seconds": self.elapsed_seconds,
            "timestamp": self.timestamp.isoformat(),
            "llm_info": {
                "provider": self.llm_info.provider,
                "model": self.llm_info.model,
                "system_prompt": self.llm_info.system_prompt,
                "main_prompt": self.llm_info.main_prompt,
            },
            "raw_response": self.raw_response,
            "params": {
                "word_limit": self.llm_options.word_limit,
                "additional_info": self.llm_options.additional_info,
                "output_format": self.output_options.output_format,
                "heading_level": self.output_options.heading_level,
                **self.analysis_args,
            },
            "variable_info": dict(self.analysis_data.variable_descriptions),
            "report": self.report,
        }
