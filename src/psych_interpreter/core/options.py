"""
Typed per-call options for interpret().

Options are resolved once at the call boundary: explicit arguments win over
configured defaults (config_loader), and every field is validated through the
parameter registry. After construction the option objects are immutable.
"""

from dataclasses import asdict, dataclass
from typing import Any

from psych_interpreter.core.errors import ConfigurationError
from psych_interpreter.core.parameters import validate_parameter

__all__ = ["LLMOptions", "OutputOptions", "AnalysisArgs"]


@dataclass(frozen=True)
class LLMOptions:
    """Options that shape the prompt and the chat exchange."""

    word_limit: int = 150
    additional_info: str | None = None
    interpretation_guidelines: str | None = None
    system_prompt: str | None = None
    echo: str = "none"

    def __post_init__(self) -> None:
        for name, value in asdict(self).items():
            object.__setattr__(self, name, validate_parameter(name, value))

    @classmethod
    def from_mapping(cls, values: dict[str, Any] | None, defaults: dict[str, Any] | None = None) -> "LLMOptions":
        """Build from a (possibly partial) mapping, falling back to ``defaults``."""
        return cls(**_merge(cls, values, defaults))


@dataclass(frozen=True)
class OutputOptions:
    """Options for the rendered report and console behaviour."""

    output_format: str = "cli"
    heading_level: int = 1
    suppress_heading: bool = False
    max_line_length: int = 80
    verbosity: int = 0

    def __post_init__(self) -> None:
        for name, value in asdict(self).items():
            object.__setattr__(self, name, validate_parameter(name, value))

    @classmethod
    def from_mapping(
        cls, values: dict[str, Any] | None, defaults: dict[str, Any] | None = None
    ) -> "OutputOptions":
        return cls(**_merge(cls, values, defaults))


def _merge(cls: type, values: dict[str, Any] | None, defaults: dict[str, Any] | None) -> dict[str, Any]:
    fields = cls.__dataclass_fields__
    merged = {k: v for k, v in (defaults or {}).items() if k in fields}
    for key, value in (values or {}).items():
        if key not in fields:
            raise ConfigurationError(
                f"Unknown {cls.__name__} option '{key}'. Valid options: {', '.join(fields)}"
            )
        if value is not None:
            merged[key] = value
    return merged


@dataclass(frozen=True)
class AnalysisArgs:
    """
    Base for kind-specific builder arguments (FAArgs, GMArgs, ...).

    Subclasses declare fields whose names match PARAMETER_REGISTRY entries;
    every field is validated on construction, before any data is touched.
    """

    def __post_init__(self) -> None:
        for name, value in asdict(self).items():
            object.__setattr__(self, name, validate_parameter(name, value))

    @classmethod
    def from_mapping(cls, values: dict[str, Any] | None, defaults: dict[str, Any] | None = None):
        return cls(**_merge(cls, values, defaults))

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)
