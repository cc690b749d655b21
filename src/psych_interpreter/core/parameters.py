"""
Parameter registry: single source of truth for option defaults and bounds.

Every user-facing option accepted by interpret() and the per-kind data builders
is declared here once, with its default, type and constraint. Validation
messages always name the offending field and its constraint.
"""

from dataclasses import dataclass
from typing import Any

from psych_interpreter.core.errors import ConfigurationError

__all__ = [
    "ParameterSpec",
    "PARAMETER_REGISTRY",
    "get_default",
    "get_parameters_by_group",
    "validate_parameter",
    "normalize_verbosity",
    "VERBOSITY_FULL",
    "VERBOSITY_PROGRESS",
    "VERBOSITY_SILENT",
]

VERBOSITY_FULL = 0
VERBOSITY_PROGRESS = 1
VERBOSITY_SILENT = 2


@dataclass(frozen=True)
class ParameterSpec:
    """Declaration of one configurable parameter."""

    name: str
    default: Any
    kind: str  # "int" | "float" | "bool" | "str" | "str_list"
    group: str  # "llm" | "output" | "fa" | "gm"
    description: str
    min_value: float | None = None
    max_value: float | None = None
    allowed_values: tuple[str, ...] | None = None
    nullable: bool = False

    def constraint(self) -> str:
        """Human-readable constraint used in error messages."""
        if self.allowed_values is not None:
            return "one of " + ", ".join(f'"{v}"' for v in self.allowed_values)
        if self.kind in ("int", "float"):
            noun = "an integer" if self.kind == "int" else "a number"
            if self.min_value is not None and self.max_value is not None:
                return f"{noun} between {_fmt(self.min_value)} and {_fmt(self.max_value)}"
            if self.min_value is not None:
                return f"{noun} >= {_fmt(self.min_value)}"
            return noun
        if self.kind == "bool":
            return "TRUE/FALSE (bool)"
        if self.kind == "str_list":
            return "a list of strings"
        return "a string"


def _fmt(value: float) -> str:
    return str(int(value)) if float(value).is_integer() else str(value)


PARAMETER_REGISTRY: dict[str, ParameterSpec] = {
    # LLM interaction
    "word_limit": ParameterSpec(
        "word_limit", 150, "int", "llm", "Target word count for each component interpretation", 20, 500
    ),
    "echo": ParameterSpec(
        "echo", "none", "str", "llm", "Echo prompts/replies to stdout", allowed_values=("none", "output", "all")
    ),
    "additional_info": ParameterSpec(
        "additional_info", None, "str", "llm", "Free-text study context appended to the prompt", nullable=True
    ),
    "interpretation_guidelines": ParameterSpec(
        "interpretation_guidelines",
        None,
        "str",
        "llm",
        "Custom guidelines replacing the default interpretation guidelines",
        nullable=True,
    ),
    "system_prompt": ParameterSpec(
        "system_prompt", None, "str", "llm", "Custom system prompt replacing the default one", nullable=True
    ),
    # Output
    "output_format": ParameterSpec(
        "output_format", "cli", "str", "output", "Report style", allowed_values=("cli", "markdown")
    ),
    "heading_level": ParameterSpec("heading_level", 1, "int", "output", "Markdown heading depth", 1, 6),
    "suppress_heading": ParameterSpec("suppress_heading", False, "bool", "output", "Omit the report heading"),
    "max_line_length": ParameterSpec(
        "max_line_length", 80, "int", "output", "Wrap width for console output", 40, 300
    ),
    "verbosity": ParameterSpec(
        "verbosity", VERBOSITY_FULL, "int", "output", "0 = full output, 1 = progress only, 2 = silent", 0, 2
    ),
    # Factor analysis
    "cutoff": ParameterSpec("cutoff", 0.3, "float", "fa", "Minimum |loading| considered significant", 0, 1),
    "n_emergency": ParameterSpec(
        "n_emergency", 2, "int", "fa", "Top-N loadings used when a factor has none above cutoff", 0
    ),
    "hide_low_loadings": ParameterSpec(
        "hide_low_loadings", False, "bool", "fa", "Only show significant loadings in the prompt"
    ),
    "sort_loadings": ParameterSpec(
        "sort_loadings", True, "bool", "fa", "Sort selected loadings by absolute magnitude"
    ),
    # Gaussian mixture
    "min_cluster_size": ParameterSpec(
        "min_cluster_size", 5, "int", "gm", "Clusters smaller than this are flagged", 1
    ),
    "separation_threshold": ParameterSpec(
        "separation_threshold", 0.3, "float", "gm", "Average uncertainty above which clusters are flagged", 0, 1
    ),
    "profile_variables": ParameterSpec(
        "profile_variables", None, "str_list", "gm", "Subset of variables shown in cluster profiles", nullable=True
    ),
    "weight_by_uncertainty": ParameterSpec(
        "weight_by_uncertainty", False, "bool", "gm", "Report membership uncertainty in cluster profiles"
    ),
    "top_n_distinguishing": ParameterSpec(
        "top_n_distinguishing", 5, "int", "gm", "Distinguishing variables listed per cluster", 1
    ),
}


def get_default(name: str) -> Any:
    """Return the registered default for a parameter."""
    return PARAMETER_REGISTRY[name].default


def get_parameters_by_group(group: str) -> dict[str, ParameterSpec]:
    return {name: spec for name, spec in PARAMETER_REGISTRY.items() if spec.group == group}


def validate_parameter(name: str, value: Any) -> Any:
    """
    Validate a parameter value against its registered constraint.

    Args:
        name: Registered parameter name
        value: Candidate value

    Returns:
        The value, with ints widened to float for float parameters

    Raises:
        ConfigurationError: If the parameter is unknown or the value violates its constraint
    """
    spec = PARAMETER_REGISTRY.get(name)
    if spec is None:
        raise ConfigurationError(f"Unknown parameter '{name}'. Known parameters: {', '.join(PARAMETER_REGISTRY)}")

    if value is None:
        if spec.nullable:
            return None
        raise ConfigurationError(f"'{name}' must be {spec.constraint()}, got None")

    def _fail() -> ConfigurationError:
        return ConfigurationError(f"'{name}' must be {spec.constraint()}, got {value!r}")

    # bool is an int subclass, reject it for numeric parameters
    if spec.kind == "bool":
        if not isinstance(value, bool):
            raise _fail()
    elif spec.kind == "int":
        if isinstance(value, bool) or not isinstance(value, int):
            if isinstance(value, float) and value.is_integer():
                value = int(value)
            else:
                raise _fail()
    elif spec.kind == "float":
        if isinstance(value, bool) or not isinstance(value, int | float):
            raise _fail()
        value = float(value)
    elif spec.kind == "str":
        if not isinstance(value, str):
            raise _fail()
    elif spec.kind == "str_list":
        if not isinstance(value, list | tuple) or not all(isinstance(v, str) for v in value):
            raise _fail()
        value = list(value)

    if spec.allowed_values is not None and value not in spec.allowed_values:
        raise _fail()
    if spec.min_value is not None and value < spec.min_value:
        raise _fail()
    if spec.max_value is not None and value > spec.max_value:
        raise _fail()
    return value


def normalize_verbosity(verbosity: int | bool | None = None, silent: int | bool | None = None) -> int:
    """
    Translate verbosity inputs to the canonical integer level.

    Accepts the legacy boolean ``silent`` flag (True -> 2, False -> 0) or an
    integer level in 0..2. ``verbosity`` takes precedence when both are given.

    Raises:
        ConfigurationError: For anything that is not a bool or an int in 0..2
    """
    value = verbosity if verbosity is not None else silent
    if value is None:
        return VERBOSITY_FULL
    if isinstance(value, bool):
        return VERBOSITY_SILENT if value else VERBOSITY_FULL
    return validate_parameter("verbosity", value)
