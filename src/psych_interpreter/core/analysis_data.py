"""
Base records shared by every analysis kind.

Kind-specific records (FAAnalysisData, GMAnalysisData, ...) extend these in
psych_interpreter.analyses.<kind>. All records are frozen: they are built once
per request and never mutated afterwards.
"""

from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any

from psych_interpreter.core.analysis_kind import AnalysisKind

__all__ = ["AnalysisData", "FitSummary"]


@dataclass(frozen=True, eq=False, kw_only=True)
class AnalysisData:
    """
    Normalized, kind-specific input to the interpretation pipeline.

    Attributes:
        kind: Analysis family this record belongs to
        component_names: Declared component identifiers (factor or cluster names), in order
        variable_names: Observed variable identifiers, in table order
        variable_descriptions: variable -> human description (read-only mapping)
    """

    kind: AnalysisKind
    component_names: tuple[str, ...]
    variable_names: tuple[str, ...]
    variable_descriptions: MappingProxyType = field(default_factory=lambda: MappingProxyType({}))

    def __post_init__(self) -> None:
        if not isinstance(self.variable_descriptions, MappingProxyType):
            object.__setattr__(self, "variable_descriptions", MappingProxyType(dict(self.variable_descriptions)))
        if len(set(self.component_names)) != len(self.component_names):
            raise ValueError(f"Duplicate component names: {list(self.component_names)}")

    @property
    def n_components(self) -> int:
        return len(self.component_names)

    @property
    def n_variables(self) -> int:
        return len(self.variable_names)

    def describe(self, variable: str) -> str:
        """Description for ``variable``, or the identifier itself when none was given."""
        return self.variable_descriptions.get(variable, variable)


@dataclass(frozen=True, kw_only=True)
class FitSummary:
    """
    Diagnostics computed from AnalysisData alone (never from the LLM reply).

    Attributes:
        kind: Analysis family
        warnings: Issues a reviewer should look at, in a stable order
        notes: Informational remarks
        statistics: Scalar fit statistics (may be empty)
    """

    kind: AnalysisKind
    warnings: tuple[str, ...] = ()
    notes: tuple[str, ...] = ()
    statistics: dict[str, Any] = field(default_factory=dict)

    @property
    def has_warnings(self) -> bool:
        return bool(self.warnings)

    def to_dict(self) -> dict[str, Any]:
        return {
            "kind": self.kind.value,
            "warnings": list(self.warnings),
            "notes": list(self.notes),
            "statistics": dict(self.statistics),
        }
