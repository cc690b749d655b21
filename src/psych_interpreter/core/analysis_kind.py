"""
Analysis kinds supported by the interpretation pipeline.

The set of kinds is closed: adding a family means adding an enum member here
and registering a HandlerSet for it (see registry.py).
"""

from enum import Enum

__all__ = ["AnalysisKind", "IMPLEMENTED_KINDS", "coerce_kind"]


class AnalysisKind(Enum):
    """
    Analysis families understood by the pipeline.

    - FA: exploratory/confirmatory factor analysis (factors as components)
    - GM: Gaussian mixture models (clusters as components)
    - IRT: item response theory (planned)
    - CDM: cognitive diagnosis models (planned)
    """

    FA = "fa"
    GM = "gm"
    IRT = "irt"
    CDM = "cdm"

    @property
    def display_name(self) -> str:
        return _DISPLAY_NAMES[self]

    @property
    def component_label(self) -> str:
        """Singular noun for one interpreted unit ("Factor", "Cluster", ...)."""
        return _COMPONENT_LABELS[self]


_DISPLAY_NAMES = {
    AnalysisKind.FA: "Factor Analysis",
    AnalysisKind.GM: "Gaussian Mixture Model",
    AnalysisKind.IRT: "Item Response Theory",
    AnalysisKind.CDM: "Cognitive Diagnosis Model",
}

_COMPONENT_LABELS = {
    AnalysisKind.FA: "Factor",
    AnalysisKind.GM: "Cluster",
    AnalysisKind.IRT: "Item",
    AnalysisKind.CDM: "Attribute",
}

IMPLEMENTED_KINDS = frozenset({AnalysisKind.FA, AnalysisKind.GM})


def coerce_kind(kind: "AnalysisKind | str") -> AnalysisKind | None:
    """
    Resolve a kind given as enum member or string value.

    Args:
        kind: AnalysisKind member or its value ("fa", "GM", ...)

    Returns:
        Matching AnalysisKind, or None if the value is not a known kind
    """
    if isinstance(kind, AnalysisKind):
        return kind
    if isinstance(kind, str):
        try:
            return AnalysisKind(kind.strip().lower())
        except ValueError:
            return None
    return None
