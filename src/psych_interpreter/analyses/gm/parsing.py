"""
Gaussian mixture reply handling: validation gate, pattern extraction, placeholders.

Cluster keys are matched case-insensitively and spelling-insensitively
("Cluster_1", "cluster 1", "CLUSTER1" all address the first cluster).
"""

import re

import structlog

from psych_interpreter.analyses.gm.model_data import GMAnalysisData
from psych_interpreter.analyses.gm.prompts import describe_cluster_size
from psych_interpreter.core.llm_json import normalize_key, validate_component_payload
from psych_interpreter.core.report_format import format_percent
from psych_interpreter.core.response_parser import (
    ComponentTexts,
    component_display_name,
    extract_json_fragments,
    extract_marker_sections,
    extract_numbered_items,
    key_aliases,
    split_name_and_summary,
)

logger = structlog.get_logger()

__all__ = ["validate_gm_response", "extract_gm_by_pattern", "default_gm_result"]

MIN_SUMMARY_LENGTH = 10
MIN_FOUND_SHARE = 0.5
_QUOTED_VALUE = r'"{key}"\s*:\s*"((?:[^"\\]|\\.)*)"'


def validate_gm_response(payload: dict | list | None, analysis_data: GMAnalysisData) -> ComponentTexts | None:
    """Accept a parsed reply only if every cluster has a string name and interpretation."""
    clusters = analysis_data.component_names
    result = validate_component_payload(payload, clusters, key_aliases(clusters, "Cluster"))
    if not result.valid:
        logger.debug("gm_response_rejected", errors=result.errors[:5], n_errors=len(result.errors))
        return None
    return ComponentTexts(suggested_names=result.names, component_summaries=result.summaries)


def _label_patterns(cluster: str, position: int) -> list[str]:
    alternatives = [rf"Cluster[\s_]*{position}(?!\d)"]
    if normalize_key(cluster) != f"cluster{position}":
        alternatives.insert(0, re.escape(cluster))
    return alternatives


def _quoted_summaries(raw: str, data: GMAnalysisData) -> dict[str, str]:
    """``"Cluster_1": "text"`` pairs (summary only, no name)."""
    found = {}
    for position, cluster in enumerate(data.component_names, start=1):
        for label in _label_patterns(cluster, position):
            match = re.search(_QUOTED_VALUE.format(key=label), raw, re.IGNORECASE)
            if match and match.group(1).strip():
                found[cluster] = match.group(1).replace('\\"', '"').strip()
                break
    return found


def _placeholder_summary(data: GMAnalysisData, position: int) -> str:
    cluster = data.component_names[position - 1]
    proportion = float(data.proportions[position - 1])
    return (
        f"{component_display_name(cluster, position, 'Cluster')} interpretation unavailable: "
        f"a {describe_cluster_size(proportion)} cluster ({format_percent(proportion)} of observations)"
    )


def extract_gm_by_pattern(raw: str, analysis_data: GMAnalysisData) -> ComponentTexts | None:
    """
    Recover cluster names and interpretations from a reply that is not valid JSON.

    Tries, in order: intact per-cluster JSON fragments, ``"Cluster_1": "text"``
    pairs, ``Cluster 1:`` / ``**Cluster 1**`` markers, then a numbered list.
    Summaries shorter than 10 characters are ignored. At least half of the
    clusters must be recovered; the rest get placeholder text.

    Returns:
        ComponentTexts, or None if fewer than half of the clusters were found
    """
    if not raw or not raw.strip():
        return None

    clusters = analysis_data.component_names
    found: dict[str, tuple[str | None, str | None]] = dict(
        extract_json_fragments(raw, clusters, key_aliases(clusters, "Cluster"))
    )

    for cluster, summary in _quoted_summaries(raw, analysis_data).items():
        if cluster not in found:
            found[cluster] = (None, summary)

    markers = {
        cluster: _label_patterns(cluster, position)
        for position, cluster in enumerate(clusters, start=1)
        if cluster not in found
    }
    for cluster, section in extract_marker_sections(raw, markers).items():
        found[cluster] = split_name_and_summary(section)

    if not found:
        for position, text in extract_numbered_items(raw, len(clusters)).items():
            found[clusters[position - 1]] = split_name_and_summary(text)

    usable = {c: v for c, v in found.items() if v[1] and len(v[1]) >= MIN_SUMMARY_LENGTH}
    if not usable or len(usable) < MIN_FOUND_SHARE * len(clusters):
        logger.debug("gm_pattern_extraction_insufficient", recovered=len(usable), n_clusters=len(clusters))
        return None

    names: dict[str, str] = {}
    summaries: dict[str, str] = {}
    for position, cluster in enumerate(clusters, start=1):
        name, summary = usable.get(cluster, (None, None))
        names[cluster] = name or f"Cluster {position}"
        summaries[cluster] = summary or _placeholder_summary(analysis_data, position)

    logger.info("gm_pattern_extraction", recovered=sorted(usable), n_clusters=len(clusters))
    return ComponentTexts(suggested_names=names, component_summaries=summaries)


def default_gm_result(analysis_data: GMAnalysisData) -> ComponentTexts:
    """Deterministic placeholders: "Cluster k" / "<cluster> interpretation unavailable: ..."."""
    names = {}
    summaries = {}
    for position, cluster in enumerate(analysis_data.component_names, start=1):
        names[cluster] = f"Cluster {position}"
        summaries[cluster] = _placeholder_summary(analysis_data, position)
    return ComponentTexts(suggested_names=names, component_summaries=summaries)
