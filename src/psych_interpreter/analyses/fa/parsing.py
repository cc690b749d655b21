"""
Factor analysis reply handling: validation gate, pattern extraction, placeholders.
"""

import re

import structlog

from psych_interpreter.analyses.fa.model_data import FAAnalysisData
from psych_interpreter.core.llm_json import normalize_key, validate_component_payload
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

__all__ = ["validate_fa_response", "extract_fa_by_pattern", "default_fa_result"]

UNDEFINED_NAME = "undefined"
UNDEFINED_SUMMARY = "NA"
NOT_FOUND_SUMMARY = "Not found in response"


def _apply_undefined(data: FAAnalysisData, names: dict[str, str], summaries: dict[str, str]) -> ComponentTexts:
    for factor in data.undefined_factors:
        names[factor] = UNDEFINED_NAME
        summaries[factor] = UNDEFINED_SUMMARY
    return ComponentTexts(suggested_names=names, component_summaries=summaries)


def validate_fa_response(payload: dict | list | None, analysis_data: FAAnalysisData) -> ComponentTexts | None:
    """
    Accept a parsed reply only if every factor has a string name and interpretation.

    Factors that are undefined (no significant loadings, emergency rule off)
    are forced to "undefined"/"NA" whatever the reply says.
    """
    names = analysis_data.component_names
    result = validate_component_payload(payload, names, key_aliases(names, "Factor"))
    if not result.valid:
        logger.debug("fa_response_rejected", errors=result.errors[:5], n_errors=len(result.errors))
        return None
    return _apply_undefined(analysis_data, result.names, result.summaries)


def _markers(data: FAAnalysisData) -> dict[str, list[str]]:
    markers = {}
    for position, factor in enumerate(data.component_names, start=1):
        alternatives = [rf"Factor[\s_]*{position}(?!\d)"]
        if normalize_key(factor) != f"factor{position}":
            alternatives.insert(0, re.escape(factor))
        markers[factor] = alternatives
    return markers


def extract_fa_by_pattern(raw: str, analysis_data: FAAnalysisData) -> ComponentTexts | None:
    """
    Recover factor names and interpretations from a reply that is not valid JSON.

    Tries, in order: intact per-factor JSON fragments, ``Factor 2:``/column-name
    markers in prose, then a numbered list. Factors that cannot be found get a
    generic name and "Not found in response".

    Returns:
        ComponentTexts if at least one factor was recovered, None otherwise
    """
    if not raw or not raw.strip():
        return None

    factors = analysis_data.component_names
    found: dict[str, tuple[str | None, str | None]] = dict(
        extract_json_fragments(raw, factors, key_aliases(factors, "Factor"))
    )

    sections = extract_marker_sections(raw, {f: m for f, m in _markers(analysis_data).items() if f not in found})
    for factor, section in sections.items():
        name, summary = split_name_and_summary(section)
        if name or summary:
            found[factor] = (name, summary)

    if not found:
        items = extract_numbered_items(raw, len(factors))
        for position, text in items.items():
            name, summary = split_name_and_summary(text)
            if name or summary:
                found[factors[position - 1]] = (name, summary)

    if not found:
        return None

    names: dict[str, str] = {}
    summaries: dict[str, str] = {}
    for position, factor in enumerate(factors, start=1):
        name, summary = found.get(factor, (None, None))
        names[factor] = name or f"Factor {position}"
        summaries[factor] = summary or NOT_FOUND_SUMMARY

    logger.info("fa_pattern_extraction", recovered=sorted(found), n_factors=len(factors))
    return _apply_undefined(analysis_data, names, summaries)


def default_fa_result(analysis_data: FAAnalysisData) -> ComponentTexts:
    """Deterministic placeholders: "Factor i" / "<factor> interpretation unavailable"."""
    names = {}
    summaries = {}
    for position, factor in enumerate(analysis_data.component_names, start=1):
        names[factor] = f"Factor {position}"
        summaries[factor] = f"{component_display_name(factor, position, 'Factor')} interpretation unavailable"
    return ComponentTexts(suggested_names=names, component_summaries=summaries)
