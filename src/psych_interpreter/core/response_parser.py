"""
Four-tier response parser: LLM reply text -> ParsedComponentResult.

Tiers are tried in order; the first one that yields a complete, validated
result wins:

1. CLEANED_JSON - longest balanced object, repaired if needed, then strict parse
2. RAW_JSON - strict parse of the unmodified reply
3. PATTERN - kind-specific regex extraction (markers, quoted keys, lists)
4. DEFAULT - deterministic placeholders, cannot fail

Structured tiers (1-2) pass through the kind's validate_response gate: a
payload missing any component, or with a mistyped field, is rejected as a
whole. Whatever tier wins, the output is keyed by exactly the declared
components in declared order, and the winning tier is recorded.
"""

import re
from collections.abc import Callable, Mapping
from dataclasses import dataclass, field
from enum import IntEnum
from types import MappingProxyType
from typing import Any

import structlog

from psych_interpreter.core.analysis_data import AnalysisData
from psych_interpreter.core.analysis_kind import AnalysisKind
from psych_interpreter.core.llm_json import (
    NAME_FIELD,
    SUMMARY_FIELD,
    normalize_key,
    parse_cleaned_json,
    parse_json_response,
)
from psych_interpreter.core.registry import AnalysisRegistry, HandlerSet

logger = structlog.get_logger()

__all__ = [
    "ParsingTier",
    "ComponentTexts",
    "ParsedComponentResult",
    "parse_llm_response",
    "extract_json_fragments",
    "extract_marker_sections",
    "extract_numbered_items",
    "split_name_and_summary",
    "key_aliases",
    "component_display_name",
]


class ParsingTier(IntEnum):
    """Provenance of a parsed result."""

    CLEANED_JSON = 1
    RAW_JSON = 2
    PATTERN = 3
    DEFAULT = 4

    @property
    def label(self) -> str:
        return _TIER_LABELS[self]


_TIER_LABELS = {
    ParsingTier.CLEANED_JSON: "cleaned JSON",
    ParsingTier.RAW_JSON: "raw JSON",
    ParsingTier.PATTERN: "pattern extraction",
    ParsingTier.DEFAULT: "default placeholders",
}


@dataclass(frozen=True)
class ComponentTexts:
    """Names and summaries produced by a single parsing strategy."""

    suggested_names: dict[str, str]
    component_summaries: dict[str, str]


@dataclass(frozen=True)
class ParsedComponentResult:
    """
    Canonical parser output. Both mappings are read-only.

    Attributes:
        component_summaries: component -> interpretation text, in declared order
        suggested_names: component -> short name, in declared order
        parsing_tier: Tier that produced the result
        parsing_attempts: One entry per tier tried ({"tier", "success", "reason"})
    """

    component_summaries: Mapping[str, str]
    suggested_names: Mapping[str, str]
    parsing_tier: ParsingTier
    parsing_attempts: tuple[dict[str, Any], ...] = field(default=())

    def __post_init__(self) -> None:
        for name in ("component_summaries", "suggested_names"):
            value = getattr(self, name)
            if not isinstance(value, MappingProxyType):
                object.__setattr__(self, name, MappingProxyType(dict(value)))

    @classmethod
    def from_texts(
        cls,
        texts: ComponentTexts,
        component_names: tuple[str, ...],
        tier: ParsingTier,
        attempts: tuple[dict[str, Any], ...] = (),
    ) -> "ParsedComponentResult":
        """
        Build a result keyed by exactly ``component_names``, in that order.

        Raises:
            ValueError: If either mapping's key set differs from ``component_names``
        """
        expected = set(component_names)
        for label, mapping in (("suggested_names", texts.suggested_names), ("component_summaries", texts.component_summaries)):
            if set(mapping) != expected or len(mapping) != len(component_names):
                missing = [c for c in component_names if c not in mapping]
                extra = [k for k in mapping if k not in expected]
                raise ValueError(f"{label} keys do not match components (missing={missing}, unexpected={extra})")

        return cls(
            component_summaries={c: texts.component_summaries[c] for c in component_names},
            suggested_names={c: texts.suggested_names[c] for c in component_names},
            parsing_tier=tier,
            parsing_attempts=attempts,
        )

    @property
    def is_placeholder(self) -> bool:
        """True when no part of the reply could be used."""
        return self.parsing_tier is ParsingTier.DEFAULT


Strategy = Callable[[str, HandlerSet, AnalysisData], ComponentTexts | None]


def _strategy_cleaned_json(raw: str, handlers: HandlerSet, data: AnalysisData) -> ComponentTexts | None:
    payload = parse_cleaned_json(raw)
    if payload is None:
        return None
    return handlers.validate_response(payload, data)


def _strategy_raw_json(raw: str, handlers: HandlerSet, data: AnalysisData) -> ComponentTexts | None:
    payload = parse_json_response(raw)
    if payload is None:
        return None
    return handlers.validate_response(payload, data)


def _strategy_pattern(raw: str, handlers: HandlerSet, data: AnalysisData) -> ComponentTexts | None:
    return handlers.extract_by_pattern(raw, data)


_STRATEGIES: tuple[tuple[ParsingTier, Strategy], ...] = (
    (ParsingTier.CLEANED_JSON, _strategy_cleaned_json),
    (ParsingTier.RAW_JSON, _strategy_raw_json),
    (ParsingTier.PATTERN, _strategy_pattern),
)


def parse_llm_response(
    raw: str | None,
    kind: AnalysisKind | str,
    analysis_data: AnalysisData,
    handlers: HandlerSet | None = None,
) -> ParsedComponentResult:
    """
    Parse an LLM reply into a ParsedComponentResult. Never raises for reply content.

    Args:
        raw: Raw reply text (None and "" are treated as garbage)
        kind: Analysis kind, used to look up handlers when ``handlers`` is None
        analysis_data: Declares the expected components and their order
        handlers: Optional explicit HandlerSet (skips the registry lookup)

    Returns:
        ParsedComponentResult with exactly one entry per declared component

    Raises:
        UnregisteredKindError: If ``kind`` has no handlers (configuration error)
    """
    if handlers is None:
        handlers = AnalysisRegistry.get_handlers(kind)

    text = raw or ""
    components = analysis_data.component_names
    attempts: list[dict[str, Any]] = []

    for tier, strategy in _STRATEGIES:
        try:
            texts = strategy(text, handlers, analysis_data)
        except (ValueError, TypeError, KeyError, AttributeError, IndexError, re.error) as e:
            # A buggy per-kind strategy must not take the pipeline down
            logger.warning("response_parse_strategy_error", tier=tier.name, error_type=type(e).__name__, error=str(e))
            attempts.append({"tier": int(tier), "success": False, "reason": f"{type(e).__name__}: {e}"})
            continue

        if texts is None:
            attempts.append({"tier": int(tier), "success": False, "reason": "no valid result"})
            continue

        try:
            result = ParsedComponentResult.from_texts(texts, components, tier)
        except ValueError as e:
            attempts.append({"tier": int(tier), "success": False, "reason": str(e)})
            continue

        attempts.append({"tier": int(tier), "success": True, "reason": None})
        logger.info("response_parse_tier_succeeded", tier=tier.name, n_components=len(components))
        return _with_attempts(result, attempts)

    texts = handlers.default_result(analysis_data)
    attempts.append({"tier": int(ParsingTier.DEFAULT), "success": True, "reason": None})
    logger.warning(
        "response_parse_fallback_default",
        kind=analysis_data.kind.value,
        n_components=len(components),
        raw_length=len(text),
        raw_preview=text[:100],
    )
    return ParsedComponentResult.from_texts(texts, components, ParsingTier.DEFAULT, tuple(attempts))


def _with_attempts(result: ParsedComponentResult, attempts: list[dict[str, Any]]) -> ParsedComponentResult:
    return ParsedComponentResult(
        component_summaries=result.component_summaries,
        suggested_names=result.suggested_names,
        parsing_tier=result.parsing_tier,
        parsing_attempts=tuple(attempts),
    )


# ============================================================================
# Shared tier-3 helpers used by per-kind extract_by_pattern implementations
# ============================================================================

_FIELD_PATTERNS = {
    NAME_FIELD: re.compile(r'"name"\s*:\s*"((?:[^"\\]|\\.)*)"', re.IGNORECASE),
    SUMMARY_FIELD: re.compile(r'"interpretation"\s*:\s*"((?:[^"\\]|\\.)*)"', re.IGNORECASE),
}
_MAX_NAME_LENGTH = 80


def extract_json_fragments(
    raw: str, component_names: tuple[str, ...], aliases: dict[str, list[str]] | None = None
) -> dict[str, tuple[str, str]]:
    """
    Recover ``"<component>": {"name": ..., "interpretation": ...}`` fragments.

    Used when the reply as a whole is not valid JSON but individual component
    objects are intact.

    Returns:
        component -> (name, summary) for every fragment with both fields non-blank
    """
    aliases = aliases or {}
    found: dict[str, tuple[str, str]] = {}
    for component in component_names:
        spellings = [component, *aliases.get(component, [])]
        for spelling in spellings:
            key_pattern = _loose_key_pattern(spelling)
            match = re.search(rf'"{key_pattern}"\s*:\s*(\{{[^{{}}]*\}})', raw, re.IGNORECASE)
            if match is None:
                continue
            fragment = match.group(1)
            values = {}
            for field_name, pattern in _FIELD_PATTERNS.items():
                field_match = pattern.search(fragment)
                if field_match:
                    values[field_name] = _unescape(field_match.group(1)).strip()
            if values.get(NAME_FIELD) and values.get(SUMMARY_FIELD):
                found[component] = (values[NAME_FIELD], values[SUMMARY_FIELD])
                break
    return found


def _loose_key_pattern(key: str) -> str:
    """Regex matching ``key`` with any spacing/underscore between its alphanumeric runs."""
    parts = re.findall(r"[A-Za-z]+|\d+", key)
    if not parts:
        return re.escape(key)
    return r"[\s_\-.]*".join(re.escape(p) for p in parts)


def _unescape(value: str) -> str:
    parsed = parse_json_response(f'["{value}"]')
    if isinstance(parsed, list) and parsed and isinstance(parsed[0], str):
        return parsed[0]
    return value.replace('\\"', '"')


def extract_marker_sections(raw: str, markers: dict[str, list[str]]) -> dict[str, str]:
    """
    Split prose into per-component sections using label markers.

    A section starts after a marker such as ``Factor 2:`` or ``**Cluster 1** -``
    and runs until the next marker of any component (or the end of the text).

    Args:
        raw: Reply text
        markers: component -> regex alternatives for its label (without delimiter)

    Returns:
        component -> stripped section text, for components whose marker was found
        (first occurrence wins)
    """
    hits: list[tuple[int, int, str]] = []
    for component, alternatives in markers.items():
        if not alternatives:
            continue
        label = "|".join(f"(?:{alt})" for alt in alternatives)
        pattern = re.compile(
            rf'(?<![\w])[#>*\s"]*(?:{label})(?![\w])["*\s]*(?:[:\-–—=]|\*\*)\s*',
            re.IGNORECASE,
        )
        match = pattern.search(raw)
        if match:
            hits.append((match.start(), match.end(), component))

    hits.sort()
    sections: dict[str, str] = {}
    for idx, (_, body_start, component) in enumerate(hits):
        body_end = hits[idx + 1][0] if idx + 1 < len(hits) else len(raw)
        body = raw[body_start:body_end].strip()
        if body:
            sections[component] = body
    return sections


_NUMBERED_ITEM = re.compile(r"^\s*(\d+)[.)]\s+(.+?)\s*$", re.MULTILINE)


def extract_numbered_items(raw: str, n_items: int) -> dict[int, str]:
    """
    Collect ``1. text`` / ``2) text`` list items, 1-based, first occurrence wins.

    Only indices 1..n_items are returned.
    """
    items: dict[int, str] = {}
    for match in _NUMBERED_ITEM.finditer(raw):
        index = int(match.group(1))
        if 1 <= index <= n_items and index not in items:
            items[index] = match.group(2)
    return items


_NAME_SEPARATORS = re.compile(r"\s+[\-–—]\s+|:\s+")
_SENTENCE_END = re.compile(r"(?<=[.!?])\s+")


def split_name_and_summary(section: str) -> tuple[str | None, str | None]:
    """
    Heuristically split a prose section into (short name, interpretation).

    Recognizes embedded ``"name": "..."`` fields, ``Name - summary``,
    ``Name: summary``, a short first line followed by more lines, and a short
    first sentence followed by more text.

    Returns:
        (name, summary); either may be None when it cannot be identified
    """
    if not section or not section.strip():
        return None, None

    name_match = _FIELD_PATTERNS[NAME_FIELD].search(section)
    summary_match = _FIELD_PATTERNS[SUMMARY_FIELD].search(section)
    if name_match or summary_match:
        name = _clean_name(_unescape(name_match.group(1))) if name_match else None
        summary = _unescape(summary_match.group(1)).strip() if summary_match else None
        return name, summary or None

    text = section.strip()
    first_line, _, rest = text.partition("\n")
    first_line = first_line.strip()
    rest = rest.strip()

    quoted = re.match(r'^["“*_]+(.+?)["”*_]+[\s.:\-–—]*(.*)$', first_line)
    if quoted:
        summary = " ".join(part for part in (quoted.group(2).strip(), rest) if part)
        return _clean_name(quoted.group(1)), summary or None

    parts = _NAME_SEPARATORS.split(first_line, maxsplit=1)
    if len(parts) == 2 and len(parts[0].split()) <= 6:
        summary = " ".join(part for part in (parts[1].strip(), rest) if part)
        return _clean_name(parts[0]), summary or None

    sentences = _SENTENCE_END.split(first_line, maxsplit=1)
    if len(sentences) == 2 and len(sentences[0].split()) <= 6:
        summary = " ".join(part for part in (sentences[1].strip(), rest) if part)
        return _clean_name(sentences[0]), summary or None

    if len(first_line.split()) <= 6:
        return _clean_name(first_line), rest or None

    return None, text


def _clean_name(name: str) -> str | None:
    cleaned = name.strip().strip("\"'*_`“”").strip()
    cleaned = cleaned.rstrip(".,;:").strip()
    if not cleaned:
        return None
    return cleaned[:_MAX_NAME_LENGTH]


def key_aliases(component_names: tuple[str, ...], label: str) -> dict[str, list[str]]:
    """Positional aliases ("Factor 1", "Factor_2", ...) for each declared component."""
    return {component: [f"{label}{idx}", f"{label} {idx}"] for idx, component in enumerate(component_names, start=1)}


def component_display_name(component: str, position: int, label: str) -> str:
    """'Factor 2' for generic identifiers (Factor2, factor_2), otherwise the identifier itself."""
    generic = f"{label} {position}"
    return generic if normalize_key(component) == normalize_key(generic) else component
