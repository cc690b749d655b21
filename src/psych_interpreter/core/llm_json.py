"""
Centralized LLM JSON parsing, repair and validation.

This module is the single choke point for turning LLM reply text into JSON
objects. All parser tiers must use these helpers instead of calling
json.loads() directly.

Key functions:
- parse_json_response: strict parse of raw text (None on failure, never raises)
- clean_json_response: best-effort repair of common LLM JSON malformations
- parse_cleaned_json: slice to the longest balanced object, parse, repair if needed
- validate_component_payload: check a parsed object against the component contract
"""

import json
import re
from dataclasses import dataclass, field
from typing import Any

import structlog

logger = structlog.get_logger()

__all__ = [
    "ValidationResult",
    "parse_json_response",
    "clean_json_response",
    "parse_cleaned_json",
    "normalize_key",
    "validate_component_payload",
]

NAME_FIELD = "name"
SUMMARY_FIELD = "interpretation"

_CODE_FENCE = re.compile(r"```(?:json|JSON)?")
# A value terminator followed by whitespace and then a new "key": means a comma was dropped
_MISSING_COMMA = re.compile(r'([}\]"\d]|true|false|null)\s+(?="[^"\n]*"\s*:)')
_TRAILING_COMMA = re.compile(r",\s*([}\]])")
_WHITESPACE = re.compile(r"\s+")


@dataclass
class ValidationResult:
    """Result of component-contract validation."""

    valid: bool
    errors: list[str]
    names: dict[str, str] = field(default_factory=dict)
    summaries: dict[str, str] = field(default_factory=dict)


def parse_json_response(raw: str | None) -> dict[str, Any] | list[Any] | None:
    """
    Parse raw LLM response into Python dict or list.

    Args:
        raw: Raw text from LLM response (may be None, empty, or malformed)

    Returns:
        Parsed dict/list if valid JSON, None otherwise

    Examples:
        >>> parse_json_response('{"Factor1": {"name": "Anxiety"}}')
        {'Factor1': {'name': 'Anxiety'}}
        >>> parse_json_response('not json') is None
        True
    """
    if raw is None or raw.strip() == "":
        logger.debug("llm_json_parse_empty", raw=raw)
        return None

    try:
        parsed = json.loads(raw)
    except json.JSONDecodeError as e:
        logger.debug(
            "llm_json_parse_failed",
            error=str(e),
            raw_length=len(raw),
            raw_preview=raw[:100],
        )
        return None
    except RecursionError as e:
        logger.warning("llm_json_parse_unexpected_error", error_type=type(e).__name__, error=str(e))
        return None

    if not isinstance(parsed, dict | list):
        logger.debug("llm_json_parse_not_container", parsed_type=type(parsed).__name__)
        return None

    logger.debug("llm_json_parse_success", length=len(raw))
    return parsed


def _balanced_objects(text: str) -> list[str]:
    """
    Top-level balanced ``{...}`` spans of ``text``, in order.

    Quotes are tracked only inside an object: braces within JSON strings are
    ignored and quotes in surrounding prose have no effect. An object that never
    closes is kept up to the last ``}`` so the repair step can still work on it.
    """
    spans: list[str] = []
    depth = 0
    start = 0
    in_string = False
    escaped = False
    for index, char in enumerate(text):
        if in_string:
            if escaped:
                escaped = False
            elif char == "\\":
                escaped = True
            elif char == '"':
                in_string = False
        elif char == '"' and depth > 0:
            in_string = True
        elif char == "{":
            if depth == 0:
                start = index
            depth += 1
        elif char == "}" and depth > 0:
            depth -= 1
            if depth == 0:
                spans.append(text[start : index + 1])

    if depth > 0:
        end = text.rfind("}")
        if end > start:
            spans.append(text[start : end + 1])
    return spans


def _longest_object(text: str) -> str | None:
    """The longest top-level object; braces in surrounding prose form shorter spans."""
    spans = _balanced_objects(text)
    if not spans:
        return None
    return max(spans, key=len)


def clean_json_response(raw: str | None) -> str:
    """
    Repair common LLM JSON malformations (best-effort).

    Steps, in order: drop markdown code fences, cut to the longest balanced ``{...}``,
    collapse whitespace runs, insert commas dropped between adjacent members,
    remove trailing commas before a closing bracket.

    Args:
        raw: Raw LLM reply

    Returns:
        Repaired text (may still be invalid JSON)

    Examples:
        >>> clean_json_response('Sure! {"a": 1 "b": 2,} Thanks')
        '{"a": 1, "b": 2}'
    """
    if not raw:
        return ""

    text = _CODE_FENCE.sub("", raw)
    sliced = _longest_object(text)
    if sliced is not None:
        text = sliced

    text = _WHITESPACE.sub(" ", text)
    text = _MISSING_COMMA.sub(r"\1, ", text)
    text = _TRAILING_COMMA.sub(r"\1", text)
    return text.strip()


def parse_cleaned_json(raw: str | None) -> dict[str, Any] | list[Any] | None:
    """
    Parse the longest balanced object of a reply, repairing it only if needed.

    The sliced object is tried verbatim first so that valid content (including
    whitespace inside strings) survives unchanged; the repaired text is tried
    only when the verbatim slice fails.

    Returns:
        Parsed object, or None if neither attempt succeeds
    """
    if not raw:
        return None

    sliced = _longest_object(_CODE_FENCE.sub("", raw))
    if sliced is not None:
        parsed = parse_json_response(sliced)
        if parsed is not None:
            return parsed

    return parse_json_response(clean_json_response(raw))


def normalize_key(key: str) -> str:
    """Lowercase and strip non-alphanumerics: "Factor 1", "factor_1" -> "factor1"."""
    return re.sub(r"[^a-z0-9]", "", str(key).lower())


def _find_entry(payload: dict[str, Any], component: str, aliases: list[str]) -> tuple[bool, Any]:
    if component in payload:
        return True, payload[component]

    wanted = {normalize_key(component), *(normalize_key(a) for a in aliases)}
    for key, value in payload.items():
        if normalize_key(key) in wanted:
            return True, value
    return False, None


def validate_component_payload(
    payload: dict[str, Any] | list[Any] | None,
    component_names: tuple[str, ...] | list[str],
    aliases: dict[str, list[str]] | None = None,
) -> ValidationResult:
    """
    Validate a parsed reply against the component contract.

    Every declared component must map to an object with a non-blank string
    ``name`` and a non-blank string ``interpretation``. Any violation rejects
    the whole payload. Keys are matched exactly first, then by normalized form
    (case, spaces and punctuation ignored) including optional aliases.

    Args:
        payload: Parsed JSON
        component_names: Declared component identifiers, in order
        aliases: Optional component -> alternative key spellings

    Returns:
        ValidationResult; when valid, ``names``/``summaries`` are in declared order
    """
    if payload is None:
        return ValidationResult(valid=False, errors=["Payload is None"])
    if not isinstance(payload, dict):
        return ValidationResult(valid=False, errors=[f"Expected object, got {type(payload).__name__}"])

    aliases = aliases or {}
    errors: list[str] = []
    names: dict[str, str] = {}
    summaries: dict[str, str] = {}

    for component in component_names:
        found, entry = _find_entry(payload, component, aliases.get(component, []))
        if not found:
            errors.append(f"Missing component: {component}")
            continue
        if not isinstance(entry, dict):
            errors.append(f"Component '{component}' must be an object, got {type(entry).__name__}")
            continue

        for field_name, target in ((NAME_FIELD, names), (SUMMARY_FIELD, summaries)):
            value = entry.get(field_name)
            if not isinstance(value, str):
                errors.append(
                    f"Component '{component}' field '{field_name}' must be a string, got {type(value).__name__}"
                )
            elif not value.strip():
                errors.append(f"Component '{component}' field '{field_name}' is empty")
            else:
                target[component] = value.strip()

    if errors:
        return ValidationResult(valid=False, errors=errors)
    return ValidationResult(valid=True, errors=[], names=names, summaries=summaries)
