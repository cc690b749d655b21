"""
interpret() - the single entry point of the interpretation pipeline.

Sequence: resolve options → resolve kind and handlers → obtain an isolated chat
session → build analysis data → build prompts → send → parse → diagnostics →
token accounting → assemble result → render report.

Every option is validated before the chat session is used, so configuration
mistakes never cost a network round trip. A supplied chat session is forked,
never sent to directly.
"""

import time
from collections.abc import Mapping
from dataclasses import replace
from datetime import datetime
from typing import Any

import numpy as np
import structlog

from psych_interpreter.core.analysis_kind import AnalysisKind, coerce_kind
from psych_interpreter.core.chat_session import ChatSession, InterpretationSession, create_chat_session
from psych_interpreter.core.config_loader import get_interpret_config
from psych_interpreter.core.errors import ConfigurationError, LLMRequestError
from psych_interpreter.core.frames import is_frame, normalize_variable_info
from psych_interpreter.core.interpretation import InterpretationResult, LLMInfo, TokenUsage
from psych_interpreter.core.llm_observability import hash_prompt, log_interpretation_event
from psych_interpreter.core.model_extraction import extract_fit_results, is_fitted_model
from psych_interpreter.core.options import LLMOptions, OutputOptions
from psych_interpreter.core.parameters import (
    VERBOSITY_FULL,
    VERBOSITY_SILENT,
    get_parameters_by_group,
    normalize_verbosity,
)
from psych_interpreter.core.registry import AnalysisRegistry
from psych_interpreter.core.response_parser import ParsedComponentResult, parse_llm_response

logger = structlog.get_logger()

__all__ = ["interpret", "check_word_limits"]


def check_word_limits(parsed: ParsedComponentResult, word_limit: int) -> dict[str, int]:
    """
    Log interpretations longer than ``word_limit`` words.

    Returns:
        {component: word count} for the components over the limit
    """
    over = {}
    for component, summary in parsed.component_summaries.items():
        n_words = len(summary.split())
        if n_words > word_limit:
            over[component] = n_words
    if over:
        logger.warning("interpretation_word_limit_exceeded", word_limit=word_limit, components=over)
    return over


def _resolve_kind(
    analysis_type: AnalysisKind | str | None,
    chat_session: Any,
    fit_results: Any,
) -> AnalysisKind:
    requested = None
    if analysis_type is not None:
        requested = coerce_kind(analysis_type)
        if requested is None:
            # Unknown names get the registry's error listing registered kinds
            AnalysisRegistry.get_handlers(analysis_type)

    if isinstance(chat_session, InterpretationSession):
        if requested is not None and requested != chat_session.kind:
            raise ConfigurationError(
                f"analysis_type '{requested.value}' does not match the chat session's analysis type "
                f"'{chat_session.kind.value}'"
            )
        requested = chat_session.kind

    if requested is None and is_fitted_model(fit_results):
        requested, _ = extract_fit_results(fit_results)

    if requested is None:
        raise ConfigurationError(
            "analysis_type is required (one of: "
            + ", ".join(k.value for k in AnalysisKind)
            + ") unless it can be inferred from chat_session or a fitted model"
        )
    return requested


def _analysis_args(kind: AnalysisKind, config: Mapping[str, Any], user_args: dict[str, Any]) -> dict[str, Any]:
    """Configured defaults for this kind's parameters, overridden by explicit arguments."""
    merged = {name: config[name] for name in get_parameters_by_group(kind.value) if name in config}
    merged.update({k: v for k, v in user_args.items() if v is not None})
    return merged


def _obtain_session(
    chat_session: Any,
    kind: AnalysisKind,
    llm_provider: str | None,
    llm_model: str | None,
    system_prompt: str,
    config: Mapping[str, Any],
) -> ChatSession:
    if isinstance(chat_session, InterpretationSession):
        return chat_session.chat.fork()
    if chat_session is not None:
        if not hasattr(chat_session, "fork") or not hasattr(chat_session, "send"):
            raise ConfigurationError(
                f"chat_session must provide send() and fork(), got {type(chat_session).__name__}"
            )
        return chat_session.fork()
    return create_chat_session(
        kind=kind,
        provider=llm_provider or config["llm_provider"],
        model=llm_model or config["llm_model"],
        system_prompt=system_prompt,
    )


def interpret(
    fit_results: Any = None,
    variable_info: Any = None,
    analysis_type: AnalysisKind | str | None = None,
    chat_session: Any = None,
    llm_provider: str | None = None,
    llm_model: str | None = None,
    word_limit: int | None = None,
    additional_info: str | None = None,
    interpretation_guidelines: str | None = None,
    system_prompt: str | None = None,
    echo: str | None = None,
    output_format: str | None = None,
    heading_level: int | None = None,
    suppress_heading: bool | None = None,
    max_line_length: int | None = None,
    verbosity: int | None = None,
    silent: bool | int | None = None,
    data: Any = None,
    config: Mapping[str, Any] | None = None,
    **analysis_args: Any,
) -> InterpretationResult:
    """
    Interpret a fitted model with a language model.

    Args:
        fit_results: Kind-specific fit results (loadings table, mapping of
            mixture components, ...) or a fitted scikit-learn/factor_analyzer model
        variable_info: Variable descriptions (DataFrame with ``variable`` and
            ``description`` columns, or a mapping)
        analysis_type: "fa", "gm", ... (inferred from an InterpretationSession or
            a fitted model when omitted)
        chat_session: Existing ChatSession or InterpretationSession; it is forked
            so its own history is never changed
        llm_provider: Provider for an ad hoc session (default from config)
        llm_model: Model for an ad hoc session (default from config)
        word_limit: Target words per interpretation (20-500)
        additional_info: Study context added to the prompt
        interpretation_guidelines: Guidelines added to the prompt
        system_prompt: Custom system prompt replacing the kind's default
        echo: "none", "output" or "all"
        output_format: "cli" or "markdown"
        heading_level: Report heading depth (1-6)
        suppress_heading: Omit the report heading
        max_line_length: Wrap width for cli reports (40-300)
        verbosity: 0 full report, 1 progress only, 2 silent
        silent: Legacy flag; True means verbosity 2, False verbosity 0
        data: Observations a fitted mixture model was trained on
        config: Defaults mapping (default: get_interpret_config())
        **analysis_args: Kind-specific arguments (cutoff, n_emergency,
            min_cluster_size, ...)

    Returns:
        Immutable InterpretationResult with the rendered report

    Raises:
        ConfigurationError: Invalid options or analysis type (before any LLM call)
        InputValidationError: Malformed or inconsistent inputs
        LLMRequestError: The chat call failed; no partial result is returned

    Examples:
        >>> result = interpret(loadings, variable_info, analysis_type="fa",
        ...                    chat_session=session, silent=True)  # doctest: +SKIP
        >>> result.suggested_names["Factor1"]  # doctest: +SKIP
        'Negative Affect'
    """
    started_at = datetime.now()
    start = time.perf_counter()
    config = get_interpret_config() if config is None else config

    if verbosity is None and silent is None:
        level = normalize_verbosity(config.get("verbosity", VERBOSITY_FULL))
    else:
        level = normalize_verbosity(verbosity, silent)

    if word_limit is None and isinstance(chat_session, InterpretationSession):
        word_limit = chat_session.word_limit

    llm_options = LLMOptions.from_mapping(
        {
            "word_limit": word_limit,
            "additional_info": additional_info,
            "interpretation_guidelines": interpretation_guidelines,
            "system_prompt": system_prompt,
            "echo": echo,
        },
        defaults=config,
    )
    output_options = OutputOptions.from_mapping(
        {
            "output_format": output_format,
            "heading_level": heading_level,
            "suppress_heading": suppress_heading,
            "max_line_length": max_line_length,
            "verbosity": level,
        },
        defaults=config,
    )

    kind = _resolve_kind(analysis_type, chat_session, fit_results)
    handlers = AnalysisRegistry.get_handlers(kind)

    if fit_results is None:
        raise ConfigurationError(f"fit_results is required for analysis_type '{kind.value}'")
    if is_fitted_model(fit_results):
        model_variables = None
        if getattr(fit_results, "feature_names_in_", None) is None and variable_info is not None:
            # Models fitted on bare arrays take their variable order from variable_info
            model_variables = list(normalize_variable_info(variable_info))
        _, fit_results = extract_fit_results(fit_results, kind=kind, variable_names=model_variables, data=data)
    elif not isinstance(fit_results, (Mapping, np.ndarray)) and not is_frame(fit_results):
        # Unrecognized objects get the extractor's error listing supported models
        extract_fit_results(fit_results, kind=kind)

    kind_args = _analysis_args(kind, config, analysis_args)
    analysis_data = handlers.build_data(fit_results, variable_info, **kind_args)

    main_prompt = handlers.build_main_prompt(
        analysis_data,
        llm_options.word_limit,
        llm_options.additional_info,
        llm_options.interpretation_guidelines,
    )
    default_system = llm_options.system_prompt or handlers.build_system_prompt(llm_options.word_limit)

    session = _obtain_session(chat_session, kind, llm_provider, llm_model, default_system, config)
    if llm_options.system_prompt is not None and hasattr(session, "system_prompt"):
        # Only the request-scoped fork is modified
        session.system_prompt = llm_options.system_prompt
    system_text = getattr(session, "system_prompt", None) or default_system
    provider = session.get_provider_name()
    model = session.get_model_name()

    if level < VERBOSITY_SILENT:
        logger.info(
            "interpretation_started",
            analysis_type=kind.value,
            n_components=analysis_data.n_components,
            provider=provider,
            model=model,
        )

    call_start = time.perf_counter()
    try:
        raw_response = session.send(main_prompt, echo=llm_options.echo)
    except Exception as e:
        latency_ms = (time.perf_counter() - call_start) * 1000
        log_interpretation_event(
            event="llm_call_failed",
            analysis_type=kind.value,
            system_prompt=system_text,
            main_prompt=main_prompt,
            provider=provider,
            model=model,
            latency_ms=latency_ms,
            success=False,
            error_type=type(e).__name__,
            error_message=str(e),
        )
        raise LLMRequestError(f"LLM request failed ({provider}/{model}): {e}") from e
    latency_ms = (time.perf_counter() - call_start) * 1000

    parsed = parse_llm_response(raw_response, kind, analysis_data, handlers=handlers)
    check_word_limits(parsed, llm_options.word_limit)
    fit_summary = handlers.build_fit_summary(analysis_data)
    tokens = TokenUsage.from_counts(session.get_token_counts())

    result = InterpretationResult(
        kind=kind,
        analysis_data=analysis_data,
        parsed=parsed,
        fit_summary=fit_summary,
        tokens=tokens,
        elapsed_seconds=time.perf_counter() - start,
        timestamp=started_at,
        llm_info=LLMInfo(provider=provider, model=model, system_prompt=system_text, main_prompt=main_prompt),
        raw_response=raw_response,
        llm_options=llm_options,
        output_options=output_options,
        analysis_args=kind_args,
    )
    result = replace(result, report=handlers.build_report(result, output_options))
    if isinstance(chat_session, InterpretationSession):
        chat_session.record_usage(tokens.input_tokens, tokens.output_tokens)

    log_interpretation_event(
        event="interpretation_completed",
        analysis_type=kind.value,
        system_prompt=system_text,
        main_prompt=main_prompt,
        provider=provider,
        model=model,
        latency_ms=latency_ms,
        success=True,
        parsing_tier=int(parsed.parsing_tier),
        input_tokens=tokens.input_tokens,
        output_tokens=tokens.output_tokens,
    )

    if level < VERBOSITY_SILENT:
        logger.info(
            "interpretation_finished",
            analysis_type=kind.value,
            parsing_tier=parsed.parsing_tier.label,
            elapsed_seconds=round(result.elapsed_seconds, 3),
            prompt_hash=hash_prompt(system_text, main_prompt)[:12],
        )
    if level == VERBOSITY_FULL:
        print(result.report)
    return result
