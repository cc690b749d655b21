"""Gaussian mixture HandlerSet, discovered by AnalysisRegistry."""

from psych_interpreter.analyses.gm.diagnostics import build_gm_fit_summary
from psych_interpreter.analyses.gm.model_data import build_gm_analysis_data
from psych_interpreter.analyses.gm.parsing import default_gm_result, extract_gm_by_pattern, validate_gm_response
from psych_interpreter.analyses.gm.prompts import build_gm_main_prompt, build_gm_system_prompt
from psych_interpreter.analyses.gm.report import build_gm_report
from psych_interpreter.core.analysis_kind import AnalysisKind
from psych_interpreter.core.registry import HandlerSet

KIND = AnalysisKind.GM

HANDLERS = HandlerSet(
    build_data=build_gm_analysis_data,
    build_system_prompt=build_gm_system_prompt,
    build_main_prompt=build_gm_main_prompt,
    validate_response=validate_gm_response,
    extract_by_pattern=extract_gm_by_pattern,
    default_result=default_gm_result,
    build_fit_summary=build_gm_fit_summary,
    build_report=build_gm_report,
)
