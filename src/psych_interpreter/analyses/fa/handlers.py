"""Factor analysis HandlerSet, discovered by AnalysisRegistry."""

from psych_interpreter.analyses.fa.diagnostics import build_fa_fit_summary
from psych_interpreter.analyses.fa.model_data import build_fa_analysis_data
from psych_interpreter.analyses.fa.parsing import default_fa_result, extract_fa_by_pattern, validate_fa_response
from psych_interpreter.analyses.fa.prompts import build_fa_main_prompt, build_fa_system_prompt
from psych_interpreter.analyses.fa.report import build_fa_report
from psych_interpreter.core.analysis_kind import AnalysisKind
from psych_interpreter.core.registry import HandlerSet

KIND = AnalysisKind.FA

HANDLERS = HandlerSet(
    build_data=build_fa_analysis_data,
    build_system_prompt=build_fa_system_prompt,
    build_main_prompt=build_fa_main_prompt,
    validate_response=validate_fa_response,
    extract_by_pattern=extract_fa_by_pattern,
    default_result=default_fa_result,
    build_fit_summary=build_fa_fit_summary,
    build_report=build_fa_report,
)
