"""
psych_interpreter - LLM-assisted interpretation of fitted psychometric models.

Public entry point is :func:`psych_interpreter.interpret`. Scripts and
applications call :func:`psych_interpreter.configure_logging` once at start-up
to install log handlers and set the structlog level:

    from psych_interpreter import configure_logging, interpret

    configure_logging()
    result = interpret(loadings, variable_info, analysis_type="fa")
"""

from psych_interpreter.core.analysis_kind import AnalysisKind
from psych_interpreter.core.interpret import interpret
from psych_interpreter.core.interpretation import InterpretationResult
from psych_interpreter.core.logging_config import configure_logging

__all__ = ["AnalysisKind", "InterpretationResult", "configure_logging", "interpret"]

__version__ = "0.1.0"
