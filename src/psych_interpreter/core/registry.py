"""
Analysis Type Registry - maps each AnalysisKind to its HandlerSet.

This module replaces per-kind if/else chains with a closed registry: every
analysis family supplies one HandlerSet, registered once per process. Built-in
kinds live under psych_interpreter.analyses.<kind>.handlers and are discovered
on first lookup.
"""

import importlib
import logging
import pkgutil
import threading
from collections.abc import Callable
from dataclasses import dataclass, fields

from psych_interpreter.core.analysis_kind import IMPLEMENTED_KINDS, AnalysisKind, coerce_kind
from psych_interpreter.core.errors import (
    ConfigurationError,
    DuplicateRegistrationError,
    IncompleteHandlerSetError,
    KindNotImplementedError,
    UnregisteredKindError,
)

logger = logging.getLogger(__name__)

__all__ = ["HandlerSet", "AnalysisRegistry", "HANDLER_SLOTS"]

ANALYSES_PACKAGE = "psych_interpreter.analyses"


@dataclass(frozen=True)
class HandlerSet:
    """
    The eight functions an analysis kind must provide.

    Slots:
        build_data: (fit_results, variable_info, **analysis_args) -> AnalysisData
        build_system_prompt: (word_limit) -> str
        build_main_prompt: (analysis_data, word_limit, additional_info, interpretation_guidelines) -> str
        validate_response: (payload, analysis_data) -> ComponentTexts | None
        extract_by_pattern: (raw_text, analysis_data) -> ComponentTexts | None
        default_result: (analysis_data) -> ComponentTexts
        build_fit_summary: (analysis_data) -> FitSummary
        build_report: (interpretation_result, output_options) -> str
    """

    build_data: Callable | None = None
    build_system_prompt: Callable | None = None
    build_main_prompt: Callable | None = None
    validate_response: Callable | None = None
    extract_by_pattern: Callable | None = None
    default_result: Callable | None = None
    build_fit_summary: Callable | None = None
    build_report: Callable | None = None

    def missing_slots(self) -> list[str]:
        """Names of slots that are unset or not callable."""
        return [f.name for f in fields(self) if not callable(getattr(self, f.name))]


HANDLER_SLOTS = tuple(f.name for f in fields(HandlerSet))


class AnalysisRegistry:
    """
    Process-wide registry of analysis kinds.

    Write-once per kind, read-many. There is no unregister; reset() exists for tests.
    """

    _handlers: dict[AnalysisKind, HandlerSet] = {}
    _discovered: bool = False
    _lock = threading.RLock()

    @classmethod
    def register(cls, kind: AnalysisKind | str, handler_set: HandlerSet) -> None:
        """
        Register the HandlerSet for an analysis kind.

        Re-registering the identical HandlerSet is a no-op.

        Args:
            kind: Analysis kind (enum member or value)
            handler_set: Complete set of handlers

        Raises:
            ConfigurationError: If ``kind`` is not a known AnalysisKind
            IncompleteHandlerSetError: If any handler slot is missing
            DuplicateRegistrationError: If ``kind`` already has a different HandlerSet
        """
        resolved = coerce_kind(kind)
        if resolved is None:
            raise ConfigurationError(
                f"Cannot register unknown analysis kind {kind!r}. "
                f"Known kinds: {', '.join(k.value for k in AnalysisKind)}"
            )
        if not isinstance(handler_set, HandlerSet):
            raise ConfigurationError(
                f"register() expects a HandlerSet for '{resolved.value}', got {type(handler_set).__name__}"
            )

        missing = handler_set.missing_slots()
        if missing:
            raise IncompleteHandlerSetError(resolved.value, missing)

        with cls._lock:
            existing = cls._handlers.get(resolved)
            if existing is not None:
                if existing == handler_set:
                    return
                raise DuplicateRegistrationError(
                    f"Analysis kind '{resolved.value}' is already registered with a different HandlerSet"
                )
            cls._handlers[resolved] = handler_set
            logger.debug(f"Registered analysis kind: {resolved.value}")

    @classmethod
    def discover(cls) -> list[AnalysisKind]:
        """
        Import built-in analysis packages and register their handlers.

        Each subpackage of psych_interpreter.analyses exposes ``KIND`` and
        ``HANDLERS`` in its ``handlers`` module.

        Returns:
            Kinds registered by this call
        """
        with cls._lock:
            if cls._discovered:
                return []

            registered: list[AnalysisKind] = []
            package = importlib.import_module(ANALYSES_PACKAGE)
            for module_info in pkgutil.iter_modules(package.__path__):
                if not module_info.ispkg:
                    continue
                module_name = f"{ANALYSES_PACKAGE}.{module_info.name}.handlers"
                try:
                    module = importlib.import_module(module_name)
                except ModuleNotFoundError as e:
                    if e.name == module_name:
                        logger.debug(f"Skipping {module_info.name}: no handlers module")
                        continue
                    raise

                kind = getattr(module, "KIND", None)
                handler_set = getattr(module, "HANDLERS", None)
                if kind is None or handler_set is None:
                    raise ConfigurationError(f"{module_name} must define both KIND and HANDLERS")

                cls.register(kind, handler_set)
                registered.append(coerce_kind(kind))

            cls._discovered = True
            return registered

    @classmethod
    def get_handlers(cls, kind: AnalysisKind | str) -> HandlerSet:
        """
        Look up the HandlerSet for a kind.

        Args:
            kind: Analysis kind (enum member or value, case-insensitive)

        Returns:
            Registered HandlerSet

        Raises:
            KindNotImplementedError: If ``kind`` is a planned but unimplemented kind
            UnregisteredKindError: If ``kind`` is unknown or has no handlers
        """
        cls.discover()
        resolved = coerce_kind(kind)
        registered = cls.list_kinds()

        if resolved is not None and resolved in cls._handlers:
            return cls._handlers[resolved]

        label = resolved.value if resolved is not None else str(kind)
        if resolved is not None and resolved not in IMPLEMENTED_KINDS:
            raise KindNotImplementedError(label, registered)
        raise UnregisteredKindError(label, registered)

    lookup = get_handlers

    @classmethod
    def is_registered(cls, kind: AnalysisKind | str) -> bool:
        cls.discover()
        resolved = coerce_kind(kind)
        return resolved is not None and resolved in cls._handlers

    @classmethod
    def list_kinds(cls) -> list[str]:
        """Registered kind values in enum declaration order."""
        return [k.value for k in AnalysisKind if k in cls._handlers]

    @classmethod
    def reset(cls) -> None:
        """Clear all registrations (mainly for testing)."""
        with cls._lock:
            cls._handlers = {}
            cls._discovered = False
