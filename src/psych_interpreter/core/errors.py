"""
Exception taxonomy for the interpretation pipeline.

Four failure classes are distinguished:
- Configuration errors: bad options, unknown/unimplemented kinds, incomplete
  handler registration. Raised before any network call.
- Input validation errors: malformed or inconsistent analysis inputs. Raised
  before prompting.
- LLM request errors: the chat collaborator failed. Always chained to the cause.
- Reply degradation is NOT an exception: the response parser falls back to
  placeholders and records the tier instead.
"""

__all__ = [
    "InterpretationError",
    "ConfigurationError",
    "UnregisteredKindError",
    "KindNotImplementedError",
    "IncompleteHandlerSetError",
    "DuplicateRegistrationError",
    "InputValidationError",
    "UnsupportedModelError",
    "LLMRequestError",
]


class InterpretationError(Exception):
    """Base class for all errors raised by psych_interpreter."""


class ConfigurationError(InterpretationError, ValueError):
    """Invalid option value or registry misconfiguration."""


class UnregisteredKindError(ConfigurationError, KeyError):
    """Lookup of an analysis kind that has no registered HandlerSet."""

    def __init__(self, kind: str, registered: list[str], message: str | None = None):
        self.kind = kind
        self.registered = registered
        if message is None:
            message = (
                f"Analysis kind '{kind}' is not registered. "
                f"Registered kinds: {', '.join(registered) if registered else '(none)'}"
            )
        super().__init__(message)

    def __str__(self) -> str:
        # KeyError would otherwise repr() the message
        return str(self.args[0])


class KindNotImplementedError(UnregisteredKindError):
    """A known analysis kind whose handlers have not been implemented yet."""

    def __init__(self, kind: str, registered: list[str]):
        message = (
            f"Analysis kind '{kind}' is not implemented yet. "
            f"Registered kinds: {', '.join(registered) if registered else '(none)'}"
        )
        super().__init__(kind, registered, message)


class IncompleteHandlerSetError(ConfigurationError):
    """A HandlerSet is missing one or more required handler slots."""

    def __init__(self, kind: str, missing: list[str]):
        self.kind = kind
        self.missing = missing
        super().__init__(f"HandlerSet for '{kind}' is missing required handlers: {', '.join(missing)}")


class DuplicateRegistrationError(ConfigurationError):
    """An analysis kind was registered again with a different HandlerSet."""


class InputValidationError(InterpretationError, ValueError):
    """Analysis inputs are malformed or cross-referentially inconsistent."""


class UnsupportedModelError(InputValidationError):
    """A fitted model object that no extractor recognizes."""


class LLMRequestError(InterpretationError, RuntimeError):
    """The chat collaborator failed (network, auth, timeout, bad response)."""
