from __future__ import annotations


class LessonBotError(RuntimeError):
    """Base error for the daily lesson workflow.

    Each subclass carries a short `kind` tag so the entry point can tell
    failures apart in logs while still returning a uniform response.
    """

    kind = "error"


class ConfigurationError(LessonBotError):
    """Required configuration is missing or malformed."""

    kind = "configuration"


class StateStoreError(LessonBotError):
    """The content store rejected or failed a request."""

    kind = "state_store"


class NotFoundError(StateStoreError):
    """The state file does not exist at the configured path."""

    kind = "not_found"


class ConflictError(StateStoreError):
    """The state file changed since it was read (revision token mismatch)."""

    kind = "conflict"


class DecodeError(LessonBotError):
    """Stored state is not valid JSON matching the progress schema."""

    kind = "decode"


class GenerationError(LessonBotError):
    """The model call failed or returned unusable content."""

    kind = "generation"


class NotificationError(LessonBotError):
    """Email or chat delivery failed."""

    kind = "notification"


def error_kind(exc: BaseException) -> str:
    if isinstance(exc, LessonBotError):
        return exc.kind
    return "unexpected"


__all__ = [
    "LessonBotError",
    "ConfigurationError",
    "StateStoreError",
    "NotFoundError",
    "ConflictError",
    "DecodeError",
    "GenerationError",
    "NotificationError",
    "error_kind",
]
