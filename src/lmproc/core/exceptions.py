"""
Exception classes for lmproc.

Grammar and decode failures are returned as ``Error`` values, never raised.
These exceptions cover caller mistakes and explicit opt-in raising helpers.
"""


class LmprocError(Exception):
    """Base exception for lmproc errors."""


class ProcessorConfigError(LmprocError, TypeError):
    """A pipeline was given something that is not a message processor."""


class OutcomeError(LmprocError, ValueError):
    """Unwrapped an Error outcome."""


class ToolCallParseError(LmprocError, ValueError):
    """Failed to parse a tool call from model output."""


class RetriesExceededError(LmprocError):
    """Conversation exceeded its maximum failure count."""
