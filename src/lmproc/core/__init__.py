"""
Core module for the lmproc package.

Provides the message and tool call models, result values and exceptions.
"""

from lmproc.core.datamodels import Message, ParamValue, Role, ToolCallInvocation
from lmproc.core.exceptions import (
    LmprocError,
    OutcomeError,
    ProcessorConfigError,
    RetriesExceededError,
    ToolCallParseError,
)
from lmproc.core.helpers import decode_json
from lmproc.core.results import (
    ERROR_PREFIX,
    Continue,
    Error,
    Halt,
    Ok,
    ParseOutcome,
    ProcessorResult,
    outcome_to_result,
)

__all__ = [
    # Models
    "Message",
    "Role",
    "ToolCallInvocation",
    "ParamValue",
    # Results
    "Ok",
    "Error",
    "ParseOutcome",
    "Continue",
    "Halt",
    "ProcessorResult",
    "ERROR_PREFIX",
    "outcome_to_result",
    # Exceptions
    "LmprocError",
    "ProcessorConfigError",
    "OutcomeError",
    "ToolCallParseError",
    "RetriesExceededError",
    # Helpers
    "decode_json",
]
