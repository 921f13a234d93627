"""
Result values used for control flow.

Parsers and extractors return a ``ParseOutcome`` (``Ok`` or ``Error``).
Message processors return a ``ProcessorResult`` (``Continue`` or ``Halt``).
Neither kind of failure is ever raised as an exception.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, ClassVar, Generic, TypeVar, Union

from lmproc.core.datamodels import Message
from lmproc.core.exceptions import OutcomeError

T = TypeVar("T")

# Prefix on every feedback message sent back to the model.
ERROR_PREFIX = "ERROR: "


@dataclass(frozen=True)
class Ok(Generic[T]):
    """Successfully decoded value."""

    value: T
    is_ok: ClassVar[bool] = True

    def unwrap(self) -> T:
        return self.value


@dataclass(frozen=True)
class Error:
    """Human readable diagnostic, safe to show to the model."""

    reason: str
    is_ok: ClassVar[bool] = False

    def unwrap(self) -> Any:
        raise OutcomeError(self.reason)


ParseOutcome = Union[Ok[T], Error]


@dataclass(frozen=True)
class Continue:
    """Accept the (possibly transformed) message and keep going."""

    message: Message
    halted: ClassVar[bool] = False


@dataclass(frozen=True)
class Halt:
    """Stop processing; ``feedback`` is sent to the model on the next turn."""

    feedback: Message
    halted: ClassVar[bool] = True

    @classmethod
    def with_error(cls, reason: str) -> Halt:
        """Build a halt whose feedback is a user message reporting ``reason``."""
        return cls(feedback=Message.user(f"{ERROR_PREFIX}{reason}"))


ProcessorResult = Union[Continue, Halt]


def outcome_to_result(outcome: ParseOutcome, message: Message) -> ProcessorResult:
    """Map ``Ok(value)`` to a continue with new content, ``Error`` to a halt."""
    if outcome.is_ok:
        return Continue(message.with_content(outcome.value))
    return Halt.with_error(outcome.reason)
