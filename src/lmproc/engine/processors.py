"""
Message processors.

A processor takes the conversation state and a message and returns either
``Continue(message)`` (possibly with transformed content) or
``Halt(feedback)``, where feedback is a user message for the model.
"""

from __future__ import annotations

from typing import Any, Callable, Protocol, runtime_checkable

from lmproc.core.datamodels import Message
from lmproc.core.exceptions import ProcessorConfigError
from lmproc.core.results import Continue, Halt, ProcessorResult, outcome_to_result
from lmproc.engine.extraction import Boundary, ContentExtractor
from lmproc.engine.toolcall import GrammarParser, ToolCallHandler


@runtime_checkable
class MessageProcessor(Protocol):
    """Anything with ``apply(state, message) -> ProcessorResult``."""

    def apply(self, state: Any, message: Message) -> ProcessorResult: ...


class FunctionProcessor:
    """Adapts a plain ``(state, message) -> ProcessorResult`` callable."""

    def __init__(self, fn: Callable[[Any, Message], ProcessorResult], name: str | None = None):
        self.fn = fn
        self.name = name or getattr(fn, "__name__", type(fn).__name__)

    def apply(self, state: Any, message: Message) -> ProcessorResult:
        return self.fn(state, message)

    def __repr__(self) -> str:
        return f"FunctionProcessor({self.name})"


def as_processor(obj: Any) -> MessageProcessor:
    """Coerce ``obj`` into a MessageProcessor.

    Raises:
        ProcessorConfigError: If obj is neither a processor nor a callable.
    """
    if isinstance(obj, type):
        raise ProcessorConfigError(f"Expected a processor instance, got class {obj.__name__}")
    if isinstance(obj, MessageProcessor):
        return obj
    if callable(obj):
        return FunctionProcessor(obj)
    raise ProcessorConfigError(
        f"Expected a message processor or callable, got {type(obj).__name__}"
    )


class JsonProcessor:
    """Decode JSON content of a message.

    On success the message content is replaced with the decoded data. When the
    boundary does not match or the JSON is invalid, processing halts with a
    user message such as ``ERROR: No JSON found`` or
    ``ERROR: Invalid JSON data: <decoder message>``.

    Example:
        processor = JsonProcessor(FencedWithHint("json"))
        result = processor.apply(state, Message.assistant("```json\\n{}\\n```"))
    """

    def __init__(self, boundary: Boundary | None = None, lenient: bool = False):
        self.extractor = ContentExtractor(boundary, lenient=lenient)

    def apply(self, state: Any, message: Message) -> ProcessorResult:
        if not message.is_text:
            return Halt.with_error("Expected text content to decode")
        return outcome_to_result(self.extractor.extract(message.content), message)

    def __repr__(self) -> str:
        return f"JsonProcessor({self.extractor.boundary!r})"


class ToolCallProcessor:
    """Parse tool calls from message text into ``metadata["tool_calls"]``.

    The message content is left as-is; the parsed invocations are stored as
    plain dicts so the message stays serializable.
    """

    def __init__(self, parser: GrammarParser | ToolCallHandler | None = None):
        self.parser = parser or ToolCallHandler()

    def apply(self, state: Any, message: Message) -> ProcessorResult:
        if not message.is_text:
            return Halt.with_error("Expected text content to parse tool calls from")

        outcome = self.parser.parse(message.content)
        if not outcome.is_ok:
            return Halt.with_error(outcome.reason)

        calls = outcome.value if isinstance(outcome.value, list) else [outcome.value]
        return Continue(message.with_metadata(tool_calls=[c.to_dict() for c in calls]))

    def __repr__(self) -> str:
        return f"ToolCallProcessor({type(self.parser).__name__})"
