"""
Processor pipeline and conversation state.

The pipeline applies message processors to one message, strictly in order,
stopping at the first Halt. A Conversation keeps the message list and a
failure counter so the owning loop can decide whether to resend to the model.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Callable, Iterable, Iterator, Optional

from pydantic import BaseModel, Field, field_validator

from lmproc.core.datamodels import Message, Role
from lmproc.core.exceptions import ProcessorConfigError, RetriesExceededError
from lmproc.core.results import Continue, Halt, ProcessorResult
from lmproc.engine.processors import MessageProcessor, as_processor
from lmproc.logging import log_processor_exception

logger = logging.getLogger(__name__)

# Events a Conversation can notify; each callback gets (conversation, message)
CALLBACK_EVENTS = (
    "on_message_processed",
    "on_message_processing_error",
    "on_error_message_created",
)


@dataclass(frozen=True)
class PipelineOutcome:
    """Result of one pipeline run.

    Attributes:
        result: Continue with the final message, or Halt with feedback
        state: The conversation state passed in, untouched
        failed_message: On halt, the message as the halting processor saw it
        processor_index: On halt, position of the halting processor
    """

    result: ProcessorResult
    state: Any
    failed_message: Optional[Message] = None
    processor_index: Optional[int] = None

    @property
    def halted(self) -> bool:
        return self.result.halted

    @property
    def message(self) -> Message:
        """The accepted message, or the feedback message on halt."""
        if isinstance(self.result, Halt):
            return self.result.feedback
        return self.result.message


class ProcessorPipeline:
    """Ordered sequence of message processors."""

    def __init__(self, processors: Iterable[Any] = (), verbose: bool = False):
        if isinstance(processors, (str, bytes)) or not isinstance(processors, Iterable):
            raise ProcessorConfigError(
                f"Expected a sequence of processors, got {type(processors).__name__}"
            )
        self.processors: list[MessageProcessor] = [as_processor(p) for p in processors]
        self.verbose = verbose

    def __len__(self) -> int:
        return len(self.processors)

    def __iter__(self) -> Iterator[MessageProcessor]:
        return iter(self.processors)

    def run(self, state: Any, message: Message) -> PipelineOutcome:
        """Run every processor over ``message``.

        Each Continue feeds its message into the next processor. The first
        Halt stops the run; later processors are not called.
        """
        log = logger.info if self.verbose else logger.debug
        current = message

        for index, processor in enumerate(self.processors):
            try:
                result = processor.apply(state, current)
            except Exception as e:
                reason = log_processor_exception(e, context=f"Processor {processor!r} raised")
                result = Halt.with_error(reason)

            if isinstance(result, Halt):
                log(f"Processor {index} {processor!r} halted: {result.feedback.content}")
                return PipelineOutcome(
                    result=result,
                    state=state,
                    failed_message=current,
                    processor_index=index,
                )
            if not isinstance(result, Continue):
                raise ProcessorConfigError(
                    f"Processor {processor!r} returned {type(result).__name__}, "
                    "expected Continue or Halt"
                )

            log(f"Processor {index} {processor!r} executed")
            current = result.message

        return PipelineOutcome(result=Continue(current), state=state)


def run_processors(
    processors: Iterable[Any],
    state: Any,
    message: Message,
    verbose: bool = False,
) -> PipelineOutcome:
    """Run ``processors`` over ``message`` (see ProcessorPipeline.run)."""
    return ProcessorPipeline(processors, verbose=verbose).run(state, message)


class Conversation(BaseModel):
    """Conversation state owned by the chat loop.

    Every method returns a new Conversation; instances are never mutated.
    """

    messages: list[Message] = Field(default_factory=list)
    processors: list[Any] = Field(default_factory=list, exclude=True)
    callbacks: dict[str, Callable[..., Any]] = Field(default_factory=dict, exclude=True)
    max_retry_count: int = Field(default=3, ge=0)
    current_failure_count: int = Field(default=0, ge=0)
    verbose: bool = False

    model_config = {"arbitrary_types_allowed": True}

    @field_validator("callbacks")
    @classmethod
    def _check_callbacks(cls, value: dict[str, Any]) -> dict[str, Any]:
        unknown = sorted(set(value) - set(CALLBACK_EVENTS))
        if unknown:
            raise ValueError(
                f"Unknown callback events {unknown}: must be in {list(CALLBACK_EVENTS)}"
            )
        return value

    @classmethod
    def from_config(cls, processors: Iterable[Any] = (), **overrides: Any) -> Conversation:
        """Create a conversation using ~/.lmproc/config.json defaults."""
        from lmproc.config import get_config

        config = get_config()
        fields = {
            "max_retry_count": config.get("max_retry_count"),
            "verbose": config.get("verbose"),
            **overrides,
        }
        return cls(**fields).with_processors(*processors)

    def with_processors(self, *processors: Any) -> Conversation:
        """Return a copy using ``processors`` for assistant messages."""
        pipeline = ProcessorPipeline(processors)
        return self.model_copy(update={"processors": list(pipeline)})

    @property
    def last_message(self) -> Optional[Message]:
        return self.messages[-1] if self.messages else None

    @property
    def needs_response(self) -> bool:
        """True when the model is expected to reply next."""
        last = self.last_message
        return last is not None and last.role in (Role.USER, Role.TOOL)

    @property
    def can_retry(self) -> bool:
        return self.current_failure_count < self.max_retry_count

    def ensure_can_retry(self) -> None:
        """Raise RetriesExceededError once the failure budget is spent."""
        if not self.can_retry:
            raise RetriesExceededError("Exceeded max failure count")

    def add_message(self, message: Message) -> Conversation:
        return self.model_copy(update={"messages": [*self.messages, message]})

    def add_messages(self, messages: Iterable[Message]) -> Conversation:
        return self.model_copy(update={"messages": [*self.messages, *messages]})

    def _fire(self, event: str, message: Message) -> None:
        callback = self.callbacks.get(event)
        if callback is not None:
            callback(self, message)

    def run_processors(self, message: Message) -> PipelineOutcome:
        """Run this conversation's processors over ``message``."""
        return ProcessorPipeline(self.processors, verbose=self.verbose).run(self, message)

    def process_message(self, message: Message) -> Conversation:
        """Add a message received from the model.

        Assistant messages go through the processors first. On halt, the
        failed message and the feedback are both added and the failure count
        goes up. On success the processed message is added and the failure
        count resets, unless the message is tool related.

        Callbacks receive the updated conversation. On halt they fire
        on_message_processing_error then on_error_message_created; on
        success on_message_processed.
        """
        if message.role != Role.ASSISTANT:
            return self.add_message(message)

        outcome = self.run_processors(message)

        if outcome.halted:
            logger.info(f"Message processing halted: {outcome.message.content}")
            updated = self.add_messages([outcome.failed_message, outcome.message])
            updated = updated.model_copy(
                update={"current_failure_count": self.current_failure_count + 1}
            )
            updated._fire("on_message_processing_error", outcome.failed_message)
            updated._fire("on_error_message_created", outcome.message)
            return updated

        updated = self.add_message(outcome.message)
        if not outcome.message.is_tool_related:
            updated = updated.model_copy(update={"current_failure_count": 0})
        updated._fire("on_message_processed", outcome.message)
        return updated
