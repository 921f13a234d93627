"""
lmproc - LLM message post-processing

Turns raw model output into structured data. Provides message processors
that decode JSON or parse tool calls, a pipeline that runs them in order and
stops at the first failure, and a conversation state that counts failures so
the caller can resend an error message to the model.

Example usage:
    from lmproc import Conversation, FencedWithHint, JsonProcessor, Message

    conversation = Conversation().with_processors(JsonProcessor(FencedWithHint("json")))
    conversation = conversation.process_message(
        Message.assistant('Here you go:\\n```json\\n{"value": 123}\\n```')
    )
    conversation.last_message.content   # {"value": 123}

Tool calls:
    from lmproc import BracketedCallParser

    outcome = BracketedCallParser().parse("[get_weather(city='Paris', days=3)]")
    outcome.value[0].parameters         # {"city": "Paris", "days": 3}
"""

__version__ = "0.1.0"

from lmproc.core import (
    Continue,
    Error,
    Halt,
    LmprocError,
    Message,
    Ok,
    OutcomeError,
    ProcessorConfigError,
    RetriesExceededError,
    Role,
    ToolCallInvocation,
    ToolCallParseError,
)
from lmproc.engine import (
    BracketedCallParser,
    ContentExtractor,
    Conversation,
    FencedPlain,
    FencedWithHint,
    JsonProcessor,
    NoBoundary,
    ProcessorPipeline,
    TagPair,
    TaggedCallParser,
    ToolCallHandler,
    ToolCallProcessor,
    extract_payload,
    run_processors,
)

__all__ = [
    # Version
    "__version__",
    # Models
    "Message",
    "Role",
    "ToolCallInvocation",
    # Results
    "Ok",
    "Error",
    "Continue",
    "Halt",
    # Exceptions
    "LmprocError",
    "ProcessorConfigError",
    "OutcomeError",
    "ToolCallParseError",
    "RetriesExceededError",
    # Extraction
    "NoBoundary",
    "TagPair",
    "FencedWithHint",
    "FencedPlain",
    "extract_payload",
    "ContentExtractor",
    # Tool calls
    "TaggedCallParser",
    "BracketedCallParser",
    "ToolCallHandler",
    # Processors and pipeline
    "JsonProcessor",
    "ToolCallProcessor",
    "ProcessorPipeline",
    "run_processors",
    "Conversation",
]
