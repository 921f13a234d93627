"""
Engine module for the lmproc package.

Provides payload extraction, tool call parsers, message processors and the
processor pipeline.
"""

from lmproc.engine.extraction import (
    BOUNDARY_NAMES,
    Boundary,
    ContentExtractor,
    FencedPlain,
    FencedWithHint,
    NoBoundary,
    TagPair,
    boundary_from_name,
    extract_payload,
)
from lmproc.engine.pipeline import (
    CALLBACK_EVENTS,
    Conversation,
    PipelineOutcome,
    ProcessorPipeline,
    run_processors,
)
from lmproc.engine.processors import (
    FunctionProcessor,
    JsonProcessor,
    MessageProcessor,
    ToolCallProcessor,
    as_processor,
)
from lmproc.engine.toolcall import (
    BracketedCallParser,
    GrammarParser,
    JsonCleaner,
    TaggedCallParser,
    ToolCallFormat,
    ToolCallHandler,
    detect_format,
    get_handler,
)

__all__ = [
    # Extraction
    "Boundary",
    "NoBoundary",
    "TagPair",
    "FencedWithHint",
    "FencedPlain",
    "BOUNDARY_NAMES",
    "boundary_from_name",
    "extract_payload",
    "ContentExtractor",
    # Tool calls
    "ToolCallFormat",
    "JsonCleaner",
    "GrammarParser",
    "TaggedCallParser",
    "BracketedCallParser",
    "ToolCallHandler",
    "detect_format",
    "get_handler",
    # Processors
    "MessageProcessor",
    "FunctionProcessor",
    "JsonProcessor",
    "ToolCallProcessor",
    "as_processor",
    # Pipeline
    "ProcessorPipeline",
    "PipelineOutcome",
    "run_processors",
    "Conversation",
    "CALLBACK_EVENTS",
]
