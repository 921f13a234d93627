"""
Data models for messages and tool call invocations.
"""

from __future__ import annotations

from enum import Enum
from typing import Any, Union

from pydantic import BaseModel, Field, StrictBool, StrictFloat, StrictInt, StrictStr

# Closed set of values a parsed tool call parameter may hold.
ParamValue = Union[StrictBool, StrictInt, StrictFloat, StrictStr]


class Role(str, Enum):
    """Message author role."""

    SYSTEM = "system"
    USER = "user"
    ASSISTANT = "assistant"
    TOOL = "tool"


class Message(BaseModel):
    """A message exchanged with a model.

    ``content`` starts out as raw text. Processors replace it with decoded
    data (dict, list or scalar) by building a copy via ``with_content``.
    """

    role: Role
    content: Any = ""
    metadata: dict[str, Any] = Field(default_factory=dict)

    @classmethod
    def user(cls, content: str, **metadata: Any) -> Message:
        return cls(role=Role.USER, content=content, metadata=metadata)

    @classmethod
    def assistant(cls, content: Any, **metadata: Any) -> Message:
        return cls(role=Role.ASSISTANT, content=content, metadata=metadata)

    @classmethod
    def system(cls, content: str) -> Message:
        return cls(role=Role.SYSTEM, content=content)

    @classmethod
    def tool(cls, content: Any, **metadata: Any) -> Message:
        return cls(role=Role.TOOL, content=content, metadata=metadata)

    def with_content(self, content: Any) -> Message:
        """Return a copy of this message carrying new content."""
        return self.model_copy(update={"content": content})

    def with_metadata(self, **values: Any) -> Message:
        """Return a copy with extra metadata keys merged in."""
        return self.model_copy(update={"metadata": {**self.metadata, **values}})

    @property
    def is_text(self) -> bool:
        return isinstance(self.content, str)

    @property
    def is_tool_related(self) -> bool:
        """True for tool results and assistant messages carrying tool calls."""
        return self.role == Role.TOOL or bool(self.metadata.get("tool_calls"))


class ToolCallInvocation(BaseModel):
    """A single function call extracted from model output."""

    function_name: str = Field(min_length=1)
    parameters: dict[str, ParamValue] = Field(default_factory=dict)

    model_config = {"frozen": True}

    def to_dict(self) -> dict[str, Any]:
        """Convert to plain dict format."""
        return {
            "function_name": self.function_name,
            "parameters": dict(self.parameters),
        }
