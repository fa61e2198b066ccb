"""Provider-facing message, tool schema and usage types."""

from __future__ import annotations

from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import Field

from .base import BaseSchema
from .domain import ToolCall, _new_id


class MessageRole(str, Enum):
    system = "system"
    user = "user"
    assistant = "assistant"
    tool = "tool"


class ChatMessage(BaseSchema):
    role: MessageRole
    content: str = ""
    name: Optional[str] = None
    tool_call_id: Optional[str] = None
    tool_calls: List[ToolCall] = Field(default_factory=list)
    image_data: Optional[bytes] = None
    image_media_type: str = "image/jpeg"

    @classmethod
    def user(cls, content: str, *, image_data: Optional[bytes] = None) -> "ChatMessage":
        return cls(role=MessageRole.user, content=content, image_data=image_data)

    @classmethod
    def assistant(cls, content: str, tool_calls: Optional[List[ToolCall]] = None) -> "ChatMessage":
        return cls(role=MessageRole.assistant, content=content, tool_calls=list(tool_calls or []))

    @classmethod
    def tool_result(cls, call: ToolCall, content: str) -> "ChatMessage":
        return cls(role=MessageRole.tool, content=content, name=call.name, tool_call_id=call.id)


class Usage(BaseSchema):
    prompt_tokens: int = 0
    completion_tokens: int = 0

    @property
    def total_tokens(self) -> int:
        return self.prompt_tokens + self.completion_tokens

    def __add__(self, other: "Usage") -> "Usage":
        return Usage(
            prompt_tokens=self.prompt_tokens + other.prompt_tokens,
            completion_tokens=self.completion_tokens + other.completion_tokens,
        )


class ModelPricing(BaseSchema):
    """Price per 1000 tokens, used to estimate session cost."""

    prompt_per_1k: float = Field(default=0.0, ge=0.0)
    completion_per_1k: float = Field(default=0.0, ge=0.0)

    def estimate(self, usage: Usage) -> float:
        return (
            usage.prompt_tokens / 1000.0 * self.prompt_per_1k
            + usage.completion_tokens / 1000.0 * self.completion_per_1k
        )


class ModelResponse(BaseSchema):
    id: str = Field(default_factory=_new_id)
    content: str = ""
    tool_calls: List[ToolCall] = Field(default_factory=list)
    finish_reason: Optional[str] = None
    usage: Optional[Usage] = None


class ToolCallChunk(BaseSchema):
    """A fragment of a tool call. ``arguments_chunk`` is raw JSON text."""

    id: str
    name: Optional[str] = None
    arguments_chunk: Optional[str] = None


class StreamChunk(BaseSchema):
    id: str = ""
    content: Optional[str] = None
    tool_call_chunk: Optional[ToolCallChunk] = None
    finish_reason: Optional[str] = None
    done: bool = False
    usage: Optional[Usage] = None


class ToolProperty(BaseSchema):
    type: str = "string"
    description: Optional[str] = None
    enum: Optional[List[str]] = None


class ToolParameters(BaseSchema):
    properties: Dict[str, ToolProperty] = Field(default_factory=dict)
    required: List[str] = Field(default_factory=list)

    def as_json_schema(self) -> Dict[str, Any]:
        return {
            "type": "object",
            "properties": {k: v.model_dump(exclude_none=True) for k, v in self.properties.items()},
            "required": list(self.required),
        }


class ToolSchema(BaseSchema):
    """Tool description handed to the model provider."""

    name: str
    description: str
    parameters: ToolParameters = Field(default_factory=ToolParameters)

    def as_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "description": self.description,
            "parameters": self.parameters.as_json_schema(),
        }
