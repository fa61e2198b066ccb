from __future__ import annotations

"""Model provider contract consumed by the execution engine.

A provider turns a conversation plus a tool schema into either a complete
``ModelResponse`` or an ordered, finite stream of ``StreamChunk`` values that
ends with a chunk whose ``done`` flag is set. Retry policy, if any, belongs to
the provider; the engine never retries.

Implementations raise ``ProviderError`` for network, rate limit and
malformed reply failures.
"""

from typing import AsyncIterator, List, Optional, Protocol

from ..schemas.domain import AIProvider
from ..schemas.messages import ChatMessage, ModelResponse, StreamChunk, ToolSchema


class ModelProvider(Protocol):
    async def send_message(
        self,
        *,
        provider: AIProvider,
        model: str,
        messages: List[ChatMessage],
        system_prompt: Optional[str] = None,
        tools: Optional[List[ToolSchema]] = None,
        temperature: Optional[float] = None,
        max_tokens: Optional[int] = None,
    ) -> ModelResponse:
        """Send the conversation and return the complete reply."""
        ...

    def send_message_stream(
        self,
        *,
        provider: AIProvider,
        model: str,
        messages: List[ChatMessage],
        system_prompt: Optional[str] = None,
        tools: Optional[List[ToolSchema]] = None,
        temperature: Optional[float] = None,
        max_tokens: Optional[int] = None,
    ) -> AsyncIterator[StreamChunk]:
        """Send the conversation and yield the reply incrementally."""
        ...
