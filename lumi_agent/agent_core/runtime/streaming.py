"""Reassembly of streamed model replies.

Streamed tool calls arrive as fragments keyed by call id. Fragments are
accumulated in a scratch map and only turned into ``ToolCall`` values when the
stream delivers its ``done`` chunk; a stream that ends without one is treated
as a malformed reply.
"""

from __future__ import annotations

import json
import logging
from typing import AsyncIterator, Dict, List, Optional

from ..errors import MalformedResponseError
from ..schemas.domain import ToolCall
from ..schemas.messages import ModelResponse, StreamChunk, ToolCallChunk, Usage

logger = logging.getLogger(__name__)


class _PartialCall:
    def __init__(self, call_id: str) -> None:
        self.id = call_id
        self.name = ""
        self.arguments: List[str] = []


class ToolCallAssembler:
    """Accumulate ``ToolCallChunk`` fragments in arrival order."""

    def __init__(self) -> None:
        self._calls: Dict[str, _PartialCall] = {}

    def add(self, chunk: ToolCallChunk) -> None:
        partial = self._calls.get(chunk.id)
        if partial is None:
            partial = _PartialCall(chunk.id)
            self._calls[chunk.id] = partial
        if chunk.name:
            partial.name += chunk.name
        if chunk.arguments_chunk:
            partial.arguments.append(chunk.arguments_chunk)

    def __bool__(self) -> bool:
        return bool(self._calls)

    def materialize(self) -> List[ToolCall]:
        out: List[ToolCall] = []
        for partial in self._calls.values():
            if not partial.name:
                raise MalformedResponseError(f"streamed tool call '{partial.id}' has no name")
            raw = "".join(partial.arguments).strip()
            try:
                args = json.loads(raw) if raw else {}
            except json.JSONDecodeError as exc:
                raise MalformedResponseError(f"invalid arguments for tool call '{partial.name}': {exc}") from exc
            if not isinstance(args, dict):
                raise MalformedResponseError(f"arguments for tool call '{partial.name}' are not an object")
            out.append(ToolCall(id=partial.id, name=partial.name, arguments=args))
        return out


async def collect_stream(stream: AsyncIterator[StreamChunk]) -> ModelResponse:
    """
    Drain a chunk stream into a complete ``ModelResponse``.

    The underlying stream is closed on every exit path, including
    cancellation, so provider connections are not leaked.
    """
    content: List[str] = []
    assembler = ToolCallAssembler()
    response_id: Optional[str] = None
    finish_reason: Optional[str] = None
    usage: Optional[Usage] = None
    done = False
    try:
        async for chunk in stream:
            if chunk.id and response_id is None:
                response_id = chunk.id
            if chunk.content:
                content.append(chunk.content)
            if chunk.tool_call_chunk is not None:
                assembler.add(chunk.tool_call_chunk)
            if chunk.usage is not None:
                usage = chunk.usage
            if chunk.finish_reason:
                finish_reason = chunk.finish_reason
            if chunk.done:
                done = True
                break
    finally:
        aclose = getattr(stream, "aclose", None)
        if aclose is not None:
            await aclose()

    if not done:
        raise MalformedResponseError("stream ended without a completion marker")

    response = ModelResponse(
        content="".join(content),
        tool_calls=assembler.materialize(),
        finish_reason=finish_reason,
        usage=usage,
    )
    if response_id:
        response.id = response_id
    return response
