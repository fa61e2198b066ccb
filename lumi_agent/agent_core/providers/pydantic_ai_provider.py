"""Model provider backed by pydantic-ai's direct model request API.

The adapter converts the engine's conversation into pydantic-ai message
parts, passes the tool schema as function tools, and maps the reply (or the
streamed part events) back into ``ModelResponse`` / ``StreamChunk`` values.

Provider API keys are read by pydantic-ai from its standard environment
variables (``OPENAI_API_KEY``, ``ANTHROPIC_API_KEY``, ``GOOGLE_API_KEY``,
``OLLAMA_BASE_URL``).
"""

from __future__ import annotations

import json
import logging
from typing import Any, AsyncIterator, Callable, Dict, List, Optional, Union
from uuid import uuid4

from pydantic_ai import ModelSettings
from pydantic_ai.direct import model_request, model_request_stream
from pydantic_ai.messages import (
    BinaryContent,
    ModelMessage,
    ModelRequest,
    ModelRequestPart,
    PartDeltaEvent,
    PartStartEvent,
    SystemPromptPart,
    TextPart,
    TextPartDelta,
    ToolCallPart,
    ToolCallPartDelta,
    ToolReturnPart,
    UserPromptPart,
)
from pydantic_ai.messages import ModelResponse as PydanticAIResponse
from pydantic_ai.models import Model, ModelRequestParameters
from pydantic_ai.tools import ToolDefinition

from ..errors import MalformedResponseError, ProviderError
from ..schemas.domain import AIProvider, ToolCall
from ..schemas.messages import (
    ChatMessage,
    MessageRole,
    ModelResponse,
    StreamChunk,
    ToolCallChunk,
    ToolSchema,
    Usage,
)

logger = logging.getLogger(__name__)

ModelFactory = Callable[[AIProvider, str], Union[Model, str]]

PROVIDER_PREFIXES: Dict[AIProvider, str] = {
    AIProvider.openai: "openai",
    AIProvider.anthropic: "anthropic",
    AIProvider.gemini: "google-gla",
    AIProvider.ollama: "ollama",
}


def default_model_name(provider: AIProvider, model: str) -> str:
    """Return the pydantic-ai ``provider:model`` name for a configured model."""
    return f"{PROVIDER_PREFIXES[provider]}:{model}"


def to_tool_definitions(tools: Optional[List[ToolSchema]]) -> List[ToolDefinition]:
    return [
        ToolDefinition(
            name=t.name,
            description=t.description,
            parameters_json_schema=t.parameters.as_json_schema(),
        )
        for t in tools or []
    ]


def to_model_messages(messages: List[ChatMessage], system_prompt: Optional[str] = None) -> List[ModelMessage]:
    """
    Convert the engine conversation into pydantic-ai messages.

    Consecutive request-side entries (system, user and tool results) are
    merged into a single ``ModelRequest``; assistant entries become
    ``ModelResponse`` messages carrying text and tool call parts.
    """
    out: List[ModelMessage] = []
    pending: List[ModelRequestPart] = []

    def flush() -> None:
        if pending:
            out.append(ModelRequest(parts=list(pending)))
            pending.clear()

    if system_prompt:
        pending.append(SystemPromptPart(content=system_prompt))

    for msg in messages:
        if msg.role == MessageRole.system:
            pending.append(SystemPromptPart(content=msg.content))
        elif msg.role == MessageRole.user:
            if msg.image_data:
                content: Any = [msg.content, BinaryContent(data=msg.image_data, media_type=msg.image_media_type)]
            else:
                content = msg.content
            pending.append(UserPromptPart(content=content))
        elif msg.role == MessageRole.tool:
            pending.append(
                ToolReturnPart(
                    tool_name=msg.name or "",
                    content=msg.content,
                    tool_call_id=msg.tool_call_id or "",
                )
            )
        else:
            flush()
            parts: List[Any] = []
            if msg.content:
                parts.append(TextPart(content=msg.content))
            for call in msg.tool_calls:
                parts.append(ToolCallPart(tool_name=call.name, args=dict(call.arguments), tool_call_id=call.id))
            if parts:
                out.append(PydanticAIResponse(parts=parts))
    flush()
    return out


def to_usage(raw: Any) -> Optional[Usage]:
    if raw is None:
        return None
    prompt = getattr(raw, "input_tokens", None)
    if prompt is None:
        prompt = getattr(raw, "request_tokens", None)
    completion = getattr(raw, "output_tokens", None)
    if completion is None:
        completion = getattr(raw, "response_tokens", None)
    return Usage(prompt_tokens=int(prompt or 0), completion_tokens=int(completion or 0))


def from_model_response(response: PydanticAIResponse) -> ModelResponse:
    texts: List[str] = []
    calls: List[ToolCall] = []
    for part in response.parts:
        if isinstance(part, TextPart):
            texts.append(part.content)
        elif isinstance(part, ToolCallPart):
            try:
                args = part.args_as_dict()
            except (ValueError, TypeError) as exc:
                raise MalformedResponseError(f"invalid arguments for tool call '{part.tool_name}': {exc}") from exc
            calls.append(ToolCall(id=part.tool_call_id or str(uuid4()), name=part.tool_name, arguments=args))
    return ModelResponse(
        id=getattr(response, "provider_response_id", None) or str(uuid4()),
        content="".join(texts),
        tool_calls=calls,
        finish_reason=getattr(response, "finish_reason", None) or ("tool_calls" if calls else "stop"),
        usage=to_usage(getattr(response, "usage", None)),
    )


def _args_text(args: Any) -> Optional[str]:
    if args is None:
        return None
    if isinstance(args, str):
        return args
    return json.dumps(args)


class PydanticAIModelProvider:
    """``ModelProvider`` implementation over pydantic-ai models."""

    def __init__(self, model_factory: Optional[ModelFactory] = None) -> None:
        self._model_factory = model_factory

    def _resolve_model(self, provider: AIProvider, model: str) -> Union[Model, str]:
        if self._model_factory is not None:
            return self._model_factory(provider, model)
        return default_model_name(provider, model)

    @staticmethod
    def _settings(temperature: Optional[float], max_tokens: Optional[int]) -> Optional[ModelSettings]:
        settings: Dict[str, Any] = {}
        if temperature is not None:
            settings["temperature"] = temperature
        if max_tokens is not None:
            settings["max_tokens"] = max_tokens
        return ModelSettings(**settings) if settings else None

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
        target = self._resolve_model(provider, model)
        params = ModelRequestParameters(function_tools=to_tool_definitions(tools))
        logger.debug("Sending %d messages to %s/%s with %d tools", len(messages), provider.value, model, len(tools or []))
        try:
            response = await model_request(
                target,
                to_model_messages(messages, system_prompt),
                model_settings=self._settings(temperature, max_tokens),
                model_request_parameters=params,
            )
        except ProviderError:
            raise
        except Exception as exc:
            logger.error("Model request to %s/%s failed: %s", provider.value, model, exc)
            raise ProviderError(f"{provider.value} request failed: {exc}") from exc
        return from_model_response(response)

    async def send_message_stream(
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
        """
        Stream the reply as ``StreamChunk`` values.

        Tool call fragments are keyed by call id; part indexes from pydantic-ai
        are mapped to the id announced when the part started. The final chunk
        has ``done=True`` and carries the usage of the whole response.
        """
        target = self._resolve_model(provider, model)
        params = ModelRequestParameters(function_tools=to_tool_definitions(tools))
        response_id = str(uuid4())
        call_ids: Dict[int, str] = {}
        try:
            async with model_request_stream(
                target,
                to_model_messages(messages, system_prompt),
                model_settings=self._settings(temperature, max_tokens),
                model_request_parameters=params,
            ) as stream:
                async for event in stream:
                    chunk = self._chunk_for(event, response_id, call_ids)
                    if chunk is not None:
                        yield chunk
                final = stream.get()
        except ProviderError:
            raise
        except Exception as exc:
            logger.error("Streaming request to %s/%s failed: %s", provider.value, model, exc)
            raise ProviderError(f"{provider.value} stream failed: {exc}") from exc

        has_calls = any(isinstance(p, ToolCallPart) for p in final.parts)
        yield StreamChunk(
            id=response_id,
            finish_reason=getattr(final, "finish_reason", None) or ("tool_calls" if has_calls else "stop"),
            done=True,
            usage=to_usage(getattr(final, "usage", None)),
        )

    @staticmethod
    def _chunk_for(event: Any, response_id: str, call_ids: Dict[int, str]) -> Optional[StreamChunk]:
        if isinstance(event, PartStartEvent):
            part = event.part
            if isinstance(part, TextPart):
                return StreamChunk(id=response_id, content=part.content) if part.content else None
            if isinstance(part, ToolCallPart):
                call_id = part.tool_call_id or str(uuid4())
                call_ids[event.index] = call_id
                return StreamChunk(
                    id=response_id,
                    tool_call_chunk=ToolCallChunk(id=call_id, name=part.tool_name, arguments_chunk=_args_text(part.args)),
                )
            return None
        if isinstance(event, PartDeltaEvent):
            delta = event.delta
            if isinstance(delta, TextPartDelta):
                return StreamChunk(id=response_id, content=delta.content_delta) if delta.content_delta else None
            if isinstance(delta, ToolCallPartDelta):
                call_id = call_ids.get(event.index)
                if call_id is None:
                    call_id = delta.tool_call_id or str(uuid4())
                    call_ids[event.index] = call_id
                return StreamChunk(
                    id=response_id,
                    tool_call_chunk=ToolCallChunk(
                        id=call_id,
                        name=delta.tool_name_delta,
                        arguments_chunk=_args_text(delta.args_delta),
                    ),
                )
        return None
