"""Registered tool definitions.

A ``RegisteredTool`` couples the metadata the model and the policy gate need
(name, description, category, declared risk, parameter schema) with an async
handler. Handlers receive the call's string argument map and return the text
shown to the model; failures are raised and converted by the dispatcher.
"""

from __future__ import annotations

from enum import Enum
from typing import Any, Awaitable, Callable, Dict, Optional, Type

from pydantic import BaseModel, ConfigDict, Field

from ..schemas.domain import RiskLevel
from ..schemas.messages import ToolParameters, ToolProperty, ToolSchema

ToolHandler = Callable[[Dict[str, str]], Awaitable[str]]


class ToolCategory(str, Enum):
    file_operations = "file_operations"
    system_commands = "system_commands"
    web_search = "web_search"
    code_execution = "code_execution"
    database_access = "database_access"
    network_requests = "network_requests"
    git = "git"
    text_data = "text_data"
    clipboard = "clipboard"
    screenshot = "screenshot"
    screen_control = "screen_control"
    bluetooth = "bluetooth"
    media = "media"


class RegisteredTool(BaseModel):
    name: str = Field(..., description="Unique identifier for the tool")
    description: str = Field(..., description="Human-readable description of what the tool does")
    category: ToolCategory = ToolCategory.system_commands
    risk_level: RiskLevel = RiskLevel.low
    parameters: ToolParameters = Field(default_factory=ToolParameters)
    handler: ToolHandler = Field(..., description="Async callable executing the tool")

    model_config = ConfigDict(arbitrary_types_allowed=True)

    def to_schema(self) -> ToolSchema:
        return ToolSchema(name=self.name, description=self.description, parameters=self.parameters)

    async def invoke(self, arguments: Dict[str, str]) -> str:
        return await self.handler(dict(arguments))


def _json_type(prop: Dict[str, Any]) -> str:
    if "type" in prop:
        return str(prop["type"])
    for option in prop.get("anyOf", []):
        t = option.get("type")
        if t and t != "null":
            return str(t)
    return "string"


def parameters_from_model(model: Type[BaseModel]) -> ToolParameters:
    """Build ``ToolParameters`` from a pydantic input model's JSON schema."""
    schema = model.model_json_schema()
    props: Dict[str, ToolProperty] = {}
    for name, prop in schema.get("properties", {}).items():
        enum: Optional[list] = prop.get("enum")
        props[name] = ToolProperty(
            type=_json_type(prop),
            description=prop.get("description"),
            enum=[str(v) for v in enum] if enum else None,
        )
    return ToolParameters(properties=props, required=list(schema.get("required", [])))
