"""Model provider contract and the pydantic-ai backed implementation."""

from .base import ModelProvider
from .pydantic_ai_provider import PydanticAIModelProvider, default_model_name

__all__ = ["ModelProvider", "PydanticAIModelProvider", "default_model_name"]
