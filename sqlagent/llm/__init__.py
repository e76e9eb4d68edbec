"""
LLM Provider Module

Multi-provider LLM abstraction layer with tool calling, supporting OpenAI,
Anthropic and local (Ollama) models.

Usage:
    from sqlagent.llm import LLMProviderFactory, LLMRequest, LLMMessage
    from sqlagent.config import get_settings

    config = get_settings()
    provider = LLMProviderFactory.create_default_provider(config.llm)

    request = LLMRequest(
        messages=[LLMMessage(role="user", content="Hello!")],
    )

    response = await provider.generate(request)
    print(response.content, response.tool_calls)
"""

from sqlagent.llm.anthropic import AnthropicProvider
from sqlagent.llm.base import BaseLLMProvider
from sqlagent.llm.factory import LLMProviderFactory
from sqlagent.llm.local import LocalProvider
from sqlagent.llm.models import (
    LLMMessage,
    LLMRequest,
    LLMResponse,
    LLMStreamChunk,
    LLMUsage,
    ToolCall,
    ToolSchema,
)
from sqlagent.llm.openai import OpenAIProvider

__all__ = [
    # Base classes
    "BaseLLMProvider",
    # Models
    "LLMMessage",
    "LLMRequest",
    "LLMResponse",
    "LLMStreamChunk",
    "LLMUsage",
    "ToolCall",
    "ToolSchema",
    # Factory
    "LLMProviderFactory",
    # Providers
    "OpenAIProvider",
    "AnthropicProvider",
    "LocalProvider",
]
