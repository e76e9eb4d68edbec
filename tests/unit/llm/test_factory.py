"""
Tests for LLM Provider Factory.

Tests provider creation and configuration pass-through.
"""

import pytest

from sqlagent.config import LLMSettings
from sqlagent.llm.anthropic import AnthropicProvider
from sqlagent.llm.factory import LLMProviderFactory
from sqlagent.llm.local import LocalProvider
from sqlagent.llm.openai import OpenAIProvider


@pytest.fixture
def mock_config():
    """Mock LLM configuration with all providers configured."""
    return LLMSettings(
        default_provider="openai",
        openai_api_key="sk-test-openai-key-1234567890",
        openai_model="gpt-4o",
        anthropic_api_key="sk-ant-REDACTED",
        anthropic_model="claude-sonnet-4-20250514",
        local_base_url="http://localhost:11434",
        local_model="llama3.1:8b",
        temperature=0.0,
        max_tokens=2000,
        timeout=30,
    )


class TestProviderRegistry:
    """Test provider registry."""

    def test_provider_classes(self):
        """Test provider classes are correct."""
        assert LLMProviderFactory.PROVIDERS == {
            "openai": OpenAIProvider,
            "anthropic": AnthropicProvider,
            "local": LocalProvider,
        }


class TestCreateProvider:
    """Test create_provider method."""

    def test_create_openai_provider(self, mock_config):
        provider = LLMProviderFactory.create_provider("openai", mock_config)
        assert isinstance(provider, OpenAIProvider)
        assert provider.model == "gpt-4o"
        assert provider.temperature == 0.0

    def test_create_anthropic_provider(self, mock_config):
        provider = LLMProviderFactory.create_provider("anthropic", mock_config)
        assert isinstance(provider, AnthropicProvider)
        assert provider.model == "claude-sonnet-4-20250514"

    def test_create_local_provider(self, mock_config):
        provider = LLMProviderFactory.create_provider("local", mock_config)
        assert isinstance(provider, LocalProvider)
        assert provider.model == "llama3.1:8b"
        assert provider.base_url == "http://localhost:11434"
        assert provider.think is True

    def test_unknown_provider(self, mock_config):
        """Test unknown provider raises ValueError."""
        with pytest.raises(ValueError, match="Unknown provider type"):
            LLMProviderFactory.create_provider("google", mock_config)

    def test_missing_openai_api_key(self, mock_config):
        """Test creating OpenAI provider without API key fails."""
        mock_config.openai_api_key = None
        with pytest.raises(ValueError, match="OpenAI API key is required"):
            LLMProviderFactory.create_provider("openai", mock_config)

    def test_missing_anthropic_api_key(self, mock_config):
        """Test creating Anthropic provider without API key fails."""
        mock_config.anthropic_api_key = None
        with pytest.raises(ValueError, match="Anthropic API key is required"):
            LLMProviderFactory.create_provider("anthropic", mock_config)


class TestCreateDefaultProvider:
    """Test create_default_provider method."""

    def test_creates_default_provider(self, mock_config):
        provider = LLMProviderFactory.create_default_provider(mock_config)
        assert isinstance(provider, OpenAIProvider)

    def test_respects_default_provider_setting(self, mock_config):
        mock_config.default_provider = "anthropic"
        provider = LLMProviderFactory.create_default_provider(mock_config)
        assert isinstance(provider, AnthropicProvider)


class TestProviderConfiguration:
    """Test provider configuration is passed correctly."""

    def test_temperature_passed(self, mock_config):
        mock_config.temperature = 0.7
        provider = LLMProviderFactory.create_provider("openai", mock_config)
        assert provider.temperature == 0.7

    def test_max_tokens_passed(self, mock_config):
        mock_config.max_tokens = 1000
        provider = LLMProviderFactory.create_provider("openai", mock_config)
        assert provider.max_tokens == 1000

    def test_timeout_passed(self, mock_config):
        mock_config.timeout = 60
        provider = LLMProviderFactory.create_provider("anthropic", mock_config)
        assert provider.timeout == 60

    def test_local_settings_passed(self, mock_config):
        mock_config.local_base_url = "http://localhost:8080"
        mock_config.local_think = False
        provider = LLMProviderFactory.create_provider("local", mock_config)
        assert provider.base_url == "http://localhost:8080"
        assert provider.think is False
