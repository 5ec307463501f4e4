"""
Tests for completion providers
"""
from unittest.mock import MagicMock, patch

import httpx
import openai
import pytest

from studybuddy.services.llm import (
    CompletionOptions,
    FallbackProvider,
    LLMProviderError,
    OpenAICompatibleProvider,
    build_default_provider,
)


def completion_response(text):
    rsp = MagicMock()
    rsp.choices = [MagicMock()]
    rsp.choices[0].message.content = text
    return rsp


class TestOpenAICompatibleProvider:
    @patch("studybuddy.services.llm.OpenAI")
    def test_complete_passes_options(self, mock_openai):
        client = mock_openai.return_value.with_options.return_value
        client.chat.completions.create.return_value = completion_response("QUESTION 1: ...")

        provider = OpenAICompatibleProvider("ollama", "llama3.2:3b", base_url="http://localhost:11434/v1")
        options = CompletionOptions(temperature=0.3, max_tokens=800, stop=["END_QUESTIONS"], timeout=12.0)
        text = provider.complete("prompt", options)

        assert text == "QUESTION 1: ..."
        mock_openai.assert_called_once_with(base_url="http://localhost:11434/v1", api_key="ollama", max_retries=0)
        mock_openai.return_value.with_options.assert_called_once_with(timeout=12.0)
        kwargs = client.chat.completions.create.call_args.kwargs
        assert kwargs["model"] == "llama3.2:3b"
        assert kwargs["temperature"] == 0.3
        assert kwargs["max_tokens"] == 800
        assert kwargs["stop"] == ["END_QUESTIONS"]
        assert kwargs["messages"] == [{"role": "user", "content": "prompt"}]

    @patch("studybuddy.services.llm.OpenAI")
    def test_timeout_becomes_provider_error(self, mock_openai):
        client = mock_openai.return_value.with_options.return_value
        request = httpx.Request("POST", "http://localhost:11434/v1/chat/completions")
        client.chat.completions.create.side_effect = openai.APITimeoutError(request=request)

        provider = OpenAICompatibleProvider("ollama", "llama3.2:3b")
        with pytest.raises(LLMProviderError):
            provider.complete("prompt", CompletionOptions())

    @patch("studybuddy.services.llm.OpenAI")
    def test_empty_choices(self, mock_openai):
        rsp = MagicMock()
        rsp.choices = []
        mock_openai.return_value.with_options.return_value.chat.completions.create.return_value = rsp
        provider = OpenAICompatibleProvider("openai", "gpt-4o-mini", api_key="sk-test")
        assert provider.complete("prompt", CompletionOptions()) == ""


class TestFallbackProvider:
    def test_uses_first_working_provider(self):
        local = MagicMock()
        local.name = "ollama"
        local.complete.side_effect = LLMProviderError("connection refused")
        cloud = MagicMock()
        cloud.name = "openai"
        cloud.complete.return_value = "from cloud"

        provider = FallbackProvider([local, cloud])
        assert provider.complete("prompt", CompletionOptions()) == "from cloud"
        local.complete.assert_called_once()

    def test_raises_last_error_when_all_fail(self):
        local = MagicMock()
        local.name = "ollama"
        local.complete.side_effect = LLMProviderError("local down")
        cloud = MagicMock()
        cloud.name = "openai"
        cloud.complete.side_effect = LLMProviderError("cloud down")

        with pytest.raises(LLMProviderError, match="cloud down"):
            FallbackProvider([local, cloud]).complete("prompt", CompletionOptions())

    def test_no_providers(self):
        with pytest.raises(LLMProviderError):
            FallbackProvider([]).complete("prompt", CompletionOptions())


class TestBuildDefaultProvider:
    @patch("studybuddy.services.llm.config")
    def test_local_then_cloud(self, mock_config):
        mock_config.LOCAL_LLM_ENABLED = True
        mock_config.LOCAL_LLM_MODEL = "llama3.2:3b"
        mock_config.LOCAL_LLM_BASE_URL = "http://localhost:11434/v1"
        mock_config.OPENAI_API_KEY = "sk-test"
        mock_config.OPENAI_MODEL = "gpt-4o-mini"

        provider = build_default_provider()
        assert [p.name for p in provider.providers] == ["ollama", "openai"]

    @patch("studybuddy.services.llm.config")
    def test_cloud_only(self, mock_config):
        mock_config.LOCAL_LLM_ENABLED = False
        mock_config.OPENAI_API_KEY = "sk-test"
        mock_config.OPENAI_MODEL = "gpt-4o-mini"

        provider = build_default_provider()
        assert [p.name for p in provider.providers] == ["openai"]
