"""Tests for LLMClient provider abstraction."""

import logging
from unittest.mock import Mock

import pytest

from pathfinder.common.config import ClassifierSettings, GenerationSettings
from pathfinder.common.llm_client import LLMClient, create_llm_client


class TestLLMClientInit:
    @pytest.mark.parametrize("provider", ["anthropic", "openai", "google"])
    def test_missing_key_logs_info(self, provider, caplog):
        with caplog.at_level(logging.INFO, logger="pathfinder.common.llm_client"):
            client = LLMClient(provider=provider)
        assert not client.is_available
        assert "API key not provided" in caplog.text

    def test_unsupported_provider_logs_warning(self, caplog):
        with caplog.at_level(logging.WARNING, logger="pathfinder.common.llm_client"):
            client = LLMClient(provider="unsupported_xyz", api_key="k")
        assert not client.is_available
        assert "Unsupported" in caplog.text

    def test_provider_is_lower_cased(self):
        assert LLMClient(provider="OpenAI").provider == "openai"


class TestLLMClientGenerate:
    def test_generate_raises_when_unavailable(self):
        client = LLMClient(provider="anthropic")
        with pytest.raises(RuntimeError, match="not available"):
            client.generate("test")

    def test_anthropic_passes_system_and_limits(self):
        client = LLMClient(provider="anthropic", model="claude-test")
        sdk = Mock()
        sdk.messages.create.return_value = Mock(content=[Mock(text="  {\"intent\": \"help\"}  ")])
        client._client = sdk

        reply = client.generate("help", system="classify", max_tokens=100, temperature=0.1)

        assert reply == '{"intent": "help"}'
        kwargs = sdk.messages.create.call_args.kwargs
        assert kwargs["system"] == "classify"
        assert kwargs["max_tokens"] == 100
        assert kwargs["messages"] == [{"role": "user", "content": "help"}]

    def test_openai_prepends_system_message(self):
        client = LLMClient(provider="openai", model="gpt-test")
        sdk = Mock()
        choice = Mock()
        choice.message.content = "ok"
        sdk.chat.completions.create.return_value = Mock(choices=[choice])
        client._client = sdk

        assert client.generate("hi", system="be brief") == "ok"
        messages = sdk.chat.completions.create.call_args.kwargs["messages"]
        assert messages[0] == {"role": "system", "content": "be brief"}


    def test_google_caches_model_per_system_prompt(self):
        client = LLMClient(provider="google", model="gemini-test")
        sdk = Mock()
        sdk.GenerativeModel.return_value.generate_content.return_value = Mock(text=" done ")
        client._client = sdk

        assert client.generate("a", system="s1") == "done"
        client.generate("b", system="s1")
        client.generate("c", system="s2")

        assert sdk.GenerativeModel.call_count == 2
        assert sdk.GenerativeModel.call_args.kwargs == {"model_name": "gemini-test", "system_instruction": "s2"}


class TestCreateLlmClient:
    def test_uses_settings_provider_and_model(self):
        client = create_llm_client(ClassifierSettings(provider="openai", model="gpt-4o-mini"), None)
        assert client.provider == "openai"
        assert client.model == "gpt-4o-mini"
        assert not client.is_available

    def test_accepts_generation_settings(self):
        client = create_llm_client(GenerationSettings(provider="google", model="gemini-pro"), None)
        assert client.provider == "google"
