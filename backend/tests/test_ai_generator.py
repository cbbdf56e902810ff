"""
Tests for ai_generator module
"""
import pytest
from unittest.mock import Mock, patch
import sys
import os

import anthropic
import httpx

# Add backend directory to Python path for imports
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from ai_generator import GenerativeClient, GenerationConfig
from exceptions import ConfigurationError, ProviderError


def _text_block(text):
    block = Mock()
    block.type = "text"
    block.text = text
    return block


class TestGenerationConfig:
    """Test GenerationConfig parameter mapping"""

    def test_defaults(self):
        cfg = GenerationConfig()

        assert cfg.temperature == 0.7
        assert cfg.top_k == 40
        assert cfg.top_p == 0.95
        assert cfg.max_output_tokens == 1024

    def test_to_api_params(self):
        cfg = GenerationConfig(temperature=0.2, top_k=10, top_p=0.5, max_output_tokens=256)

        assert cfg.to_api_params() == {
            "temperature": 0.2,
            "top_k": 10,
            "top_p": 0.5,
            "max_tokens": 256,
        }


class TestGenerativeClient:
    """Test GenerativeClient functionality"""

    def setup_method(self):
        """Set up test fixtures"""
        with patch('ai_generator.anthropic.Anthropic') as mock_anthropic:
            self.mock_client = Mock()
            mock_anthropic.return_value = self.mock_client

            self.generator = GenerativeClient(
                api_key="test_api_key",
                model="claude-sonnet-4-20250514"
            )
            self.mock_anthropic = mock_anthropic

    def test_initialization(self):
        """Test GenerativeClient initialization"""
        assert self.generator.model == "claude-sonnet-4-20250514"
        assert self.generator.default_config == GenerationConfig()
        self.mock_anthropic.assert_called_once_with(api_key="test_api_key", max_retries=0)

    def test_missing_api_key(self):
        """A missing credential is fatal at construction"""
        with patch('ai_generator.anthropic.Anthropic') as mock_anthropic:
            with pytest.raises(ConfigurationError):
                GenerativeClient(api_key="", model="claude-sonnet-4-20250514")
            mock_anthropic.assert_not_called()

    def test_generate_passes_prompt_and_config(self):
        """Test that the prompt and sampling parameters reach the API unchanged"""
        mock_response = Mock()
        mock_response.content = [_text_block("Encryption is required for data at rest.")]
        self.mock_client.messages.create.return_value = mock_response

        cfg = GenerationConfig(temperature=0.1, top_k=5, top_p=0.9, max_output_tokens=300)
        answer = self.generator.generate("What about encryption?", cfg)

        assert answer == "Encryption is required for data at rest."
        call_args = self.mock_client.messages.create.call_args[1]
        assert call_args["model"] == "claude-sonnet-4-20250514"
        assert call_args["messages"] == [{"role": "user", "content": "What about encryption?"}]
        assert call_args["temperature"] == 0.1
        assert call_args["top_k"] == 5
        assert call_args["top_p"] == 0.9
        assert call_args["max_tokens"] == 300

    def test_generate_uses_default_config(self):
        mock_response = Mock()
        mock_response.content = [_text_block("Answer")]
        self.mock_client.messages.create.return_value = mock_response

        self.generator.generate("Question")

        call_args = self.mock_client.messages.create.call_args[1]
        assert call_args["temperature"] == 0.7
        assert call_args["max_tokens"] == 1024

    def test_generate_joins_text_blocks(self):
        mock_response = Mock()
        mock_response.content = [_text_block("Part one. "), _text_block("Part two.")]
        self.mock_client.messages.create.return_value = mock_response

        assert self.generator.generate("Question") == "Part one. Part two."

    def test_empty_response_raises_provider_error(self):
        mock_response = Mock()
        mock_response.content = []
        self.mock_client.messages.create.return_value = mock_response

        with pytest.raises(ProviderError, match="empty"):
            self.generator.generate("Question")

    def test_api_error_raises_provider_error(self):
        request = httpx.Request("POST", "https://api.anthropic.com/v1/messages")
        self.mock_client.messages.create.side_effect = anthropic.APIConnectionError(request=request)

        with pytest.raises(ProviderError) as exc_info:
            self.generator.generate("Question")

        assert isinstance(exc_info.value.__cause__, anthropic.APIConnectionError)
        # No retry
        assert self.mock_client.messages.create.call_count == 1

    def test_authentication_error_raises_provider_error(self):
        request = httpx.Request("POST", "https://api.anthropic.com/v1/messages")
        response = httpx.Response(401, request=request)
        self.mock_client.messages.create.side_effect = anthropic.AuthenticationError(
            "invalid x-api-key", response=response, body=None
        )

        with pytest.raises(ProviderError, match="Authentication failed"):
            self.generator.generate("Question")

    def test_rate_limit_error_raises_provider_error(self):
        request = httpx.Request("POST", "https://api.anthropic.com/v1/messages")
        response = httpx.Response(429, request=request)
        self.mock_client.messages.create.side_effect = anthropic.RateLimitError(
            "rate limited", response=response, body=None
        )

        with pytest.raises(ProviderError, match="Rate limit"):
            self.generator.generate("Question")


if __name__ == "__main__":
    pytest.main([__file__])
