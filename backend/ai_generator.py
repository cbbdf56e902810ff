import anthropic
from dataclasses import dataclass
from typing import Optional, Dict, Any
import logging

from exceptions import ConfigurationError, ProviderError

# Set up logging
logger = logging.getLogger(__name__)


@dataclass
class GenerationConfig:
    """Sampling parameters forwarded unchanged to the generative provider"""
    temperature: float = 0.7    # Sampling randomness
    top_k: int = 40             # Candidate pool size
    top_p: float = 0.95         # Nucleus sampling threshold
    max_output_tokens: int = 1024

    def to_api_params(self) -> Dict[str, Any]:
        return {
            "temperature": self.temperature,
            "top_k": self.top_k,
            "top_p": self.top_p,
            "max_tokens": self.max_output_tokens,
        }


class GenerativeClient:
    """Handles interactions with Anthropic's Claude API for generating answers"""

    def __init__(self, api_key: str, model: str,
                 default_config: Optional[GenerationConfig] = None):
        if not api_key:
            raise ConfigurationError("Anthropic API key not found in environment variables")

        # The provider is called exactly once per request
        self.client = anthropic.Anthropic(api_key=api_key, max_retries=0)
        self.model = model
        self.default_config = default_config or GenerationConfig()

    def generate(self, prompt: str, config: Optional[GenerationConfig] = None) -> str:
        """
        Generate text for a fully assembled prompt.

        Args:
            prompt: The complete prompt, context and instructions included
            config: Sampling parameters; falls back to the client's defaults

        Returns:
            Generated text

        Raises:
            ProviderError: If the API call fails or returns no text
        """
        generation_config = config or self.default_config

        api_params = {
            "model": self.model,
            "messages": [{"role": "user", "content": prompt}],
            **generation_config.to_api_params()
        }

        logger.debug(f"Making API call to {self.model} with prompt: {prompt[:100]}...")

        try:
            response = self.client.messages.create(**api_params)
        except anthropic.AuthenticationError as e:
            logger.error(f"Authentication error: {e}")
            raise ProviderError("Authentication failed. Please check the API key configuration.") from e
        except anthropic.RateLimitError as e:
            logger.error(f"Rate limit exceeded: {e}")
            raise ProviderError("Rate limit exceeded.") from e
        except anthropic.APIError as e:
            logger.error(f"API error occurred: {e}")
            raise ProviderError(f"API error occurred: {e}") from e

        text_blocks = [
            block.text for block in (response.content or [])
            if isinstance(getattr(block, "text", None), str) and block.text
        ]
        if not text_blocks:
            logger.warning("Received empty response from API")
            raise ProviderError("Received an empty response from the generative provider")

        return "".join(text_blocks)
