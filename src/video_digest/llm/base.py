"""
Base LLM provider interface.

Defines the abstract base class that all LLM providers must implement,
provider selection from configuration, and a mock implementation for tests.
"""

from abc import ABC, abstractmethod
from typing import List, Dict, Any, Optional
from dataclasses import dataclass

from ..errors import LLMError, ConfigError, ErrorCode


class LLMProvider(ABC):
    """Base class for all LLM providers."""

    @abstractmethod
    def generate(self, prompt: str, system: str = "") -> str:
        """
        Generate text from a prompt.

        Args:
            prompt: The main prompt text
            system: System/instruction prompt (if supported)

        Returns:
            Generated text response

        Raises:
            LLMError: If generation fails
        """
        pass

    @property
    def model_name(self) -> str:
        return getattr(self, "model", self.__class__.__name__)


@dataclass
class LLMCall:
    """Record of an LLM call for testing/debugging."""
    prompt: str
    system: str
    response: str


class MockLLMProvider(LLMProvider):
    """
    Mock LLM provider for testing.

    Returns a predefined response (or raises queued errors first) and
    tracks all calls for assertions.
    """

    def __init__(self, response: str = "Mock response", errors: Optional[List[LLMError]] = None):
        """
        Initialize mock provider.

        Args:
            response: Fixed response to return
            errors: Exceptions raised by the first calls, in order
        """
        self.response = response
        self.errors = list(errors or [])
        self.calls: List[LLMCall] = []
        self.model = "mock"

    def generate(self, prompt: str, system: str = "") -> str:
        """Generate mock response and track call."""
        error = self.errors.pop(0) if self.errors else None
        self.calls.append(LLMCall(
            prompt=prompt,
            system=system,
            response="" if error else self.response,
        ))

        if error:
            raise error

        return self.response

    def reset(self):
        """Clear call history."""
        self.calls = []


def get_llm_provider(config: Dict[str, Any]) -> LLMProvider:
    """
    Get LLM provider instance from configuration.

    Args:
        config: Full configuration dictionary

    Returns:
        Configured provider instance

    Raises:
        ConfigError: If provider is unknown or its API key is missing
    """
    llm_config = config.get("llm", {})
    timeout = config.get("timeouts", {}).get("llm", 120)
    provider_type = llm_config.get("provider", "openai")

    if provider_type == "openai":
        from .openai import OpenAIProvider
        api_key = llm_config.get("openai_api_key")
        if not api_key:
            raise ConfigError(ErrorCode.CONFIG_MISSING_REQUIRED_FIELD, "OPENAI_API_KEY not set")
        return OpenAIProvider(
            api_key=api_key,
            model=llm_config.get("openai_model", "gpt-4o-mini"),
            timeout=timeout,
        )

    elif provider_type == "gemini":
        from .gemini import GeminiProvider
        api_key = llm_config.get("gemini_api_key")
        if not api_key:
            raise ConfigError(ErrorCode.CONFIG_MISSING_REQUIRED_FIELD, "GEMINI_API_KEY not set")
        return GeminiProvider(
            api_key=api_key,
            model=llm_config.get("gemini_model", "gemini-2.0-flash"),
            timeout=timeout,
        )

    raise ConfigError(
        ErrorCode.CONFIG_INVALID_VALUE,
        f"Unknown LLM provider: {provider_type}"
    )
