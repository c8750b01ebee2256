"""
OpenAI LLM provider implementation.

Calls the Chat Completions REST endpoint directly with requests.
"""

import requests
from typing import Dict, Any, List

from .base import LLMProvider
from ..errors import LLMError, ErrorCode


class OpenAIProvider(LLMProvider):
    """OpenAI Chat Completions provider."""

    def __init__(
        self,
        api_key: str,
        model: str = "gpt-4o-mini",
        timeout: float = 120,
        max_tokens: int = 1024,
        temperature: float = 0.7,
        base_url: str = "https://api.openai.com/v1",
    ):
        self.api_key = api_key
        self.model = model
        self.timeout = timeout
        self.max_tokens = max_tokens
        self.temperature = temperature
        self.base_url = base_url.rstrip("/")

    def generate(self, prompt: str, system: str = "") -> str:
        """
        Generate text using the Chat Completions API.

        Raises:
            LLMError: If API call fails or response is invalid
        """
        messages: List[Dict[str, str]] = []
        if system:
            messages.append({"role": "system", "content": system})
        messages.append({"role": "user", "content": prompt})

        payload = {
            "model": self.model,
            "messages": messages,
            "max_tokens": self.max_tokens,
            "temperature": self.temperature,
        }
        headers = {
            "Content-Type": "application/json",
            "Authorization": f"Bearer {self.api_key}",
        }

        try:
            response = requests.post(
                f"{self.base_url}/chat/completions",
                json=payload,
                headers=headers,
                timeout=self.timeout,
            )
        except requests.Timeout:
            raise LLMError(ErrorCode.LLM_TIMEOUT)
        except requests.RequestException as e:
            raise LLMError(ErrorCode.LLM_NETWORK_ERROR, str(e))

        if response.status_code == 401:
            raise LLMError(ErrorCode.LLM_API_AUTH, "Invalid OpenAI API key")
        elif response.status_code == 429:
            if _is_quota_error(response):
                raise LLMError(ErrorCode.LLM_QUOTA_EXCEEDED, "OpenAI quota exceeded")
            raise LLMError(ErrorCode.LLM_RATE_LIMITED, "OpenAI rate limit exceeded")
        elif response.status_code != 200:
            raise LLMError(ErrorCode.LLM_INVALID_RESPONSE, f"HTTP {response.status_code}")

        try:
            data = response.json()
        except ValueError:
            raise LLMError(ErrorCode.LLM_INVALID_RESPONSE, "Response is not JSON")

        return self._parse_response(data)

    def _parse_response(self, response_data: Dict[str, Any]) -> str:
        """Extract the first choice's message content."""
        choices = response_data.get("choices") or []
        if not choices:
            raise LLMError(ErrorCode.LLM_EMPTY_RESPONSE, "No choices in response")

        message = choices[0].get("message") or {}
        content = message.get("content")
        if not content or not content.strip():
            raise LLMError(ErrorCode.LLM_EMPTY_RESPONSE, "Empty message content")

        return content.strip()


def _is_quota_error(response: requests.Response) -> bool:
    try:
        error = response.json().get("error") or {}
    except (ValueError, AttributeError):
        return False
    return error.get("code") == "insufficient_quota" or "quota" in str(error.get("message", "")).lower()
