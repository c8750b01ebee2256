"""
Google Gemini provider.

Calls the generateContent REST endpoint with requests. The API key goes in
the `key` query parameter and the system prompt in `systemInstruction`.
"""

import requests
from typing import Any, Dict, List

from .base import LLMProvider
from ..errors import LLMError, ErrorCode

GEMINI_API_URL = "https://generativelanguage.googleapis.com/v1beta"

# Gemini reports an exhausted free-tier quota as 403
STATUS_ERRORS = {
    401: (ErrorCode.LLM_API_AUTH, "Invalid Gemini API key"),
    403: (ErrorCode.LLM_QUOTA_EXCEEDED, "Gemini API quota exceeded"),
    429: (ErrorCode.LLM_RATE_LIMITED, "Gemini API rate limit exceeded"),
}


class GeminiProvider(LLMProvider):
    """Gemini generateContent provider."""

    def __init__(
        self,
        api_key: str,
        model: str = "gemini-2.0-flash",
        timeout: float = 120,
        max_tokens: int = 1024,
        temperature: float = 0.7,
        base_url: str = GEMINI_API_URL,
    ):
        self.api_key = api_key
        self.model = model
        self.timeout = timeout
        self.max_tokens = max_tokens
        self.temperature = temperature
        self.base_url = base_url.rstrip("/")

    def generate(self, prompt: str, system: str = "") -> str:
        """
        Generate text with Gemini.

        Raises:
            LLMError: On HTTP, network or response format errors
        """
        try:
            response = requests.post(
                f"{self.base_url}/models/{self.model}:generateContent",
                json=self._build_payload(prompt, system),
                headers={"Content-Type": "application/json"},
                params={"key": self.api_key},
                timeout=self.timeout,
            )
        except requests.Timeout:
            raise LLMError(ErrorCode.LLM_TIMEOUT)
        except requests.RequestException as e:
            raise LLMError(ErrorCode.LLM_NETWORK_ERROR, str(e))

        if response.status_code in STATUS_ERRORS:
            code, message = STATUS_ERRORS[response.status_code]
            raise LLMError(code, message)
        if response.status_code != 200:
            raise LLMError(ErrorCode.LLM_INVALID_RESPONSE, f"HTTP {response.status_code}")

        try:
            data = response.json()
        except ValueError:
            raise LLMError(ErrorCode.LLM_INVALID_RESPONSE, "Response is not JSON")

        return self._parse_response(data)

    def _build_payload(self, prompt: str, system: str) -> Dict[str, Any]:
        payload: Dict[str, Any] = {
            "contents": [{"role": "user", "parts": [{"text": prompt}]}],
            "generationConfig": {
                "temperature": self.temperature,
                "maxOutputTokens": self.max_tokens,
            },
        }
        if system:
            payload["systemInstruction"] = {"parts": [{"text": system}]}
        return payload

    def _parse_response(self, data: Dict[str, Any]) -> str:
        """Join the text parts of the first candidate."""
        candidates: List[Dict[str, Any]] = data.get("candidates") or []
        if not candidates:
            raise LLMError(ErrorCode.LLM_EMPTY_RESPONSE, "No candidates in response")

        parts = (candidates[0].get("content") or {}).get("parts") or []
        texts = [part["text"] for part in parts if "text" in part]
        if not texts:
            raise LLMError(ErrorCode.LLM_EMPTY_RESPONSE, "No text in response parts")

        text = "".join(texts).strip()
        if not text:
            raise LLMError(ErrorCode.LLM_EMPTY_RESPONSE, "Empty response text")
        return text
