"""
LLM provider interface and implementations.

Provides a pluggable interface for the text generation services used to
turn a video transcript into a WhatsApp message (OpenAI, Gemini).
"""

from .base import LLMProvider, MockLLMProvider, get_llm_provider
from .openai import OpenAIProvider
from .gemini import GeminiProvider

__all__ = ["LLMProvider", "MockLLMProvider", "get_llm_provider", "OpenAIProvider", "GeminiProvider"]
