"""
Video-Digest: Daily YouTube devotional summaries on WhatsApp

A small service that, once a day, takes the newest video of a YouTube
channel, turns it into a WhatsApp-formatted devotional message with an LLM,
and sends it to a list of WhatsApp numbers and groups via the Evolution API.

This package provides:
- A connectivity gate for the WhatsApp gateway instance
- Newest-video discovery via the public channel feed, with transcripts
- Pluggable LLM providers (OpenAI, Gemini)
- Paced multi-destination delivery with payload format fallback
- A four-stage orchestrator and a cron scheduler
"""

__version__ = "0.1.0"
__license__ = "MIT"

# Core exports
from .errors import (
    ErrorCode, VideoDigestError, ConfigError, TransportError,
    NotReadyError, FetchError, LLMError,
)
from .models import VideoItem, SendOutcome, DeliveryReport, StageResult, ScheduleConfig
from .config import load_config

__all__ = [
    "ErrorCode", "VideoDigestError", "ConfigError", "TransportError",
    "NotReadyError", "FetchError", "LLMError",
    "VideoItem", "SendOutcome", "DeliveryReport", "StageResult", "ScheduleConfig",
    "load_config",
]
