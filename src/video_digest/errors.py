"""
Error codes and custom exceptions for video-digest.

Defines a structured error code system so every failure that reaches the
logs or the process exit path carries a predictable, machine-readable code.

All exceptions carry predefined error codes from the ErrorCode enum. The
gateway errors additionally carry the destination and HTTP status involved
so a failed run can be diagnosed from the log alone.
"""

from enum import Enum
from typing import Optional


class ErrorCode(Enum):
    """Predefined error codes for structured error handling."""

    # Configuration errors
    CONFIG_FILE_NOT_FOUND = "CONFIG_FILE_NOT_FOUND"
    CONFIG_INVALID_JSON = "CONFIG_INVALID_JSON"
    CONFIG_MISSING_REQUIRED_FIELD = "CONFIG_MISSING_REQUIRED_FIELD"
    CONFIG_INVALID_VALUE = "CONFIG_INVALID_VALUE"
    SCHEDULE_INVALID_CRON = "SCHEDULE_INVALID_CRON"
    SCHEDULE_INVALID_TIMEZONE = "SCHEDULE_INVALID_TIMEZONE"

    # Gateway (Evolution API) errors
    GATEWAY_UNREACHABLE = "GATEWAY_UNREACHABLE"
    GATEWAY_TIMEOUT = "GATEWAY_TIMEOUT"
    GATEWAY_UNEXPECTED_STATUS = "GATEWAY_UNEXPECTED_STATUS"
    GATEWAY_NOT_CONNECTED = "GATEWAY_NOT_CONNECTED"
    DELIVERY_PAYLOAD_REJECTED = "DELIVERY_PAYLOAD_REJECTED"

    # Content source errors
    CHANNEL_NOT_FOUND = "CHANNEL_NOT_FOUND"
    FEED_EMPTY = "FEED_EMPTY"
    FEED_INVALID = "FEED_INVALID"
    FETCH_NETWORK_ERROR = "FETCH_NETWORK_ERROR"

    # LLM API errors
    LLM_API_AUTH = "LLM_API_AUTH"
    LLM_RATE_LIMITED = "LLM_RATE_LIMITED"
    LLM_TIMEOUT = "LLM_TIMEOUT"
    LLM_EMPTY_RESPONSE = "LLM_EMPTY_RESPONSE"
    LLM_INVALID_RESPONSE = "LLM_INVALID_RESPONSE"
    LLM_NETWORK_ERROR = "LLM_NETWORK_ERROR"
    LLM_QUOTA_EXCEEDED = "LLM_QUOTA_EXCEEDED"

    # Pipeline errors
    PIPELINE_ALREADY_RUNNING = "PIPELINE_ALREADY_RUNNING"
    PIPELINE_SHUTDOWN_REQUESTED = "PIPELINE_SHUTDOWN_REQUESTED"
    SCRIPT_EXCEPTION = "SCRIPT_EXCEPTION"


# Human-readable descriptions for error codes
ERROR_DESCRIPTIONS = {
    # Configuration
    ErrorCode.CONFIG_FILE_NOT_FOUND: "Configuration file not found",
    ErrorCode.CONFIG_INVALID_JSON: "Configuration file contains invalid JSON",
    ErrorCode.CONFIG_MISSING_REQUIRED_FIELD: "Required configuration field missing",
    ErrorCode.CONFIG_INVALID_VALUE: "Configuration field has invalid value",
    ErrorCode.SCHEDULE_INVALID_CRON: "Invalid cron expression",
    ErrorCode.SCHEDULE_INVALID_TIMEZONE: "Unknown timezone name",

    # Gateway
    ErrorCode.GATEWAY_UNREACHABLE: "WhatsApp gateway unreachable",
    ErrorCode.GATEWAY_TIMEOUT: "WhatsApp gateway request timed out",
    ErrorCode.GATEWAY_UNEXPECTED_STATUS: "WhatsApp gateway returned an unexpected status",
    ErrorCode.GATEWAY_NOT_CONNECTED: "WhatsApp is not connected on the gateway instance",
    ErrorCode.DELIVERY_PAYLOAD_REJECTED: "Gateway rejected the message payload",

    # Content source
    ErrorCode.CHANNEL_NOT_FOUND: "Could not resolve the YouTube channel id",
    ErrorCode.FEED_EMPTY: "No videos found in the channel feed",
    ErrorCode.FEED_INVALID: "Channel feed could not be parsed",
    ErrorCode.FETCH_NETWORK_ERROR: "Network error fetching channel content",

    # LLM
    ErrorCode.LLM_API_AUTH: "LLM API authentication failed",
    ErrorCode.LLM_RATE_LIMITED: "LLM API rate limit exceeded",
    ErrorCode.LLM_TIMEOUT: "LLM API request timed out",
    ErrorCode.LLM_EMPTY_RESPONSE: "LLM returned empty response",
    ErrorCode.LLM_INVALID_RESPONSE: "LLM response format invalid",
    ErrorCode.LLM_NETWORK_ERROR: "Network error calling LLM API",
    ErrorCode.LLM_QUOTA_EXCEEDED: "LLM API quota exceeded",

    # Pipeline
    ErrorCode.PIPELINE_ALREADY_RUNNING: "A digest run is already in progress",
    ErrorCode.PIPELINE_SHUTDOWN_REQUESTED: "Shutdown requested, run stopped",
    ErrorCode.SCRIPT_EXCEPTION: "Unhandled exception in pipeline",
}


class VideoDigestError(Exception):
    """Base exception class for all video-digest errors."""

    def __init__(self, code: ErrorCode, message: Optional[str] = None):
        self.code = code
        self.message = message or ERROR_DESCRIPTIONS.get(code, str(code.value))
        super().__init__(self.message)

    def __str__(self) -> str:
        return f"[{self.code.value}] {self.message}"


class ConfigError(VideoDigestError):
    """Configuration loading, validation or schedule errors."""
    pass


class TransportError(VideoDigestError):
    """
    Network, timeout or unexpected-status failure talking to the gateway.

    Aborts the current stage and, inside the fan-out, every destination
    after the one that raised it.
    """

    def __init__(
        self,
        code: ErrorCode,
        message: Optional[str] = None,
        destination: Optional[str] = None,
        status_code: Optional[int] = None,
    ):
        self.destination = destination
        self.status_code = status_code
        self.report = None  # partial DeliveryReport, set by the fan-out
        super().__init__(code, message)


class StructuralRejection(VideoDigestError):
    """
    The gateway did not accept one payload shape for one destination.

    Only raised and caught inside the destination sender.
    """

    def __init__(self, destination: str, status_code: int, detail: str = ""):
        self.destination = destination
        self.status_code = status_code
        self.detail = detail
        super().__init__(
            ErrorCode.DELIVERY_PAYLOAD_REJECTED,
            f"HTTP {status_code} for {destination}: {detail}" if detail else f"HTTP {status_code} for {destination}",
        )


class NotReadyError(VideoDigestError):
    """Gateway answered but the WhatsApp session is not open."""

    def __init__(self, state: Optional[str] = None):
        self.state = state
        reported = f" (state: {state})" if state else ""
        super().__init__(
            ErrorCode.GATEWAY_NOT_CONNECTED,
            f"WhatsApp is not connected{reported}. "
            "Connect the number on the Evolution API instance first.",
        )


class AlreadyRunningError(VideoDigestError):
    """A second run was requested while one is still in flight."""

    def __init__(self, message: Optional[str] = None):
        super().__init__(ErrorCode.PIPELINE_ALREADY_RUNNING, message)


class ShutdownRequestedError(VideoDigestError):
    """SIGINT/SIGTERM arrived while a run was in progress."""

    def __init__(self, message: Optional[str] = None):
        super().__init__(ErrorCode.PIPELINE_SHUTDOWN_REQUESTED, message)


class FetchError(VideoDigestError):
    """YouTube channel, feed or network errors."""
    pass


class LLMError(VideoDigestError):
    """LLM provider API errors."""
    pass
