"""
Evolution API gateway client and connectivity gate.

The gateway exposes the WhatsApp session of one named instance over HTTP.
This module wraps the two endpoints the pipeline uses:

- GET  {base}/instance/connectionState/{instance}
- POST {base}/message/sendText/{instance}

Requests are made with `requests` and a bounded timeout. Network failures
and timeouts become TransportError; classification of HTTP status codes on
the send endpoint is left to the destination sender.
"""

import asyncio
from typing import Any, Dict, Optional

import requests

from ..errors import ConfigError, ErrorCode, TransportError
from ..logging import get_logger

logger = get_logger("gateway")

READY_STATE = "open"


class EvolutionGateway:
    """Thin synchronous HTTP client for one Evolution API instance."""

    def __init__(
        self,
        base_url: Optional[str],
        api_key: Optional[str],
        instance: Optional[str],
        status_timeout: float = 10,
        send_timeout: float = 30,
    ):
        """
        Initialize the gateway client.

        Args:
            base_url: Evolution API base URL, e.g. "https://evo.example.com"
            api_key: Value sent in the `apikey` header
            instance: Instance name the WhatsApp number is linked to
            status_timeout: Timeout for the connection state query (seconds)
            send_timeout: Timeout for each send request (seconds)

        Raises:
            ConfigError: If any endpoint or credential setting is missing
        """
        missing = [
            name for name, value in (
                ("EVOLUTION_API_URL", base_url),
                ("EVOLUTION_API_KEY", api_key),
                ("EVOLUTION_INSTANCE", instance),
            ) if not value
        ]
        if missing:
            raise ConfigError(
                ErrorCode.CONFIG_MISSING_REQUIRED_FIELD,
                f"Evolution API settings incomplete: {', '.join(missing)}"
            )

        self.base_url = base_url.rstrip("/")
        self.api_key = api_key
        self.instance = instance
        self.status_timeout = status_timeout
        self.send_timeout = send_timeout

    @classmethod
    def from_config(cls, config: Dict[str, Any]) -> "EvolutionGateway":
        gateway = config.get("gateway", {})
        timeouts = config.get("timeouts", {})
        return cls(
            base_url=gateway.get("base_url"),
            api_key=gateway.get("api_key"),
            instance=gateway.get("instance"),
            status_timeout=timeouts.get("status", 10),
            send_timeout=timeouts.get("send", 30),
        )

    @property
    def status_url(self) -> str:
        return f"{self.base_url}/instance/connectionState/{self.instance}"

    @property
    def send_url(self) -> str:
        return f"{self.base_url}/message/sendText/{self.instance}"

    def get_connection_state(self) -> Optional[str]:
        """
        Query the instance connection state.

        Returns:
            The reported state string (e.g. "open", "close", "connecting"),
            or None if the body carries no state.

        Raises:
            TransportError: On network failure, timeout or non-2xx status
        """
        try:
            response = requests.get(
                self.status_url,
                headers={"apikey": self.api_key},
                timeout=self.status_timeout,
            )
        except requests.Timeout:
            raise TransportError(
                ErrorCode.GATEWAY_TIMEOUT,
                f"Connection state query timed out after {self.status_timeout}s"
            )
        except requests.RequestException as e:
            raise TransportError(ErrorCode.GATEWAY_UNREACHABLE, str(e))

        if not 200 <= response.status_code < 300:
            raise TransportError(
                ErrorCode.GATEWAY_UNEXPECTED_STATUS,
                f"Connection state query returned HTTP {response.status_code}",
                status_code=response.status_code,
            )

        try:
            data = response.json()
        except ValueError:
            logger.warning("Connection state response is not JSON: %s", response.text[:200])
            return None

        return _extract_state(data)

    def post_text(self, body: Dict[str, Any], destination: Optional[str] = None) -> requests.Response:
        """
        POST one sendText payload.

        Returns the response whatever its status; the caller classifies it.

        Raises:
            TransportError: On network failure or timeout
        """
        try:
            return requests.post(
                self.send_url,
                json=body,
                headers={"Content-Type": "application/json", "apikey": self.api_key},
                timeout=self.send_timeout,
            )
        except requests.Timeout:
            raise TransportError(
                ErrorCode.GATEWAY_TIMEOUT,
                f"Send to {destination} timed out after {self.send_timeout}s",
                destination=destination,
            )
        except requests.RequestException as e:
            raise TransportError(
                ErrorCode.GATEWAY_UNREACHABLE,
                f"Send to {destination} failed: {e}",
                destination=destination,
            )


def _extract_state(data: Any) -> Optional[str]:
    """Read the state from either `instance.state` or top-level `state`."""
    if not isinstance(data, dict):
        return None

    instance = data.get("instance")
    if isinstance(instance, dict) and instance.get("state"):
        return instance["state"]

    state = data.get("state")
    return state if state else None


class ConnectivityGate:
    """Reduces the gateway connection state to a ready / not-ready signal."""

    def __init__(self, gateway: EvolutionGateway):
        self.gateway = gateway
        self.last_state: Optional[str] = None  # state seen by the latest check

    async def check_ready(self) -> bool:
        """
        True only when the instance reports exactly "open".

        Raises:
            TransportError: If the status query itself cannot complete
        """
        self.last_state = None
        state = await asyncio.to_thread(self.gateway.get_connection_state)
        self.last_state = state
        logger.info("WhatsApp instance state: %s", state)
        return state == READY_STATE
