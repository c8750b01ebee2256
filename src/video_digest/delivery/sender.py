"""
WhatsApp destination sender for the Evolution API.

Evolution API v2 and v1 accept different JSON bodies on the same sendText
endpoint. The sender tries each payload shape in priority order against one
destination:

- 2xx: delivered, stop.
- 400 / 404 / 422: this shape (or this destination) was not understood,
  try the next shape. When every shape is refused the destination is
  reported as failed; nothing is raised.
- anything else (5xx, 401, timeout, connection error): TransportError,
  remaining shapes are not tried.
"""

import asyncio
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional, Tuple

import requests

from .base import DeliveryProvider
from .gateway import EvolutionGateway
from ..errors import ErrorCode, StructuralRejection, TransportError
from ..logging import get_logger
from ..models import SendOutcome
from ..utils import truncate_text

logger = get_logger("sender")

STRUCTURAL_REJECTION_STATUSES = frozenset({400, 404, 422})


@dataclass(frozen=True)
class SendContext:
    """Inputs every payload shape is built from."""
    destination: str
    message: str
    presence_delay_ms: int = 1200
    presence: str = "composing"


def text_payload(ctx: SendContext) -> Dict[str, Any]:
    """Evolution API v2 body."""
    return {"number": ctx.destination, "text": ctx.message}


def legacy_text_payload(ctx: SendContext) -> Dict[str, Any]:
    """Evolution API v1 body."""
    return {
        "number": ctx.destination,
        "options": {"delay": ctx.presence_delay_ms, "presence": ctx.presence},
        "textMessage": {"text": ctx.message},
    }


PayloadShape = Callable[[SendContext], Dict[str, Any]]

# Newest protocol first
PAYLOAD_SHAPES: List[Tuple[str, PayloadShape]] = [
    ("v2", text_payload),
    ("v1", legacy_text_payload),
]


class DestinationSender(DeliveryProvider):
    """Sends a text message to one WhatsApp number or group via the gateway."""

    def __init__(
        self,
        gateway: EvolutionGateway,
        shapes: Optional[List[Tuple[str, PayloadShape]]] = None,
        presence_delay_ms: int = 1200,
        presence: str = "composing",
    ):
        self.gateway = gateway
        self.shapes = shapes if shapes is not None else PAYLOAD_SHAPES
        self.presence_delay_ms = presence_delay_ms
        self.presence = presence

    @classmethod
    def from_config(cls, config: Dict[str, Any]) -> "DestinationSender":
        delivery = config.get("delivery", {})
        return cls(
            gateway=EvolutionGateway.from_config(config),
            presence_delay_ms=int(delivery.get("presence_delay_ms", 1200)),
            presence=delivery.get("presence", "composing"),
        )

    async def send(self, message: str, destination: str) -> SendOutcome:
        ctx = SendContext(
            destination=destination,
            message=message,
            presence_delay_ms=self.presence_delay_ms,
            presence=self.presence,
        )

        last_rejection: Optional[StructuralRejection] = None
        for version, shape in self.shapes:
            try:
                await self._send_shape(version, shape(ctx), destination)
            except StructuralRejection as rejection:
                last_rejection = rejection
                continue
            return SendOutcome(destination=destination, succeeded=True)

        detail = last_rejection.message if last_rejection else "no payload shapes configured"
        logger.warning("All payload formats rejected for %s: %s", destination, detail)
        return SendOutcome(destination=destination, succeeded=False, error_detail=detail)

    async def _send_shape(self, version: str, body: Dict[str, Any], destination: str) -> None:
        """
        Send one payload shape.

        Raises:
            StructuralRejection: On 400 / 404 / 422
            TransportError: On any other failure
        """
        response = await asyncio.to_thread(self.gateway.post_text, body, destination)
        status = response.status_code

        if 200 <= status < 300:
            logger.info("[OK] %s - format %s, status %d", destination, version, status)
            # A 2xx counts as delivered; keep the body around for diagnosis
            logger.debug("Gateway response for %s: %s", destination, _body_excerpt(response))
            return

        detail = _body_excerpt(response)
        logger.warning("[FAIL] %s - format %s, status %d: %s", destination, version, status, detail)

        if status in STRUCTURAL_REJECTION_STATUSES:
            raise StructuralRejection(destination, status, detail)

        raise TransportError(
            ErrorCode.GATEWAY_UNEXPECTED_STATUS,
            f"Send to {destination} failed with HTTP {status} (format {version}): {detail}",
            destination=destination,
            status_code=status,
        )


def _body_excerpt(response: requests.Response, limit: int = 300) -> str:
    try:
        text = response.text or ""
    except (AttributeError, ValueError):
        return ""
    return truncate_text(str(text).strip(), limit)
