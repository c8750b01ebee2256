"""
WhatsApp delivery through the Evolution API.

Provides the connectivity gate, the per-destination sender with payload
format fallback, and the paced multi-destination fan-out.
"""

from .base import DeliveryProvider, MockDeliveryProvider
from .gateway import EvolutionGateway, ConnectivityGate
from .sender import DestinationSender, PAYLOAD_SHAPES
from .fanout import FanOut

__all__ = [
    "DeliveryProvider", "MockDeliveryProvider",
    "EvolutionGateway", "ConnectivityGate",
    "DestinationSender", "PAYLOAD_SHAPES",
    "FanOut",
]
