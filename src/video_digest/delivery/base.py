"""
Base delivery provider interface.

Defines the abstract interface the fan-out sends through and a mock
provider for tests and dry runs.
"""

from abc import ABC, abstractmethod
from typing import Dict, Any, List, Optional
import time

from ..errors import TransportError, ErrorCode
from ..models import SendOutcome


class DeliveryProvider(ABC):
    """Base class for all message delivery providers."""

    @abstractmethod
    async def send(self, message: str, destination: str) -> SendOutcome:
        """
        Send a message to one destination.

        Args:
            message: Message text to send
            destination: Phone number or group id

        Returns:
            SendOutcome for this destination. A destination the gateway
            refuses is reported with succeeded=False, not raised.

        Raises:
            TransportError: On systemic transport failure
        """
        pass

    @property
    def name(self) -> str:
        """Provider name for logging."""
        return self.__class__.__name__


class MockDeliveryProvider(DeliveryProvider):
    """
    Mock delivery provider for testing.

    Every destination succeeds unless listed in `reject` (reported as a
    failed outcome) or `raise_on` (raises TransportError).
    """

    def __init__(
        self,
        reject: Optional[List[str]] = None,
        raise_on: Optional[List[str]] = None,
        error_detail: str = "HTTP 400: rejected",
    ):
        self.reject = reject or []
        self.raise_on = raise_on or []
        self.error_detail = error_detail

        self.sends: List[Dict[str, Any]] = []

    async def send(self, message: str, destination: str) -> SendOutcome:
        """Mock send implementation."""
        self.sends.append({
            "destination": destination,
            "message": message,
            "timestamp": time.time()
        })

        if destination in self.raise_on:
            raise TransportError(
                ErrorCode.GATEWAY_UNREACHABLE,
                "Configured to fail",
                destination=destination,
            )

        if destination in self.reject:
            return SendOutcome(destination=destination, succeeded=False, error_detail=self.error_detail)

        return SendOutcome(destination=destination, succeeded=True)

    def reset(self):
        """Reset call tracking."""
        self.sends = []
