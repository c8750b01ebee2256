"""
Multi-destination fan-out.

Sends one message to every configured destination, strictly one after the
other, with a fixed pause between consecutive sends so the WhatsApp number
is not flagged by the gateway's anti-abuse heuristics.
"""

import asyncio
from typing import Awaitable, Callable, Optional

from .base import DeliveryProvider
from ..errors import ConfigError, ErrorCode, TransportError
from ..logging import get_logger
from ..models import DeliveryReport
from ..utils import parse_destinations

logger = get_logger("fanout")

DEFAULT_PACING_SECONDS = 10


class FanOut:
    """Delivers a message to a destination list through one provider."""

    def __init__(
        self,
        provider: DeliveryProvider,
        pacing_seconds: float = DEFAULT_PACING_SECONDS,
        stop_event: Optional[asyncio.Event] = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        """
        Initialize the fan-out.

        Args:
            provider: Provider used for every destination
            pacing_seconds: Pause between consecutive sends
            stop_event: When set, no further destination is started
            sleep: Coroutine used for the pause (injectable for tests)
        """
        self.provider = provider
        self.pacing_seconds = pacing_seconds
        self.stop_event = stop_event
        self._sleep = sleep

    async def deliver(self, message: str, destinations_raw: Optional[str]) -> DeliveryReport:
        """
        Send `message` to each destination in `destinations_raw`.

        Args:
            message: Message text
            destinations_raw: Comma/semicolon separated destination list

        Returns:
            DeliveryReport with one outcome per processed destination, in
            destination order. Failed destinations do not fail the call.

        Raises:
            ConfigError: If the list contains no destinations
            TransportError: From the provider; aborts remaining destinations
        """
        destinations = parse_destinations(destinations_raw)
        if not destinations:
            raise ConfigError(
                ErrorCode.CONFIG_MISSING_REQUIRED_FIELD,
                "No destinations configured (WHATSAPP_TARGETS is empty)"
            )

        logger.info("Sending to %d destination(s): %s", len(destinations), ", ".join(destinations))

        report = DeliveryReport()
        for index, destination in enumerate(destinations):
            if index > 0:
                logger.info("Waiting %ss before the next send...", self.pacing_seconds)
                await self._pause()

            if self._stopping():
                logger.warning(
                    "Shutdown requested, skipping %d remaining destination(s)",
                    len(destinations) - index,
                )
                report.interrupted = True
                break

            logger.info("-> Sending to: %s", destination)
            try:
                outcome = await self.provider.send(message, destination)
            except TransportError as e:
                logger.error("Aborting fan-out at %s: %s", destination, e)
                # Outcomes of the destinations sent before the failure
                e.report = report
                raise
            report.append(outcome)

        logger.info(
            "Delivery result: %d succeeded, %d failed",
            report.success_count, report.failure_count,
        )
        if report.failure_count:
            logger.warning("Failed destinations: %s", ", ".join(report.failed_destinations))

        return report

    def _stopping(self) -> bool:
        return self.stop_event is not None and self.stop_event.is_set()

    async def _pause(self) -> None:
        """Sleep between sends; returns early when shutdown is requested."""
        if self.pacing_seconds <= 0:
            return

        if self.stop_event is None:
            await self._sleep(self.pacing_seconds)
            return

        try:
            await asyncio.wait_for(self.stop_event.wait(), timeout=self.pacing_seconds)
        except asyncio.TimeoutError:
            pass
