"""
Daily digest pipeline.

Runs the four stages of one digest strictly in order:

    gate check -> fetch content -> transform -> deliver

Any error in any stage ends the run as failed; nothing is retried at this
level. The orchestrator always returns a StageResult and never raises to
its caller. A run that fails to deliver to some destinations still
finishes as a success; the DeliveryReport on the result says which ones
failed. A shutdown request stops the run before the next stage, or
between destinations, and the run ends as failed.
"""

import asyncio
import time
from typing import Any, Callable, Optional, Protocol

from .errors import AlreadyRunningError, NotReadyError, ShutdownRequestedError, VideoDigestError
from .logging import get_logger
from .models import DeliveryReport, StageResult, VideoItem
from .utils import format_elapsed

logger = get_logger("pipeline")

STAGE_GATE = "gate_check"
STAGE_FETCH = "fetch_content"
STAGE_TRANSFORM = "transform"
STAGE_DELIVER = "deliver"

BANNER = "=" * 60


class Gate(Protocol):
    last_state: Optional[str]

    async def check_ready(self) -> bool: ...


class Fetcher(Protocol):
    async def fetch_latest_item(self) -> VideoItem: ...


class Transformer(Protocol):
    async def summarize(self, item: VideoItem) -> str: ...


class Deliverer(Protocol):
    async def deliver(self, message: str, destinations_raw: Optional[str]) -> DeliveryReport: ...


class StageOrchestrator:
    """Sequences one digest run and converts every failure into a StageResult."""

    def __init__(
        self,
        gate: Gate,
        fetcher: Fetcher,
        summarizer: Transformer,
        deliverer: Deliverer,
        destinations_raw: Optional[str],
        dry_run: bool = False,
        on_message: Optional[Callable[[str], Any]] = None,
        stop_event: Optional[asyncio.Event] = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        """
        Initialize the orchestrator.

        Args:
            gate: Connectivity gate for the WhatsApp gateway
            fetcher: Content-fetch collaborator
            summarizer: Text transform collaborator
            deliverer: Multi-destination fan-out
            destinations_raw: Destination list string passed to the fan-out
            dry_run: Skip delivery; hand the message to on_message instead
            on_message: Receives the generated message in dry-run mode
            stop_event: When set, no further stage is started
            clock: Monotonic clock used for the run duration
        """
        self.gate = gate
        self.fetcher = fetcher
        self.summarizer = summarizer
        self.deliverer = deliverer
        self.destinations_raw = destinations_raw
        self.dry_run = dry_run
        self.on_message = on_message
        self.stop_event = stop_event
        self._clock = clock
        self._running = False

    @property
    def running(self) -> bool:
        return self._running

    async def run(self) -> StageResult:
        """Execute one run. Never raises."""
        # Check-and-set with no await in between: atomic on the event loop
        if self._running:
            error = AlreadyRunningError("A digest run is already in progress, skipping this one")
            logger.warning("%s", error)
            return StageResult(success=False, error_message=error.message, failed_stage="start")
        self._running = True

        try:
            return await self._run_stages()
        finally:
            self._running = False

    async def _run_stages(self) -> StageResult:
        start = self._clock()
        stage = STAGE_GATE
        report: Optional[DeliveryReport] = None

        logger.info(BANNER)
        logger.info("  STARTING DAILY DIGEST")
        logger.info(BANNER)

        try:
            self._check_stop()
            logger.info("[1/4] Checking WhatsApp connection...")
            if not await self.gate.check_ready():
                raise NotReadyError(getattr(self.gate, "last_state", None))
            logger.info("[1/4] WhatsApp connected")

            stage = STAGE_FETCH
            self._check_stop()
            logger.info("[2/4] Fetching the latest video...")
            item = await self.fetcher.fetch_latest_item()
            logger.info("[2/4] Video: \"%s\"", item.title)

            stage = STAGE_TRANSFORM
            self._check_stop()
            logger.info("[3/4] Generating summary...")
            message = await self.summarizer.summarize(item)
            logger.info("[3/4] Summary generated")

            stage = STAGE_DELIVER
            self._check_stop()
            if self.dry_run:
                logger.info("[4/4] Dry run, message not sent")
                if self.on_message is not None:
                    self.on_message(message)
            else:
                logger.info("[4/4] Sending WhatsApp message...")
                report = await self.deliverer.deliver(message, self.destinations_raw)
                logger.info(
                    "[4/4] Sent to %d of %d destination(s)",
                    report.success_count, len(report.outcomes),
                )
                if report.interrupted:
                    raise ShutdownRequestedError(
                        f"Shutdown requested, delivery stopped after "
                        f"{len(report.outcomes)} destination(s)"
                    )

        except Exception as e:
            elapsed = self._clock() - start
            partial = getattr(e, "report", None)
            logger.error(BANNER)
            logger.error("  DIGEST FAILED at stage %s after %s", stage, format_elapsed(elapsed))
            logger.error("  Error: %s", e)
            logger.error(BANNER)
            if not isinstance(e, VideoDigestError):
                logger.error("Unexpected error", exc_info=True)
            return StageResult(
                success=False,
                error_message=getattr(e, "message", None) or str(e) or e.__class__.__name__,
                failed_stage=stage,
                duration_seconds=elapsed,
                report=partial if isinstance(partial, DeliveryReport) else report,
            )

        elapsed = self._clock() - start
        logger.info(BANNER)
        logger.info("  DIGEST COMPLETED in %s", format_elapsed(elapsed))
        logger.info(BANNER)
        return StageResult(
            success=True,
            summary_title=item.title,
            duration_seconds=elapsed,
            report=report,
        )

    def _check_stop(self) -> None:
        if self.stop_event is not None and self.stop_event.is_set():
            raise ShutdownRequestedError()

