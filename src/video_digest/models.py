"""
Data models for the video digest pipeline.

Defines dataclasses for the fetched video, per-destination send outcomes,
the aggregated delivery report and the terminal result of one run.

None of these objects outlive the run that created them.
"""

from dataclasses import dataclass, field
from typing import Optional, List, Dict, Any


@dataclass
class VideoItem:
    """Newest video of the configured channel."""
    video_id: str
    title: str
    url: str  # https://www.youtube.com/watch?v=<video_id>
    published_at: str = ""
    description: str = ""
    thumbnail: str = ""
    transcript: Optional[str] = None  # None when no captions were available

    @property
    def content(self) -> str:
        """Text the summary is generated from (transcript preferred)."""
        return self.transcript or self.description


@dataclass(frozen=True)
class SendOutcome:
    """Result of sending one message to one destination."""
    destination: str
    succeeded: bool
    error_detail: Optional[str] = None


@dataclass
class DeliveryReport:
    """
    Ordered outcomes of one fan-out.

    outcomes[i] always belongs to the i-th parsed destination. When the
    fan-out is aborted or interrupted the list simply stops early.
    """
    outcomes: List[SendOutcome] = field(default_factory=list)
    interrupted: bool = False  # shutdown requested before all destinations ran

    @property
    def success_count(self) -> int:
        return sum(1 for o in self.outcomes if o.succeeded)

    @property
    def failure_count(self) -> int:
        return sum(1 for o in self.outcomes if not o.succeeded)

    @property
    def failed_destinations(self) -> List[str]:
        return [o.destination for o in self.outcomes if not o.succeeded]

    def append(self, outcome: SendOutcome) -> None:
        self.outcomes.append(outcome)


@dataclass
class StageResult:
    """Terminal value of one orchestration run."""
    success: bool
    summary_title: Optional[str] = None
    error_message: Optional[str] = None
    failed_stage: Optional[str] = None
    duration_seconds: float = 0.0
    report: Optional[DeliveryReport] = None

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {
            "success": self.success,
            "title": self.summary_title,
            "error": self.error_message,
            "failed_stage": self.failed_stage,
            "duration_seconds": round(self.duration_seconds, 1),
        }
        if self.report is not None:
            data["sent"] = self.report.success_count
            data["failed"] = self.report.failure_count
        return data


@dataclass(frozen=True)
class ScheduleConfig:
    """Cron expression plus the timezone it is evaluated in."""
    cron_expression: str = "0 6 * * *"
    timezone: str = "America/Sao_Paulo"
