"""Domain models for metric computation.

These dataclasses intentionally model only the subset of source payload fields
that are required for metric computation.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime
from enum import Enum
from typing import List, Optional


class IssueStatus(str, Enum):
    """Workflow states the lead time computation cares about."""

    IN_PROGRESS = "in_progress"
    DONE = "done"
    OTHER = "other"

    @classmethod
    def from_raw(cls, raw: Optional[str]) -> "IssueStatus":
        """Translate a raw Jira status name into the internal vocabulary.

        Matching ignores case and surrounding whitespace. Anything not listed in
        ``RAW_STATUS_NAMES`` maps to ``OTHER``.
        """
        if not raw:
            return cls.OTHER
        return RAW_STATUS_NAMES.get(raw.strip().casefold(), cls.OTHER)


# Raw Jira status names -> internal status.
RAW_STATUS_NAMES = {
    "in progress": IssueStatus.IN_PROGRESS,
    "done": IssueStatus.DONE,
}


@dataclass(frozen=True)
class MetricKey:
    """Cache identity of one metric computation."""

    name: str
    reference_date: date

    def __str__(self) -> str:
        return f"{self.name}-{self.reference_date.isoformat()}"


@dataclass(slots=True)
class StatusTransition:
    """One status change taken from an issue changelog."""

    timestamp: datetime
    from_status: Optional[str]
    to_status: Optional[str]


@dataclass(slots=True)
class IssueRecord:
    """An issue with its status transitions and optional parent link."""

    key: str
    transitions: List[StatusTransition] = field(default_factory=list)
    parent_key: Optional[str] = None


@dataclass(slots=True)
class IssueTimeline:
    """First start and last in-window completion of an issue."""

    first_in_progress_at: Optional[datetime]
    last_done_at: Optional[datetime]


@dataclass(slots=True)
class DeploymentRecord:
    """Represents the minimal deployment data required for frequency counting."""

    created_at: datetime
    environment_id: Optional[str]
    repository_slug: str


@dataclass(slots=True)
class OutageInterval:
    """A state interval reported by the outage summary of one check."""

    time_from: int
    time_to: int
    status: str

    @property
    def is_down(self) -> bool:
        return self.status == "down"

    @property
    def duration_seconds(self) -> int:
        return max(0, self.time_to - self.time_from)


@dataclass(slots=True)
class OutageSummary:
    """Aggregated downtime across all monitored checks for one window."""

    check_count: int
    period_seconds: int
    downtime_seconds: int = 0
    outage_count: int = 0
