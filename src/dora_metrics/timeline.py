"""Issue timeline reconstruction and lead time sampling.

Lead time for one issue runs from the first time it entered In Progress to the
last time it entered Done inside the reporting window, counted in business
days. Re-opening after work started does not move the start; a ticket that is
Done, re-opened and Done again uses its final in-window completion.
"""

from __future__ import annotations

import logging
from typing import Iterable, List, Optional

from .dates import DateWindow
from .models import IssueRecord, IssueStatus, IssueTimeline
from .stats import count_business_days

logger = logging.getLogger(__name__)


def reconstruct_timeline(issue: IssueRecord, window: DateWindow) -> IssueTimeline:
    """Find the first In Progress entry and the last in-window Done entry.

    Transitions are sorted by timestamp first; sources usually return them in
    ascending order but this is not relied upon.
    """
    first_in_progress_at = None
    last_done_at = None

    for transition in sorted(issue.transitions, key=lambda t: t.timestamp):
        status = IssueStatus.from_raw(transition.to_status)
        if status is IssueStatus.IN_PROGRESS and first_in_progress_at is None:
            first_in_progress_at = transition.timestamp
        elif status is IssueStatus.DONE and window.contains(transition.timestamp):
            last_done_at = transition.timestamp

    return IssueTimeline(first_in_progress_at=first_in_progress_at, last_done_at=last_done_at)


def lead_time_sample(issue: IssueRecord, window: DateWindow) -> Optional[int]:
    """Return the issue's lead time in business days, or ``None`` if it has none.

    Business logic:
    - Both the start and the in-window completion must exist.
    - Completion must come strictly after the start; Done before In Progress is
      a data anomaly and contributes nothing.
    """
    timeline = reconstruct_timeline(issue, window)
    if timeline.first_in_progress_at is None or timeline.last_done_at is None:
        return None

    if timeline.last_done_at <= timeline.first_in_progress_at:
        logger.debug(
            "Skipping lead time sample with completion before start",
            extra={"issue_key": issue.key},
        )
        return None

    return count_business_days(timeline.first_in_progress_at, timeline.last_done_at)


def collect_lead_times(issues: Iterable[IssueRecord], window: DateWindow) -> List[int]:
    """Collect lead time samples, dropping issues without one."""
    samples: List[int] = []
    issues_total = 0

    for issue in issues:
        issues_total += 1
        sample = lead_time_sample(issue, window)
        if sample is not None:
            samples.append(sample)

    logger.info(
        "Collected lead time samples",
        extra={"issues_total": issues_total, "samples": len(samples)},
    )
    return samples
