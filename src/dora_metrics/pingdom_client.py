"""Pingdom API client for outage summaries of monitored checks."""

from __future__ import annotations

import logging
from concurrent.futures import ThreadPoolExecutor
from datetime import datetime
from typing import List, Optional

from .config import PingdomConfig
from .dates import DateWindow
from .errors import MalformedResponseError
from .http_client import SourceClient
from .models import OutageInterval, OutageSummary

logger = logging.getLogger(__name__)


def observed_end(window: DateWindow, until: Optional[datetime] = None) -> datetime:
    """End of the part of ``window`` that has already elapsed at ``until``."""
    if until is None:
        return window.end
    return max(window.start, min(window.end, until))


class PingdomClient(SourceClient):
    """Small, typed client for the Pingdom outage summary API."""

    source_name = "Pingdom"

    _MAX_WORKERS = 4

    def __init__(self, config: PingdomConfig, timeout_seconds: int = 30) -> None:
        super().__init__(config.base_url, timeout_seconds=timeout_seconds)
        self._config = config
        self._headers["Authorization"] = f"Bearer {config.api_token}"

    def list_outage_states(
        self, check_id: str, window: DateWindow, until: Optional[datetime] = None
    ) -> List[OutageInterval]:
        """List the state intervals of one check within ``window``, up to ``until``."""
        payload = self.get_object(
            f"summary.outage/{check_id}",
            params={
                "from": int(window.start.timestamp()),
                "to": int(observed_end(window, until).timestamp()),
            },
        )
        states = (payload.get("summary") or {}).get("states") or []
        if not isinstance(states, list):
            raise MalformedResponseError(f"Pingdom outage summary for check {check_id} has no state list.")

        intervals: List[OutageInterval] = []
        for state in states:
            try:
                intervals.append(
                    OutageInterval(
                        time_from=int(state["timefrom"]),
                        time_to=int(state["timeto"]),
                        status=str(state.get("status") or ""),
                    )
                )
            except (KeyError, TypeError, ValueError) as exc:
                raise MalformedResponseError(
                    f"Pingdom outage state for check {check_id} is malformed: {state!r}"
                ) from exc

        return intervals

    def summarize_outages(self, window: DateWindow, until: Optional[datetime] = None) -> OutageSummary:
        """Aggregate downtime of all checks over ``window``.

        When ``until`` falls inside the window, the period ends there so that
        time which has not yet elapsed is not counted as uptime.

        Checks are fetched concurrently; the sums do not depend on order. Only
        ``down`` intervals with a positive duration count as outages.
        """
        check_ids = self._config.check_ids
        end = observed_end(window, until)
        summary = OutageSummary(
            check_count=len(check_ids),
            period_seconds=int((end - window.start).total_seconds()),
        )

        with ThreadPoolExecutor(max_workers=min(self._MAX_WORKERS, max(1, len(check_ids)))) as executor:
            per_check = list(executor.map(lambda check_id: self.list_outage_states(check_id, window, until), check_ids))

        for intervals in per_check:
            for interval in intervals:
                if not interval.is_down or interval.duration_seconds <= 0:
                    continue
                summary.downtime_seconds += interval.duration_seconds
                summary.outage_count += 1

        logger.info(
            "Summarized outages",
            extra={
                "checks": summary.check_count,
                "outages": summary.outage_count,
                "downtime_seconds": summary.downtime_seconds,
            },
        )
        return summary
