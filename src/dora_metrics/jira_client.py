"""Jira Cloud REST API client for issue search and changelog retrieval."""

from __future__ import annotations

import logging
from datetime import date, timedelta
from typing import Any, Dict, Iterator, List, Optional, Sequence

from requests.auth import HTTPBasicAuth

from .config import JiraConfig
from .dates import DateWindow, parse_timestamp
from .errors import MalformedResponseError
from .http_client import SourceClient
from .models import IssueRecord, StatusTransition
from .pagination import iter_counted

logger = logging.getLogger(__name__)

_BUG_FILTER = (
    "status not in (\"WON'T DO\") AND type = Bug AND "
    '(labels NOT IN ("user-error", "pre-existing") OR labels IS EMPTY)'
)


def done_since_jql(project_key: str, since: date) -> str:
    """JQL for issues in ``project_key`` that moved to Done on or after ``since``."""
    return (
        f"project = {project_key} AND status = Done AND "
        f'statusCategoryChangedDate >= "{since.isoformat()}" ORDER BY updated DESC'
    )


def bugs_created_jql(project_key: str, window: DateWindow) -> str:
    """JQL for countable bugs created within ``window``.

    Jira reads a bare date as 00:00 of that day, so the upper bound is the
    exclusive day after the window.
    """
    end_exclusive = window.end_date + timedelta(days=1)
    return (
        f"project = {project_key} AND {_BUG_FILTER} AND "
        f'created >= "{window.start_date.isoformat()}" AND created < "{end_exclusive.isoformat()}"'
    )


class JiraClient(SourceClient):
    """Small, typed client for the Jira issue search API."""

    source_name = "Jira"

    _SEARCH_PATH = "rest/api/3/search"
    _SEARCH_PAGE_SIZE = 100

    def __init__(self, config: JiraConfig, timeout_seconds: int = 30) -> None:
        super().__init__(config.base_url, timeout_seconds=timeout_seconds)
        self._config = config
        self._auth = HTTPBasicAuth(config.email, config.api_token)

    def search(
        self,
        jql: str,
        fields: Optional[Sequence[str]] = None,
        expand: Optional[Sequence[str]] = None,
    ) -> Iterator[Dict[str, Any]]:
        """Lazily iterate raw issues matching ``jql`` across all result pages."""

        def fetch_page(start_at: int, page_size: int) -> Dict[str, Any]:
            params: Dict[str, Any] = {
                "jql": jql,
                "startAt": start_at,
                "maxResults": page_size,
            }
            if fields:
                params["fields"] = ",".join(fields)
            if expand:
                params["expand"] = ",".join(expand)
            return self.get_object(self._SEARCH_PATH, params=params)

        return iter_counted(fetch_page, self._SEARCH_PAGE_SIZE, items_key="issues")

    def iter_done_issues(self, since: date, with_changelog: bool = False) -> Iterator[IssueRecord]:
        """Iterate issues of the configured project completed on or after ``since``."""
        jql = done_since_jql(self._config.project_key, since)
        if with_changelog:
            raw_issues = self.search(jql, expand=["changelog"])
        else:
            raw_issues = self.search(jql, fields=["parent"])

        for item in raw_issues:
            yield parse_issue(item)

    def count_issues(self, jql: str) -> int:
        """Return the number of issues matching ``jql`` without fetching any of them."""
        payload = self.request_json("POST", self._SEARCH_PATH, json={"jql": jql, "maxResults": 0})
        if not isinstance(payload, dict):
            raise MalformedResponseError("Jira search returned unexpected payload shape.")

        total = payload.get("total") or 0
        if not isinstance(total, int):
            raise MalformedResponseError(f"Jira search returned non-integer total: {total!r}")
        return total


def parse_issue(item: Dict[str, Any]) -> IssueRecord:
    """Convert a raw search result into an ``IssueRecord``.

    Only ``status`` changelog items become transitions. History entries without
    a timestamp are skipped.
    """
    key = str(item.get("key") or item.get("id") or "")
    fields = item.get("fields") or {}
    parent = fields.get("parent") or {}
    histories = (item.get("changelog") or {}).get("histories") or []

    transitions: List[StatusTransition] = []
    for entry in histories:
        try:
            timestamp = parse_timestamp(entry.get("created"))
        except ValueError as exc:
            raise MalformedResponseError(
                f"Jira changelog entry of {key} has an unparseable timestamp: {entry.get('created')!r}"
            ) from exc
        if timestamp is None:
            logger.debug("Skipping changelog entry without timestamp", extra={"issue_key": key})
            continue

        for change in entry.get("items") or []:
            if change.get("field") != "status":
                continue
            transitions.append(
                StatusTransition(
                    timestamp=timestamp,
                    from_status=change.get("fromString"),
                    to_status=change.get("toString"),
                )
            )

    return IssueRecord(key=key, transitions=transitions, parent_key=parent.get("key"))
