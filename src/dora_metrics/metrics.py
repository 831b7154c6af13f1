"""Metric functions composing sources, calculators and the TTL cache.

Every metric follows the same steps: build a ``MetricKey``, return the rounded
cached value on a hit, otherwise fetch and reduce source data, cache the raw
value, and return it rounded. Rounding is applied identically on both paths, so
a recomputation before expiry returns the same number as the cached one.
"""

from __future__ import annotations

import logging
from datetime import date, datetime, timezone
from typing import Callable, Iterable, Optional, Sequence

from .bitbucket_client import BitbucketClient
from .cache import FailSafeCache, MetricCache, default_cache
from .config import Config
from .dates import DateWindow, month_from_abbreviation, month_window, trailing_window
from .environments import EnvironmentResolver, environment_matches
from .errors import ConfigurationError
from .jira_client import JiraClient, bugs_created_jql
from .metabase_client import MetabaseClient, QuestionId
from .models import IssueRecord, MetricKey, OutageSummary
from .pingdom_client import PingdomClient
from .row_store import CsvRowStore, RowStore
from .stats import median, round_down, round_half_up, round_up
from .timeline import collect_lead_times

logger = logging.getLogger(__name__)


def epic_coverage_percentage(issues: Iterable[IssueRecord], epic_key: str) -> float:
    """Percentage of ``issues`` whose parent is ``epic_key``; ``0`` without issues."""
    total = 0
    linked = 0
    for issue in issues:
        total += 1
        if issue.parent_key == epic_key:
            linked += 1

    logger.info("Counted epic coverage", extra={"issues_total": total, "issues_linked": linked, "epic_key": epic_key})
    if total == 0:
        return 0
    return linked / total * 100


def uptime_percentage(summary: OutageSummary) -> float:
    possible = summary.period_seconds * summary.check_count
    if possible <= 0:
        return 100
    return (possible - summary.downtime_seconds) / possible * 100


def mean_recovery_minutes(summary: OutageSummary) -> float:
    if summary.outage_count == 0:
        return 0
    return summary.downtime_seconds / summary.outage_count / 60


def count_deployments(
    client: BitbucketClient,
    window: DateWindow,
    target_environment: str,
    allowed_repos: Sequence[str],
) -> int:
    """Count deployments to ``target_environment`` inside ``window``.

    Business logic:
    - Only repositories in ``allowed_repos`` are scanned.
    - Deployments without an environment or outside the window are skipped.
    - Environment names are resolved once per distinct id for this run.
    """
    resolver = EnvironmentResolver(client.get_environment_name)
    allowed = set(allowed_repos)
    count = 0
    skipped = 0

    for repo_slug in client.iter_repository_slugs():
        if repo_slug not in allowed:
            continue

        for deployment in client.iter_deployments(repo_slug):
            if not deployment.environment_id or not window.contains(deployment.created_at):
                skipped += 1
                continue

            name = resolver.resolve(deployment.environment_id, repo_slug)
            if environment_matches(name, target_environment):
                count += 1

    logger.info(
        "Counted deployments",
        extra={
            "deployments": count,
            "skipped": skipped,
            "environment_lookups": resolver.lookups,
            "environment": target_environment,
        },
    )
    return count


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


class MetricService:
    """Entry point for every metric; one instance can serve many invocations.

    Source clients are built lazily from ``config`` unless injected, so only the
    sources a metric touches need to be configured.
    ``now`` bounds windows that end in the future; it defaults to the current
    UTC time.
    """

    def __init__(
        self,
        config: Config,
        cache: Optional[MetricCache] = None,
        jira: Optional[JiraClient] = None,
        bitbucket: Optional[BitbucketClient] = None,
        pingdom: Optional[PingdomClient] = None,
        metabase: Optional[MetabaseClient] = None,
        row_store: Optional[RowStore] = None,
        now: Optional[Callable[[], datetime]] = None,
    ) -> None:
        self._config = config
        self._now = now or _utc_now
        self._cache = FailSafeCache(cache if cache is not None else default_cache)
        self._jira = jira
        self._bitbucket = bitbucket
        self._pingdom = pingdom
        self._metabase = metabase
        if row_store is None and config.row_store_dir:
            row_store = CsvRowStore(config.row_store_dir)
        self._row_store = row_store

    @property
    def jira(self) -> JiraClient:
        if self._jira is None:
            self._jira = JiraClient(self._config.require_jira(), timeout_seconds=self._config.request_timeout_seconds)
        return self._jira

    @property
    def bitbucket(self) -> BitbucketClient:
        if self._bitbucket is None:
            self._bitbucket = BitbucketClient(
                self._config.require_bitbucket(), timeout_seconds=self._config.request_timeout_seconds
            )
        return self._bitbucket

    @property
    def pingdom(self) -> PingdomClient:
        if self._pingdom is None:
            self._pingdom = PingdomClient(
                self._config.require_pingdom(), timeout_seconds=self._config.request_timeout_seconds
            )
        return self._pingdom

    @property
    def metabase(self) -> MetabaseClient:
        if self._metabase is None:
            self._metabase = MetabaseClient(
                self._config.require_metabase(), timeout_seconds=self._config.request_timeout_seconds
            )
        return self._metabase

    def _cached(
        self,
        key: MetricKey,
        compute: Callable[[], float],
        finish: Callable[[float], float],
    ) -> float:
        cached = self._cache.get(key)
        if cached is not None:
            logger.info("Cache hit", extra={"metric_key": str(key), "value": cached})
            return finish(cached)

        logger.info("Cache miss", extra={"metric_key": str(key)})
        value = compute()
        self._cache.put(key, value, self._config.cache_ttl_seconds)
        result = finish(value)
        logger.info("Computed metric", extra={"metric_key": str(key), "raw_value": value, "value": result})
        return result

    def kpi(self, question_id: QuestionId, reference_date: date) -> float:
        """Ad-hoc KPI from a Metabase question, rounded up to one decimal."""
        key = MetricKey(f"metabase-{question_id}", reference_date)
        return self._cached(
            key,
            lambda: self.metabase.query_scalar(question_id, reference_date),
            lambda value: round_up(value, 1),
        )

    def lead_time(self, reference_date: date) -> float:
        """Median business days from In Progress to Done over the trailing 30 days."""
        window = trailing_window(reference_date)

        def compute() -> float:
            issues = self.jira.iter_done_issues(window.start_date, with_changelog=True)
            return median(collect_lead_times(issues, window))

        return self._cached(MetricKey("jira-leadtime", reference_date), compute, lambda value: round_up(value, 1))

    def epic_coverage(self, reference_date: date) -> float:
        """Percentage of issues completed in the trailing 30 days linked to the epic."""
        jira_config = self._config.require_jira()
        if not jira_config.epic_key:
            raise ConfigurationError("Epic coverage requires JIRA_EPIC_KEY to be set.")
        window = trailing_window(reference_date)

        def compute() -> float:
            issues = self.jira.iter_done_issues(window.start_date)
            return epic_coverage_percentage(issues, jira_config.epic_key)

        return self._cached(
            MetricKey("jira-epic-coverage", reference_date), compute, lambda value: round_half_up(value, 1)
        )

    def uptime(self, reference_date: date) -> float:
        """Uptime percentage across all checks, rounded down to two decimals."""
        window = trailing_window(reference_date)
        return self._cached(
            MetricKey("pingdom-uptime", reference_date),
            lambda: uptime_percentage(self.pingdom.summarize_outages(window, until=self._now())),
            lambda value: round_down(value, 2),
        )

    def recovery_time(self, reference_date: date) -> float:
        """Mean outage duration in minutes, rounded down to two decimals."""
        window = trailing_window(reference_date)
        return self._cached(
            MetricKey("pingdom-recovery", reference_date),
            lambda: mean_recovery_minutes(self.pingdom.summarize_outages(window, until=self._now())),
            lambda value: round_down(value, 2),
        )

    def deployments(self, reference_date: date) -> int:
        """Deployments to the target environment in the month of ``reference_date``.

        A freshly computed count is also upserted into the row store, keyed by
        year and month, when one is configured.
        """
        bitbucket_config = self._config.require_bitbucket()
        window = month_window(reference_date.year, reference_date.month)

        def compute() -> float:
            count = count_deployments(
                self.bitbucket, window, bitbucket_config.environment, bitbucket_config.allowed_repos
            )
            if self._row_store is not None:
                self._row_store.upsert(
                    self._config.deployment_sheet, (reference_date.year, reference_date.month), count
                )
            return count

        return int(self._cached(MetricKey("bitbucket-deployments", window.start_date), compute, float))

    def bug_count(self, month_abbrev: Optional[str], today: date) -> int:
        """Bugs created in the given month of ``today``'s year.

        An empty or missing ``month_abbrev`` means the month of ``today``.

        Raises:
            InvalidArgumentError: If ``month_abbrev`` is not a month abbreviation.
        """
        month = month_from_abbreviation(month_abbrev) if month_abbrev else today.month
        window = month_window(today.year, month)
        jira_config = self._config.require_jira()

        return int(
            self._cached(
                MetricKey("jira-bugs", window.start_date),
                lambda: self.jira.count_issues(bugs_created_jql(jira_config.project_key, window)),
                float,
            )
        )
