"""End-to-end tests for metric functions with mocked source payloads."""

import sys
from datetime import date, datetime, timezone
from pathlib import Path
from unittest.mock import Mock

import pytest

# Add src directory to path
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from dora_metrics.bitbucket_client import BitbucketClient
from dora_metrics.cache import TTLCache
from dora_metrics.config import BitbucketConfig, Config, JiraConfig, MetabaseConfig, PingdomConfig
from dora_metrics.errors import ConfigurationError, InvalidArgumentError, SourceUnavailableError
from dora_metrics.jira_client import JiraClient
from dora_metrics.metabase_client import MetabaseClient
from dora_metrics.metrics import MetricService
from dora_metrics.models import MetricKey
from dora_metrics.pingdom_client import PingdomClient

REFERENCE = date(2026, 10, 23)
AFTER_WINDOW = datetime(2026, 11, 1, tzinfo=timezone.utc)

JIRA = JiraConfig(
    base_url="https://jira.test",
    email="me@example.com",
    api_token="token",
    project_key="ENG",
    epic_key="ENG-40",
)
BITBUCKET = BitbucketConfig(
    workspace="acme",
    username="bot",
    app_password="secret",
    environment="Production",
    allowed_repos=("api",),
)
PINGDOM = PingdomConfig(api_token="token", check_ids=("111", "222"))
METABASE = MetabaseConfig(url="https://metabase.test", api_key="key")
CONFIG = Config(jira=JIRA, bitbucket=BITBUCKET, pingdom=PINGDOM, metabase=METABASE)


def _history(created: str, to_status: str) -> dict:
    return {"created": created, "items": [{"field": "status", "toString": to_status}]}


def _service(**clients) -> MetricService:
    return MetricService(CONFIG, cache=TTLCache(), now=lambda: AFTER_WINDOW, **clients)


def test_lead_time_single_issue_monday_to_wednesday():
    """Verify one issue In Progress Monday and Done Wednesday gives a median of 3."""
    jira = JiraClient(JIRA)
    jira.get_object = Mock(return_value={
        "total": 1,
        "issues": [
            {
                "key": "ENG-1",
                "changelog": {
                    "histories": [
                        _history("2026-10-19T09:00:00.000+0000", "In Progress"),
                        _history("2026-10-21T16:00:00.000+0000", "Done"),
                    ]
                },
            }
        ],
    })

    assert _service(jira=jira).lead_time(REFERENCE) == 3.0


def test_lead_time_without_qualifying_issues_is_zero():
    """Verify an empty window yields zero lead time."""
    jira = JiraClient(JIRA)
    jira.get_object = Mock(return_value={"total": 0, "issues": []})

    assert _service(jira=jira).lead_time(REFERENCE) == 0


def test_cached_lead_time_is_rounded_up_on_hit():
    """Verify a cached raw median is rounded up to one decimal on return."""
    cache = TTLCache()
    cache.put(MetricKey("jira-leadtime", REFERENCE), 2.25, 100)
    jira = Mock()

    assert MetricService(CONFIG, cache=cache, jira=jira).lead_time(REFERENCE) == 2.3
    jira.iter_done_issues.assert_not_called()


def test_uptime_and_recovery_time_for_two_outages():
    """Verify two down intervals of 600s and 1800s across two checks."""
    pingdom = PingdomClient(PINGDOM)
    responses = {
        "summary.outage/111": {"summary": {"states": [{"status": "down", "timefrom": 1000, "timeto": 1600}]}},
        "summary.outage/222": {"summary": {"states": [{"status": "down", "timefrom": 2000, "timeto": 3800}]}},
    }
    pingdom.get_object = Mock(side_effect=lambda path, params: responses[path])
    service = _service(pingdom=pingdom)

    period = 2 * 30 * 86400
    expected_uptime = int((period - 2400) / period * 100 * 100) / 100

    assert service.uptime(REFERENCE) == expected_uptime == 99.95
    assert service.recovery_time(REFERENCE) == 20.0


def test_recovery_time_without_outages_is_zero():
    """Verify no outages means zero recovery time and full uptime."""
    pingdom = PingdomClient(PINGDOM)
    pingdom.get_object = Mock(return_value={"summary": {"states": [{"status": "up", "timefrom": 0, "timeto": 10}]}})
    service = _service(pingdom=pingdom)

    assert service.recovery_time(REFERENCE) == 0
    assert service.uptime(REFERENCE) == 100.0


def test_uptime_on_reference_day_only_counts_elapsed_time():
    """Verify a window ending in the future is measured up to the current time."""
    now = datetime(2026, 10, 23, 12, 0, tzinfo=timezone.utc)
    pingdom = PingdomClient(PINGDOM)
    responses = {
        "summary.outage/111": {"summary": {"states": [{"status": "down", "timefrom": 0, "timeto": 43200}]}},
        "summary.outage/222": {"summary": {"states": []}},
    }
    pingdom.get_object = Mock(side_effect=lambda path, params: responses[path])
    service = MetricService(CONFIG, cache=TTLCache(), pingdom=pingdom, now=lambda: now)

    assert service.uptime(REFERENCE) == 99.15
    assert {call.kwargs["params"]["to"] for call in pingdom.get_object.call_args_list} == {int(now.timestamp())}


def test_epic_coverage_three_of_ten():
    """Verify 3 of 10 done issues linked to the epic is 30.0 percent."""
    jira = JiraClient(JIRA)
    issues = [
        {"key": f"ENG-{i}", "fields": {"parent": {"key": "ENG-40" if i < 3 else "ENG-99"}}}
        for i in range(10)
    ]
    jira.get_object = Mock(return_value={"total": 10, "issues": issues})

    assert _service(jira=jira).epic_coverage(REFERENCE) == 30.0


def test_epic_coverage_without_epic_key_is_configuration_error():
    """Verify epic coverage needs a configured epic key."""
    config = Config(jira=JiraConfig(base_url="https://jira.test", email="e", api_token="t", project_key="ENG"))

    with pytest.raises(ConfigurationError):
        MetricService(config, cache=TTLCache()).epic_coverage(REFERENCE)


def test_cached_recomputation_is_identical_and_skips_fetch():
    """Verify a second call before expiry returns the same value without refetching."""
    metabase = MetabaseClient(METABASE)
    metabase.request_json = Mock(return_value=[{"value": 2.01}])
    service = _service(metabase=metabase)

    first = service.kpi(123, REFERENCE)
    second = service.kpi(123, REFERENCE)

    assert first == second == 2.1
    assert metabase.request_json.call_count == 1


def test_cache_expiry_triggers_recomputation():
    """Verify an expired entry is recomputed from the source."""
    now = [0.0]
    metabase = MetabaseClient(METABASE)
    metabase.request_json = Mock(side_effect=[[{"value": 1}], [{"value": 5}]])
    service = MetricService(
        Config(metabase=METABASE, cache_ttl_seconds=60),
        cache=TTLCache(clock=lambda: now[0]),
        metabase=metabase,
    )

    assert service.kpi(1, REFERENCE) == 1.0
    now[0] = 61.0
    assert service.kpi(1, REFERENCE) == 5.0


def test_failed_computation_is_not_cached():
    """Verify a source failure propagates and leaves nothing in the cache."""
    cache = TTLCache()
    jira = JiraClient(JIRA)
    jira.get_object = Mock(side_effect=SourceUnavailableError("Jira returned 500"))

    with pytest.raises(SourceUnavailableError):
        MetricService(CONFIG, cache=cache, jira=jira).lead_time(REFERENCE)

    assert len(cache) == 0


def test_unreachable_cache_still_computes():
    """Verify cache failures degrade to recomputation instead of failing the metric."""
    cache = Mock()
    cache.get.side_effect = ConnectionError("down")
    cache.put.side_effect = ConnectionError("down")
    metabase = MetabaseClient(METABASE)
    metabase.request_json = Mock(return_value=[{"value": 4}])

    assert MetricService(CONFIG, cache=cache, metabase=metabase).kpi(9, REFERENCE) == 4.0


def test_unconfigured_source_raises_configuration_error():
    """Verify requesting a metric from an unconfigured source fails clearly."""
    with pytest.raises(ConfigurationError):
        MetricService(Config(), cache=TTLCache()).uptime(REFERENCE)


def test_deployments_counts_target_environment_and_upserts_row():
    """Verify deployment counting filters repos, dates and environments with one lookup per environment."""
    bitbucket = BitbucketClient(BITBUCKET)
    bitbucket.iter_repository_slugs = Mock(return_value=iter(["api", "web"]))
    deployments_page = {
        "values": [
            {"created_on": "2026-10-01T08:00:00Z", "environment": {"uuid": "{env-prod}"}},
            {"created_on": "2026-10-10T08:00:00Z", "environment": {"uuid": "{env-prod}"}},
            {"created_on": "2026-10-31T23:00:00Z", "environment": {"uuid": "{env-prod}"}},
            {"created_on": "2026-10-11T08:00:00Z", "environment": {"uuid": "{env-stage}"}},
            {"created_on": "2026-09-30T23:59:00Z", "environment": {"uuid": "{env-prod}"}},
            {"created_on": "2026-10-12T08:00:00Z"},
        ]
    }
    environment_names = {"env-prod": "production", "env-stage": "Staging"}

    def get_object(path, params=None):
        if "/environments/" in path:
            return {"name": environment_names[path.rsplit("%7B", 1)[1].removesuffix("%7D")]}
        assert path == "repositories/acme/api/deployments/"
        return deployments_page

    bitbucket.get_object = Mock(side_effect=get_object)
    row_store = Mock()

    count = MetricService(CONFIG, cache=TTLCache(), bitbucket=bitbucket, row_store=row_store).deployments(REFERENCE)

    assert count == 3
    environment_calls = [call for call in bitbucket.get_object.call_args_list if "/environments/" in call.args[0]]
    assert len(environment_calls) == 2
    row_store.upsert.assert_called_once_with("ENG: Deployment Stats", (2026, 10), 3)


def test_bug_count_uses_month_of_current_year():
    """Verify bug counting bounds the query to the requested month."""
    jira = JiraClient(JIRA)
    jira.count_issues = Mock(return_value=12)

    assert _service(jira=jira).bug_count("APR", today=date(2026, 10, 19)) == 12
    jql = jira.count_issues.call_args.args[0]
    assert 'created >= "2026-04-01" AND created < "2026-05-01"' in jql


def test_bug_count_defaults_to_current_month():
    """Verify an omitted month abbreviation counts the current month."""
    jira = JiraClient(JIRA)
    jira.count_issues = Mock(return_value=2)

    assert _service(jira=jira).bug_count(None, today=date(2026, 10, 19)) == 2
    assert 'created >= "2026-10-01"' in jira.count_issues.call_args.args[0]


def test_bug_count_invalid_month_raises():
    """Verify unknown month abbreviations raise InvalidArgumentError before any fetch."""
    jira = JiraClient(JIRA)
    jira.count_issues = Mock()

    with pytest.raises(InvalidArgumentError):
        _service(jira=jira).bug_count("xyz", today=date(2026, 10, 19))
    jira.count_issues.assert_not_called()
