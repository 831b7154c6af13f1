"""Tests for the Bitbucket client and environment resolution with mocked HTTP."""

import sys
from datetime import datetime, timezone
from pathlib import Path
from unittest.mock import Mock

# Add src directory to path
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from dora_metrics.bitbucket_client import BitbucketClient
from dora_metrics.config import BitbucketConfig
from dora_metrics.environments import EnvironmentResolver, environment_matches, normalize_environment_id


def _build_client() -> BitbucketClient:
    config = BitbucketConfig(
        workspace="acme",
        username="bot",
        app_password="secret",
        environment="Production",
        allowed_repos=("api",),
    )
    return BitbucketClient(config=config)


def _deployment(created_on: str = "2026-10-05T12:00:00.000000+00:00", env_uuid="{env-1}") -> dict:
    item = {"created_on": created_on}
    if env_uuid is not None:
        item["environment"] = {"uuid": env_uuid}
    return item


def test_iter_repository_slugs_follows_next_links():
    """Verify repository listing follows cursor links across pages."""
    client = _build_client()
    client.get_object = Mock(side_effect=[
        {"values": [{"slug": "api"}, {"slug": "web"}], "next": "https://api.bitbucket.org/2.0/page2"},
        {"values": [{"slug": "worker"}]},
    ])

    slugs = list(client.iter_repository_slugs())

    assert slugs == ["api", "web", "worker"]
    first_url = client.get_object.call_args_list[0].args[0]
    assert first_url == "https://api.bitbucket.org/2.0/repositories/acme?pagelen=100"
    assert client.get_object.call_args_list[1].args[0] == "https://api.bitbucket.org/2.0/page2"


def test_iter_deployments_pages_until_short_page():
    """Verify deployment listing pages by number until a short page is returned."""
    client = _build_client()
    client.get_object = Mock(side_effect=[
        {"values": [_deployment() for _ in range(100)]},
        {"values": [_deployment(env_uuid=None)]},
    ])

    deployments = list(client.iter_deployments("api"))

    assert len(deployments) == 101
    assert deployments[0].created_at == datetime(2026, 10, 5, 12, 0, tzinfo=timezone.utc)
    assert deployments[0].environment_id == "{env-1}"
    assert deployments[0].repository_slug == "api"
    assert deployments[-1].environment_id is None
    pages = [call.kwargs["params"]["page"] for call in client.get_object.call_args_list]
    assert pages == [1, 2]
    assert client.get_object.call_args_list[0].args[0] == "repositories/acme/api/deployments/"


def test_get_environment_name_requests_braced_uuid():
    """Verify environment lookups wrap the UUID in URL-encoded braces."""
    client = _build_client()
    client.get_object = Mock(return_value={"name": "Production"})

    assert client.get_environment_name("api", "env-1") == "Production"
    client.get_object.assert_called_once_with("repositories/acme/api/environments/%7Benv-1%7D")


def test_normalize_environment_id_strips_braces():
    """Verify braces are removed before the id is used as a key or path segment."""
    assert normalize_environment_id("{abc-123}") == "abc-123"
    assert normalize_environment_id("abc-123") == "abc-123"


def test_environment_matches_is_case_insensitive():
    """Verify target environment comparison ignores case."""
    assert environment_matches("production", "Production")
    assert not environment_matches("staging", "Production")


def test_resolver_looks_up_each_distinct_id_once():
    """Verify N references to the same environment cause exactly one lookup."""
    lookup = Mock(return_value="Production")
    resolver = EnvironmentResolver(lookup)

    names = [resolver.resolve("{env-1}", "api") for _ in range(5)]
    names.append(resolver.resolve("env-1", "web"))

    assert names == ["Production"] * 6
    lookup.assert_called_once_with("api", "env-1")
    assert resolver.lookups == 1


def test_resolver_memoizes_empty_names():
    """Verify environments without a name are not looked up again."""
    lookup = Mock(return_value="")
    resolver = EnvironmentResolver(lookup)

    resolver.resolve("{env-2}", "api")
    resolver.resolve("{env-2}", "api")

    assert lookup.call_count == 1
