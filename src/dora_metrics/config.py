"""Configuration parsing and validation for the DORA metrics collector.

Every source has its own frozen section. A section whose environment variables
are all unset is left as ``None`` so that metrics from other sources can still
run; a partially configured section is rejected up front.
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from typing import Mapping, Optional, Tuple

from .errors import ConfigurationError

DEFAULT_CACHE_TTL_SECONDS = 1500
DEFAULT_REQUEST_TIMEOUT_SECONDS = 30
DEFAULT_DEPLOYMENT_SHEET = "ENG: Deployment Stats"
DEFAULT_PINGDOM_BASE_URL = "https://api.pingdom.com/api/3.1"
DEFAULT_BITBUCKET_BASE_URL = "https://api.bitbucket.org/2.0"


@dataclass(frozen=True)
class JiraConfig:
    """Jira Cloud connection and project settings."""

    base_url: str
    email: str
    api_token: str
    project_key: str
    epic_key: Optional[str] = None


@dataclass(frozen=True)
class BitbucketConfig:
    """Bitbucket Cloud workspace, credentials and deployment filters."""

    workspace: str
    username: str
    app_password: str
    environment: str = "Production"
    allowed_repos: Tuple[str, ...] = ()
    base_url: str = DEFAULT_BITBUCKET_BASE_URL


@dataclass(frozen=True)
class PingdomConfig:
    """Pingdom API token and the monitored checks to aggregate."""

    api_token: str
    check_ids: Tuple[str, ...]
    base_url: str = DEFAULT_PINGDOM_BASE_URL


@dataclass(frozen=True)
class MetabaseConfig:
    """Metabase instance URL and API key."""

    url: str
    api_key: str


@dataclass(frozen=True)
class Config:
    """Validated runtime settings used by the metric service."""

    jira: Optional[JiraConfig] = None
    bitbucket: Optional[BitbucketConfig] = None
    pingdom: Optional[PingdomConfig] = None
    metabase: Optional[MetabaseConfig] = None
    cache_ttl_seconds: int = DEFAULT_CACHE_TTL_SECONDS
    request_timeout_seconds: int = DEFAULT_REQUEST_TIMEOUT_SECONDS
    row_store_dir: Optional[str] = None
    deployment_sheet: str = field(default=DEFAULT_DEPLOYMENT_SHEET)

    def require_jira(self) -> JiraConfig:
        return _require(self.jira, "Jira", "JIRA_BASE_URL, JIRA_EMAIL, JIRA_API_TOKEN, JIRA_PROJECT_KEY")

    def require_bitbucket(self) -> BitbucketConfig:
        return _require(
            self.bitbucket,
            "Bitbucket",
            "BITBUCKET_WORKSPACE, BITBUCKET_USERNAME, BITBUCKET_APP_PASSWORD",
        )

    def require_pingdom(self) -> PingdomConfig:
        return _require(self.pingdom, "Pingdom", "PINGDOM_API_TOKEN, PINGDOM_CHECK_IDS")

    def require_metabase(self) -> MetabaseConfig:
        return _require(self.metabase, "Metabase", "METABASE_URL, METABASE_API_KEY")


def _require(section, source: str, variables: str):
    if section is None:
        raise ConfigurationError(
            f"{source} is not configured. Set {variables} before requesting {source} metrics."
        )
    return section


def _read(env: Mapping[str, str], name: str) -> str:
    return env.get(name, "").strip()


def _read_list(env: Mapping[str, str], name: str) -> Tuple[str, ...]:
    return tuple(item.strip() for item in _read(env, name).split(",") if item.strip())


def _read_positive_int(env: Mapping[str, str], name: str, default: int) -> int:
    raw = _read(env, name)
    if not raw:
        return default
    try:
        value = int(raw)
    except ValueError as exc:
        raise ConfigurationError(f"Invalid value for '{name}': expected an integer.") from exc
    if value <= 0:
        raise ConfigurationError(f"Invalid value for '{name}': expected an integer greater than 0.")
    return value


def _section_values(env: Mapping[str, str], source: str, required: Tuple[str, ...]) -> Optional[dict]:
    """Return required variable values, ``None`` when none are set.

    Raises:
        ConfigurationError: If only some of the required variables are set.
    """
    values = {name: _read(env, name) for name in required}
    missing = [name for name, value in values.items() if not value]
    if len(missing) == len(required):
        return None
    if missing:
        raise ConfigurationError(
            f"Incomplete {source} configuration: missing {', '.join(missing)}."
        )
    return values


def load_config(env: Optional[Mapping[str, str]] = None) -> Config:
    """Build and validate application configuration from environment variables.

    Args:
        env: Mapping to read from; defaults to ``os.environ``.

    Returns:
        A validated ``Config`` instance.

    Raises:
        ConfigurationError: If a section is partially configured or a numeric
            setting is not a positive integer.
    """
    if env is None:
        env = os.environ

    jira: Optional[JiraConfig] = None
    values = _section_values(
        env, "Jira", ("JIRA_BASE_URL", "JIRA_EMAIL", "JIRA_API_TOKEN", "JIRA_PROJECT_KEY")
    )
    if values is not None:
        jira = JiraConfig(
            base_url=values["JIRA_BASE_URL"].rstrip("/"),
            email=values["JIRA_EMAIL"],
            api_token=values["JIRA_API_TOKEN"],
            project_key=values["JIRA_PROJECT_KEY"],
            epic_key=_read(env, "JIRA_EPIC_KEY") or None,
        )

    bitbucket: Optional[BitbucketConfig] = None
    values = _section_values(
        env,
        "Bitbucket",
        ("BITBUCKET_WORKSPACE", "BITBUCKET_USERNAME", "BITBUCKET_APP_PASSWORD"),
    )
    if values is not None:
        bitbucket = BitbucketConfig(
            workspace=values["BITBUCKET_WORKSPACE"],
            username=values["BITBUCKET_USERNAME"],
            app_password=values["BITBUCKET_APP_PASSWORD"],
            environment=_read(env, "BITBUCKET_ENVIRONMENT") or "Production",
            allowed_repos=_read_list(env, "BITBUCKET_ALLOWED_REPOS"),
        )

    pingdom: Optional[PingdomConfig] = None
    values = _section_values(env, "Pingdom", ("PINGDOM_API_TOKEN", "PINGDOM_CHECK_IDS"))
    if values is not None:
        check_ids = _read_list(env, "PINGDOM_CHECK_IDS")
        if not check_ids:
            raise ConfigurationError("Invalid value for 'PINGDOM_CHECK_IDS': expected at least one check id.")
        pingdom = PingdomConfig(
            api_token=values["PINGDOM_API_TOKEN"],
            check_ids=check_ids,
            base_url=(_read(env, "PINGDOM_BASE_URL") or DEFAULT_PINGDOM_BASE_URL).rstrip("/"),
        )

    metabase: Optional[MetabaseConfig] = None
    values = _section_values(env, "Metabase", ("METABASE_URL", "METABASE_API_KEY"))
    if values is not None:
        metabase = MetabaseConfig(
            url=values["METABASE_URL"].rstrip("/"),
            api_key=values["METABASE_API_KEY"],
        )

    return Config(
        jira=jira,
        bitbucket=bitbucket,
        pingdom=pingdom,
        metabase=metabase,
        cache_ttl_seconds=_read_positive_int(env, "DORA_CACHE_TTL_SECONDS", DEFAULT_CACHE_TTL_SECONDS),
        request_timeout_seconds=_read_positive_int(
            env, "DORA_REQUEST_TIMEOUT_SECONDS", DEFAULT_REQUEST_TIMEOUT_SECONDS
        ),
        row_store_dir=_read(env, "DORA_ROW_STORE_DIR") or None,
        deployment_sheet=_read(env, "DORA_DEPLOYMENT_SHEET") or DEFAULT_DEPLOYMENT_SHEET,
    )
