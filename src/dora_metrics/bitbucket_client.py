"""Bitbucket Cloud REST API client for repositories, deployments and environments."""

from __future__ import annotations

import logging
from typing import Any, Dict, Iterator

from requests.auth import HTTPBasicAuth

from .config import BitbucketConfig
from .dates import parse_timestamp
from .errors import MalformedResponseError
from .http_client import SourceClient
from .models import DeploymentRecord
from .pagination import iter_cursor, iter_numbered

logger = logging.getLogger(__name__)


class BitbucketClient(SourceClient):
    """Small, typed client for the Bitbucket deployments API."""

    source_name = "Bitbucket"

    _REPOSITORY_PAGE_SIZE = 100
    _DEPLOYMENT_PAGE_SIZE = 100

    def __init__(self, config: BitbucketConfig, timeout_seconds: int = 30) -> None:
        super().__init__(config.base_url, timeout_seconds=timeout_seconds)
        self._config = config
        self._auth = HTTPBasicAuth(config.username, config.app_password)

    def iter_repository_slugs(self) -> Iterator[str]:
        """Iterate slugs of every repository in the workspace, following ``next`` links."""
        first_url = self._build_url(
            f"repositories/{self._config.workspace}?pagelen={self._REPOSITORY_PAGE_SIZE}"
        )
        for item in iter_cursor(self.get_object, first_url):
            slug = item.get("slug")
            if slug:
                yield str(slug)

    def iter_deployments(self, repo_slug: str) -> Iterator[DeploymentRecord]:
        """Iterate deployments of one repository.

        The endpoint reports neither a total nor a reliable cursor, so paging
        stops at the first page shorter than the requested size. Deployments
        without ``created_on`` are skipped.
        """
        path = f"repositories/{self._config.workspace}/{repo_slug}/deployments/"

        def fetch_page(page: int, page_size: int) -> Dict[str, Any]:
            return self.get_object(path, params={"pagelen": page_size, "page": page})

        for item in iter_numbered(fetch_page, self._DEPLOYMENT_PAGE_SIZE):
            try:
                created_at = parse_timestamp(item.get("created_on"))
            except ValueError as exc:
                raise MalformedResponseError(
                    f"Bitbucket deployment in {repo_slug} has an unparseable created_on: "
                    f"{item.get('created_on')!r}"
                ) from exc

            if created_at is None:
                logger.debug("Skipping deployment without created_on", extra={"repo_slug": repo_slug})
                continue

            environment = item.get("environment") or {}
            yield DeploymentRecord(
                created_at=created_at,
                environment_id=environment.get("uuid"),
                repository_slug=repo_slug,
            )

    def get_environment_name(self, repo_slug: str, environment_id: str) -> str:
        """Look up an environment's display name; ``environment_id`` has no braces."""
        payload = self.get_object(
            f"repositories/{self._config.workspace}/{repo_slug}/environments/%7B{environment_id}%7D"
        )
        return str(payload.get("name") or "")
