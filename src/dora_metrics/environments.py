"""Per-run memoized resolution of deployment environment names."""

from __future__ import annotations

import logging
from typing import Callable, Dict

logger = logging.getLogger(__name__)


def normalize_environment_id(environment_id: str) -> str:
    """Strip the enclosing braces Bitbucket puts around UUIDs."""
    return environment_id.strip().strip("{}")


def environment_matches(name: str, target: str) -> bool:
    return name.casefold() == target.casefold()


class EnvironmentResolver:
    """Maps environment ids to names, looking each distinct id up only once.

    A resolver lives for one aggregation run; create a new one per run so that
    renamed environments are picked up next time.
    """

    def __init__(self, lookup: Callable[[str, str], str]) -> None:
        """
        Args:
            lookup: Called as ``lookup(repo_slug, environment_id)`` on a miss.
        """
        self._lookup = lookup
        self._names: Dict[str, str] = {}
        self.lookups = 0

    def resolve(self, environment_id: str, repo_slug: str) -> str:
        key = normalize_environment_id(environment_id)
        if key in self._names:
            return self._names[key]

        name = self._lookup(repo_slug, key)
        self.lookups += 1
        self._names[key] = name
        logger.debug(
            "Resolved environment name",
            extra={"environment_id": key, "environment_name": name, "repo_slug": repo_slug},
        )
        return name
