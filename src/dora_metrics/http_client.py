"""Shared HTTP plumbing for source API clients."""

from __future__ import annotations

import logging
import threading
from typing import Any, Dict, Optional

import requests

from .errors import MalformedResponseError, SourceUnavailableError

logger = logging.getLogger(__name__)

_ERROR_BODY_LIMIT = 500


class SourceClient:
    """Base class holding authenticated ``requests`` sessions for one source.

    Sessions are not shared across threads: each thread lazily gets its own
    session carrying the client's headers and auth.

    Requests are issued once; there are no retries. A failed call fails the
    metric computation that issued it.
    """

    source_name = "source"

    def __init__(self, base_url: str, timeout_seconds: int = 30) -> None:
        """Initialize the headers and auth applied to every request to this source.

        Args:
            base_url: Root URL that relative paths are resolved against.
            timeout_seconds: Per-request timeout in seconds.
        """
        self._base_url = base_url.rstrip("/")
        self._timeout_seconds = timeout_seconds
        self._headers: Dict[str, str] = {"Accept": "application/json"}
        self._auth: Optional[requests.auth.AuthBase] = None
        self._local = threading.local()

    @property
    def _session(self) -> requests.Session:
        """Session owned by the calling thread."""
        session = getattr(self._local, "session", None)
        if session is None:
            session = requests.Session()
            session.headers.update(self._headers)
            session.auth = self._auth
            self._local.session = session
        return session

    def _build_url(self, path: str) -> str:
        """Build a fully qualified URL; absolute URLs are returned unchanged."""
        if path.startswith("http://") or path.startswith("https://"):
            return path
        return f"{self._base_url}/{path.lstrip('/')}"

    def request_json(
        self,
        method: str,
        path: str,
        params: Optional[Dict[str, Any]] = None,
        json: Optional[Any] = None,
    ) -> Any:
        """Execute a request and decode its JSON body.

        Raises:
            SourceUnavailableError: If the request fails in transport or the
                response status is not 2xx.
            MalformedResponseError: If a 2xx response body is not valid JSON.
        """
        url = self._build_url(path)
        method = method.upper()

        try:
            response = self._session.request(
                method,
                url,
                params=params,
                json=json,
                timeout=self._timeout_seconds,
            )
        except requests.RequestException as exc:
            raise SourceUnavailableError(f"{self.source_name} request failed: {method} {url}") from exc

        status_code = response.status_code
        logger.debug(
            "Source response received",
            extra={"source": self.source_name, "method": method, "url": url, "status_code": status_code},
        )

        if not 200 <= status_code < 300:
            raise SourceUnavailableError(
                f"{self.source_name} request failed: "
                f"{method} {url} returned {status_code} - {response.text[:_ERROR_BODY_LIMIT]}"
            )

        try:
            return response.json()
        except ValueError as exc:
            raise MalformedResponseError(f"{self.source_name} returned invalid JSON: {method} {url}") from exc

    def get_object(self, path: str, params: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        """GET a JSON object, rejecting any other top-level shape."""
        payload = self.request_json("GET", path, params=params)
        if not isinstance(payload, dict):
            raise MalformedResponseError(
                f"{self.source_name} returned unexpected payload shape: GET {self._build_url(path)}"
            )
        return payload
