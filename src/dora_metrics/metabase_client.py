"""Metabase API client for single-value saved question queries."""

from __future__ import annotations

from datetime import date
from typing import Any, Dict, Union

from .config import MetabaseConfig
from .errors import MalformedResponseError
from .http_client import SourceClient

QuestionId = Union[int, str]


class MetabaseClient(SourceClient):
    """Runs saved questions parameterized by a single reference date."""

    source_name = "Metabase"

    _DATE_TEMPLATE_TAG = "reference_date"

    def __init__(self, config: MetabaseConfig, timeout_seconds: int = 30) -> None:
        super().__init__(config.url, timeout_seconds=timeout_seconds)
        self._headers["x-api-key"] = config.api_key

    def query_scalar(self, question_id: QuestionId, reference_date: date) -> float:
        """Run a question and return the first column of its first row.

        Raises:
            MalformedResponseError: If the query returns no rows or the value is
                not numeric.
        """
        body: Dict[str, Any] = {
            "parameters": [
                {
                    "type": "date/single",
                    "target": ["variable", ["template-tag", self._DATE_TEMPLATE_TAG]],
                    "value": reference_date.isoformat(),
                }
            ]
        }
        rows = self.request_json("POST", f"api/card/{question_id}/query/json", json=body)

        if not isinstance(rows, list) or not rows:
            raise MalformedResponseError(
                f"No results returned or query failed from Metabase question {question_id}."
            )

        first_row = rows[0]
        if not isinstance(first_row, dict) or not first_row:
            raise MalformedResponseError(f"Metabase question {question_id} returned an empty first row.")

        value = next(iter(first_row.values()))
        if isinstance(value, bool):
            raise MalformedResponseError(f"Metabase question {question_id} returned a non-numeric value: {value!r}")
        try:
            return float(value)
        except (TypeError, ValueError) as exc:
            raise MalformedResponseError(
                f"Metabase question {question_id} returned a non-numeric value: {value!r}"
            ) from exc
