"""Tabular storage of monthly metric values, one CSV file per sheet."""

from __future__ import annotations

import csv
import logging
import re
from pathlib import Path
from typing import List, Protocol, Tuple, Union

logger = logging.getLogger(__name__)

DEPLOYMENT_HEADER = ["Year", "Month", "Deployment Count"]


class RowStore(Protocol):
    def upsert(self, sheet_name: str, key: Tuple[int, int], value: Union[int, float]) -> None:
        ...


class CsvRowStore:
    """Upserts ``(year, month) -> value`` rows into CSV sheets under a directory.

    A sheet is created with a header row on first write. The row whose year and
    month match is updated in place; otherwise a new row is appended.
    """

    def __init__(self, directory: Union[str, Path], header: List[str] = DEPLOYMENT_HEADER) -> None:
        self._directory = Path(directory)
        self._header = list(header)

    def sheet_path(self, sheet_name: str) -> Path:
        slug = re.sub(r"[^A-Za-z0-9]+", "_", sheet_name).strip("_").lower() or "sheet"
        return self._directory / f"{slug}.csv"

    def read_rows(self, sheet_name: str) -> List[List[str]]:
        path = self.sheet_path(sheet_name)
        if not path.exists():
            return []
        with path.open(newline="", encoding="utf-8") as handle:
            return list(csv.reader(handle))

    def upsert(self, sheet_name: str, key: Tuple[int, int], value: Union[int, float]) -> None:
        rows = self.read_rows(sheet_name) or [list(self._header)]
        year, month = (str(part) for part in key)

        for row in rows[1:]:
            if len(row) >= 2 and row[0] == year and row[1] == month:
                row[2:] = [str(value)]
                break
        else:
            rows.append([year, month, str(value)])

        path = self.sheet_path(sheet_name)
        path.parent.mkdir(parents=True, exist_ok=True)
        with path.open("w", newline="", encoding="utf-8") as handle:
            csv.writer(handle).writerows(rows)

        logger.info(
            "Upserted sheet row",
            extra={"sheet": sheet_name, "year": year, "month": month, "value": value},
        )
