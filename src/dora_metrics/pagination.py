"""Lazy iteration over paged collections of unknown size.

Three styles are supported:
- counted pagination: offset/limit pages with a ``total`` reported per page;
- cursor pagination: each page may carry a link to the next one;
- numbered pagination: no total and no cursor, stop at the first short page.

Every generator fetches from the beginning when iterated and yields raw item
dicts in source order. Fetch errors propagate to the caller unchanged.
"""

from __future__ import annotations

import logging
from typing import Any, Callable, Dict, Iterator, List, Optional

from .errors import MalformedResponseError

logger = logging.getLogger(__name__)

Payload = Dict[str, Any]


def _page_items(payload: Payload, items_key: str) -> List[Payload]:
    items = payload.get(items_key)
    if items is None:
        return []
    if not isinstance(items, list):
        raise MalformedResponseError(
            f"Expected '{items_key}' to be a list in paged response, got {type(items).__name__}."
        )
    return items


def iter_counted(
    fetch_page: Callable[[int, int], Payload],
    page_size: int,
    items_key: str,
    total_key: str = "total",
) -> Iterator[Payload]:
    """Iterate ``startAt``-style pages until ``startAt >= total``.

    ``total`` is re-read from every page since sources may revise it while the
    collection is being walked. The offset advances by the number of items
    actually returned, since sources may cap ``maxResults`` below the
    requested size. An empty page ends the walk.

    Args:
        fetch_page: Called as ``fetch_page(start_at, page_size)``.
        page_size: Requested number of items per page.
        items_key: Key holding the page's item list.
        total_key: Key holding the collection size.
    """
    start_at = 0
    total = 1

    while start_at < total:
        payload = fetch_page(start_at, page_size)
        items = _page_items(payload, items_key)

        raw_total = payload.get(total_key) or 0
        if not isinstance(raw_total, int):
            raise MalformedResponseError(f"Expected integer '{total_key}' in paged response, got {raw_total!r}.")
        total = raw_total

        logger.debug(
            "Fetched counted page",
            extra={"start_at": start_at, "items": len(items), "total": total},
        )
        if not items:
            break
        yield from items
        start_at += len(items)


def iter_cursor(
    fetch_url: Callable[[str], Payload],
    first_url: str,
    items_key: str = "values",
    next_key: str = "next",
) -> Iterator[Payload]:
    """Iterate pages by following ``next`` links until a page has none."""
    url: Optional[str] = first_url

    while url:
        payload = fetch_url(url)
        items = _page_items(payload, items_key)
        logger.debug("Fetched cursor page", extra={"url": url, "items": len(items)})
        yield from items
        url = payload.get(next_key) or None


def iter_numbered(
    fetch_page: Callable[[int, int], Payload],
    page_size: int,
    items_key: str = "values",
    first_page: int = 1,
) -> Iterator[Payload]:
    """Iterate numbered pages until one returns fewer than ``page_size`` items.

    Args:
        fetch_page: Called as ``fetch_page(page_number, page_size)``.
    """
    page = first_page

    while True:
        payload = fetch_page(page, page_size)
        items = _page_items(payload, items_key)
        logger.debug("Fetched numbered page", extra={"page": page, "items": len(items)})
        yield from items

        if len(items) < page_size:
            break
        page += 1
