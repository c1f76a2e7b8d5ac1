"""
Cursor-driven pagination over Web API listings.

``paginate`` keeps asking ``fetch(cursor)`` for pages until one comes back
empty. How the cursor moves forward depends on the endpoint:

- followed artists use a token cursor: "give me the artists after this ID"
- albums, tracks and saved albums use an offset cursor: "skip N items"
"""

from __future__ import annotations

from typing import Callable, Iterator, TypeVar

from .models import Cursor, Page

T = TypeVar("T")

# Largest page the Web API serves for these endpoints
PAGE_SIZE = 50

Fetch = Callable[[Cursor], Page]
Advance = Callable[[Cursor, Page, int], Cursor]


def after_last_id(cursor: Cursor, page: Page, fetched: int) -> Cursor:
    """Token cursor: continue after the last item's ID."""
    return page.last.id


def by_offset(cursor: Cursor, page: Page, fetched: int) -> Cursor:
    """Offset cursor: continue at the number of items fetched so far."""
    return fetched


def paginate(fetch: Fetch, initial_cursor: Cursor, advance: Advance) -> Iterator[T]:
    """Yield every item of a paged listing, lazily and in cursor order.

    Args:
        fetch: Returns the page at a cursor.
        initial_cursor: Cursor of the first page (None or 0).
        advance: Computes the next cursor from the current cursor, the page
            just fetched and the running item count.

    The generator is single-use. An empty page ends it, whatever its cursor.
    """
    cursor = initial_cursor
    fetched = 0
    while True:
        page = fetch(cursor)
        if not page.items:
            return
        fetched += len(page.items)
        yield from page.items
        cursor = advance(cursor, page, fetched)
