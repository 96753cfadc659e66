"""Pagination helpers shared by adapters and commands."""
from collections.abc import Callable
from typing import TypeVar


T = TypeVar("T")


def fetch_all_pages(
    fetch_page: Callable[[int, int], list[T]],
    page_size: int,
    max_results: int,
) -> list[T]:
    """Walk an offset-paginated listing until it runs dry.

    Stops on an empty page, on a page shorter than requested, or once
    ``max_results`` items have been collected.

    Args:
        fetch_page: Callable taking ``(skip, limit)`` and returning one page.
        page_size: Items requested per page.
        max_results: Cap on the total, normally ``TrackConfig.max_results``.

    Returns:
        The collected items, never more than the cap.
    """
    results: list[T] = []
    offset = 0

    while len(results) < max_results:
        limit = min(page_size, max_results - len(results))
        page = fetch_page(offset, limit)
        if not page:
            break
        results.extend(page)
        if len(page) < limit:
            break
        offset += len(page)

    return results[:max_results]


def fetch_window(
    fetch_page: Callable[[int, int], list[T]],
    skip: int,
    limit: int,
    page_size: int,
) -> list[T]:
    """Collect items ``[skip, skip + limit)`` from a page-numbered listing.

    Pages are numbered from 1. When ``skip`` falls inside a page the window
    spans two or more pages, and each of them is read.

    Args:
        fetch_page: Callable taking ``(page, per_page)`` and returning one page.
        skip: Items to skip.
        limit: Items wanted.
        page_size: Largest page the backend serves.
    """
    per_page = max(1, min(limit, page_size))
    page = skip // per_page + 1
    offset = skip % per_page
    items: list[T] = []

    while len(items) < offset + limit:
        batch = fetch_page(page, per_page)
        items.extend(batch)
        if len(batch) < per_page:
            break
        page += 1

    return items[offset : offset + limit]
