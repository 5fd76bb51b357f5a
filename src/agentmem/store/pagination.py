"""Limit/offset windowing over an already-sorted sequence."""

from __future__ import annotations

from collections.abc import Sequence
from typing import TypeVar

from agentmem.store.models import DEFAULT_LIMIT, ListOptions, ListResult

T = TypeVar("T")


def paginate(items: Sequence[T], opts: ListOptions | None = None) -> ListResult[T]:
    """Cut one page out of ``items``.

    ``total`` is the length before windowing. A non-positive limit means the
    default page size; a negative offset counts as zero. An offset at or past
    the end yields an empty page with ``has_more`` false.
    """
    opts = opts or ListOptions()
    total = len(items)

    limit = opts.limit if opts.limit > 0 else DEFAULT_LIMIT
    offset = max(opts.offset, 0)

    if offset >= total:
        return ListResult(items=[], total=total, limit=limit, offset=offset, has_more=False)

    remaining = list(items[offset:])
    has_more = len(remaining) > limit
    return ListResult(
        items=remaining[:limit],
        total=total,
        limit=limit,
        offset=offset,
        has_more=has_more,
    )
