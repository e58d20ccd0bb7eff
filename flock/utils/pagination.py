from typing import Any, Optional

from flock.config_secrets import MAX_PAGE_SIZE


def clamp_limit(limit: Optional[int], default: int) -> int:
    if limit is None:
        return default
    return max(1, min(limit, MAX_PAGE_SIZE))


def split_page(
    rows: list[dict[str, Any]],
    limit: int,
    cursor_field: str = "created_at",
) -> tuple[list[dict[str, Any]], Optional[int], bool]:
    """
    Cut rows fetched with ``limit + 1`` down to one page.

    Returns (rows, next_cursor, has_more). next_cursor is the cursor_field of
    the last row kept and is only set when another page exists.
    """
    has_more = len(rows) > limit
    rows = rows[:limit]
    next_cursor = rows[-1][cursor_field] if has_more and rows else None
    return rows, next_cursor, has_more
