# vibe_api/utils/pagination.py
# Page/limit arithmetic shared by the gallery and chat history listings

import math
from typing import Any, Optional


def _to_int(value: Any, default: int) -> int:
    """Parse query values leniently; anything unparseable falls back to the default."""
    if value is None or isinstance(value, bool):
        return default
    try:
        return int(str(value).strip())
    except (TypeError, ValueError):
        return default


def clamp_page(value: Any) -> int:
    return max(1, _to_int(value, 1))


def clamp_limit(value: Any, default: int, maximum: int) -> int:
    return min(maximum, max(1, _to_int(value, default)))


def total_pages(total: int, limit: int) -> int:
    return math.ceil(total / limit) if limit > 0 else 0


def page_window(page: int, limit: int) -> tuple[int, int]:
    """Return (skip, end) slice bounds for a 1-based page."""
    skip = (page - 1) * limit
    return skip, skip + limit


def build_pagination(page: int, limit: int, total: int, with_has_more: bool = False) -> dict:
    pages = total_pages(total, limit)
    result: dict[str, Optional[Any]] = {
        "page": page,
        "limit": limit,
        "total": total,
        "totalPages": pages,
    }
    if with_has_more:
        result["hasMore"] = page < pages
    return result
