"""Page/limit normalisation and the list envelope {<entity>: [...], pagination: {...}}."""
import math

from suficiencia.config import settings


def page_window(page: int | None, limit: int | None) -> tuple[int, int, int]:
    """Clamp page >= 1 and 1 <= limit <= max_page_size. Returns (page, limit, offset)."""
    page = max(int(page or 1), 1)
    limit = int(limit or settings.default_page_size)
    limit = min(max(limit, 1), settings.max_page_size)
    return page, limit, (page - 1) * limit


def envelope(key: str, items: list, page: int, limit: int, total: int) -> dict:
    total_pages = math.ceil(total / limit) if limit else 0
    return {
        key: items,
        "pagination": {
            "page": page,
            "limit": limit,
            "total": total,
            "totalPages": total_pages,
            "hasNext": page < total_pages,
            "hasPrev": page > 1,
        },
    }
