"""
Pagination helpers shared by every listing endpoint
"""
import math
from typing import Any, List, Tuple

from sqlalchemy import Select, func, select
from sqlalchemy.ext.asyncio import AsyncSession


def get_offset(page: int, limit: int) -> int:
    return (page - 1) * limit


def pagination_meta(page: int, limit: int, total: int) -> dict:
    total_pages = math.ceil(total / limit) if limit else 0
    return {
        "current_page": page,
        "total_pages": total_pages,
        "total": total,
        "has_next_page": page < total_pages,
        "has_prev_page": page > 1,
    }


async def paginate(db: AsyncSession, stmt: Select, page: int, limit: int) -> Tuple[List[Any], int]:
    """
    Run a select for one page and count the full result set.

    Returns:
        (rows of the page as scalars, total matching rows)
    """
    count_stmt = select(func.count()).select_from(stmt.order_by(None).subquery())
    total = (await db.execute(count_stmt)).scalar_one()

    result = await db.execute(stmt.offset(get_offset(page, limit)).limit(limit))
    return list(result.scalars().all()), total


def paginated(key: str, items: List[Any], page: int, limit: int, total: int) -> dict:
    return {key: items, **pagination_meta(page, limit, total)}
