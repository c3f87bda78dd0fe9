"""
Offset pagination shared by list endpoints.
"""
import math
from typing import Any, Dict, List

from sqlalchemy.orm import Query


def paginate(query: Query, page: int = 1, limit: int = 20) -> Dict[str, Any]:
    """Run ``query`` for one page and return rows plus pagination metadata."""
    page = max(int(page or 1), 1)
    limit = max(int(limit or 20), 1)
    total = query.order_by(None).count()
    items: List[Any] = query.limit(limit).offset((page - 1) * limit).all()
    return {
        "data": items,
        "pagination": {
            "page": page,
            "limit": limit,
            "total": total,
            "total_pages": math.ceil(total / limit) if total else 0,
        },
    }
