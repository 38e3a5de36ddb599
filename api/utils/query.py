from __future__ import annotations

from typing import List, Mapping, Tuple

from flask import request, abort

MAX_LIMIT = 100


def parse_pagination(default_limit: int = 10) -> Tuple[int, int]:
    try:
        page = int(request.args.get("page", "1"))
        limit = int(request.args.get("limit", str(default_limit)))
    except ValueError:
        abort(400, description="page and limit must be integers")
    page = max(page, 1)
    limit = max(1, min(limit, MAX_LIMIT))
    return page, limit


def parse_sort(columns: Mapping, default: str) -> List:
    """
    Translate ?sort=field,-other into ORDER BY clauses.
    A leading "-" means descending; unknown fields are a 400.
    """
    sort_param = request.args.get("sort", default)
    order_by = []
    for f in (s.strip() for s in sort_param.split(",")):
        if not f:
            continue
        desc = f.startswith("-")
        key = f[1:] if desc else f
        col = columns.get(key)
        if col is None:
            abort(400, description=f"Unsupported sort field: {key}. Allowed: {', '.join(columns)}")
        order_by.append(col.desc() if desc else col.asc())
    return order_by


def paginate(query, order_by, page: int, limit: int):
    total = query.count()
    rows = query.order_by(*order_by).offset((page - 1) * limit).limit(limit).all()
    meta = {
        "page": page,
        "limit": limit,
        "total": total,
        "pages": (total + limit - 1) // limit,
    }
    return rows, meta
