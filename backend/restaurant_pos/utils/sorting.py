from __future__ import annotations
from typing import Mapping, Optional
from flask import abort


def apply_multi_sort(query, sort_expr: Optional[str], allowed: Mapping, tie_breaker, default: Optional[str] = None):
    """Order query by a comma separated key list such as ``-order_date,order_id``.

    ``default`` is used when the request sends no sort. Keys outside
    ``allowed`` abort with 400 listing the accepted ones. The primary key
    tie breaker always goes last so offset paging is stable.
    """
    expr = sort_expr or default
    clauses = []
    for token in (t.strip() for t in (expr or '').split(',')):
        if not token:
            continue
        key = token.lstrip('-')
        if key not in allowed:
            abort(400, description=f"Invalid sort field {key} (allowed: {', '.join(sorted(allowed))})")
        col = allowed[key]
        clauses.append(col.desc() if token.startswith('-') else col.asc())
    clauses.append(tie_breaker.asc())
    return query.order_by(*clauses)
