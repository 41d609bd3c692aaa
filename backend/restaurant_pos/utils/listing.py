from __future__ import annotations
from typing import Iterable, Optional, Tuple
from datetime import date, datetime
import hashlib
from flask import request, abort, make_response
from sqlalchemy.orm import Query
from restaurant_pos.config.pagination import normalize_pagination


def iso(value) -> Optional[str]:
    """Render a date/datetime as ISO 8601 (UTC datetimes get a trailing Z)."""
    if value is None:
        return None
    if isinstance(value, datetime):
        out = value.replace(microsecond=0).isoformat()
        return out.replace('+00:00', 'Z') if value.tzinfo else out + 'Z'
    if isinstance(value, date):
        return value.isoformat()
    return str(value)


def apply_pagination(q: Query) -> Tuple[Query, int, int, int]:
    try:
        limit, offset = normalize_pagination(request.args.get('limit'), request.args.get('offset'))
    except ValueError as e:
        abort(400, description=str(e))
    total = q.count()
    return q.offset(offset).limit(limit), total, limit, offset


def build_list_payload(rows: list, total: int, limit: int, offset: int):
    return {
        'data': rows,
        'pagination': {
            'total': total,
            'limit': limit,
            'offset': offset,
            'returned': len(rows)
        }
    }


def compute_etag(ids: Iterable, latest_ts: Optional[datetime] = None, extra: str = '') -> str:
    seed = f"{list(ids)}|{iso(latest_ts) or ''}|{extra}"
    return hashlib.sha256(seed.encode()).hexdigest()[:32]


def make_cached_response(body, etag_value: str):
    """Return 304 when If-None-Match matches etag_value, else the JSON body with an ETag header."""
    inm = request.headers.get('If-None-Match')
    if inm and inm.strip('"') == etag_value:
        resp = make_response('', 304)
    else:
        resp = make_response(body)
    resp.headers['ETag'] = etag_value
    return resp


__all__ = ['iso', 'apply_pagination', 'build_list_payload', 'compute_etag', 'make_cached_response']
